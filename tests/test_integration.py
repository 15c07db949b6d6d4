"""
Integration tests for deplens.
Tests source discovery, concurrent reading and complete end-to-end workflows.
"""

import pytest

from deplens.analyzer import resolve_dependency_usage
from deplens.cli_config import ScanConfig
from deplens.error_handling import ErrorCategory, get_error_handler
from deplens.lockfiles import load_lockfile
from deplens.main import async_analyze_project
from deplens.scanner import (
    discover_source_files,
    extract_vue_script,
    is_ignored,
    scan_sources,
)
from deplens.source_normalizer import normalize_sources


class TestSourceDiscovery:
    """Test finding source files below a project."""

    def test_discover_skips_default_ignores(self, npm_project):
        """Test node_modules and non-source files are skipped."""
        (npm_project / "README.md").write_text("# demo")
        (npm_project / "dist").mkdir()
        (npm_project / "dist" / "bundle.js").write_text("require('left-pad');")
        (npm_project / "src" / "types.d.ts").write_text("export type A = string;")

        found = discover_source_files(npm_project)

        relative = [path.relative_to(npm_project).as_posix() for path in found]
        assert relative == ["src/helper.js", "src/index.js"]

    def test_discover_with_ignore_entries(self, npm_project):
        """Test ignore entries match directories and files."""
        (npm_project / "scripts").mkdir()
        (npm_project / "scripts" / "release.mjs").write_text("import 'dayjs';")

        found = discover_source_files(npm_project, ["src/helper.js", "scripts"])

        assert [path.name for path in found] == ["index.js"]

    def test_custom_extensions(self, npm_project):
        """Test narrowing the scanned extensions."""
        (npm_project / "src" / "view.ts").write_text("export const x: number = 1;")

        found = discover_source_files(npm_project, scan_config=ScanConfig(source_extensions=["ts"]))

        assert [path.name for path in found] == ["view.ts"]

    def test_is_ignored(self):
        """Test glob and entry matching on project-relative paths."""
        globs = ["**/node_modules/**"]
        assert is_ignored("node_modules/", globs, [])
        assert is_ignored("packages/a/node_modules/x.js", globs, [])
        assert is_ignored("test/fixtures/a.js", globs, ["test"])
        assert not is_ignored("latest/a.js", globs, ["test"])

    def test_extract_vue_script(self):
        """Test only the script block of a Vue component is kept."""
        component = (
            "<template><div/></template>\n"
            "<script setup>\nimport dayjs from 'dayjs';\n</script>\n"
            "<style>div {}</style>\n"
        )

        assert extract_vue_script(component).strip() == "import dayjs from 'dayjs';"
        assert extract_vue_script("<template><div/></template>") == ""


class TestSourceReading:
    """Test concurrent source reading."""

    @pytest.mark.asyncio
    async def test_scan_sources(self, npm_project):
        """Test every discovered file is read in order."""
        scan = await scan_sources(npm_project)

        assert [path for path, _ in scan.sources] == ["src/helper.js", "src/index.js"]
        assert "import axios" in scan.sources[1][1]
        assert scan.failures == []
        assert scan.files_found == 2

    @pytest.mark.asyncio
    async def test_scan_sources_vue(self, temp_dir):
        """Test Vue components are reduced to their script block."""
        (temp_dir / "App.vue").write_text(
            "<template><p/></template>\n<script>\nimport axios from 'axios';\n</script>\n"
        )

        scan = await scan_sources(temp_dir)

        assert scan.sources == [("App.vue", "\nimport axios from 'axios';\n")]

    @pytest.mark.asyncio
    async def test_oversized_files_skipped(self, temp_dir):
        """Test read failures are collected instead of raised."""
        (temp_dir / "empty.js").write_text("")
        (temp_dir / "big.js").write_text("module.exports = 1;\n")
        seen = []
        handler = get_error_handler()
        handler.register_callback(seen.append, ErrorCategory.FILESYSTEM)

        try:
            scan = await scan_sources(temp_dir, scan_config=ScanConfig(max_file_size_mb=0))
        finally:
            handler.unregister_callback(seen.append)

        assert scan.sources == [("empty.js", "")]
        assert [failure.file_path for failure in scan.failures] == ["big.js"]
        assert len(seen) == 1
        assert seen[0].details["file_path"] == "big.js"

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self, temp_dir):
        """Test reading with a concurrency limit of one."""
        for index in range(5):
            (temp_dir / f"m{index}.js").write_text(f"export default {index};")

        scan = await scan_sources(temp_dir, scan_config=ScanConfig(max_concurrent=1))

        assert [path for path, _ in scan.sources] == [f"m{index}.js" for index in range(5)]


class TestEndToEnd:
    """Test complete analysis workflows."""

    @pytest.mark.asyncio
    async def test_complete_npm_analysis(self, npm_project):
        """Test workflow: load lockfile -> scan -> parse -> resolve."""
        graph = load_lockfile(npm_project)
        scan = await scan_sources(npm_project)
        trees = normalize_sources(scan.sources)

        summary = resolve_dependency_usage(graph, trees)

        assert [entry.name for entry in summary.unused] == ["dayjs", "left-pad"]
        assert summary.unused_count == 2
        assert [entry.name for entry in summary.dev] == ["jest"]
        assert summary.total == 3

    @pytest.mark.asyncio
    async def test_computed_require_reported_as_dynamic(self, npm_project):
        """Test computed require() calls end up in the dynamic list."""
        (npm_project / "src" / "plugins.js").write_text(
            "const name = process.env.PLUGIN;\nmodule.exports = require(name);\n"
        )

        summary, warnings, _ = await async_analyze_project(
            npm_project, False, [], [], None, False, True
        )

        assert [entry.source_call_text for entry in summary.dynamic] == ["require(name)"]
        assert summary.unused_count == 2
        assert warnings == []

    @pytest.mark.asyncio
    async def test_complete_pnpm_analysis(self, pnpm_project):
        """Test the pnpm workflow with a JSX component."""
        summary, _, has_ignore_config = await async_analyze_project(
            pnpm_project, True, ["left-pad"], [], None, False, True
        )

        assert [entry.name for entry in summary.unused] == ["react-dom"]
        assert [entry.name for entry in summary.dev] == ["typescript"]
        assert has_ignore_config

    @pytest.mark.asyncio
    async def test_read_failures_become_warnings(self, npm_project):
        """Test unreadable files are reported without failing the run."""
        (npm_project / "src" / "latin1.js").write_bytes(b"var s = '\xe9';\n")

        summary, warnings, _ = await async_analyze_project(
            npm_project, False, [], [], None, False, True
        )

        assert summary.unused_count == 2
        assert len(warnings) == 1
        assert "1 files read failed" in warnings[0]
