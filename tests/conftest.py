"""
Shared fixtures for deplens tests.
Builds throwaway npm and pnpm projects on disk.
"""

import json

import pytest
import yaml

from deplens.cli_config import reset_config
from deplens.structured_logging import configure_logging


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tool config discovery and env overrides out of the tests."""
    for key in (
        "DEPLENS_MAX_CONCURRENT",
        "DEPLENS_MAX_FILE_SIZE_MB",
        "DEPLENS_LOG_LEVEL",
        "DEPLENS_LOG_FORMAT",
        "DEPLENS_OUTPUT_FORMAT",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()
    configure_logging()


@pytest.fixture
def temp_dir(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def npm_lock_data():
    return {
        "name": "demo-app",
        "version": "1.0.0",
        "lockfileVersion": 3,
        "requires": True,
        "packages": {
            "": {
                "name": "demo-app",
                "version": "1.0.0",
                "dependencies": {
                    "@babel/runtime": "^7.23.0",
                    "axios": "^1.6.0",
                    "dayjs": "^1.11.10",
                    "left-pad": "^1.3.0",
                    "lodash": "^4.17.21",
                    "react": "^18.2.0",
                },
                "devDependencies": {
                    "jest": "^29.7.0",
                },
            },
            "node_modules/axios": {
                "version": "1.6.2",
                "dependencies": {"follow-redirects": "^1.15.0"},
            },
            "node_modules/react-dom": {
                "version": "18.2.0",
                "dependencies": {"scheduler": "^0.23.0"},
                "peerDependencies": {"react": "^18.2.0"},
            },
            "node_modules/lodash": {"version": "4.17.21"},
        },
    }


@pytest.fixture
def pnpm_v9_lock_data():
    return {
        "lockfileVersion": "9.0",
        "settings": {"autoInstallPeers": True, "excludeLinksFromLockfile": False},
        "importers": {
            ".": {
                "dependencies": {
                    "left-pad": {"specifier": "^1.3.0", "version": "1.3.0"},
                    "react": {"specifier": "^18.2.0", "version": "18.2.0"},
                    "react-dom": {"specifier": "^18.2.0", "version": "18.2.0(react@18.2.0)"},
                },
                "devDependencies": {
                    "typescript": {"specifier": "^5.3.0", "version": "5.3.3"},
                },
            }
        },
        "packages": {
            "react@18.2.0": {"resolution": {"integrity": "sha512-abc"}},
        },
        "snapshots": {
            "react-dom@18.2.0(react@18.2.0)": {
                "dependencies": {"react": "18.2.0", "scheduler": "0.23.0"},
            },
            "react@18.2.0": {"dependencies": {"loose-envify": "1.4.0"}},
            "scheduler@0.23.0": {"dependencies": {"loose-envify": "1.4.0"}},
        },
    }


@pytest.fixture
def pnpm_v6_lock_data():
    return {
        "lockfileVersion": "6.0",
        "dependencies": {
            "lodash": {"specifier": "^4.17.21", "version": "4.17.21"},
            "react": {"specifier": "^18.2.0", "version": "18.2.0"},
        },
        "packages": {
            "/react-dom@18.2.0(react@18.2.0)": {
                "dependencies": {"react": "18.2.0(typescript@5.3.3)"},
            },
        },
    }


@pytest.fixture
def npm_project(temp_dir, npm_lock_data):
    (temp_dir / "package-lock.json").write_text(json.dumps(npm_lock_data, indent=2))
    src = temp_dir / "src"
    src.mkdir()
    (src / "index.js").write_text(
        "import axios from 'axios';\n"
        "import get from 'lodash/get';\n"
        "import { helper } from './helper';\n"
        "const ext = require('@babel/runtime/helpers/extends');\n"
        "export default function main() { return axios.get(get({}, 'url')); }\n"
    )
    (src / "helper.js").write_text("export const helper = () => 42;\n")
    node_modules = temp_dir / "node_modules" / "dayjs"
    node_modules.mkdir(parents=True)
    (node_modules / "index.js").write_text("const dayjs = require('dayjs');\n")
    return temp_dir


@pytest.fixture
def pnpm_project(temp_dir, pnpm_v9_lock_data):
    (temp_dir / "pnpm-lock.yaml").write_text(yaml.safe_dump(pnpm_v9_lock_data, sort_keys=False))
    (temp_dir / "App.jsx").write_text(
        "import React from 'react';\n"
        "export const App = () => <div>hello</div>;\n"
    )
    return temp_dir
