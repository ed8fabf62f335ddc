#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path
from textwrap import dedent

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mb_context import BundleContext
from mb_driver import MBDriver

NODE = shutil.which("node")


@pytest.fixture
def repo_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture
def temp_project(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def write_js_file(temp_project: Path):
    def _write(rel_path: str, content: str) -> Path:
        file_path = temp_project / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(dedent(content), encoding="utf-8")
        return file_path

    return _write


@pytest.fixture
def bundle_project(temp_project: Path):
    """Bundle an entry file of the temporary project.

    Usage:
        def test_something(write_js_file, bundle_project):
            write_js_file("main.js", 'module.exports = 1;')
            result = bundle_project("main.js")
            assert result.artifact is not None
    """

    def _bundle(entry: str = "main.js", context: BundleContext | None = None, search_paths=None):
        driver = MBDriver(search_paths=search_paths, context=context)
        return driver.bundle(entry, importer_dir=temp_project)

    return _bundle


@pytest.fixture
def run_artifact():
    """Execute an artifact with Node.js.

    Returns (returncode, stdout, stderr). With print_result=True the value
    returned by the entry module is printed as JSON on the last line.
    Skips the test when `node` is not installed.
    """
    if NODE is None:
        pytest.skip("node is not installed")

    def _run(artifact: str, work_dir: Path, print_result: bool = False) -> tuple[int, str, str]:
        script = artifact
        if print_result:
            script = "var __mb_result = " + artifact + "console.log(JSON.stringify(__mb_result));\n"
        script_file = work_dir / "bundle_under_test.js"
        script_file.write_text(script, encoding="utf-8")

        result = subprocess.run(
            [NODE, str(script_file)],
            capture_output=True,
            text=True,
            timeout=30,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


def has_error_code(diagnostics, code: str) -> bool:
    """Check if any diagnostic contains the given error code.

    Args:
        diagnostics: List of Diagnostic objects
        code: Error code string like "RES-0010" or "[RES-0010]"

    Returns:
        True if any diagnostic message contains the error code
    """
    if not code.startswith("["):
        code = f"[{code}]"
    return any(code in d.message for d in diagnostics)
