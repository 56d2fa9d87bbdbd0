"""
Tests for HTTP server independence from the CLI.

**Feature: docscope-service-initialization**
"""

import os
import subprocess
import sys
from pathlib import Path

_SRC = Path(__file__).resolve().parent.parent / "src"

_LIST_MODULES = (
    "import sys, docscope.http_server; "
    "print('\\n'.join(sorted(m for m in sys.modules if m.startswith('docscope'))))"
)


def get_transitive_imports(module_name: str) -> set[str]:
    """
    Import a module in a fresh interpreter and return every docscope
    module that import loaded.
    """
    code = _LIST_MODULES.replace("docscope.http_server", module_name)
    env = {**os.environ, "PYTHONPATH": os.pathsep.join([str(_SRC), os.environ.get("PYTHONPATH", "")])}
    completed = subprocess.run(
        [sys.executable, "-c", code], capture_output=True, text=True, check=True, env=env
    )
    return set(completed.stdout.split())


def test_http_server_does_not_import_cli():
    """
    Importing `docscope.http_server` SHALL NOT import `docscope.cli`, so the
    server can be embedded without the typer and rich stack.
    """
    transitive_imports = get_transitive_imports("docscope.http_server")

    cli_imports = [mod for mod in transitive_imports if mod.startswith("docscope.cli")]

    assert cli_imports == [], f"HTTP server should not import CLI modules: {cli_imports}"


def test_http_server_imports_from_services_container():
    transitive_imports = get_transitive_imports("docscope.http_server")

    assert "docscope.services.container" in transitive_imports
