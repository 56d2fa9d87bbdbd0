"""
Integration tests for CLI commands.

Tests the basic functionality of CLI commands and error handling.
"""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from docscope.cli import app

runner = CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict:
    return {"DOCSCOPE_STORAGE_DB_PATH": str(tmp_path / "cli" / "docscope.db")}


@pytest.fixture
def docs(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    root.mkdir()
    (root / "a.txt").write_text("hello world")
    (root / "b.md").write_text("unrelated notes")
    return root


class TestCLIHelp:
    """Test CLI help and usage information."""

    def test_main_help(self):
        """Main help should display available commands."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("scan", "search", "status", "serve"):
            assert command in result.stdout

    def test_scan_help(self):
        result = runner.invoke(app, ["scan", "--help"])

        assert result.exit_code == 0
        assert "Directory to register and scan" in result.stdout

    def test_search_help(self):
        result = runner.invoke(app, ["search", "--help"])

        assert result.exit_code == 0
        assert "--filename" in result.stdout
        assert "--limit" in result.stdout


class TestCLIErrorHandling:
    """Test CLI error handling for invalid inputs."""

    def test_scan_missing_path(self):
        result = runner.invoke(app, ["scan"])

        assert result.exit_code != 0

    def test_scan_rejects_missing_directory(self, env, tmp_path: Path):
        result = runner.invoke(app, ["scan", str(tmp_path / "nope")], env=env)

        assert result.exit_code == 1

    def test_search_without_criteria(self, env):
        result = runner.invoke(app, ["search"], env=env)

        assert result.exit_code == 1


class TestCLIWorkflow:
    def test_scan_then_search(self, env, docs: Path):
        scan = runner.invoke(app, ["scan", str(docs)], env=env)

        assert scan.exit_code == 0, scan.stdout
        assert "done" in scan.stdout

        found = runner.invoke(app, ["search", "hello"], env=env)
        assert found.exit_code == 0
        assert "1 results" in found.stdout

        missing = runner.invoke(app, ["search", "zebra"], env=env)
        assert "No results found." in missing.stdout

    def test_rescan_reuses_scope(self, env, docs: Path):
        runner.invoke(app, ["scan", str(docs)], env=env)
        again = runner.invoke(app, ["scan", str(docs)], env=env)

        assert again.exit_code == 0
        assert "Registered" not in again.stdout

    def test_status_lists_scopes(self, env, docs: Path):
        runner.invoke(app, ["scan", str(docs), "--name", "handbook"], env=env)

        result = runner.invoke(app, ["status"], env=env)

        assert result.exit_code == 0
        assert "handbook" in result.stdout
