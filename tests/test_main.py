"""Tests for the command-line entry point."""

import json
import logging
import sys

import pytest

from repair_agent import main as cli
from repair_agent.utils import setup_logging


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["repair-agent", *argv])
    with pytest.raises(SystemExit) as exit_info:
        cli.main()
    return exit_info.value.code


class TestCli:
    """Tests for the analyze, fix and enhance subcommands."""

    def test_analyze_prints_json_report(self, monkeypatch, tmp_path, capsys):
        """Given --json, should print the report as JSON and exit 0."""
        # Given
        source = tmp_path / "App.js"
        source.write_text("function f() {\n  return 1;\n", encoding="utf-8")

        # When
        code = run_cli(monkeypatch, "analyze", str(source), "--json")

        # Then
        assert code == 0
        out = capsys.readouterr().out
        report = json.loads(out[out.index("{\n"):])
        assert report["total_issues_found"] >= 1
        assert report["fixed_code"].rstrip().endswith("}")

    def test_fix_writes_repaired_file(self, monkeypatch, tmp_path):
        """Given --write, should write the repaired code back and exit 0."""
        # Given
        source = tmp_path / "add.js"
        source.write_text("function add(a, b) {\n  return a + b;\n", encoding="utf-8")

        # When
        code = run_cli(monkeypatch, "fix", str(source), "--write")

        # Then
        assert code == 0
        assert source.read_text(encoding="utf-8") == "function add(a, b) {\n  return a + b;\n}\n"

    def test_missing_file_exits_with_error(self, monkeypatch, tmp_path):
        """Given a path that does not exist, should exit 1."""
        # When / Then
        assert run_cli(monkeypatch, "analyze", str(tmp_path / "nope.js")) == 1

    def test_enhance_prints_prompt(self, monkeypatch, capsys):
        """Given a prompt, should print it with prevention rules."""
        # When
        code = run_cli(monkeypatch, "enhance", "Build a todo app", "--files", "src/App.tsx")

        # Then
        assert code == 0
        out = capsys.readouterr().out
        assert "Build a todo app" in out
        assert "JSX files" in out

    def test_zero_max_retries_is_rejected(self, monkeypatch, tmp_path):
        """Given --max-retries 0, should reject the budget, exit 1 and leave the file alone."""
        # Given
        source = tmp_path / "add.js"
        source.write_text("function add(a, b) {\n  return a + b;\n", encoding="utf-8")

        # When
        code = run_cli(monkeypatch, "fix", str(source), "--max-retries", "0", "--write")

        # Then
        assert code == 1
        assert source.read_text(encoding="utf-8") == "function add(a, b) {\n  return a + b;\n"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_returns_package_logger_at_level(self, monkeypatch):
        """Given a level and a stream, should return the package logger set to that level."""
        # Given
        package_logger = logging.getLogger("repair_agent")
        monkeypatch.setattr(package_logger, "level", package_logger.level)

        # When
        logger = setup_logging(level=logging.DEBUG, stream=sys.stderr)

        # Then
        assert logger is package_logger
        assert logger.level == logging.DEBUG
