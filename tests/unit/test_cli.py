"""
Unit tests for the command-line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from structure_guard import __version__
from structure_guard.cli import app, display

runner = CliRunner()

SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "age": {"type": "integer", "minimum": 0},
    },
    "required": ["name"],
}


@pytest.fixture
def schema_file(tmp_path):
    path = tmp_path / "schema.json"
    path.write_text(json.dumps(SCHEMA))
    return path


@pytest.fixture
def write_json(tmp_path):
    def _write(text: str):
        path = tmp_path / "data.json"
        path.write_text(text)
        return path
    return _write


class TestValidateCommand:
    """Test the validate command."""

    def test_valid_file(self, schema_file, write_json):
        """Test a conforming file passes."""
        data = write_json('{"name": "Sam", "age": 7}')
        result = runner.invoke(app, ["validate", "--json", str(data), "--schema", str(schema_file)])

        assert result.exit_code == 0
        assert "Validation passed" in result.output

    def test_invalid_file(self, schema_file, write_json):
        """Test a range violation fails."""
        data = write_json('{"name": "Sam", "age": -1}')
        result = runner.invoke(app, ["validate", "--json", str(data), "--schema", str(schema_file)])

        assert result.exit_code == 1
        assert "Validation failed" in result.output

    def test_missing_file(self, schema_file, tmp_path):
        """Test a missing input file is a usage error."""
        missing = tmp_path / "missing.json"
        result = runner.invoke(app, ["validate", "--json", str(missing), "--schema", str(schema_file)])

        assert result.exit_code != 0


class TestCheckCommand:
    """Test the check command."""

    def test_accepted(self, schema_file, write_json):
        """Test a conforming file walks the grammar to the end."""
        data = write_json('{"name": "Sam", "age": 7}\n')
        result = runner.invoke(app, ["check", "--json", str(data), "--schema", str(schema_file)])

        assert result.exit_code == 0
        assert "Grammar accepted" in result.output
        assert "Schema validation passed" in result.output

    def test_trace(self, schema_file, write_json):
        """Test the per-token trace does not change the outcome."""
        data = write_json('{"name": "Sam"}')
        result = runner.invoke(
            app, ["check", "--json", str(data), "--schema", str(schema_file), "--trace"]
        )

        assert result.exit_code == 0

    def test_rejected(self, schema_file, write_json):
        """Test a wrongly typed value stops at the offending token."""
        data = write_json('{"name": "Sam", "age": "seven"}')
        result = runner.invoke(app, ["check", "--json", str(data), "--schema", str(schema_file)])

        assert result.exit_code == 1
        assert "Grammar rejected token" in result.output

    def test_incomplete(self, schema_file, write_json):
        """Test a truncated object is a valid prefix only."""
        data = write_json('{"name": "Sam"')
        result = runner.invoke(app, ["check", "--json", str(data), "--schema", str(schema_file)])

        assert result.exit_code == 1
        assert "incomplete" in result.output

    def test_keyword_outside_grammar(self, schema_file, write_json):
        """Test a range violation passes the grammar but fails validation."""
        data = write_json('{"name": "Sam", "age": -1}')
        result = runner.invoke(app, ["check", "--json", str(data), "--schema", str(schema_file)])

        assert result.exit_code == 1
        assert "Grammar accepted" in result.output
        assert "minimum" in result.output

    def test_uncompilable_schema(self, tmp_path, write_json):
        """Test an unsupported schema is reported."""
        schema = tmp_path / "bad.json"
        schema.write_text(json.dumps({"type": "unknown"}))
        data = write_json("{}")
        result = runner.invoke(app, ["check", "--json", str(data), "--schema", str(schema)])

        assert result.exit_code == 1
        assert "cannot be compiled" in result.output


class TestMainCallback:
    """Test global options."""

    def test_version(self):
        """Test --version prints the package version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"structure-guard version {__version__}" in result.output

    def test_help_without_command(self):
        """Test running without a command shows help."""
        result = runner.invoke(app, [])

        assert result.exit_code == 0
        assert "check" in result.output


class TestDisplayHelpers:
    """Test the one-line status printers."""

    @pytest.mark.parametrize("helper, mark", [
        (display.print_success, "✓"),
        (display.print_error, "✗"),
        (display.print_warning, "⚠"),
        (display.print_info, "ℹ"),
    ])
    def test_status_line(self, helper, mark, capsys):
        """Test each printer writes its mark and the message."""
        helper("schema loaded")

        output = capsys.readouterr().out
        assert mark in output
        assert "schema loaded" in output
        assert helper.__doc__
