"""Tests for error formatting and CLI error mapping."""

import json
import sqlite3
import subprocess

import pytest
import yaml
from pydantic import BaseModel, ValidationError

from vixreg import exit_codes
from vixreg.errors import format_validation_errors, handle_cli_error


class _Sample(BaseModel):
    name: str
    count: int
    ratio: float


def _validation_error(**data: object) -> ValidationError:
    with pytest.raises(ValidationError) as exc_info:
        _Sample.model_validate(data)
    return exc_info.value


class TestFormatValidationErrors:
    def test_missing_field(self) -> None:
        """A missing field reads "field is required"."""
        error = _validation_error(count=1, ratio=1.0)

        assert format_validation_errors(error) == "'name': field is required"

    def test_type_errors_joined(self) -> None:
        """Several errors are joined with semicolons."""
        error = _validation_error(name=3, count="x", ratio="y")

        assert format_validation_errors(error) == (
            "'name': expected string; 'count': expected integer; 'ratio': expected number"
        )


class TestHandleCliError:
    """Each exception family maps to its exit code."""

    def test_validation_error(self) -> None:
        """ValidationError maps to INVALID_ARGS."""
        assert handle_cli_error(_validation_error()) == exit_codes.INVALID_ARGS

    def test_sqlite_error(self) -> None:
        """sqlite3 errors map to GENERAL_ERROR."""
        assert handle_cli_error(sqlite3.OperationalError("database is locked")) == exit_codes.GENERAL_ERROR

    def test_called_process_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Failed subprocesses map to GIT_ERROR and name the command."""
        error = subprocess.CalledProcessError(128, ["git", "pull"])

        assert handle_cli_error(error) == exit_codes.GIT_ERROR
        assert "git pull" in capsys.readouterr().err

    def test_json_error(self) -> None:
        """JSON decode errors map to SNAPSHOT_INVALID."""
        error = json.JSONDecodeError("Expecting value", "", 0)

        assert handle_cli_error(error) == exit_codes.SNAPSHOT_INVALID

    def test_os_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        """OS errors map to GENERAL_ERROR with the reason."""
        error = PermissionError(13, "Permission denied", "/tmp/cache.db")

        assert handle_cli_error(error) == exit_codes.GENERAL_ERROR
        assert "Permission denied" in capsys.readouterr().err

    def test_yaml_error(self) -> None:
        """YAML errors map to INVALID_ARGS."""
        assert handle_cli_error(yaml.YAMLError("bad")) == exit_codes.INVALID_ARGS

    def test_unexpected_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Anything else maps to GENERAL_ERROR."""
        assert handle_cli_error(RuntimeError("boom")) == exit_codes.GENERAL_ERROR
        assert "Unexpected error: boom" in capsys.readouterr().err
