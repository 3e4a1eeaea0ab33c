"""Error formatting utilities.

Turns pydantic validation errors and stray exceptions into short messages
suitable for terminal output.
"""

import json
import sqlite3
import subprocess

import yaml
from pydantic import ValidationError

from vixreg import cli_logger, exit_codes


def format_validation_errors(error: ValidationError) -> str:
    """Format a pydantic ValidationError as one readable line.

    Args:
        error: The ValidationError to format.

    Returns:
        ``'field': problem`` fragments joined by ``; ``.
    """
    messages = []

    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "value"
        error_type = err["type"]

        if error_type == "missing":
            messages.append(f"'{loc}': field is required")
        elif error_type == "string_type":
            messages.append(f"'{loc}': expected string")
        elif error_type in ("int_type", "int_parsing"):
            messages.append(f"'{loc}': expected integer")
        elif error_type in ("float_type", "float_parsing"):
            messages.append(f"'{loc}': expected number")
        else:
            messages.append(f"'{loc}': {err['msg'].lower()}")

    return "; ".join(messages)


def handle_cli_error(error: Exception) -> int:
    """Report an exception that reached the CLI boundary.

    Args:
        error: The exception to report.

    Returns:
        An exit code from exit_codes.
    """
    if isinstance(error, ValidationError):
        cli_logger.error(f"Invalid configuration: {format_validation_errors(error)}")
        return exit_codes.INVALID_ARGS

    if isinstance(error, sqlite3.Error):
        cli_logger.error(f"Snapshot cache error: {error}")
        return exit_codes.GENERAL_ERROR

    if isinstance(error, subprocess.CalledProcessError):
        cmd_str = " ".join(str(c) for c in error.cmd) if isinstance(error.cmd, list) else str(error.cmd)
        cli_logger.error(f"`{cmd_str}` exited with status {error.returncode}")
        return exit_codes.GIT_ERROR

    if isinstance(error, json.JSONDecodeError):
        cli_logger.error(f"Invalid JSON: {error}")
        return exit_codes.SNAPSHOT_INVALID

    if isinstance(error, OSError):
        if error.filename:
            cli_logger.error(f"Cannot access {error.filename}: {error.strerror}")
        else:
            cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    if isinstance(error, yaml.YAMLError):
        cli_logger.error(f"Cannot parse config.yaml: {error}")
        return exit_codes.INVALID_ARGS

    cli_logger.error(f"Unexpected error: {error}")
    return exit_codes.GENERAL_ERROR
