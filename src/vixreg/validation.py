"""Validation result type used when probing registry roots."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ValidationResult:
    """Outcome of checking one candidate directory.

    Attributes:
        is_valid: True if every required component was found.
        errors: Specific problems found, empty when valid.
        path: The directory that was checked, if any.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    path: Path | None = None
