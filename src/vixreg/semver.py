"""Version ordering for registry entries.

Two orderings live here:

* the strict one picks an entry's latest version at build time and only
  accepts ``MAJOR.MINOR.PATCH[-PRERELEASE]``;
* the loose one sorts search hits by whatever ``latest`` string an entry
  carries and never rejects input.
"""

import re
from collections.abc import Mapping
from typing import Any, NamedTuple

SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?$")

_LEADING_DIGITS_RE = re.compile(r"^\s*(\d+)")


class SemVer(NamedTuple):
    """A parsed strict semantic version."""

    major: int
    minor: int
    patch: int
    prerelease: str = ""

    def precedence(self) -> tuple[int, int, int, int, str]:
        """Sort key: a release outranks every prerelease of the same triple.

        Prerelease tags compare as plain strings rather than per identifier.
        """
        return (self.major, self.minor, self.patch, 0 if self.prerelease else 1, self.prerelease)


def parse_semver(version: str) -> SemVer | None:
    """Parse a strict semantic version, or return None if it does not match."""
    if not isinstance(version, str):
        return None
    match = SEMVER_RE.fullmatch(version)
    if match is None:
        return None
    major, minor, patch, prerelease = match.groups()
    return SemVer(int(major), int(minor), int(patch), prerelease or "")


def is_yanked(record: Any) -> bool:
    """Return True only for version records explicitly flagged ``yanked: true``."""
    return isinstance(record, Mapping) and record.get("yanked") is True


def compute_latest_version(versions: Mapping[str, Any] | None) -> str:
    """Return the highest non-yanked strict semver key of *versions*.

    Keys that do not parse and yanked records are ignored. Returns an empty
    string when nothing qualifies.
    """
    if not isinstance(versions, Mapping):
        return ""

    best: SemVer | None = None
    best_key = ""
    for key, record in versions.items():
        parsed = parse_semver(key)
        if parsed is None or is_yanked(record):
            continue
        if best is None or parsed.precedence() > best.precedence():
            best = parsed
            best_key = key
    return best_key


def _leading_int(part: str) -> int:
    match = _LEADING_DIGITS_RE.match(part)
    return int(match.group(1)) if match else 0


def loose_version_key(version: str | None) -> tuple[int, int, int]:
    """Numeric (major, minor, patch) of a possibly malformed version string.

    Everything from the first ``-`` on is dropped, each dotted component
    contributes its leading digits, and missing or non-numeric components
    count as zero. Components past the third are ignored.
    """
    core = str(version or "").split("-", 1)[0]
    parts = [_leading_int(part) for part in core.split(".")[:3]]
    parts += [0] * (3 - len(parts))
    return (parts[0], parts[1], parts[2])
