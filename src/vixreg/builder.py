"""Registry index builder.

Reads every per-package descriptor of a registry checkout and writes one
consolidated, deterministic ``all.min.json`` snapshot.
"""

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vixreg.config import Settings
from vixreg.descriptor import Descriptor, RegistryMetadata, SnapshotMeta
from vixreg.errors import format_validation_errors
from vixreg.git import GitError, has_git_marker, is_git_available, pull_fast_forward, shallow_clone
from vixreg.semver import compute_latest_version
from vixreg.validation import ValidationResult

logger = logging.getLogger(__name__)

METADATA_FILENAME = "registry.json"
INDEX_DIRNAME = "index"

DEFAULT_OUTPUT = Path("public") / "registry" / "index" / "all.min.json"


class RegistryNotFoundError(Exception):
    """Raised when no usable registry checkout can be located."""

    def __init__(self, tried: list[ValidationResult] | None = None, reason: str = "") -> None:
        self.tried = tried or []
        lines = [reason or "Registry repository not found."]
        for result in self.tried:
            where = result.path if result.path is not None else "?"
            lines.append(f"  - {where}: {'; '.join(result.errors)}")
        super().__init__("\n".join(lines))


class RegistryMetadataError(Exception):
    """Raised when registry.json is missing or unusable."""


@dataclass
class BuildReport:
    """Counters collected while reading descriptors."""

    files: int = 0
    accepted: int = 0
    skipped: list[str] = field(default_factory=list)


def validate_registry_root(path: Path, require_git: bool = True) -> ValidationResult:
    """Check that *path* holds ``registry.json``, ``index/`` and, optionally, ``.git``."""
    errors: list[str] = []

    if not path.is_dir():
        errors.append("not a directory")
        return ValidationResult(is_valid=False, errors=errors, path=path)

    if not (path / METADATA_FILENAME).is_file():
        errors.append(f"missing {METADATA_FILENAME}")
    if not (path / INDEX_DIRNAME).is_dir():
        errors.append(f"missing {INDEX_DIRNAME}/ directory")
    if require_git and not has_git_marker(path):
        errors.append("not a git checkout")

    return ValidationResult(is_valid=not errors, errors=errors, path=path)


def local_mirror_candidates(cwd: Path | None = None) -> list[Path]:
    """Places a registry clone usually sits relative to the working directory."""
    base = (cwd or Path.cwd()).resolve()
    return [base / "registry", base.parent / "registry", base.parent.parent / "registry"]


def locate_registry_root(
    settings: Settings,
    explicit: Path | None = None,
    allow_clone: bool = True,
    cwd: Path | None = None,
) -> Path:
    """Find a registry checkout to build from.

    Resolution order:
    1. *explicit*, when given (no fallback if it is invalid)
    2. a local mirror next to the working directory
    3. the user-level clone under the registry home, fast-forwarded if possible
    4. a fresh shallow clone of ``settings.registry_git_url`` (if *allow_clone*)

    Raises:
        RegistryNotFoundError: If no candidate resolves.
    """
    if explicit is not None:
        result = validate_registry_root(explicit.expanduser(), require_git=False)
        if not result.is_valid:
            raise RegistryNotFoundError([result], reason=f"Registry path {explicit} is not usable.")
        return result.path

    tried: list[ValidationResult] = []
    for candidate in local_mirror_candidates(cwd):
        result = validate_registry_root(candidate)
        if result.is_valid:
            logger.info("Using local registry mirror at %s", candidate)
            return candidate
        tried.append(result)

    clone_dir = settings.clone_dir
    result = validate_registry_root(clone_dir)
    if result.is_valid:
        try:
            pull_fast_forward(clone_dir)
        except GitError as e:
            logger.warning("Could not update %s, using it as is: %s", clone_dir, e)
        return clone_dir
    tried.append(result)

    if not allow_clone:
        raise RegistryNotFoundError(tried)

    if clone_dir.exists() and any(clone_dir.iterdir()):
        raise RegistryNotFoundError(
            tried, reason=f"{clone_dir} exists but is not a registry clone; remove it and retry."
        )

    if not is_git_available():
        raise RegistryNotFoundError(
            tried, reason=f"git is not installed; cannot clone {settings.registry_git_url}."
        )

    try:
        shallow_clone(settings.registry_git_url, clone_dir)
    except GitError as e:
        tried.append(ValidationResult(is_valid=False, errors=[str(e)], path=clone_dir))
        raise RegistryNotFoundError(tried) from e

    result = validate_registry_root(clone_dir)
    if not result.is_valid:
        raise RegistryNotFoundError([*tried, result])
    return clone_dir


def load_registry_metadata(root: Path) -> RegistryMetadata:
    """Read and validate ``registry.json``.

    Raises:
        RegistryMetadataError: If the file is missing, not JSON, or not an object.
    """
    path = root / METADATA_FILENAME
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        msg = f"{path} not found"
        raise RegistryMetadataError(msg) from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = f"Cannot read {path}: {e}"
        raise RegistryMetadataError(msg) from e

    if not isinstance(raw, dict):
        msg = f"{path} must contain a JSON object"
        raise RegistryMetadataError(msg)

    try:
        return RegistryMetadata.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid {METADATA_FILENAME}: {format_validation_errors(e)}"
        raise RegistryMetadataError(msg) from e


def read_descriptors(index_dir: Path, report: BuildReport | None = None) -> Iterator[tuple[Descriptor, dict[str, Any]]]:
    """Yield ``(descriptor, raw)`` for every usable ``*.json`` file in *index_dir*.

    Files are visited in name order. Unreadable, non-object and identity-less
    files are skipped, as is any later file repeating an identity.
    """
    report = report if report is not None else BuildReport()
    seen: set[str] = set()

    for path in sorted(index_dir.glob("*.json")):
        if not path.is_file():
            continue
        report.files += 1
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Skipping %s: %s", path.name, e)
            report.skipped.append(path.name)
            continue

        descriptor = Descriptor.from_raw(raw)
        if descriptor is None:
            logger.warning("Skipping %s: not a descriptor object with namespace and name", path.name)
            report.skipped.append(path.name)
            continue

        if descriptor.id in seen:
            logger.warning("Skipping %s: duplicate package id %s", path.name, descriptor.id)
            report.skipped.append(path.name)
            continue

        seen.add(descriptor.id)
        report.accepted += 1
        yield descriptor, raw


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_snapshot(
    root: Path,
    now: datetime | None = None,
    report: BuildReport | None = None,
) -> dict[str, Any]:
    """Build the snapshot document for the registry checkout at *root*.

    Each entry is the descriptor as authored with ``latest`` replaced by the
    resolved latest version (empty when no valid, non-yanked version exists).
    Entries are ordered by lowercase ``namespace/name``.

    Raises:
        RegistryMetadataError: If registry.json is missing or invalid.
        RegistryNotFoundError: If the index directory is missing.
    """
    metadata = load_registry_metadata(root)

    index_dir = root / INDEX_DIRNAME
    if not index_dir.is_dir():
        result = ValidationResult(is_valid=False, errors=[f"missing {INDEX_DIRNAME}/ directory"], path=root)
        raise RegistryNotFoundError([result])

    keyed: list[tuple[str, dict[str, Any]]] = []
    for descriptor, raw in read_descriptors(index_dir, report):
        entry = dict(raw)
        entry["latest"] = compute_latest_version(raw.get("versions"))
        keyed.append((descriptor.id.lower(), entry))

    keyed.sort(key=lambda item: item[0])
    entries = [entry for _, entry in keyed]

    meta = SnapshotMeta(
        registry_id=metadata.id,
        spec_version=metadata.spec_version,
        generated_at=format_timestamp(now or datetime.now(timezone.utc)),
        source_repo=metadata.homepage,
        index_format=metadata.index.format,
        entry_count=len(entries),
    )
    return {"meta": meta.to_json(), "entries": entries}


def dump_snapshot(snapshot: dict[str, Any]) -> str:
    """Serialize a snapshot the way it is published (compact JSON)."""
    return json.dumps(snapshot, ensure_ascii=False, separators=(",", ":"))


def write_snapshot(snapshot: dict[str, Any], out_path: Path) -> Path:
    """Write *snapshot* to *out_path* via a temp file and an atomic rename."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".all.", suffix=".json.tmp", dir=out_path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(dump_snapshot(snapshot))
        os.replace(tmp_name, out_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return out_path
