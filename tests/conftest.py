"""Shared test fixtures for vix-registry tests."""

import json
import os
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from vixreg.config import ENV_PREFIX

GIT_ENV = {
    **os.environ,
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@test.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@test.com",
}

REGISTRY_METADATA = {
    "id": "vixcpp-registry",
    "specVersion": "1.0.0",
    "homepage": "https://github.com/vixcpp/registry",
    "index": {"format": "json-per-package"},
}


def descriptor(namespace: str, name: str, **fields: Any) -> dict[str, Any]:
    """Build a raw descriptor dict with the given identity and extra fields."""
    return {"namespace": namespace, "name": name, **fields}


def make_snapshot(entries: list[dict[str, Any]], generated_at: str = "2026-01-01T00:00:00.000Z") -> dict[str, Any]:
    """Build a snapshot document around *entries* without going through the builder."""
    return {
        "meta": {
            "registryId": "vixcpp-registry",
            "specVersion": "1.0.0",
            "generatedAt": generated_at,
            "sourceRepo": "",
            "indexFormat": "json-per-package",
            "entryCount": len(entries),
        },
        "entries": entries,
    }


def write_registry(
    root: Path,
    descriptors: dict[str, Any],
    metadata: dict[str, Any] | None = None,
    git_marker: bool = False,
) -> Path:
    """Lay out a registry checkout: registry.json plus index/<file> per descriptor.

    Values in *descriptors* that are strings are written verbatim, which
    allows malformed files.
    """
    index_dir = root / "index"
    index_dir.mkdir(parents=True)
    (root / "registry.json").write_text(json.dumps(metadata if metadata is not None else REGISTRY_METADATA))
    for filename, content in descriptors.items():
        text = content if isinstance(content, str) else json.dumps(content)
        (index_dir / filename).write_text(text)
    if git_marker:
        (root / ".git").mkdir()
    return root


def git_commit_all(work_dir: Path, message: str) -> str:
    """Stage all changes, commit, and return the new commit hash."""
    subprocess.run(["git", "add", "-A"], cwd=work_dir, check=True, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", message],
        cwd=work_dir, check=True, capture_output=True, env=GIT_ENV,
    )
    return subprocess.run(
        ["git", "rev-parse", "HEAD"],
        cwd=work_dir, check=True, capture_output=True, text=True,
    ).stdout.strip()


RegistryFactory = Callable[..., Path]


@pytest.fixture
def create_registry(tmp_path: Path) -> RegistryFactory:
    """Factory fixture creating registry checkouts under tmp_path.

    Usage:
        root = create_registry({"acme-tree.json": descriptor("acme", "tree")})
    """

    def _create(
        descriptors: dict[str, Any],
        directory: str = "registry",
        metadata: dict[str, Any] | None = None,
        git_marker: bool = False,
    ) -> Path:
        return write_registry(tmp_path / directory, descriptors, metadata, git_marker)

    return _create


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the registry home at a temp dir and drop stray VIX_REGISTRY_* vars."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    home = tmp_path / "home"
    monkeypatch.setenv("VIX_REGISTRY_HOME", str(home))
    return home


@pytest.fixture
def registry_home(isolated_env: Path) -> Path:
    """The registry home used by the code under test."""
    return isolated_env


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def sample_entries() -> list[dict[str, Any]]:
    """Three packages that all match the query "json"."""
    return [
        descriptor(
            "acme", "json",
            displayName="Acme JSON",
            description="Fast JSON parser",
            keywords=["json", "parser"],
            repo={"url": "https://github.com/acme/json"},
            versions={"1.2.0": {"yanked": False}, "2.0.0": {"yanked": False}},
        ),
        descriptor(
            "vix", "jsonkit",
            description="JSON helpers for Vix",
            versions={"0.9.0": {"yanked": False}},
        ),
        descriptor(
            "zeta", "config",
            description="Reads json and toml files",
            keywords=["config"],
            versions={"3.1.0": {"yanked": False}},
        ),
    ]
