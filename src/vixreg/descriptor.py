"""Typed models for registry descriptors and snapshots.

Descriptors are authored by hand in the registry repository, so parsing is
lenient: only the identity fields are required and everything else falls
back to an empty default instead of failing the whole record.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from vixreg.semver import compute_latest_version, is_yanked

DEFAULT_REGISTRY_ID = "vixcpp-registry"
DEFAULT_SPEC_VERSION = "1.0.0"
DEFAULT_INDEX_FORMAT = "json-per-package"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class VersionRecord(BaseModel):
    """One entry of a descriptor's ``versions`` mapping."""

    yanked: bool = False

    model_config = ConfigDict(extra="allow")


class RepoInfo(BaseModel):
    url: str = ""

    model_config = ConfigDict(extra="allow")

    @field_validator("url", mode="before")
    @classmethod
    def _coerce_url(cls, value: Any) -> str:
        return _text(value)


class Descriptor(CamelModel):
    """A package descriptor with every optional field defaulted."""

    namespace: str = Field(min_length=1)
    name: str = Field(min_length=1)
    display_name: str = ""
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    repo: RepoInfo | None = None
    homepage: str = ""
    license: str = ""
    readme: str = ""
    versions: dict[str, VersionRecord] = Field(default_factory=dict)
    latest: str = ""

    @field_validator("namespace", "name", mode="before")
    @classmethod
    def _strict_identity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() and value
        return value

    @field_validator("display_name", "description", "homepage", "license", "readme", "latest", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [kw for kw in value if isinstance(kw, str)]

    @field_validator("repo", mode="before")
    @classmethod
    def _coerce_repo(cls, value: Any) -> Any:
        return value if isinstance(value, Mapping) else None

    @field_validator("versions", mode="before")
    @classmethod
    def _coerce_versions(cls, value: Any) -> dict[str, dict[str, bool]]:
        if not isinstance(value, Mapping):
            return {}
        return {
            str(key): {"yanked": is_yanked(record)}
            for key, record in value.items()
        }

    @classmethod
    def from_raw(cls, raw: Any) -> "Descriptor | None":
        """Build a descriptor from decoded JSON.

        Returns None when *raw* is not an object or its namespace or name is
        missing, empty or not a string.
        """
        if not isinstance(raw, Mapping):
            return None
        namespace = raw.get("namespace")
        name = raw.get("name")
        if not isinstance(namespace, str) or not isinstance(name, str):
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return None

    @property
    def id(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def repo_url(self) -> str:
        return self.repo.url if self.repo is not None else ""

    def resolved_latest(self) -> str:
        """The precomputed ``latest`` if set, else the strict resolution."""
        return self.latest or compute_latest_version(self.versions)


class IndexInfo(BaseModel):
    format: str = DEFAULT_INDEX_FORMAT

    model_config = ConfigDict(extra="allow")


class RegistryMetadata(CamelModel):
    """Contents of the registry's ``registry.json``."""

    id: str = DEFAULT_REGISTRY_ID
    spec_version: str = DEFAULT_SPEC_VERSION
    homepage: str = ""
    index: IndexInfo = Field(default_factory=IndexInfo)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    @field_validator("id", "spec_version", mode="before")
    @classmethod
    def _fallback_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if not value:
            return DEFAULT_REGISTRY_ID if info.field_name == "id" else DEFAULT_SPEC_VERSION
        return value

    @field_validator("homepage", mode="before")
    @classmethod
    def _coerce_homepage(cls, value: Any) -> str:
        return _text(value)

    @field_validator("index", mode="before")
    @classmethod
    def _coerce_index(cls, value: Any) -> Any:
        if not isinstance(value, Mapping) or not value.get("format"):
            return {}
        return value


class SnapshotMeta(CamelModel):
    """The ``meta`` block of a snapshot document."""

    registry_id: str = DEFAULT_REGISTRY_ID
    spec_version: str = DEFAULT_SPEC_VERSION
    generated_at: str = ""
    source_repo: str = ""
    index_format: str = DEFAULT_INDEX_FORMAT
    entry_count: int = 0

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
