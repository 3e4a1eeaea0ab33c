"""Tests for vixreg.descriptor."""

from typing import Any

import pytest

from vixreg.descriptor import (
    DEFAULT_INDEX_FORMAT,
    DEFAULT_REGISTRY_ID,
    DEFAULT_SPEC_VERSION,
    Descriptor,
    RegistryMetadata,
    SnapshotMeta,
)


class TestDescriptorFromRaw:
    """Tests for lenient descriptor parsing."""

    @pytest.mark.parametrize(
        "raw",
        [
            pytest.param(["acme", "tree"], id="array"),
            pytest.param("acme/tree", id="string"),
            pytest.param(None, id="null"),
            pytest.param({"name": "tree"}, id="missing-namespace"),
            pytest.param({"namespace": "acme"}, id="missing-name"),
            pytest.param({"namespace": "", "name": "tree"}, id="empty-namespace"),
            pytest.param({"namespace": "acme", "name": "   "}, id="blank-name"),
            pytest.param({"namespace": "acme", "name": 42}, id="numeric-name"),
        ],
    )
    def test_rejects_records_without_identity(self, raw: Any) -> None:
        """Records without a usable namespace and name give None."""
        assert Descriptor.from_raw(raw) is None

    def test_defaults_optional_fields(self) -> None:
        """Optional fields default to empty values."""
        # Given
        raw = {"namespace": "acme", "name": "tree"}

        # When
        result = Descriptor.from_raw(raw)

        # Then
        assert result is not None
        assert result.id == "acme/tree"
        assert result.display_name == ""
        assert result.description == ""
        assert result.keywords == []
        assert result.repo is None
        assert result.repo_url == ""
        assert result.versions == {}
        assert result.latest == ""

    def test_reads_camel_case_fields(self) -> None:
        """camelCase keys map onto the model fields."""
        raw = {
            "namespace": "acme",
            "name": "tree",
            "displayName": "Acme Tree",
            "repo": {"url": "https://github.com/acme/tree", "branch": "main"},
            "homepage": "https://acme.dev",
            "license": "MIT",
        }

        result = Descriptor.from_raw(raw)

        assert result is not None
        assert result.display_name == "Acme Tree"
        assert result.repo_url == "https://github.com/acme/tree"
        assert result.homepage == "https://acme.dev"
        assert result.license == "MIT"

    def test_degrades_wrongly_typed_fields(self) -> None:
        """Wrongly typed optional fields fall back to defaults."""
        # Given - every optional field has the wrong type
        raw = {
            "namespace": "acme",
            "name": "tree",
            "displayName": 12,
            "description": ["not", "text"],
            "keywords": "tree",
            "repo": "https://github.com/acme/tree",
            "versions": ["1.0.0"],
            "latest": 1,
        }

        # When
        result = Descriptor.from_raw(raw)

        # Then - parsed, with defaults in place of the bad values
        assert result is not None
        assert result.display_name == ""
        assert result.description == ""
        assert result.keywords == []
        assert result.repo is None
        assert result.versions == {}
        assert result.latest == ""

    def test_drops_non_string_keywords(self) -> None:
        """Non-string keywords are dropped."""
        raw = {"namespace": "acme", "name": "tree", "keywords": ["tree", 3, None, "graph"]}

        result = Descriptor.from_raw(raw)

        assert result is not None
        assert result.keywords == ["tree", "graph"]

    def test_keeps_every_version_key_and_yanked_flag(self) -> None:
        """All version keys are kept with their yanked flag."""
        raw = {
            "namespace": "acme",
            "name": "tree",
            "versions": {"1.0.0": {"yanked": True}, "nightly": "bogus"},
        }

        result = Descriptor.from_raw(raw)

        assert result is not None
        assert set(result.versions) == {"1.0.0", "nightly"}
        assert result.versions["1.0.0"].yanked is True
        assert result.versions["nightly"].yanked is False


class TestResolvedLatest:
    """Precomputed latest wins; otherwise it is resolved from versions."""

    def test_prefers_precomputed_latest(self) -> None:
        """A non-empty latest is used as is."""
        raw = {"namespace": "a", "name": "b", "latest": "0.1.0", "versions": {"2.0.0": {}}}

        result = Descriptor.from_raw(raw)

        assert result is not None
        assert result.resolved_latest() == "0.1.0"

    def test_resolves_from_versions(self) -> None:
        """Without latest the versions are resolved."""
        raw = {"namespace": "a", "name": "b", "versions": {"1.0.0": {}, "1.1.0": {"yanked": True}}}

        result = Descriptor.from_raw(raw)

        assert result is not None
        assert result.resolved_latest() == "1.0.0"


class TestRegistryMetadata:
    """Tests for registry.json parsing."""

    def test_defaults_for_empty_metadata(self) -> None:
        """Empty registry.json gives the default meta values."""
        metadata = RegistryMetadata.model_validate({})

        assert metadata.id == DEFAULT_REGISTRY_ID
        assert metadata.spec_version == DEFAULT_SPEC_VERSION
        assert metadata.homepage == ""
        assert metadata.index.format == DEFAULT_INDEX_FORMAT

    def test_empty_values_fall_back_to_defaults(self) -> None:
        """Empty id and specVersion fall back to defaults."""
        metadata = RegistryMetadata.model_validate({"id": "", "specVersion": "", "index": {"format": ""}})

        assert metadata.id == DEFAULT_REGISTRY_ID
        assert metadata.spec_version == DEFAULT_SPEC_VERSION
        assert metadata.index.format == DEFAULT_INDEX_FORMAT

    def test_reads_values(self) -> None:
        """Provided metadata values are kept."""
        metadata = RegistryMetadata.model_validate({
            "id": "acme-registry",
            "specVersion": "2.0.0",
            "homepage": "https://github.com/acme/registry",
            "index": {"format": "json-lines"},
        })

        assert metadata.id == "acme-registry"
        assert metadata.spec_version == "2.0.0"
        assert metadata.homepage == "https://github.com/acme/registry"
        assert metadata.index.format == "json-lines"


class TestSnapshotMeta:
    def test_serializes_with_camel_case_keys(self) -> None:
        """Snapshot meta is dumped with camelCase keys."""
        meta = SnapshotMeta(generated_at="2026-01-01T00:00:00.000Z", entry_count=2)

        assert meta.to_json() == {
            "registryId": DEFAULT_REGISTRY_ID,
            "specVersion": DEFAULT_SPEC_VERSION,
            "generatedAt": "2026-01-01T00:00:00.000Z",
            "sourceRepo": "",
            "indexFormat": DEFAULT_INDEX_FORMAT,
            "entryCount": 2,
        }
