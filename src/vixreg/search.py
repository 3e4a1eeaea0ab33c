"""Registry search engine.

Scoring, ordering and pagination over an in-memory snapshot, plus the
message handlers the search worker dispatches to. Everything here is
synchronous and free of I/O; the state a handler works on is passed in
explicitly as a :class:`WorkerState`.

Scoring is an additive OR of case-insensitive substring tests: each field
that contains the query adds its weight, and entries scoring zero are left
out. There is no tokenizing or ranking beyond that.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import Field

from vixreg.descriptor import CamelModel, Descriptor
from vixreg.semver import loose_version_key

SortMode = Literal["score", "latest"]
QueryMode = Literal["search", "browse"]

SCORE_ID = 100
SCORE_NAME = 60
SCORE_NAMESPACE = 40
SCORE_DISPLAY_NAME = 25
SCORE_DESCRIPTION = 20
SCORE_KEYWORDS = 15

MAX_LIMIT = 200
SEARCH_LIMIT = 20
BROWSE_LIMIT = 50

# Error codes reported in response envelopes
REGISTRY_NOT_LOADED = "registry_not_loaded"
NOT_FOUND = "not_found"
UNKNOWN_MESSAGE_TYPE = "unknown_message_type"


class SearchHit(CamelModel):
    """Read-only projection of one matching entry."""

    model_config = {**CamelModel.model_config, "frozen": True}

    id: str
    namespace: str
    name: str
    display_name: str
    description: str
    repo: str
    latest: str
    score: int


class PackageStats(CamelModel):
    latest: str
    version_count: int
    has_readme: bool
    has_repo: bool


class PackageDetail(CamelModel):
    """Full projection returned by ``getPackage``."""

    id: str
    namespace: str
    name: str
    display_name: str
    description: str
    keywords: list[str] = Field(default_factory=list)
    homepage: str
    license: str
    repo: str
    latest: str
    readme: str
    stats: PackageStats


@dataclass(frozen=True)
class LoadedSnapshot:
    """A snapshot held in memory by the worker. Never mutated after creation."""

    version: str
    entries: tuple[Descriptor, ...]
    by_id: dict[str, Descriptor] = field(default_factory=dict, compare=False)

    @classmethod
    def from_data(cls, data: Any) -> "LoadedSnapshot | None":
        """Parse a snapshot document; None if it has no ``entries`` list.

        Entries without a usable identity are dropped.
        """
        if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
            return None

        meta = data.get("meta")
        version = meta.get("generatedAt") if isinstance(meta, dict) else ""
        entries = tuple(
            descriptor
            for descriptor in (Descriptor.from_raw(raw) for raw in data["entries"])
            if descriptor is not None
        )
        by_id: dict[str, Descriptor] = {}
        for entry in entries:
            by_id.setdefault(entry.id, entry)
        return cls(version=version if isinstance(version, str) else "", entries=entries, by_id=by_id)


@dataclass
class WorkerState:
    """State owned by one search worker: Unloaded until a load succeeds."""

    loaded: LoadedSnapshot | None = None

    @property
    def version(self) -> str:
        return self.loaded.version if self.loaded is not None else ""


@dataclass(frozen=True)
class SearchPage:
    total: int
    hits: list[SearchHit]
    mode: QueryMode
    sort: SortMode
    limit: int
    offset: int


def contains_icase(haystack: str, needle_lower: str) -> bool:
    """Case-insensitive substring test; an empty needle always matches."""
    if not needle_lower:
        return True
    return needle_lower in (haystack or "").lower()


def joined_keywords(entry: Descriptor) -> str:
    return ", ".join(entry.keywords)


def score_entry(entry: Descriptor, query_lower: str) -> int:
    """Sum the weights of every field containing *query_lower*."""
    score = 0
    if contains_icase(entry.id, query_lower):
        score += SCORE_ID
    if contains_icase(entry.name, query_lower):
        score += SCORE_NAME
    if contains_icase(entry.namespace, query_lower):
        score += SCORE_NAMESPACE
    if contains_icase(entry.display_name, query_lower):
        score += SCORE_DISPLAY_NAME
    if contains_icase(entry.description, query_lower):
        score += SCORE_DESCRIPTION
    if contains_icase(joined_keywords(entry), query_lower):
        score += SCORE_KEYWORDS
    return score


def build_hit(entry: Descriptor, score: int) -> SearchHit:
    return SearchHit(
        id=entry.id,
        namespace=entry.namespace,
        name=entry.name,
        display_name=entry.display_name or entry.name,
        description=entry.description,
        repo=entry.repo_url,
        latest=entry.resolved_latest(),
        score=score,
    )


def sort_hits(hits: list[SearchHit], mode: SortMode) -> None:
    """Order *hits* in place.

    ``score``: score descending, then id ascending.
    ``latest``: loose version descending, then raw ``latest`` descending,
    then id ascending.
    """
    if mode == "latest":
        hits.sort(key=lambda hit: hit.id)
        # reverse=True keeps equal keys in their id order
        hits.sort(key=lambda hit: (loose_version_key(hit.latest), hit.latest), reverse=True)
        return

    hits.sort(key=lambda hit: (-hit.score, hit.id))


def coerce_int(value: Any, default: int) -> int:
    """Lenient integer coercion: unusable, zero or missing values give *default*."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or math.isnan(value) or math.isinf(value):
        return default
    return int(value) or default


def clamp_limit(value: Any, default: int) -> int:
    return max(1, min(MAX_LIMIT, coerce_int(value, default)))


def clamp_offset(value: Any) -> int:
    return max(0, coerce_int(value, 0))


def normalize_sort(value: Any) -> SortMode:
    return "latest" if value == "latest" else "score"


def run_query(
    entries: Iterable[Descriptor],
    query: Any = "",
    limit: Any = None,
    offset: Any = None,
    sort: Any = None,
    default_limit: int = SEARCH_LIMIT,
) -> SearchPage:
    """Score, order and slice *entries* for *query*.

    An empty (or whitespace) query browses: every entry, score 0, newest
    first, whatever *sort* asks for.
    """
    query_lower = (query if isinstance(query, str) else "").strip().lower()
    page_limit = clamp_limit(limit, default_limit)
    page_offset = clamp_offset(offset)

    if not query_lower:
        hits = [build_hit(entry, 0) for entry in entries]
        mode: QueryMode = "browse"
        sort_mode: SortMode = "latest"
    else:
        hits = []
        for entry in entries:
            score = score_entry(entry, query_lower)
            if score > 0:
                hits.append(build_hit(entry, score))
        mode = "search"
        sort_mode = normalize_sort(sort)

    sort_hits(hits, sort_mode)
    return SearchPage(
        total=len(hits),
        hits=hits[page_offset:page_offset + page_limit],
        mode=mode,
        sort=sort_mode,
        limit=page_limit,
        offset=page_offset,
    )


def package_detail(entry: Descriptor) -> PackageDetail:
    latest = entry.resolved_latest()
    return PackageDetail(
        id=entry.id,
        namespace=entry.namespace,
        name=entry.name,
        display_name=entry.display_name or entry.name,
        description=entry.description,
        keywords=list(entry.keywords),
        homepage=entry.homepage,
        license=entry.license,
        repo=entry.repo_url,
        latest=latest,
        readme=entry.readme,
        stats=PackageStats(
            latest=latest,
            version_count=len(entry.versions),
            has_readme=bool(entry.readme.strip() or entry.description.strip()),
            has_repo=bool(entry.repo_url.strip()),
        ),
    )


# --- message handlers -------------------------------------------------------


def handle_load(state: WorkerState, message: dict[str, Any]) -> dict[str, Any]:
    """Replace the worker's snapshot wholesale; a bad payload unloads it."""
    state.loaded = LoadedSnapshot.from_data(message.get("data"))
    return {
        "type": "loaded",
        "ok": state.loaded is not None,
        "version": state.version,
        "entryCount": len(state.loaded.entries) if state.loaded is not None else 0,
    }


def handle_search(state: WorkerState, message: dict[str, Any], browse: bool = False) -> dict[str, Any]:
    query = "" if browse else message.get("query")
    default_limit = BROWSE_LIMIT if browse else SEARCH_LIMIT
    echo_query = query if isinstance(query, str) else ""

    if state.loaded is None:
        is_browse = not echo_query.strip()
        return {
            "type": "searchResult",
            "ok": False,
            "error": REGISTRY_NOT_LOADED,
            "version": "",
            "total": 0,
            "hits": [],
            "query": echo_query,
            "offset": clamp_offset(message.get("offset")),
            "limit": clamp_limit(message.get("limit"), default_limit),
            "sort": "latest" if is_browse else normalize_sort(message.get("sort")),
            "mode": "browse" if is_browse else "search",
        }

    page = run_query(
        state.loaded.entries,
        query=query,
        limit=message.get("limit"),
        offset=message.get("offset"),
        sort=message.get("sort"),
        default_limit=default_limit,
    )
    return {
        "type": "searchResult",
        "ok": True,
        "version": state.version,
        "total": page.total,
        "hits": [hit.model_dump(by_alias=True) for hit in page.hits],
        "query": echo_query,
        "offset": page.offset,
        "limit": page.limit,
        "sort": page.sort,
        "mode": page.mode,
    }


def handle_get_package(state: WorkerState, message: dict[str, Any]) -> dict[str, Any]:
    package_id = message.get("id")
    package_id = package_id if isinstance(package_id, str) else ""
    response: dict[str, Any] = {
        "type": "packageResult",
        "ok": False,
        "version": state.version,
        "id": package_id,
        "pkg": None,
    }

    if state.loaded is None:
        response["error"] = REGISTRY_NOT_LOADED
        return response

    entry = state.loaded.by_id.get(package_id)
    if entry is None:
        response["error"] = NOT_FOUND
        return response

    response["ok"] = True
    response["pkg"] = package_detail(entry).model_dump(by_alias=True)
    return response


def dispatch(state: WorkerState, message: Any) -> dict[str, Any]:
    """Route one request message to its handler and return the response."""
    if not isinstance(message, dict):
        return {"type": "error", "error": UNKNOWN_MESSAGE_TYPE}

    match message.get("type"):
        case "load":
            return handle_load(state, message)
        case "search":
            return handle_search(state, message)
        case "browse":
            return handle_search(state, message, browse=True)
        case "getPackage":
            return handle_get_package(state, message)
        case _:
            return {"type": "error", "error": UNKNOWN_MESSAGE_TYPE}
