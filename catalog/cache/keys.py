"""
Cache key derivation for CivitAI lookups.

Query searches are cursor-paginated upstream (the API hands back opaque
nextPage URLs), so the page number is left out of their key and only the
first page of a query search is ever cached. Browsing without a query is
page-based, so the page number is part of the key.
"""
from dataclasses import dataclass, field
from typing import Any, List, Tuple, Union

DEFAULT_SORT = "Highest Rated"

SEARCH_PREFIX = "loras:search"
MODEL_PREFIX = "loras:model"
VERSION_PREFIX = "loras:version"


@dataclass(frozen=True)
class SearchDescriptor:
    """Parameters of one LoRA search request."""
    query: str = ""
    page: int = 1
    limit: int = 100
    base_model_filters: Tuple[str, ...] = field(default_factory=tuple)
    nsfw: bool = False
    sort: str = DEFAULT_SORT

    @property
    def uses_cursor(self) -> bool:
        """True when upstream paginates this request by cursor."""
        return bool(self.query)


def derive_search_key(descriptor: SearchDescriptor) -> str:
    """
    Generate the TTL cache key for a search.

    Args:
        descriptor: Search parameters

    Returns:
        Deterministic key; all pages of the same query share one key
    """
    params: List[Tuple[str, Any]] = [
        ("filters", tuple(sorted(set(descriptor.base_model_filters)))),
        ("limit", descriptor.limit),
        ("nsfw", descriptor.nsfw),
        ("query", descriptor.query),
        ("sort", descriptor.sort),
    ]
    if not descriptor.uses_cursor:
        params.append(("page", descriptor.page))
    return f"{SEARCH_PREFIX}:{sorted(params)}"


def model_key(model_id: Union[int, str]) -> str:
    """TTL cache key for a model fetched by id."""
    return f"{MODEL_PREFIX}:{model_id}"


def version_key(version_id: Union[int, str]) -> str:
    """TTL cache key for a model looked up through one of its version ids."""
    return f"{VERSION_PREFIX}:{version_id}"
