"""
Tests for cache key derivation.
"""
from catalog.cache.keys import (
    SearchDescriptor,
    derive_search_key,
    model_key,
    version_key,
)


def test_query_search_key_ignores_page():
    """All pages of a cursor-paginated query collapse to one key"""
    first = SearchDescriptor(query="anime", page=1)
    later = SearchDescriptor(query="anime", page=7)
    assert derive_search_key(first) == derive_search_key(later)


def test_browse_key_includes_page():
    """Page-based browsing gets one key per page"""
    keys = {derive_search_key(SearchDescriptor(page=page)) for page in range(1, 6)}
    assert len(keys) == 5


def test_filter_order_does_not_matter():
    a = SearchDescriptor(base_model_filters=("SDXL", "Pony", "Flux"))
    b = SearchDescriptor(base_model_filters=("Flux", "SDXL", "Pony"))
    assert derive_search_key(a) == derive_search_key(b)


def test_duplicate_filters_collapse():
    a = SearchDescriptor(base_model_filters=("SDXL", "SDXL"))
    b = SearchDescriptor(base_model_filters=("SDXL",))
    assert derive_search_key(a) == derive_search_key(b)


def test_distinct_descriptors_do_not_collide():
    """Every field other than page-under-query separates keys"""
    base = SearchDescriptor()
    variants = [
        base,
        SearchDescriptor(query="default"),
        SearchDescriptor(limit=50),
        SearchDescriptor(nsfw=True),
        SearchDescriptor(sort="Newest"),
        SearchDescriptor(base_model_filters=("SDXL",)),
        SearchDescriptor(base_model_filters=("SD 1.x",)),
        SearchDescriptor(query="a_b"),
        SearchDescriptor(query="a", sort="b_Highest Rated"),
    ]
    keys = [derive_search_key(d) for d in variants]
    assert len(set(keys)) == len(keys)


def test_key_is_deterministic():
    descriptor = SearchDescriptor(query="cat", base_model_filters=("Pony",), nsfw=True)
    assert derive_search_key(descriptor) == derive_search_key(
        SearchDescriptor(query="cat", base_model_filters=("Pony",), nsfw=True)
    )


def test_entity_keys_are_namespaced():
    assert model_key(12) != version_key(12)
    assert model_key(12) == model_key("12")
    assert derive_search_key(SearchDescriptor()).startswith("loras:search:")
