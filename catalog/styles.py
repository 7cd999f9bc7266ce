"""
Style catalog service
Fetches AI Horde styles, previews and categories, merges them and caches the result
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from catalog.aggregator import CatalogItem, build_sections, merge_items, process_categories
from catalog.cache import RequestCoalescer, TTLCache
from catalog.errors import ItemNotFound, UpstreamUnavailable
from catalog.upstream import UpstreamClient

logger = logging.getLogger("styles")

CATALOG_CACHE_KEY = "styles:catalog"


@dataclass
class StyleCatalog:
    """Merged styles data as held in the TTL cache."""
    all_items: List[CatalogItem]
    items_map: Dict[str, Any]
    previews_map: Dict[str, Any] = field(default_factory=dict)
    categories: Dict[str, List[str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allItems": [item.to_dict() for item in self.all_items],
            "itemsMap": self.items_map,
            "previewsMap": self.previews_map,
            "categories": self.categories,
            "warnings": self.warnings,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StyleCatalog":
        return cls(
            all_items=[CatalogItem.from_dict(item) for item in data["allItems"]],
            items_map=data["itemsMap"],
            previews_map=data.get("previewsMap", {}),
            categories=data.get("categories", {}),
            warnings=data.get("warnings", []),
        )


class StyleCatalogService:
    """
    Builds and caches the styles catalog.

    - styles.json is the primary source; its failure fails the whole request
    - previews.json and categories.json are secondary; a failure degrades to
      an empty dataset and a recorded warning
    - concurrent cache misses share one upstream round
    """

    def __init__(
        self,
        client: UpstreamClient,
        cache: TTLCache,
        styles_url: str,
        previews_url: str,
        categories_url: str,
        coalescer: Optional[RequestCoalescer] = None,
    ):
        self._client = client
        self._cache = cache
        self.styles_url = styles_url
        self.previews_url = previews_url
        self.categories_url = categories_url
        self._coalescer = coalescer or RequestCoalescer()

    async def get_catalog(self, force_refresh: bool = False) -> StyleCatalog:
        """
        Get the merged catalog, fetching upstream on a cache miss.

        Args:
            force_refresh: Skip the cache read (the result is still written back)

        Raises:
            UpstreamUnavailable: If the primary styles source fails
        """
        if force_refresh:
            logger.info(f"FORCE REFRESH: {CATALOG_CACHE_KEY}")
        else:
            cached = await asyncio.to_thread(self._cache.get, CATALOG_CACHE_KEY)
            if cached is not None:
                logger.debug("Returning cached styles")
                return StyleCatalog.from_dict(cached)

        return await self._coalescer.get_or_fetch(
            f"{CATALOG_CACHE_KEY}:refresh" if force_refresh else CATALOG_CACHE_KEY,
            self._fetch_and_store,
        )

    async def _fetch_and_store(self) -> StyleCatalog:
        logger.info("Fetching styles from upstream...")
        warnings: List[str] = []

        styles_data, previews_data, raw_categories = await asyncio.gather(
            self._client.fetch_json(self.styles_url),
            self._fetch_secondary("previews", self.previews_url, warnings),
            self._fetch_secondary("categories", self.categories_url, warnings),
        )

        if not isinstance(styles_data, dict):
            raise UpstreamUnavailable(
                self._client.name, f"styles document is {type(styles_data).__name__}, expected object"
            )

        all_items = merge_items(styles_data, previews_data)
        categories = process_categories(raw_categories, [item.name for item in all_items])

        catalog = StyleCatalog(
            all_items=all_items,
            items_map=styles_data,
            previews_map=previews_data,
            categories=categories,
            warnings=warnings,
        )
        await asyncio.to_thread(self._cache.set, CATALOG_CACHE_KEY, catalog.to_dict())

        logger.info(f"Cached {len(all_items)} styles, {len(categories)} categories")
        return catalog

    async def _fetch_secondary(self, label: str, url: str, warnings: List[str]) -> Dict[str, Any]:
        """Fetch an enrichment source, degrading to {} on failure."""
        try:
            data = await self._client.fetch_json(url)
        except UpstreamUnavailable as e:
            message = f"Failed to fetch {label}: {e.reason}"
            logger.warning(message)
            warnings.append(message)
            return {}

        if not isinstance(data, dict):
            message = f"Ignoring {label}: expected object, got {type(data).__name__}"
            logger.warning(message)
            warnings.append(message)
            return {}
        return data

    async def get_view(self, favorite_names: Sequence[str] = ()) -> Dict[str, Any]:
        """
        Catalog read entry point.

        Sections are built per call because favorites are per user and are
        not part of the cache key.
        """
        catalog = await self.get_catalog()
        sections = build_sections(catalog.all_items, catalog.categories, favorite_names)
        return {
            "allItems": [item.to_dict() for item in catalog.all_items],
            "itemsMap": catalog.items_map,
            "categorizedSections": [section.to_dict() for section in sections],
        }

    async def get_style(self, name: str) -> Dict[str, Any]:
        """Look up one style by its exact name."""
        catalog = await self.get_catalog()
        if name not in catalog.items_map:
            raise ItemNotFound("style", name)
        data = catalog.items_map[name]
        return {"name": name, **(data if isinstance(data, dict) else {"value": data})}

    async def refresh(self) -> int:
        """
        Administrative refresh: clear the TTL cache and refetch.

        Returns:
            Number of styles re-cached
        """
        await asyncio.to_thread(self._cache.invalidate_all)
        catalog = await self.get_catalog(force_refresh=True)
        return len(catalog.all_items)
