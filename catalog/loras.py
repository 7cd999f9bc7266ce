"""
CivitAI LoRA lookups with two-tier caching.

Search results and single-model fetches go through the TTL cache. Every
model seen is also recorded in the durable cache under each of its version
ids, so a later lookup by version id skips the two-hop upstream resolution.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from catalog.cache import (
    DurableEntityCache,
    RequestCoalescer,
    SearchDescriptor,
    TTLCache,
    derive_search_key,
    extract_version_ids,
    model_key,
    version_key,
)
from catalog.errors import UpstreamUnavailable
from catalog.upstream import UpstreamClient

logger = logging.getLogger("loras")

# Base model families -> concrete CivitAI baseModels values
BASE_MODEL_FAMILIES: Dict[str, List[str]] = {
    "SD 1.x": ["SD 1.4", "SD 1.5", "SD 1.5 LCM"],
    "SD 2.x": ["SD 2.0", "SD 2.0 768", "SD 2.1", "SD 2.1 768", "SD 2.1 Unclip"],
    "SDXL": ["SDXL 0.9", "SDXL 1.0", "SDXL 1.0 LCM", "SDXL Turbo"],
    "Pony": ["Pony"],
    "Flux": ["Flux.1 S", "Flux.1 D"],
    "NoobAI": ["NoobAI"],
    "Illustrious": ["Illustrious"],
}


def build_query_params(descriptor: SearchDescriptor) -> List[Tuple[str, Any]]:
    """
    Build the /models query for a search.

    Query searches must not send a page number; upstream paginates them by
    cursor (metadata.nextPage). Browsing sends the page number.
    """
    params: List[Tuple[str, Any]] = [
        ("types", "LORA"),
        ("sort", descriptor.sort),
        ("limit", descriptor.limit),
    ]
    if descriptor.query:
        params.append(("query", descriptor.query))
    else:
        params.append(("page", descriptor.page))
    params.append(("nsfw", "true" if descriptor.nsfw else "false"))

    for family, base_models in BASE_MODEL_FAMILIES.items():
        if family in descriptor.base_model_filters:
            params.extend(("baseModels", base_model) for base_model in base_models)
    return params


class LoraService:
    """CivitAI search and model lookup, throttled through the client."""

    def __init__(
        self,
        client: UpstreamClient,
        cache: TTLCache,
        durable: DurableEntityCache,
        base_url: str,
        coalescer: Optional[RequestCoalescer] = None,
    ):
        self._client = client
        self._cache = cache
        self._durable = durable
        self.base_url = base_url.rstrip("/")
        self._coalescer = coalescer or RequestCoalescer()

    async def _cache_get(self, key: str) -> Any:
        return await asyncio.to_thread(self._cache.get, key)

    async def _cache_set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._cache.set, key, value)

    async def _record_all(self, models: List[Any]) -> None:
        """Record each model's version ids in the durable cache, off the loop."""
        def record() -> None:
            for model in models:
                model_id = model.get("id") if isinstance(model, dict) else None
                self._durable.record_parent(model, extract_version_ids, parent_id=model_id)

        await asyncio.to_thread(record)

    def _resolve_cursor(self, url: str) -> str:
        """
        Absolute cursor URLs are only followed on the CivitAI base URL; any
        other host keeps just its query string as a cursor on /models.
        """
        if url.startswith(f"{self.base_url}/"):
            return url
        parts = urlsplit(url)
        query = parts.query if parts.scheme or parts.netloc else url.lstrip("?")
        return f"{self.base_url}/models?{query}"

    async def search(
        self,
        descriptor: SearchDescriptor,
        url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Search LoRAs.

        Args:
            descriptor: Search parameters
            url: Cursor URL from a previous response's metadata.nextPage;
                fetched directly and never cached

        Returns:
            {"items": [...], "metadata": {...}, "cached": bool}
        """
        if url:
            data = await self._client.fetch_json(self._resolve_cursor(url))
            if not isinstance(data, dict):
                raise UpstreamUnavailable(self._client.name, "search response is not an object")
            await self._record_all(data.get("items") or [])
            return self._search_result(data, descriptor, cached=False)

        cache_key = derive_search_key(descriptor)
        cached = await self._cache_get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit for search: {cache_key}")
            return self._search_result(cached, descriptor, cached=True)

        async def fetch() -> Any:
            result = await self._client.fetch_json(
                f"{self.base_url}/models", params=build_query_params(descriptor)
            )
            if not isinstance(result, dict):
                raise UpstreamUnavailable(self._client.name, "search response is not an object")
            await self._cache_set(cache_key, result)
            # Versions are recorded once per upstream fetch, never on cache hits
            await self._record_all(result.get("items") or [])
            return result

        data = await self._coalescer.get_or_fetch(cache_key, fetch)
        return self._search_result(data, descriptor, cached=False)

    def _search_result(self, data: Dict[str, Any], descriptor: SearchDescriptor, cached: bool) -> Dict[str, Any]:
        items = data.get("items") or []
        logger.info(f"Returning {len(items)} items (cached={cached})")
        return {
            "items": items,
            "metadata": data.get("metadata") or {
                "nextPage": None,
                "currentPage": descriptor.page,
                "pageSize": descriptor.limit,
            },
            "cached": cached,
        }

    async def get_model(self, model_id: Union[int, str]) -> Dict[str, Any]:
        """Get a model by its id."""
        cache_key = model_key(model_id)
        cached = await self._cache_get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit for model: {model_id}")
            return {**cached, "cached": True}

        async def fetch() -> Any:
            result = await self._client.fetch_json(f"{self.base_url}/models/{model_id}")
            if not isinstance(result, dict):
                raise UpstreamUnavailable(self._client.name, f"model {model_id} is not an object")
            await self._cache_set(cache_key, result)
            await self._record_all([result])
            return result

        data = await self._coalescer.get_or_fetch(cache_key, fetch)
        return {**data, "cached": False}

    async def get_model_by_version(self, version_id: Union[int, str]) -> Dict[str, Any]:
        """
        Get the full model owning a version id.

        Order: durable cache, TTL cache, then upstream (version -> modelId,
        then the model itself). Both caches are populated on success.
        """
        durable_hit = await asyncio.to_thread(self._durable.get, version_id)
        if durable_hit is not None:
            logger.info(f"Durable cache hit for version: {version_id}")
            return {**durable_hit, "cached": True}

        cache_key = version_key(version_id)
        cached = await self._cache_get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit for version: {version_id}")
            return {**cached, "cached": True}

        version_data = await self._client.fetch_json(f"{self.base_url}/model-versions/{version_id}")
        parent_id = version_data.get("modelId") if isinstance(version_data, dict) else None
        if parent_id is None:
            raise UpstreamUnavailable(self._client.name, f"version {version_id} has no modelId")

        model = await self.get_model(parent_id)
        model.pop("cached", None)

        await self._cache_set(cache_key, model)
        await self._record_all([model])
        return {**model, "cached": False}

    def get_stats(self) -> Dict[str, Any]:
        return {"coalescer": self._coalescer.get_stats()}
