"""
Service wiring
Builds the long-lived caches, throttle and services once per process
"""
import logging
from dataclasses import dataclass
from typing import Union

from catalog.cache import DurableEntityCache, MemoryStore, SqlStore, TTLCache
from catalog.db import init_db, make_engine, make_session_factory
from catalog.favorites import FavoritesStore, MemoryFavoritesStore
from catalog.loras import LoraService
from catalog.styles import StyleCatalogService
from catalog.throttle import RequestThrottle
from catalog.upstream import UpstreamClient
from config.settings import Settings

logger = logging.getLogger("services")

SEARCH_NAMESPACE = "search"
LORA_NAMESPACE = "lora"


@dataclass
class CatalogServices:
    """Everything the route layer needs, shared by reference."""
    cache: TTLCache
    durable: DurableEntityCache
    civitai_throttle: RequestThrottle
    styles: StyleCatalogService
    loras: LoraService
    favorites: Union[FavoritesStore, MemoryFavoritesStore]


def build_services(settings: Settings) -> CatalogServices:
    """
    Construct the process-wide services.

    With a database_url the caches and favorites persist through SQLAlchemy;
    without one everything lives in memory.
    """
    if settings.database_url:
        engine = make_engine(settings.database_url)
        init_db(engine)
        session_factory = make_session_factory(engine)
        search_store = SqlStore(session_factory, SEARCH_NAMESPACE)
        lora_store = SqlStore(session_factory, LORA_NAMESPACE)
        favorites = FavoritesStore(session_factory)
        logger.info(f"Persisting caches at: {engine.url}")
    else:
        search_store = MemoryStore()
        lora_store = MemoryStore()
        favorites = MemoryFavoritesStore()
        logger.info("Caches are in-memory only")

    cache = TTLCache(settings.search_cache_ttl_seconds, store=search_store)
    durable = DurableEntityCache(store=lora_store)

    # Only CivitAI enforces rate limits; the styles files are static downloads
    civitai_throttle = RequestThrottle(settings.civitai_min_interval_seconds, name="civitai")
    civitai_client = UpstreamClient(
        "civitai", timeout=settings.upstream_timeout_seconds, throttle=civitai_throttle
    )
    styles_client = UpstreamClient("styles", timeout=settings.upstream_timeout_seconds)

    return CatalogServices(
        cache=cache,
        durable=durable,
        civitai_throttle=civitai_throttle,
        styles=StyleCatalogService(
            styles_client,
            cache,
            styles_url=settings.styles_url,
            previews_url=settings.previews_url,
            categories_url=settings.categories_url,
        ),
        loras=LoraService(civitai_client, cache, durable, base_url=settings.civitai_base_url),
        favorites=favorites,
    )
