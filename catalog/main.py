"""
Horde Catalog - Main FastAPI Application
Cached, categorized style presets and throttled CivitAI LoRA lookups
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from catalog.errors import ItemNotFound, UpstreamUnavailable
from catalog.schemas import (
    FavoriteStyles,
    LoraSearchRequest,
    LoraSearchResponse,
    RefreshResponse,
    StylesView,
)
from catalog.services import CatalogServices, build_services
from config.settings import Settings, settings as default_settings

APP_VERSION = "v0.1.0"
APP_NAME = "Horde Catalog"

logger = logging.getLogger("main")


def create_app(
    services: Optional[CatalogServices] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the application around one set of long-lived services.

    Args:
        services: Prebuilt services (tests pass fakes here)
        settings: Settings used when services must be built
    """
    settings = settings or default_settings
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title=APP_NAME,
        description="Cached AI Horde styles and CivitAI LoRA metadata",
        version=APP_VERSION,
    )
    app.state.services = services or build_services(settings)

    @app.exception_handler(UpstreamUnavailable)
    async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable):
        logger.error(f"Upstream failure on {request.url.path}: {exc}")
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.exception_handler(ItemNotFound)
    async def item_not_found_handler(request: Request, exc: ItemNotFound):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": APP_VERSION}

    @app.get("/cache/stats")
    def cache_stats(request: Request) -> Dict[str, Any]:
        """Get cache and throttle statistics."""
        services: CatalogServices = request.app.state.services
        return {
            "ttl": services.cache.get_stats(),
            "durable": services.durable.get_stats(),
            "loras": services.loras.get_stats(),
            "throttle": services.civitai_throttle.get_stats(),
        }

    # ===== STYLES =====

    @app.get("/api/styles", response_model=StylesView)
    async def get_styles(request: Request):
        """All styles plus the categorized view, with the user's favorites first."""
        services: CatalogServices = request.app.state.services
        favorites = await asyncio.to_thread(services.favorites.get_favorite_styles)
        return await services.styles.get_view(favorites)

    @app.post("/api/styles/refresh", response_model=RefreshResponse)
    async def refresh_styles(request: Request):
        """Force refresh the styles cache."""
        services: CatalogServices = request.app.state.services
        count = await services.styles.refresh()
        return RefreshResponse(success=True, message="Styles cache refreshed", count=count)

    @app.get("/api/styles/{name}")
    async def get_style(name: str, request: Request):
        """Get a specific style by name."""
        services: CatalogServices = request.app.state.services
        return await services.styles.get_style(name)

    # ===== SETTINGS =====

    @app.get("/api/settings/favorite-styles", response_model=FavoriteStyles)
    def get_favorite_styles(request: Request):
        services: CatalogServices = request.app.state.services
        return FavoriteStyles(favorites=services.favorites.get_favorite_styles())

    @app.put("/api/settings/favorite-styles", response_model=FavoriteStyles)
    def put_favorite_styles(body: FavoriteStyles, request: Request):
        services: CatalogServices = request.app.state.services
        return FavoriteStyles(favorites=services.favorites.set_favorite_styles(body.favorites))

    # ===== CIVITAI =====

    @app.post("/api/civitai/search", response_model=LoraSearchResponse)
    async def search_loras(body: LoraSearchRequest, request: Request):
        """Search LoRAs (cursor URLs in `url` page through query searches)."""
        services: CatalogServices = request.app.state.services
        return await services.loras.search(body.to_descriptor(), url=body.url)

    @app.get("/api/civitai/models/{model_id}")
    async def get_lora_model(model_id: int, request: Request):
        services: CatalogServices = request.app.state.services
        return await services.loras.get_model(model_id)

    @app.get("/api/civitai/model-versions/{version_id}")
    async def get_lora_by_version(version_id: int, request: Request):
        """Full model data for a version id (durable cache first)."""
        services: CatalogServices = request.app.state.services
        return await services.loras.get_model_by_version(version_id)

    return app
