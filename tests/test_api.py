"""
Route tests: styles, favorites, CivitAI lookups and error mapping.
"""
import pytest
from fastapi.testclient import TestClient

from catalog.cache import DurableEntityCache, TTLCache
from catalog.errors import UpstreamUnavailable
from catalog.favorites import MemoryFavoritesStore
from catalog.loras import LoraService
from catalog.main import create_app
from catalog.services import CatalogServices
from catalog.styles import StyleCatalogService
from catalog.throttle import RequestThrottle
from config.settings import Settings

from fakes import FakeUpstream

STYLES_URL = "https://example.test/styles.json"
PREVIEWS_URL = "https://example.test/previews.json"
CATEGORIES_URL = "https://example.test/categories.json"
CIVITAI = "https://civitai.test/api/v1"

MODEL = {"id": 3, "name": "Add Detail", "modelVersions": [{"id": 30}, {"id": 31}]}


def build_test_services(style_responses=None):
    if style_responses is None:
        style_responses = {
            STYLES_URL: {"Anime": {"prompt": "a"}, "Realistic": {"prompt": "r"}},
            PREVIEWS_URL: {},
            CATEGORIES_URL: {"New": ["Anime"], "Featured": ["Realistic"]},
        }
    cache = TTLCache(3600)
    durable = DurableEntityCache()
    styles_client = FakeUpstream(style_responses, name="styles")
    civitai_client = FakeUpstream({
        f"{CIVITAI}/models/3": MODEL,
        f"{CIVITAI}/model-versions/31": {"id": 31, "modelId": 3},
    }, name="civitai")
    return CatalogServices(
        cache=cache,
        durable=durable,
        civitai_throttle=RequestThrottle(0, name="civitai"),
        styles=StyleCatalogService(
            styles_client,
            cache,
            styles_url=STYLES_URL,
            previews_url=PREVIEWS_URL,
            categories_url=CATEGORIES_URL,
        ),
        loras=LoraService(civitai_client, cache, durable, base_url=CIVITAI),
        favorites=MemoryFavoritesStore(),
    )


@pytest.fixture
def services():
    return build_test_services()


@pytest.fixture
def client(services):
    app = create_app(services=services, settings=Settings(database_url=""))
    with TestClient(app) as test_client:
        yield test_client


def test_health_endpoint_returns_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_styles_view_structure(client):
    response = client.get("/api/styles")
    assert response.status_code == 200
    data = response.json()
    assert [item["name"] for item in data["allItems"]] == ["Anime", "Realistic"]
    assert set(data["itemsMap"]) == {"Anime", "Realistic"}
    assert [s["name"] for s in data["categorizedSections"]] == ["New", "Featured"]


def test_favorites_round_trip_changes_view(client):
    response = client.put("/api/settings/favorite-styles", json={"favorites": ["realistic"]})
    assert response.status_code == 200
    assert client.get("/api/settings/favorite-styles").json() == {"favorites": ["realistic"]}

    sections = client.get("/api/styles").json()["categorizedSections"]
    assert [(s["name"], [i["name"] for i in s["items"]]) for s in sections] == [
        ("Favorites", ["Realistic"]),
        ("New", ["Anime"]),
    ]


def test_get_style_and_404(client):
    assert client.get("/api/styles/Anime").json() == {"name": "Anime", "prompt": "a"}
    response = client.get("/api/styles/Missing")
    assert response.status_code == 404
    assert "error" in response.json()


def test_refresh_returns_count(client, services):
    client.get("/api/styles")
    response = client.post("/api/styles/refresh")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Styles cache refreshed", "count": 2}


def test_primary_failure_maps_to_502():
    services = build_test_services({
        STYLES_URL: UpstreamUnavailable("styles", "HTTP error! status: 500"),
    })
    app = create_app(services=services, settings=Settings(database_url=""))
    with TestClient(app) as test_client:
        response = test_client.get("/api/styles")
    assert response.status_code == 502
    assert "styles unavailable" in response.json()["error"]


def test_model_and_version_lookup(client):
    model = client.get("/api/civitai/models/3").json()
    assert model["name"] == "Add Detail"
    assert model["cached"] is False

    # Version 30 was recorded from the model fetch above
    version = client.get("/api/civitai/model-versions/30").json()
    assert version["id"] == 3
    assert version["cached"] is True


def test_unknown_model_maps_to_502(client):
    response = client.get("/api/civitai/models/999")
    assert response.status_code == 502


def test_search_validates_body(client):
    response = client.post("/api/civitai/search", json={"page": 0})
    assert response.status_code == 422


def test_cache_stats(client):
    client.get("/api/styles")
    stats = client.get("/cache/stats").json()
    assert stats["ttl"]["entries"] == 1
    assert stats["throttle"]["name"] == "civitai"
    assert stats["durable"]["entries"] == 0
    assert "coalescer" in stats["loras"]


def test_cache_stats_reports_durable_entries(client):
    client.get("/api/civitai/models/3")
    stats = client.get("/cache/stats").json()
    assert stats["durable"]["entries"] == 2
    assert stats["durable"]["writes"] == 2
