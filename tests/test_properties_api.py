import pytest
from httpx import ASGITransport, AsyncClient
from unittest.mock import AsyncMock

from app.dependencies.cache import get_property_cache
from app.errors import GeocodingError
from app.main import app, warm_property_cache
from app.schemas.property import GeocodeResult
from conftest import FakeCrm, make_cache


@pytest.fixture
def use_cache():
    def install(cache):
        app.dependency_overrides[get_property_cache] = lambda: cache
        return cache
    yield install
    app.dependency_overrides.clear()


def _client():
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_list_properties(use_cache, sample_records):
    fake = FakeCrm(sample_records)
    use_cache(make_cache(fake, page_size=2))

    async with _client() as client:
        response = await client.get("/api/properties")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 5
    assert len(body["properties"]) == 5
    assert body["lastFetched"]
    first = body["properties"][0]
    assert first["id"] == "p1"
    assert first["type"] == "Flat"
    assert first["receptionRooms"] == 1
    assert first["listingUrl"] is None
    assert "addressPostalCode" in first


@pytest.mark.asyncio
async def test_refresh_flag_forces_refetch(use_cache, sample_records):
    fake = FakeCrm(sample_records)
    use_cache(make_cache(fake, page_size=10))

    async with _client() as client:
        await client.get("/api/properties")
        await client.get("/api/properties")
        assert len(fake.requests) == 1
        await client.get("/api/properties", params={"refresh": "true"})
        assert len(fake.requests) == 2
        await client.get("/api/properties", params={"refresh": "false"})
        assert len(fake.requests) == 2


@pytest.mark.asyncio
async def test_upstream_failure_returns_500(use_cache):
    use_cache(make_cache(FakeCrm([], fail_offsets={0})))

    async with _client() as client:
        response = await client.get("/api/properties")

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to fetch properties from PropertyPipeline"
    assert "503" in body["message"]


@pytest.mark.asyncio
async def test_filters_narrow_the_list(use_cache, sample_records):
    use_cache(make_cache(FakeCrm(sample_records), page_size=10))

    async with _client() as client:
        response = await client.get(
            "/api/properties",
            params={"bedroomsMin": 2, "parkingTypes": ["garage", "space"]},
        )

    body = response.json()
    assert [p["id"] for p in body["properties"]] == ["p1", "p2", "p3"]
    assert body["total"] == 3


@pytest.mark.asyncio
async def test_negative_filter_rejected(use_cache, sample_records):
    use_cache(make_cache(FakeCrm(sample_records)))

    async with _client() as client:
        response = await client.get("/api/properties", params={"bedroomsMin": -1})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_filter_options(use_cache, sample_records):
    use_cache(make_cache(FakeCrm(sample_records), page_size=10))

    async with _client() as client:
        response = await client.get("/api/properties/options")

    assert response.status_code == 200
    assert response.json() == {
        "propertyTypes": ["Bungalow", "Flat", "House", "flat"],
        "parkingTypes": ["Allocated space", "Driveway and garage", "Garage"],
    }


@pytest.mark.asyncio
async def test_health_reports_cache_state(use_cache, sample_records):
    use_cache(make_cache(FakeCrm(sample_records), page_size=10))

    async with _client() as client:
        before = (await client.get("/health")).json()
        await client.get("/api/properties")
        after = (await client.get("/health")).json()

    assert before == {"status": "ok", "cachedProperties": 0, "lastFetched": None, "refreshing": False}
    assert after["cachedProperties"] == 5
    assert after["lastFetched"]


@pytest.mark.asyncio
async def test_geocode(monkeypatch):
    monkeypatch.setattr(
        "app.routers.properties.geocode_location",
        AsyncMock(return_value=GeocodeResult(latitude=51.45, longitude=-2.58, display_name="Bristol")),
    )

    async with _client() as client:
        response = await client.get("/api/geocode", params={"q": "Bristol"})

    assert response.status_code == 200
    assert response.json() == {"latitude": 51.45, "longitude": -2.58, "displayName": "Bristol"}


@pytest.mark.asyncio
async def test_geocode_not_found(monkeypatch):
    monkeypatch.setattr("app.routers.properties.geocode_location", AsyncMock(return_value=None))

    async with _client() as client:
        response = await client.get("/api/geocode", params={"q": "Atlantis"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_geocode_upstream_failure(monkeypatch):
    monkeypatch.setattr(
        "app.routers.properties.geocode_location", AsyncMock(side_effect=GeocodingError("down"))
    )

    async with _client() as client:
        response = await client.get("/api/geocode", params={"q": "Leeds"})

    assert response.status_code == 502


@pytest.mark.asyncio
async def test_geocode_blank_query():
    async with _client() as client:
        response = await client.get("/api/geocode", params={"q": "   "})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_scheduled_refresh_swallows_upstream_failure(sample_records):
    fake = FakeCrm(sample_records)
    cache = make_cache(fake, page_size=10)
    await warm_property_cache(cache)
    assert cache.snapshot().total == 5

    fake.fail_offsets = {0}
    await warm_property_cache(cache)
    assert cache.snapshot().total == 5


@pytest.mark.asyncio
async def test_transport_error_returns_json_500(use_cache):
    use_cache(make_cache(FakeCrm([], raise_offsets={0})))

    async with _client() as client:
        response = await client.get("/api/properties")

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to fetch properties from PropertyPipeline"
    assert "stream broke" in body["message"]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/properties", "/api/properties/options"])
async def test_unexpected_cache_error_returns_json_500(use_cache, monkeypatch, path):
    cache = use_cache(make_cache(FakeCrm([])))
    monkeypatch.setattr(cache, "fetch_properties", AsyncMock(side_effect=RuntimeError("boom")))

    async with _client() as client:
        response = await client.get(path)

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to fetch properties from PropertyPipeline",
        "message": "RuntimeError: boom",
    }
