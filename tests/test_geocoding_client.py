import asyncio

import httpx
import pytest

from app.cache import TTLCache
from app.geocoding_client import GeocodingClient
from app.settings import Settings

PARIS = {
    "lat": "48.8588897",
    "lon": "2.3200410",
    "display_name": "Paris, Ile-de-France, France",
    "type": "city",
    "class": "boundary",
    "importance": "0.88",
    "address": {"city": "Paris", "country": "France"},
    "boundingbox": ["48.8155755", "48.9021560", "2.2241220", "2.4697602"],
}


@pytest.fixture
def cache():
    c = TTLCache()
    yield c
    c.shutdown()


def _client(handler, cache):
    config = Settings(nominatim_base_url="https://nominatim.test", search_limit=5)
    return GeocodingClient(cache, config=config, transport=httpx.MockTransport(handler))


def test_search_normalises_results_and_skips_items_without_coordinates(cache) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[PARIS, {"display_name": "Nowhere"}])

    results = asyncio.run(_client(handler, cache).search_locations("  Paris "))

    assert len(results) == 1
    paris = results[0]
    assert paris["name"] == "Paris, Ile-de-France, France"
    assert paris["coordinates"] == {"latitude": 48.8588897, "longitude": 2.320041}
    assert paris["bbox"] == [48.8155755, 2.224122, 48.902156, 2.4697602]
    assert paris["category"] == "boundary"
    assert paris["relevance"] == pytest.approx(0.88)
    request = seen[0]
    assert request.url.path == "/search"
    assert request.url.params["q"] == "Paris"
    assert request.url.params["limit"] == "5"
    assert request.headers["User-Agent"].startswith("PinQuest/")


def test_search_is_served_from_cache_for_same_query(cache) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[PARIS])

    client = _client(handler, cache)

    async def run():
        first = await client.search_locations("Paris")
        second = await client.search_locations("paris")
        return first, second

    first, second = asyncio.run(run())
    assert first == second
    assert len(calls) == 1
    assert cache.keys("search:*") == ["search:paris"]


def test_blank_query_makes_no_request(cache) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert asyncio.run(_client(handler, cache).search_locations("   ")) == []


def test_name_falls_back_to_query(cache) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"lat": "1", "lon": "2"}])

    results = asyncio.run(_client(handler, cache).search_locations("somewhere"))
    assert results[0]["name"] == "somewhere"
    assert results[0]["bbox"] is None
    assert results[0]["relevance"] == 0.0


def test_upstream_error_propagates_and_is_not_cached(cache) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "busy"})

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_client(handler, cache).search_locations("Paris"))
    assert cache.size() == 0


def test_reverse_geocode_caches_hits(cache) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=PARIS)

    client = _client(handler, cache)

    async def run():
        await client.reverse_geocode(48.8588897, 2.320041)
        return await client.get_location_by_coordinates(48.8588897, 2.320041)

    location = asyncio.run(run())
    assert location["name"].startswith("Paris")
    assert len(calls) == 1
    assert calls[0].url.path == "/reverse"
    assert cache.has("reverse:48.85889,2.32004")


def test_reverse_geocode_unknown_point_returns_none(cache) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "Unable to geocode"})

    assert asyncio.run(_client(handler, cache).reverse_geocode(0.0, -150.0)) is None
    assert cache.size() == 0
