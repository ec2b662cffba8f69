import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from .cache import TTLCache
from .geo import haversine_km
from .geocoding_client import GeocodingClient
from .schemas import CacheCleared, CacheStats, Location, LocationsResponse
from .settings import settings

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

cache = TTLCache(default_ttl=settings.cache_default_ttl)
client = GeocodingClient(cache)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    cache.shutdown()


app = FastAPI(title="PinQuest Geo Proxy API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(httpx.HTTPError)
async def upstream_error_handler(request: Request, exc: httpx.HTTPError):
    logger.warning("geocoding upstream failed for %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Geocoding service unavailable"})


@app.get("/health")
async def health():
    """Liveness probe for the service.

    Returns
    -------
    dict
        A fixed payload `{"status": "ok"}` used by orchestrators and uptime checks.
    """

    return {"status": "ok"}


@app.get("/v1/locations/search", response_model=LocationsResponse)
async def search_locations(
        q: str = Query(..., description="Free-text place query"),
        user_lat: Optional[float] = Query(None, ge=-90, le=90, description="Caller latitude, for distances"),
        user_lng: Optional[float] = Query(None, ge=-180, le=180, description="Caller longitude, for distances"),
):
    """Search places worldwide through Nominatim.

    Parameters
    ----------
    q : str
        Free-text query. A blank query returns an empty list.
    user_lat, user_lng : Optional[float]
        Caller position. When both are given every result carries `distance_km`.

    Returns
    -------
    LocationsResponse
        Envelope with `count` and `data` (list of locations).

    Notes
    -----
    - Repeated queries within the search TTL are answered from the in-memory cache.

    Examples
    --------
    - `GET /v1/locations/search?q=paris`
    - `GET /v1/locations/search?q=cafe&user_lat=48.85&user_lng=2.35`
    """

    items = await client.search_locations(q)
    if user_lat is not None and user_lng is not None:
        items = [
            {**it, "distance_km": round(haversine_km(user_lat, user_lng,
                                                     it["coordinates"]["latitude"],
                                                     it["coordinates"]["longitude"]), 1)}
            for it in items
        ]
    return {"count": len(items), "data": items}


@app.get("/v1/locations/reverse", response_model=Location)
async def reverse_geocode(
        lat: float = Query(..., ge=-90, le=90),
        lon: float = Query(..., ge=-180, le=180),
):
    """Resolve coordinates to a place.

    Raises
    ------
    HTTPException
        404 if Nominatim has no place for the coordinates.
    """

    location = await client.reverse_geocode(lat, lon)
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return location


@app.get("/v1/cache", response_model=CacheStats)
async def cache_stats(pattern: str = Query("*", description="Glob filter for the listed keys")):
    return {"size": cache.size(), "default_ttl": cache.default_ttl, "keys": cache.keys(pattern)}


@app.delete("/v1/cache", response_model=CacheCleared)
async def clear_cache():
    cleared = cache.clear()
    logger.info("cache cleared via API (%d entries)", cleared)
    return {"cleared": cleared}
