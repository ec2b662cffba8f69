import logging
from typing import Any, Dict, List, Optional

import httpx

from .cache import TTLCache
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class GeocodingClient:
    """Thin async client for OpenStreetMap Nominatim.

    Parameters
    ----------
    cache : TTLCache
        Cache for lookup results. Search results and reverse lookups are kept
        under the `search:` and `reverse:` key prefixes.
    config : Optional[Settings]
        Runtime settings. Defaults to the module-level `settings`.
    transport : Optional[httpx.AsyncBaseTransport]
        Transport handed to `httpx.AsyncClient`, mainly for tests.

    Notes
    -----
    - Every request carries the configured `User-Agent`, which Nominatim's
      usage policy requires.
    - Intended for read-only workloads; upstream errors propagate as `httpx.HTTPError`.
    """

    def __init__(self, cache: TTLCache, config: Optional[Settings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cache = cache
        self.config = config or default_settings
        self.base_url = self.config.nominatim_base_url
        self._transport = transport

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        """Perform a GET request against Nominatim and return the parsed JSON payload.

        Raises
        ------
        httpx.HTTPStatusError
            If the response has a 4xx/5xx status code.
        httpx.RequestError
            For transport-level errors (DNS, timeouts, etc.).
        """

        url = f"{self.base_url}/{path}"
        headers = {"User-Agent": self.config.user_agent}
        logger.info("nominatim request: %s %s", path, params.get("q") or (params.get("lat"), params.get("lon")))
        async with httpx.AsyncClient(timeout=self.config.request_timeout, transport=self._transport) as client:
            r = await client.get(url, params=params, headers=headers)
            r.raise_for_status()
            return r.json()

    @staticmethod
    def _format_location(item: Dict[str, Any], fallback_name: str = "") -> Optional[Dict[str, Any]]:
        """Normalise a Nominatim place into the proxy's location shape.

        Returns `None` for places without usable coordinates.
        """

        lat = _to_float(item.get("lat"))
        lon = _to_float(item.get("lon"))
        if lat is None or lon is None:
            return None
        namedetails = item.get("namedetails") or {}
        bbox = None
        raw_bbox = item.get("boundingbox")
        if raw_bbox and len(raw_bbox) == 4:
            # Nominatim order is [min_lat, max_lat, min_lon, max_lon]
            south, north, west, east = (_to_float(v) for v in raw_bbox)
            bbox = [south, west, north, east]
        return {
            "name": item.get("display_name") or namedetails.get("name") or item.get("name") or fallback_name,
            "address": item.get("address"),
            "type": item.get("type"),
            "category": item.get("category") or item.get("class"),
            "coordinates": {"latitude": lat, "longitude": lon},
            "bbox": bbox,
            "relevance": _to_float(item.get("importance")) or 0.0,
        }

    async def search_locations(self, query: str) -> List[Dict[str, Any]]:
        """Search places worldwide by free-text query.

        Parameters
        ----------
        query : str
            Free-text place query (e.g. `"Eiffel Tower"`).

        Returns
        -------
        List[Dict[str, Any]]
            Normalised locations, at most `search_limit` of them. Empty for a blank query.

        Notes
        -----
        - Served from the cache for `cache_ttl_search` seconds, keyed by the
          trimmed, lower-cased query. Empty results are cached as well.
        - Source: `{base_url}/search`.
        """

        if not isinstance(query, str) or not query.strip():
            return []
        query = query.strip()
        key = f"search:{query.lower()}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("cache hit: %s", key)
            return cached
        data = await self._get_json("search", {
            "q": query,
            "format": "json",
            "limit": self.config.search_limit,
            "addressdetails": 1,
            "extratags": 1,
            "namedetails": 1,
        })
        results = []
        if isinstance(data, list):
            for item in data:
                location = self._format_location(item, query)
                if location is not None:
                    results.append(location)
        self.cache.set(key, results, self.config.cache_ttl_search)
        return results

    async def reverse_geocode(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        """Resolve coordinates to the closest known place.

        Returns
        -------
        Optional[Dict[str, Any]]
            The normalised location, or `None` when Nominatim cannot geocode the point.

        Notes
        -----
        - Served from the cache for `cache_ttl_reverse` seconds, keyed by the
          coordinates rounded to 5 decimals (about one metre).
        - Misses (`None`) are not cached.
        - Source: `{base_url}/reverse`.
        """

        key = f"reverse:{lat:.5f},{lon:.5f}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("cache hit: %s", key)
            return cached
        data = await self._get_json("reverse", {
            "lat": lat,
            "lon": lon,
            "format": "json",
            "addressdetails": 1,
            "extratags": 1,
            "namedetails": 1,
        })
        if not isinstance(data, dict) or "error" in data:
            return None
        location = self._format_location(data)
        if location is not None:
            self.cache.set(key, location, self.config.cache_ttl_reverse)
        return location

    async def get_location_by_coordinates(self, lat: float, lon: float) -> Optional[Dict[str, Any]]:
        return await self.reverse_geocode(lat, lon)
