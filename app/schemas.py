from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class Location(BaseModel):
    """A place as returned by the proxy.

    Notes
    -----
    - `bbox` is `[south, west, north, east]` in decimal degrees, when Nominatim provides one.
    - `relevance` is Nominatim's `importance` score (0 when missing).
    - `distance_km` is only set on search results when the caller sends its position.
    """

    name: str
    address: Optional[Dict[str, Any]] = None
    type: Optional[str] = None
    category: Optional[str] = None
    coordinates: Coordinates
    bbox: Optional[List[Optional[float]]] = None
    relevance: float = 0.0
    distance_km: Optional[float] = None


class LocationsResponse(BaseModel):
    count: int
    data: List[Location]


class CacheStats(BaseModel):
    size: int
    default_ttl: float
    keys: List[str]


class CacheCleared(BaseModel):
    cleared: int
