"""
Maps Integration

Walking-route ordering for the pub crawl. Google Directions optimises the
route when a key is available; otherwise stops are geocoded with Nominatim and
ordered greedily by straight-line distance.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from ..config.constants import (
    DEFAULT_TIMEOUT,
    GOOGLE_DIRECTIONS_URL,
    GOOGLE_MAPS_DIR_URL,
    NOMINATIM_SEARCH_URL,
    NOMINATIM_USER_AGENT,
)
from ..exceptions import ExternalServiceError
from ..utils.structured_logger import StructuredLogger, get_logger

EARTH_RADIUS_METRES = 6_371_000

Coordinates = Tuple[float, float]


def haversine_metres(a: Coordinates, b: Coordinates) -> int:
    """Great-circle distance between two (lat, lon) points, rounded to metres."""
    lat1, lon1 = map(math.radians, a)
    lat2, lon2 = map(math.radians, b)
    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    return round(2 * EARTH_RADIUS_METRES * math.asin(math.sqrt(h)))


def nearest_neighbour_order(
    origin: Coordinates, points: Sequence[Coordinates]
) -> Tuple[List[int], List[int]]:
    """
    Greedy route from origin through every point.

    Returns:
        (order, distances): indices into points in visiting order, and the
        distance in metres of each stop from the previous one
    """
    remaining = list(range(len(points)))
    order, distances = [], []
    current = origin

    while remaining:
        nearest = min(remaining, key=lambda i: haversine_metres(current, points[i]))
        distances.append(haversine_metres(current, points[nearest]))
        order.append(nearest)
        remaining.remove(nearest)
        current = points[nearest]

    return order, distances


def build_directions_url(origin: str, stops: Sequence[str]) -> str:
    """Google Maps link walking from origin through stops in order."""
    parts = [quote(origin, safe=",")] + [quote(s, safe=",") for s in stops]
    return f"{GOOGLE_MAPS_DIR_URL}/" + "/".join(parts)


class DirectionsClient:
    """Google Directions API, walking mode only."""

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.logger = logger or get_logger(__name__)
        self.timeout = timeout

    def optimize_walking_route(
        self, origin: str, waypoints: Sequence[str]
    ) -> Tuple[List[int], List[int]]:
        """
        Circular walking route from origin back to origin via every waypoint.

        Returns:
            (waypoint_order, leg_distances_metres); the legs include the
            final walk back to origin

        Raises:
            ExternalServiceError: Transport failure or status other than OK
        """
        params = {
            "origin": origin,
            "destination": origin,
            "waypoints": "optimize:true|" + "|".join(waypoints),
            "mode": "walking",
            "key": self.api_key,
        }
        self.logger.log_api_call("google_maps", GOOGLE_DIRECTIONS_URL, waypoints=len(waypoints))
        try:
            response = self.session.get(GOOGLE_DIRECTIONS_URL, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalServiceError("google_maps", f"Directions request failed: {e}") from e

        if not response.ok:
            raise ExternalServiceError(
                "google_maps", f"Directions API returned {response.status_code}"
            )

        data = response.json()
        status = data.get("status")
        if status != "OK" or not data.get("routes"):
            raise ExternalServiceError(
                "google_maps",
                f"Directions API status {status}: {data.get('error_message', '')}".strip(),
            )

        route = data["routes"][0]
        distances = [leg["distance"]["value"] for leg in route.get("legs", [])]
        return list(route.get("waypoint_order", [])), distances


class NominatimClient:
    """OpenStreetMap Nominatim geocoder. Callers must keep to one request per second."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = NOMINATIM_USER_AGENT
        self.logger = logger or get_logger(__name__)
        self.timeout = timeout

    def geocode(self, query: str) -> Optional[Coordinates]:
        """
        Return (lat, lon) for a free-text place, or None when not found.

        Raises:
            ExternalServiceError: Transport failure or non-2xx status
        """
        self.logger.log_api_call("nominatim", NOMINATIM_SEARCH_URL, query=query)
        try:
            response = self.session.get(
                NOMINATIM_SEARCH_URL,
                params={"q": query, "format": "json", "limit": 1},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalServiceError("nominatim", f"geocoding '{query}' failed: {e}") from e

        if not response.ok:
            raise ExternalServiceError(
                "nominatim", f"geocoding '{query}' returned {response.status_code}"
            )

        results: List[Dict] = response.json()
        if not results:
            return None
        return float(results[0]["lat"]), float(results[0]["lon"])
