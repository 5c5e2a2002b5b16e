"""Routing (OSRM) and geocoding (Nominatim) lookups."""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

import requests

from ..config import RoutingConfig
from ..models import Coordinates

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two points in kilometres."""

    lat1, lat2 = math.radians(origin.latitude), math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(destination.longitude - origin.longitude)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass(slots=True)
class RoutingClient:
    config: RoutingConfig = field(default_factory=RoutingConfig)

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "User-Agent": self.config.user_agent}

    def driving_distance_km(self, origin: Coordinates, destination: Coordinates) -> float:
        """One-way driving distance, falling back to the haversine distance.

        The fallback is used whenever the routing provider errors, times out,
        or returns a response without a usable route.
        """

        url = (
            f"{self.config.osrm_url.rstrip('/')}/"
            f"{origin.longitude},{origin.latitude};{destination.longitude},{destination.latitude}"
        )
        try:
            response = requests.get(
                url,
                headers=self._headers(),
                params={"overview": "false"},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Driving distance lookup failed, using haversine: %s", exc)
            return haversine_distance_km(origin, destination)

        routes = payload.get("routes") if isinstance(payload, Mapping) else None
        if isinstance(routes, list) and routes and isinstance(routes[0], Mapping):
            distance = routes[0].get("distance")
            if isinstance(distance, (int, float)) and distance > 0:
                return float(distance) / 1000

        logger.warning("Routing provider returned no route, using haversine")
        return haversine_distance_km(origin, destination)

    def geocode(self, address: str) -> Optional[Coordinates]:
        """Resolve a free-text address to coordinates, or ``None``."""

        if not address.strip():
            return None
        try:
            response = requests.get(
                self.config.nominatim_url,
                headers=self._headers(),
                params={"q": address, "format": "json", "limit": 1},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Geocoding failed for %r: %s", address, exc)
            return None

        if not isinstance(payload, list) or not payload or not isinstance(payload[0], Mapping):
            return None
        try:
            latitude = float(payload[0]["lat"])
            longitude = float(payload[0]["lon"])
        except (KeyError, TypeError, ValueError):
            return None
        if math.isnan(latitude) or math.isnan(longitude):
            return None
        return Coordinates(latitude, longitude)
