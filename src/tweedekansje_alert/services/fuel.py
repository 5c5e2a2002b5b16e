"""Round-trip distance and fuel cost estimates for store visits."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ..models import Coordinates, FuelInfo, ProfileInfo, Store

logger = logging.getLogger(__name__)


class DistanceProvider(Protocol):
    def driving_distance_km(self, origin: Coordinates, destination: Coordinates) -> float:
        ...


@dataclass(slots=True)
class FuelEstimator:
    """Estimates what a return trip from the owner's home to a store costs."""

    distances: DistanceProvider
    default_fuel_price: float = 2.0

    def estimate(self, profile: Optional[ProfileInfo], store: Optional[Store]) -> Optional[FuelInfo]:
        """Return a ``FuelInfo`` or ``None`` when any input is missing."""

        if profile is None or store is None:
            return None
        if profile.home_latitude is None or profile.home_longitude is None:
            return None
        consumption = profile.fuel_consumption
        if consumption is None or consumption <= 0:
            return None

        home = Coordinates(profile.home_latitude, profile.home_longitude)
        one_way_km = self.distances.driving_distance_km(home, store.coordinates)
        round_trip_km = one_way_km * 2
        liters_used = round_trip_km * consumption / 100
        fuel_price = profile.fuel_price if profile.fuel_price and profile.fuel_price > 0 else self.default_fuel_price

        info = FuelInfo(
            distance_km=round_trip_km,
            liters_used=liters_used,
            fuel_cost=liters_used * fuel_price,
            fuel_price_per_liter=fuel_price,
            fuel_consumption=consumption,
        )
        logger.debug("Trip estimate for %s to store %s: %.1f km", profile.email, store.store_id, round_trip_km)
        return info
