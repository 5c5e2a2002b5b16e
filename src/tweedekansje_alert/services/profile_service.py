"""Stores the home location and vehicle data used for trip estimates."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ..models import Coordinates, Identity, ProfileInfo
from ..storage.repository import ProfileRepository


class Geocoder(Protocol):
    def geocode(self, address: str) -> Optional[Coordinates]:
        ...


def _positive_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) and number > 0 else None


@dataclass(slots=True)
class ProfileService:
    repository: ProfileRepository
    geocoder: Geocoder

    def locate_home(self, identity: Identity, address: str) -> Optional[Coordinates]:
        """Geocode ``address`` and store it as the owner's home location.

        An empty address clears the stored location. An address that cannot
        be resolved leaves the stored location untouched and returns ``None``.
        """

        if not address.strip():
            self.repository.save_location(identity, None)
            return None

        location = self.geocoder.geocode(address)
        if location is not None:
            self.repository.save_location(identity, location)
        return location

    def set_vehicle(self, identity: Identity, fuel_consumption: Any, fuel_price: Any = None) -> None:
        self.repository.save_vehicle(identity, _positive_or_none(fuel_consumption), _positive_or_none(fuel_price))

    def profile_for(self, identity: Identity) -> Optional[ProfileInfo]:
        return self.repository.get_profile(identity.email)
