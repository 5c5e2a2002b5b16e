from __future__ import annotations

from typing import Optional

import pytest

from tweedekansje_alert.models import Coordinates, Identity
from tweedekansje_alert.services.profile_service import ProfileService


class FakeGeocoder:
    def __init__(self, known: dict[str, Coordinates]) -> None:
        self.known = known
        self.queries: list[str] = []

    def geocode(self, address: str) -> Optional[Coordinates]:
        self.queries.append(address)
        return self.known.get(address)


@pytest.fixture
def identity() -> Identity:
    return Identity(user_id="u1", email="owner@example.com", verified=True)


@pytest.fixture
def service(profile_repository) -> ProfileService:
    geocoder = FakeGeocoder({"Domplein 1, Utrecht": Coordinates(52.0907, 5.1214)})
    return ProfileService(profile_repository, geocoder)


def test_locate_home_stores_coordinates(service: ProfileService, identity: Identity) -> None:
    location = service.locate_home(identity, "Domplein 1, Utrecht")

    assert location == Coordinates(52.0907, 5.1214)
    profile = service.profile_for(identity)
    assert (profile.home_latitude, profile.home_longitude) == (52.0907, 5.1214)


def test_unresolvable_address_keeps_previous_location(service: ProfileService, identity: Identity) -> None:
    service.locate_home(identity, "Domplein 1, Utrecht")

    assert service.locate_home(identity, "Nergensstraat 99") is None
    assert service.profile_for(identity).home_latitude == 52.0907


def test_empty_address_clears_location(service: ProfileService, identity: Identity) -> None:
    service.locate_home(identity, "Domplein 1, Utrecht")

    assert service.locate_home(identity, "  ") is None
    assert service.profile_for(identity).home_latitude is None
    assert service.geocoder.queries == ["Domplein 1, Utrecht"]


@pytest.mark.parametrize(
    ("consumption", "price", "expected"),
    [
        ("6.5", "1.89", (6.5, 1.89)),
        (7, None, (7.0, None)),
        (0, -1, (None, None)),
        ("abc", float("nan"), (None, None)),
    ],
)
def test_set_vehicle_keeps_only_positive_numbers(
    service: ProfileService, identity: Identity, consumption, price, expected
) -> None:
    service.set_vehicle(identity, consumption, price)

    profile = service.profile_for(identity)
    assert (profile.fuel_consumption, profile.fuel_price) == expected
