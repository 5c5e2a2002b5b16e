"""Domain models used throughout the Tweedekansje alert application."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(slots=True)
class Identity:
    """Authenticated owner resolved from a bearer credential."""

    user_id: str
    email: str
    verified: bool = False


@dataclass(slots=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(slots=True)
class Store:
    """A physical IKEA store that publishes Tweedekansje offers."""

    store_id: str
    name: str
    address: str
    latitude: float
    longitude: float

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


@dataclass(slots=True)
class Watch:
    """A user's standing request to be notified about an article at a store.

    ``criterion`` normally holds an 8-digit article number. Watches created
    before article numbers were required carry a free-text product name
    instead; see :attr:`is_legacy`.
    """

    watch_id: str
    email: str
    store_id: str
    store_name: str
    criterion: str
    desired_quantity: int = 1
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_legacy(self) -> bool:
        """``True`` when the criterion is not an article number."""

        digits = "".join(ch for ch in self.criterion if ch.isdigit())
        return len(digits) != 8

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.watch_id,
            "email": self.email,
            "store_id": self.store_id,
            "store_name": self.store_name,
            "article_number": self.criterion,
            "desired_quantity": self.desired_quantity,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(slots=True)
class CatalogItem:
    """Single Tweedekansje offer for one store and one polling cycle."""

    item_id: str
    name: str
    price: float
    store_id: str
    article_numbers: list[str] = field(default_factory=list)
    image_url: Optional[str] = None
    original_price: Optional[float] = None
    offer_id: Optional[int] = None
    offer_number: Optional[str] = None


@dataclass(slots=True)
class NotificationRecord:
    """Marks that ``watch_id`` has been notified about ``item_id``."""

    watch_id: str
    item_id: str
    item_name: str
    item_price: float
    item_image: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def for_item(cls, watch: Watch, item: CatalogItem) -> "NotificationRecord":
        return cls(
            watch_id=watch.watch_id,
            item_id=item.item_id,
            item_name=item.name,
            item_price=item.price,
            item_image=item.image_url,
        )


@dataclass(slots=True)
class ProfileInfo:
    """Optional owner data used to estimate the trip to a store."""

    email: str
    home_latitude: Optional[float] = None
    home_longitude: Optional[float] = None
    fuel_consumption: Optional[float] = None
    """Liters per 100 km."""

    fuel_price: Optional[float] = None
    """Price per liter."""


@dataclass(slots=True)
class FuelInfo:
    distance_km: float
    """Round-trip driving distance."""

    liters_used: float
    fuel_cost: float
    fuel_price_per_liter: float
    fuel_consumption: float


@dataclass(slots=True)
class MatchResult:
    """Outcome of running one watch against one catalog snapshot."""

    watch: Watch
    matches: list[CatalogItem] = field(default_factory=list)
    new_matches: list[CatalogItem] = field(default_factory=list)

    @property
    def desired_quantity(self) -> int:
        return self.watch.desired_quantity


@dataclass(slots=True)
class GateDecision:
    requirement_met: bool
    selected: list[CatalogItem] = field(default_factory=list)


@dataclass(slots=True)
class AggregatedNotification:
    """Everything one (owner, store) email needs, plus the records to commit."""

    email: str
    store_id: str
    store_name: str
    items: list[CatalogItem] = field(default_factory=list)
    records: list[NotificationRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items
