"""Notification abstractions for the Tweedekansje alert system."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ..models import CatalogItem, FuelInfo

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StoreAlert:
    """One consolidated alert for an owner about one store."""

    recipient: str
    store_id: str
    store_name: str
    items: list[CatalogItem] = field(default_factory=list)
    store_address: Optional[str] = None
    fuel: Optional[FuelInfo] = None
    manage_url: Optional[str] = None

    @property
    def subject(self) -> str:
        if len(self.items) == 1:
            return f"IKEA Tweedekansje alert: {self.items[0].name} in {self.store_name}"
        return f"IKEA Tweedekansje alert: {len(self.items)} products in {self.store_name}"

    @property
    def total_price(self) -> float:
        return sum(item.price for item in self.items)

    @property
    def total_discount(self) -> Optional[float]:
        """Sum of (original - current) over items that have an original price."""

        discounts = [
            item.original_price - item.price
            for item in self.items
            if item.original_price is not None and item.original_price > 0
        ]
        return sum(discounts) if discounts else None

    @property
    def savings_after_fuel(self) -> Optional[float]:
        discount = self.total_discount
        if discount is None:
            return None
        fuel_cost = self.fuel.fuel_cost if self.fuel and self.fuel.fuel_cost > 0 else 0.0
        return discount - fuel_cost


class Notifier(ABC):
    """Base class for delivering alerts to the user."""

    @abstractmethod
    def send(self, alert: StoreAlert) -> bool:
        """Deliver ``alert`` and return ``True`` once it has been accepted."""


class LogNotifier(Notifier):
    """Development notifier that only writes alerts to the log."""

    def send(self, alert: StoreAlert) -> bool:
        logger.info(
            "Alert for %s: %s (%s items)",
            alert.recipient,
            alert.subject,
            len(alert.items),
        )
        return True
