from __future__ import annotations

from collections.abc import Callable
from typing import Any, Optional

import pytest
import requests

from tweedekansje_alert.models import CatalogItem, Coordinates, Watch
from tweedekansje_alert.notifications.base import Notifier, StoreAlert
from tweedekansje_alert.storage.database import Database
from tweedekansje_alert.storage.ledger import NotificationLedger
from tweedekansje_alert.storage.repository import NewWatch, ProfileRepository, WatchRepository


class FakeCatalog:
    def __init__(self, catalogs: Optional[dict[str, list[CatalogItem]]] = None) -> None:
        self.catalogs = catalogs or {}
        self.calls: list[str] = []

    def fetch_store_catalog(self, store_id: str) -> list[CatalogItem]:
        self.calls.append(store_id)
        return list(self.catalogs.get(store_id, []))


class RecordingNotifier(Notifier):
    def __init__(self, result: bool = True, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.alerts: list[StoreAlert] = []

    def send(self, alert: StoreAlert) -> bool:
        self.alerts.append(alert)
        if self.error is not None:
            raise self.error
        return self.result


class FixedDistance:
    def __init__(self, km: float = 25.0) -> None:
        self.km = km
        self.calls: list[tuple[Coordinates, Coordinates]] = []

    def driving_distance_km(self, origin: Coordinates, destination: Coordinates) -> float:
        self.calls.append((origin, destination))
        return self.km


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def database(tmp_path) -> Database:
    db = Database(tmp_path / "alerts.sqlite3")
    db.initialize()
    return db


@pytest.fixture
def ledger(database: Database) -> NotificationLedger:
    return NotificationLedger(database)


@pytest.fixture
def watch_repository(database: Database) -> WatchRepository:
    return WatchRepository(database)


@pytest.fixture
def profile_repository(database: Database) -> ProfileRepository:
    return ProfileRepository(database)


@pytest.fixture
def make_item() -> Callable[..., CatalogItem]:
    def _make(
        item_id: str,
        article_number: str = "50487857",
        name: str = "BILLY boekenkast",
        price: float = 25.0,
        store_id: str = "088",
        original_price: Optional[float] = 59.0,
    ) -> CatalogItem:
        return CatalogItem(
            item_id=item_id,
            name=name,
            price=price,
            store_id=store_id,
            article_numbers=[article_number] if article_number else [],
            original_price=original_price,
            image_url=f"https://images.example.com/{item_id}.jpg",
        )

    return _make


@pytest.fixture
def add_watch(watch_repository: WatchRepository) -> Callable[..., Watch]:
    def _add(
        criterion: str = "504.878.57",
        email: str = "owner@example.com",
        store_id: str = "088",
        store_name: str = "Amsterdam",
        desired_quantity: int = 1,
    ) -> Watch:
        return watch_repository.add_watch(
            NewWatch(
                email=email,
                store_id=store_id,
                store_name=store_name,
                criterion=criterion,
                desired_quantity=desired_quantity,
            )
        )

    return _add


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def distances() -> FixedDistance:
    return FixedDistance()


@pytest.fixture
def fake_response() -> type[FakeResponse]:
    return FakeResponse
