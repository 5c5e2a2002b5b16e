from __future__ import annotations

import pytest

from tweedekansje_alert.models import Identity
from tweedekansje_alert.services.watchlist_service import MAX_IMPORT_ROWS, WatchlistService


class FakeVerifier:
    def __init__(self, known: set[str]) -> None:
        self.known = known
        self.calls: list[str] = []

    def verify_article_exists(self, article_number: str) -> bool:
        self.calls.append(article_number)
        return article_number in self.known


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier({"50487857", "30263844"})


@pytest.fixture
def service(watch_repository, verifier: FakeVerifier) -> WatchlistService:
    return WatchlistService(watch_repository, verifier=verifier)


@pytest.fixture
def owner() -> Identity:
    return Identity(user_id="u1", email="owner@example.com", verified=True)


def test_create_watch_normalizes_and_fills_store_name(service: WatchlistService, owner: Identity) -> None:
    result = service.create_watch(owner, "504.878.57", "088", desired_quantity="2")

    assert result.ok
    assert result.watch.criterion == "50487857"
    assert result.watch.store_name == "Amsterdam"
    assert result.watch.desired_quantity == 2
    assert [watch.watch_id for watch in service.watches_for(owner)] == [result.watch.watch_id]


def test_create_watch_requires_verified_owner(service: WatchlistService, verifier: FakeVerifier) -> None:
    unverified = Identity(user_id="u2", email="new@example.com", verified=False)

    result = service.create_watch(unverified, "50487857", "088")

    assert not result.ok
    assert "verify your email" in result.reason
    assert verifier.calls == []


@pytest.mark.parametrize(
    ("article", "store", "reason"),
    [
        ("1234", "088", "8 digits"),
        ("50487857", "000", "Unknown IKEA store"),
        ("99999999", "088", "does not exist"),
    ],
)
def test_create_watch_rejects_invalid_input(service: WatchlistService, owner: Identity, article, store, reason) -> None:
    result = service.create_watch(owner, article, store)

    assert not result.ok
    assert reason in result.reason
    assert service.watches_for(owner) == []


def test_import_creates_one_watch_per_store_and_row(service: WatchlistService, owner: Identity) -> None:
    result = service.create_watches(
        owner,
        ["088", "270", "088"],
        [{"articleNumber": "504.878.57", "desiredQuantity": 2}, {"articleNumber": "30263844", "quantity": "3"}],
    )

    assert result.ok
    assert len(result.created) == 4
    assert {(watch.store_id, watch.criterion, watch.desired_quantity) for watch in result.created} == {
        ("088", "50487857", 2),
        ("088", "30263844", 3),
        ("270", "50487857", 2),
        ("270", "30263844", 3),
    }


def test_import_reports_bad_rows_and_keeps_good_ones(
    service: WatchlistService, owner: Identity, verifier: FakeVerifier
) -> None:
    result = service.create_watches(
        owner,
        ["088"],
        [
            {"articleNumber": "50487857"},
            {"articleNumber": "12"},
            {"articleNumber": "99999999"},
            {"articleNumber": "50487857"},
        ],
    )

    assert result.ok
    assert len(result.created) == 2
    assert [(row.row, row.reason) for row in result.rejected] == [
        (3, 'Row 3: productid must contain 8 digits (received "12")'),
        (4, "Row 4: product 99999999 does not exist on IKEA Tweedekansje"),
    ]
    assert verifier.calls == ["50487857", "99999999"]


def test_import_fails_when_no_row_is_valid(service: WatchlistService, owner: Identity) -> None:
    result = service.create_watches(owner, ["088"], [{"articleNumber": "abc"}])

    assert not result.ok
    assert result.error == "No valid product rows to import"
    assert result.created == []


@pytest.mark.parametrize(
    ("stores", "entries", "error"),
    [
        ([], [{"articleNumber": "50487857"}], "Select at least one valid IKEA store"),
        (["nope"], [{"articleNumber": "50487857"}], "Select at least one valid IKEA store"),
        (["088"], [], "Upload at least one product row"),
        (["088"], [{"articleNumber": "50487857"}] * (MAX_IMPORT_ROWS + 1), "Limit uploads to 200 rows at a time"),
    ],
)
def test_import_rejects_unusable_requests(service: WatchlistService, owner: Identity, stores, entries, error) -> None:
    result = service.create_watches(owner, stores, entries)

    assert result.error == error


def test_remove_and_deactivate_only_touch_own_watches(service: WatchlistService, owner: Identity) -> None:
    first = service.create_watch(owner, "50487857", "088").watch
    second = service.create_watch(owner, "30263844", "088").watch
    intruder = Identity(user_id="u9", email="intruder@example.com", verified=True)

    assert not service.remove(intruder, first.watch_id)
    assert service.remove(owner, first.watch_id)
    assert service.deactivate(owner, second.watch_id)
    assert service.watches_for(owner) == []
