"""Polling passes: match active watches, gate, aggregate and notify."""
from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import repeat
from typing import Any, Optional, Protocol, TypeVar

from ..models import AggregatedNotification, CatalogItem, FuelInfo, NotificationRecord, ProfileInfo, Watch
from ..storage.ledger import NotificationLedger
from ..storage.repository import ProfileRepository, WatchRepository
from ..stores import get_store
from .dispatcher import DispatchOutcome, NotificationDispatcher
from .fuel import FuelEstimator
from .matching import apply_quantity_gate, evaluate_watch

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WatchListUnavailable(RuntimeError):
    """The active watches could not be loaded; the run cannot proceed."""


class CatalogSource(Protocol):
    def fetch_store_catalog(self, store_id: str) -> list[CatalogItem]:
        ...


@dataclass(slots=True)
class RunContext:
    """Caches that live for exactly one polling pass."""

    catalogs: dict[str, list[CatalogItem]] = field(default_factory=dict)
    profiles: dict[str, Optional[ProfileInfo]] = field(default_factory=dict)
    fuel: dict[tuple[str, str], Optional[FuelInfo]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def cached(self, cache: dict[Any, T], key: Hashable, load: Callable[[], T]) -> T:
        with self._lock:
            if key in cache:
                return cache[key]
        value = load()
        with self._lock:
            return cache.setdefault(key, value)


@dataclass(slots=True)
class GroupResult:
    """What happened for one (owner, store) group during a pass."""

    email: str
    store_id: str
    store_name: str
    watches: int
    products_checked: int = 0
    available_matches: int = 0
    new_matches: int = 0
    requirement_met: bool = False
    email_sent: bool = False
    notifications_sent: int = 0
    items: list[CatalogItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "storeId": self.store_id,
            "storeName": self.store_name,
            "watches": self.watches,
            "productsChecked": self.products_checked,
            "availableMatches": self.available_matches,
            "newMatchesAvailable": self.new_matches,
            "requirementMet": self.requirement_met,
            "emailSent": self.email_sent,
            "notificationsSent": self.notifications_sent,
            "matches": [
                {
                    "id": item.item_id,
                    "name": item.name,
                    "price": item.price,
                    "originalPrice": item.original_price,
                    "imageUrl": item.image_url,
                }
                for item in self.items
            ],
        }


@dataclass(slots=True)
class RunSummary:
    watches_considered: int = 0
    groups_processed: int = 0
    failed_groups: int = 0
    matches_found: int = 0
    new_matches: int = 0
    emails_sent: int = 0
    notifications_sent: int = 0
    results: list[GroupResult] = field(default_factory=list)

    def add(self, result: GroupResult) -> None:
        self.groups_processed += 1
        self.matches_found += result.available_matches
        self.new_matches += result.new_matches
        self.emails_sent += int(result.email_sent)
        self.notifications_sent += result.notifications_sent
        self.results.append(result)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalActiveWatches": self.watches_considered,
            "processedGroups": self.groups_processed,
            "failedGroups": self.failed_groups,
            "totalMatches": self.matches_found,
            "newMatches": self.new_matches,
            "emailsSent": self.emails_sent,
            "totalNotificationsSent": self.notifications_sent,
            "results": [result.to_dict() for result in self.results],
        }


def group_watches(watches: Iterable[Watch]) -> list[list[Watch]]:
    """Group watches by exact (email, store id), keeping first-seen order."""

    groups: dict[tuple[str, str], list[Watch]] = {}
    for watch in watches:
        groups.setdefault((watch.email, watch.store_id), []).append(watch)
    return list(groups.values())


class WatchCheckService:
    """Runs polling passes over the active watches."""

    def __init__(
        self,
        catalog: CatalogSource,
        watches: WatchRepository,
        profiles: ProfileRepository,
        ledger: NotificationLedger,
        estimator: FuelEstimator,
        dispatcher: NotificationDispatcher,
        max_workers: int = 1,
    ) -> None:
        self.catalog = catalog
        self.watches = watches
        self.profiles = profiles
        self.ledger = ledger
        self.estimator = estimator
        self.dispatcher = dispatcher
        self.max_workers = max(max_workers, 1)

    def run_all(self) -> RunSummary:
        """Process every active watch. Safe to call repeatedly."""

        return self._run(self._load_watches())

    def run_store(self, store_id: str) -> RunSummary:
        """Process only the active watches of ``store_id``."""

        return self._run(self._load_watches(store_id))

    def check_watch(self, watch_id: str, owner_email: str) -> GroupResult:
        """Run the full pipeline for a single active watch of ``owner_email``."""

        watch = self.watches.get_watch(watch_id)
        if watch is None or not watch.is_active or watch.email != owner_email:
            raise LookupError(f"Unknown watch: {watch_id}")
        return self.check_group([watch], RunContext())

    def _load_watches(self, store_id: Optional[str] = None) -> list[Watch]:
        try:
            watches = self.watches.active_watches(store_id)
        except sqlite3.Error as exc:
            raise WatchListUnavailable("Failed to load active watches") from exc
        return [watch for watch in watches if watch.email]

    def _run(self, watches: list[Watch]) -> RunSummary:
        summary = RunSummary(watches_considered=len(watches))
        if not watches:
            logger.info("No active watches to process")
            return summary

        groups = group_watches(watches)
        context = RunContext()
        self._preload_profiles(context, {watch.email for watch in watches})
        self._prefetch_catalogs(context, list(dict.fromkeys(watch.store_id for watch in watches)))

        if self.max_workers > 1 and len(groups) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(groups))) as executor:
                outcomes = list(executor.map(self._check_group_safely, groups, repeat(context)))
        else:
            outcomes = [self._check_group_safely(group, context) for group in groups]

        for outcome in outcomes:
            if outcome is None:
                summary.failed_groups += 1
            else:
                summary.add(outcome)

        logger.info(
            "Polling pass complete: %s watches, %s groups (%s failed), %s matches, %s emails, %s notifications",
            summary.watches_considered,
            summary.groups_processed,
            summary.failed_groups,
            summary.matches_found,
            summary.emails_sent,
            summary.notifications_sent,
        )
        return summary

    def _preload_profiles(self, context: RunContext, emails: set[str]) -> None:
        try:
            found = self.profiles.profiles_for(emails)
        except sqlite3.Error:
            logger.exception("Failed to load profiles; continuing without trip estimates")
            found = {}
        for email in emails:
            context.profiles[email] = found.get(email)

    def _fetch_catalog(self, store_id: str) -> list[CatalogItem]:
        try:
            return self.catalog.fetch_store_catalog(store_id)
        except Exception:
            logger.exception("Catalog fetch for store %s failed", store_id)
            return []

    def _prefetch_catalogs(self, context: RunContext, store_ids: list[str]) -> None:
        if self.max_workers <= 1 or len(store_ids) <= 1:
            return
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(store_ids))) as executor:
            for store_id, items in zip(store_ids, executor.map(self._fetch_catalog, store_ids)):
                context.catalogs[store_id] = items

    def _load_profile(self, email: str) -> Optional[ProfileInfo]:
        try:
            return self.profiles.get_profile(email)
        except sqlite3.Error:
            logger.exception("Failed to load profile for %s", email)
            return None

    def _estimate_fuel(self, profile: Optional[ProfileInfo], store_id: str) -> Optional[FuelInfo]:
        try:
            return self.estimator.estimate(profile, get_store(store_id))
        except Exception:
            logger.exception("Trip estimate for store %s failed; sending without it", store_id)
            return None

    def _check_group_safely(self, group: list[Watch], context: RunContext) -> Optional[GroupResult]:
        try:
            return self.check_group(group, context)
        except Exception:
            first = group[0]
            logger.exception("Error checking watches of %s at store %s", first.email, first.store_id)
            return None

    def check_group(self, group: list[Watch], context: RunContext) -> GroupResult:
        """Fetch, match, gate, aggregate and notify for one (owner, store) group."""

        first = group[0]
        email, store_id = first.email, first.store_id
        items = context.cached(context.catalogs, store_id, lambda: self._fetch_catalog(store_id))
        result = GroupResult(
            email=email,
            store_id=store_id,
            store_name=first.store_name,
            watches=len(group),
            products_checked=len(items),
        )

        aggregated = self.aggregate(group, items, result)
        if aggregated.is_empty:
            return result

        profile = context.cached(context.profiles, email, lambda: self._load_profile(email))
        fuel = context.cached(context.fuel, (email, store_id), lambda: self._estimate_fuel(profile, store_id))
        outcome: DispatchOutcome = self.dispatcher.dispatch(aggregated, fuel)
        result.email_sent = outcome.email_sent
        result.notifications_sent = outcome.records_written
        return result

    def aggregate(self, group: list[Watch], items: list[CatalogItem], result: GroupResult) -> AggregatedNotification:
        """Combine the gated selections of every watch in ``group``.

        Items are listed once per email even when several watches selected
        them, but every (watch, item) pair gets its own ledger record.
        """

        first = group[0]
        aggregated = AggregatedNotification(email=first.email, store_id=first.store_id, store_name=first.store_name)
        seen: set[str] = set()
        for watch in group:
            match = evaluate_watch(
                watch,
                items,
                lambda item_ids, watch_id=watch.watch_id: self.ledger.notified_item_ids(watch_id, item_ids),
            )
            gate = apply_quantity_gate(match)
            result.available_matches += len(match.matches)
            result.new_matches += len(match.new_matches)
            if not gate.requirement_met:
                if match.new_matches:
                    logger.info(
                        "Watch %s needs %s new matches, found %s",
                        watch.watch_id,
                        watch.desired_quantity,
                        len(match.new_matches),
                    )
                continue

            result.requirement_met = True
            for item in gate.selected:
                if item.item_id not in seen:
                    seen.add(item.item_id)
                    aggregated.items.append(item)
                aggregated.records.append(NotificationRecord.for_item(watch, item))

        result.items = list(aggregated.items)
        return aggregated
