"""Service for managing watches on behalf of verified owners."""
from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from ..models import Identity, Watch
from ..storage.repository import NewWatch, WatchRepository
from ..stores import get_store
from .matching import normalize_code, normalize_desired_quantity

logger = logging.getLogger(__name__)

MAX_IMPORT_ROWS = 200
UNVERIFIED_MESSAGE = "Please verify your email address before creating product watches."


class ArticleVerifier(Protocol):
    def verify_article_exists(self, article_number: str) -> bool:
        ...


@dataclass(slots=True)
class WatchResult:
    ok: bool
    watch: Optional[Watch] = None
    reason: Optional[str] = None


@dataclass(slots=True)
class RowOutcome:
    row: int
    """Row number as the owner sees it in their upload (header is row 1)."""

    article_number: str
    desired_quantity: int = 1
    ok: bool = True
    reason: Optional[str] = None


@dataclass(slots=True)
class ImportResult:
    created: list[Watch] = field(default_factory=list)
    rows: list[RowOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def rejected(self) -> list[RowOutcome]:
        return [row for row in self.rows if not row.ok]


@dataclass(slots=True)
class WatchlistService:
    """Creates, lists and removes watches."""

    repository: WatchRepository
    verifier: Optional[ArticleVerifier] = None

    def _article_exists(self, article_number: str, cache: dict[str, bool]) -> bool:
        if self.verifier is None:
            return True
        if article_number not in cache:
            cache[article_number] = self.verifier.verify_article_exists(article_number)
        return cache[article_number]

    def create_watch(
        self,
        identity: Identity,
        article_number: str,
        store_id: str,
        desired_quantity: Any = 1,
    ) -> WatchResult:
        if not identity.verified:
            return WatchResult(ok=False, reason=UNVERIFIED_MESSAGE)

        normalized = normalize_code(str(article_number or ""))
        if len(normalized) != 8:
            return WatchResult(ok=False, reason=f'Article number must contain 8 digits (received "{article_number}")')

        store = get_store(str(store_id or "").strip())
        if store is None:
            return WatchResult(ok=False, reason=f"Unknown IKEA store: {store_id}")

        if not self._article_exists(normalized, {}):
            return WatchResult(ok=False, reason=f"Product {normalized} does not exist on IKEA Tweedekansje.")

        new_watch = NewWatch(
            email=identity.email,
            store_id=store.store_id,
            store_name=store.name,
            criterion=normalized,
            desired_quantity=normalize_desired_quantity(desired_quantity),
        )
        try:
            watch = self.repository.add_watch(new_watch)
        except sqlite3.Error:
            logger.exception("Error creating watch for %s", identity.email)
            return WatchResult(ok=False, reason="Failed to create watch")
        return WatchResult(ok=True, watch=watch)

    def create_watches(
        self,
        identity: Identity,
        store_ids: Iterable[str],
        entries: Iterable[Mapping[str, Any]],
    ) -> ImportResult:
        """Create one watch per (store, valid entry) pair.

        Invalid entries are reported in ``rows`` without blocking the valid
        ones. ``error`` is set only when nothing can be imported at all.
        """

        if not identity.verified:
            return ImportResult(error=UNVERIFIED_MESSAGE)

        stores = []
        seen_stores: set[str] = set()
        for store_id in store_ids:
            store = get_store(str(store_id or "").strip())
            if store is not None and store.store_id not in seen_stores:
                seen_stores.add(store.store_id)
                stores.append(store)
        if not stores:
            return ImportResult(error="Select at least one valid IKEA store")

        entry_list = list(entries)
        if not entry_list:
            return ImportResult(error="Upload at least one product row")
        if len(entry_list) > MAX_IMPORT_ROWS:
            return ImportResult(error=f"Limit uploads to {MAX_IMPORT_ROWS} rows at a time")

        result = ImportResult()
        verified: dict[str, bool] = {}
        for index, entry in enumerate(entry_list):
            row_number = index + 2
            raw_article = entry.get("articleNumber") if isinstance(entry, Mapping) else None
            normalized = normalize_code(str(raw_article or ""))
            quantity_source = entry.get("desiredQuantity", entry.get("quantity")) if isinstance(entry, Mapping) else None
            outcome = RowOutcome(
                row=row_number,
                article_number=normalized,
                desired_quantity=normalize_desired_quantity(quantity_source),
            )
            if len(normalized) != 8:
                outcome.ok = False
                outcome.reason = f'Row {row_number}: productid must contain 8 digits (received "{raw_article}")'
            elif not self._article_exists(normalized, verified):
                outcome.ok = False
                outcome.reason = f"Row {row_number}: product {normalized} does not exist on IKEA Tweedekansje"
            result.rows.append(outcome)

        accepted = [row for row in result.rows if row.ok]
        if not accepted:
            result.error = "No valid product rows to import"
            return result

        new_watches = [
            NewWatch(
                email=identity.email,
                store_id=store.store_id,
                store_name=store.name,
                criterion=row.article_number,
                desired_quantity=row.desired_quantity,
            )
            for store in stores
            for row in accepted
        ]
        try:
            result.created = self.repository.add_watches(new_watches)
        except sqlite3.Error:
            logger.exception("Error importing watches for %s", identity.email)
            result.error = "Failed to import watches"
        return result

    def watches_for(self, identity: Identity) -> list[Watch]:
        return self.repository.watches_for(identity.email)

    def deactivate(self, identity: Identity, watch_id: str) -> bool:
        return self.repository.deactivate(watch_id, identity.email)

    def remove(self, identity: Identity, watch_id: str) -> bool:
        return self.repository.delete(watch_id, identity.email)
