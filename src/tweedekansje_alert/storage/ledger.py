"""Notification ledger: which (watch, item) pairs have already been emailed."""
from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from ..models import NotificationRecord
from .database import Database

logger = logging.getLogger(__name__)


class NotificationLedger:
    """Existence-check-then-insert ledger of sent notifications.

    Reads that fail are reported as "not yet notified" so a matching item is
    never silently dropped; a rare duplicate email is the accepted cost.
    Writes that fail are logged and reported as zero records written.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def has_record(self, watch_id: str, item_id: str) -> bool:
        return item_id in self.notified_item_ids(watch_id, [item_id])

    def notified_item_ids(self, watch_id: str, item_ids: Iterable[str]) -> set[str]:
        """Return the subset of ``item_ids`` already recorded for ``watch_id``."""

        candidates = sorted(set(item_ids))
        if not candidates:
            return set()

        placeholders = ", ".join("?" for _ in candidates)
        try:
            with self._database.connect() as conn:
                rows = conn.execute(
                    "SELECT ikea_product_id FROM notifications "
                    f"WHERE watch_id = ? AND ikea_product_id IN ({placeholders})",
                    (watch_id, *candidates),
                ).fetchall()
        except sqlite3.Error:
            logger.exception("Ledger lookup failed for watch %s; treating items as new", watch_id)
            return set()
        return {row["ikea_product_id"] for row in rows}

    def record_batch(self, records: Sequence[NotificationRecord]) -> int:
        """Persist ``records`` in one transaction and return how many were new."""

        if not records:
            return 0

        now = datetime.now(UTC)
        rows = [
            (
                record.watch_id,
                record.item_id,
                record.item_name,
                record.item_price,
                record.item_image,
                (record.created_at or now).isoformat(),
            )
            for record in records
        ]
        try:
            with self._database.connect() as conn:
                before = conn.total_changes
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO notifications
                        (watch_id, ikea_product_id, product_name, product_price, product_image, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                written = conn.total_changes - before
        except sqlite3.Error:
            logger.exception("Failed to record %s notifications", len(records))
            return 0

        if written < len(records):
            logger.info("%s of %s notifications were already recorded", len(records) - written, len(records))
        return written

    def records_for(self, watch_id: str) -> list[NotificationRecord]:
        try:
            with self._database.connect() as conn:
                rows = conn.execute(
                    "SELECT watch_id, ikea_product_id, product_name, product_price, product_image, created_at "
                    "FROM notifications WHERE watch_id = ? ORDER BY id",
                    (watch_id,),
                ).fetchall()
        except sqlite3.Error:
            logger.exception("Failed to load notifications for watch %s", watch_id)
            return []
        return [
            NotificationRecord(
                watch_id=row["watch_id"],
                item_id=row["ikea_product_id"],
                item_name=row["product_name"],
                item_price=row["product_price"],
                item_image=row["product_image"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]
