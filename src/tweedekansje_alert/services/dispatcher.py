"""Sends aggregated alerts and commits ledger records after a confirmed send."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..models import AggregatedNotification, FuelInfo
from ..notifications.base import Notifier, StoreAlert
from ..storage.ledger import NotificationLedger
from ..stores import get_store

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchOutcome:
    email_sent: bool = False
    records_written: int = 0


@dataclass(slots=True)
class NotificationDispatcher:
    """Send first, record second.

    Nothing is recorded when the send fails, so the same matches are offered
    again on the next pass. When recording fails after a successful send the
    email stays sent and the inconsistency is logged.
    """

    notifier: Notifier
    ledger: NotificationLedger
    manage_url: Optional[str] = None

    def build_alert(self, notification: AggregatedNotification, fuel: Optional[FuelInfo]) -> StoreAlert:
        store = get_store(notification.store_id)
        return StoreAlert(
            recipient=notification.email,
            store_id=notification.store_id,
            store_name=notification.store_name,
            items=list(notification.items),
            store_address=store.address if store else None,
            fuel=fuel,
            manage_url=self.manage_url,
        )

    def dispatch(self, notification: AggregatedNotification, fuel: Optional[FuelInfo] = None) -> DispatchOutcome:
        if notification.is_empty:
            return DispatchOutcome()

        alert = self.build_alert(notification, fuel)
        try:
            sent = self.notifier.send(alert)
        except Exception:
            logger.exception(
                "Notifier raised while alerting %s about store %s",
                notification.email,
                notification.store_id,
            )
            sent = False

        if not sent:
            logger.warning(
                "Alert to %s for store %s not sent; %s matches stay pending",
                notification.email,
                notification.store_id,
                len(notification.records),
            )
            return DispatchOutcome()

        written = self.ledger.record_batch(notification.records)
        if written == 0:
            logger.error(
                "Alert to %s for store %s was sent but none of its %s notifications were recorded",
                notification.email,
                notification.store_id,
                len(notification.records),
            )
        return DispatchOutcome(email_sent=True, records_written=written)
