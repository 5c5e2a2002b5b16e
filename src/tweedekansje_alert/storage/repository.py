"""SQLite-backed storage for watches and owner profiles."""
from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

from ..models import Coordinates, Identity, ProfileInfo, Watch
from .database import Database

_WATCH_COLUMNS = "id, email, store_id, store_name, product_name, desired_quantity, is_active, created_at"


@dataclass(slots=True)
class NewWatch:
    """Validated data for a watch that is about to be inserted."""

    email: str
    store_id: str
    store_name: str
    criterion: str
    desired_quantity: int = 1


def _row_to_watch(row: sqlite3.Row) -> Watch:
    created_at: Optional[datetime] = None
    if row["created_at"]:
        try:
            created_at = datetime.fromisoformat(row["created_at"])
        except ValueError:
            created_at = None
    return Watch(
        watch_id=row["id"],
        email=row["email"],
        store_id=row["store_id"],
        store_name=row["store_name"],
        criterion=row["product_name"],
        desired_quantity=max(int(row["desired_quantity"] or 1), 1),
        is_active=bool(row["is_active"]),
        created_at=created_at,
    )


def _row_to_profile(row: sqlite3.Row) -> ProfileInfo:
    return ProfileInfo(
        email=row["email"],
        home_latitude=row["address_lat"],
        home_longitude=row["address_lng"],
        fuel_consumption=row["gas_usage"],
        fuel_price=row["fuel_price"],
    )


class WatchRepository:
    """Persists watches. Errors from SQLite propagate to the caller."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def add_watches(self, new_watches: Iterable[NewWatch]) -> list[Watch]:
        now = datetime.now(UTC)
        watches = [
            Watch(
                watch_id=str(uuid.uuid4()),
                email=new.email,
                store_id=new.store_id,
                store_name=new.store_name,
                criterion=new.criterion,
                desired_quantity=max(new.desired_quantity, 1),
                created_at=now,
            )
            for new in new_watches
        ]
        if not watches:
            return []

        with self._database.connect() as conn:
            conn.executemany(
                f"INSERT INTO watches ({_WATCH_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, 1, ?)",
                [
                    (
                        watch.watch_id,
                        watch.email,
                        watch.store_id,
                        watch.store_name,
                        watch.criterion,
                        watch.desired_quantity,
                        now.isoformat(),
                    )
                    for watch in watches
                ],
            )
        return watches

    def add_watch(self, new_watch: NewWatch) -> Watch:
        return self.add_watches([new_watch])[0]

    def get_watch(self, watch_id: str) -> Optional[Watch]:
        with self._database.connect() as conn:
            row = conn.execute(f"SELECT {_WATCH_COLUMNS} FROM watches WHERE id = ?", (watch_id,)).fetchone()
        return _row_to_watch(row) if row else None

    def active_watches(self, store_id: Optional[str] = None) -> list[Watch]:
        """Active watches in creation order, optionally limited to one store."""

        query = f"SELECT {_WATCH_COLUMNS} FROM watches WHERE is_active = 1"
        params: tuple[str, ...] = ()
        if store_id is not None:
            query += " AND store_id = ?"
            params = (store_id,)
        query += " ORDER BY created_at, rowid"
        with self._database.connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_watch(row) for row in rows]

    def watches_for(self, email: str) -> list[Watch]:
        with self._database.connect() as conn:
            rows = conn.execute(
                f"SELECT {_WATCH_COLUMNS} FROM watches WHERE email = ? AND is_active = 1 "
                "ORDER BY created_at DESC, rowid DESC",
                (email,),
            ).fetchall()
        return [_row_to_watch(row) for row in rows]

    def deactivate(self, watch_id: str, email: str) -> bool:
        with self._database.connect() as conn:
            cursor = conn.execute(
                "UPDATE watches SET is_active = 0 WHERE id = ? AND email = ?",
                (watch_id, email),
            )
            changed = cursor.rowcount
        return changed > 0

    def delete(self, watch_id: str, email: str) -> bool:
        with self._database.connect() as conn:
            cursor = conn.execute("DELETE FROM watches WHERE id = ? AND email = ?", (watch_id, email))
            changed = cursor.rowcount
        return changed > 0


class ProfileRepository:
    """Persists the optional trip data of an owner."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def get_profile(self, email: str) -> Optional[ProfileInfo]:
        with self._database.connect() as conn:
            row = conn.execute(
                "SELECT email, address_lat, address_lng, gas_usage, fuel_price FROM profiles WHERE email = ?",
                (email,),
            ).fetchone()
        return _row_to_profile(row) if row else None

    def profiles_for(self, emails: Iterable[str]) -> dict[str, ProfileInfo]:
        unique = sorted(set(emails))
        if not unique:
            return {}
        placeholders = ", ".join("?" for _ in unique)
        with self._database.connect() as conn:
            rows = conn.execute(
                "SELECT email, address_lat, address_lng, gas_usage, fuel_price "
                f"FROM profiles WHERE email IN ({placeholders})",
                unique,
            ).fetchall()
        return {row["email"]: _row_to_profile(row) for row in rows}

    def save_location(self, identity: Identity, location: Optional[Coordinates]) -> None:
        latitude = location.latitude if location else None
        longitude = location.longitude if location else None
        with self._database.connect() as conn:
            conn.execute(
                """
                INSERT INTO profiles (email, user_id, address_lat, address_lng, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(email) DO UPDATE SET
                    user_id = excluded.user_id,
                    address_lat = excluded.address_lat,
                    address_lng = excluded.address_lng,
                    updated_at = excluded.updated_at
                """,
                (identity.email, identity.user_id, latitude, longitude, datetime.now(UTC).isoformat()),
            )

    def save_vehicle(self, identity: Identity, fuel_consumption: Optional[float], fuel_price: Optional[float]) -> None:
        with self._database.connect() as conn:
            conn.execute(
                """
                INSERT INTO profiles (email, user_id, gas_usage, fuel_price, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(email) DO UPDATE SET
                    user_id = excluded.user_id,
                    gas_usage = excluded.gas_usage,
                    fuel_price = excluded.fuel_price,
                    updated_at = excluded.updated_at
                """,
                (identity.email, identity.user_id, fuel_consumption, fuel_price, datetime.now(UTC).isoformat()),
            )
