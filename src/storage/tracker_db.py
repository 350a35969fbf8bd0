# src/storage/tracker_db.py

"""SQLite-backed repository for long-term price tracking."""

import logging
import sqlite3
import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.errors import DuplicateTracking, NotFound, ValidationError
from src.models.notification import Notification, NotificationKind
from src.models.price_history import PriceHistoryEntry
from src.models.tracked_product import UPDATABLE_FIELDS, TrackedProduct
from src.models.user_settings import UserSettings
from src.storage.repository import Repository

logger = logging.getLogger("price_tracker.storage")

# Prices are stored as TEXT so they round-trip as exact Decimals.
_SCHEMA = """\
CREATE TABLE IF NOT EXISTS tracked_products (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id     TEXT    NOT NULL,
    title          TEXT    NOT NULL,
    image_url      TEXT,
    current_price  TEXT    NOT NULL,
    target_price   TEXT    NOT NULL,
    original_price TEXT,
    url            TEXT    NOT NULL,
    user_email     TEXT    NOT NULL,
    is_active      INTEGER NOT NULL DEFAULT 1,
    last_checked   TEXT,
    created_at     TEXT    NOT NULL,
    updated_at     TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_products_owner
    ON tracked_products(user_email, is_active);

CREATE UNIQUE INDEX IF NOT EXISTS idx_products_active_owner
    ON tracked_products(product_id, user_email) WHERE is_active = 1;

CREATE TABLE IF NOT EXISTS price_history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    product_ref INTEGER NOT NULL
                REFERENCES tracked_products(id),
    price       TEXT    NOT NULL,
    recorded_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_product_date
    ON price_history(product_ref, recorded_at);

CREATE TABLE IF NOT EXISTS notifications (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    product_ref       INTEGER NOT NULL
                      REFERENCES tracked_products(id),
    kind              TEXT    NOT NULL,
    old_price         TEXT    NOT NULL,
    new_price         TEXT    NOT NULL,
    sent              INTEGER NOT NULL DEFAULT 0,
    delivery_attempts INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_notifications_pending
    ON notifications(sent, created_at);

CREATE TABLE IF NOT EXISTS user_settings (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    user_email           TEXT    NOT NULL UNIQUE,
    email_price_drops    INTEGER NOT NULL DEFAULT 1,
    email_weekly_summary INTEGER NOT NULL DEFAULT 0,
    check_frequency      INTEGER NOT NULL DEFAULT 24,
    price_threshold      TEXT    NOT NULL DEFAULT '1.00',
    created_at           TEXT    NOT NULL,
    updated_at           TEXT    NOT NULL
);
"""

_PRODUCT_COLUMNS = (
    "id, product_id, title, image_url, current_price, target_price, "
    "original_price, url, user_email, is_active, last_checked, "
    "created_at, updated_at"
)
_NOTIFICATION_COLUMNS = (
    "id, product_ref, kind, old_price, new_price, sent, created_at"
)
_SETTINGS_COLUMNS = (
    "id, user_email, email_price_drops, email_weekly_summary, "
    "check_frequency, price_threshold, created_at, updated_at"
)


def _to_db(value: Any) -> Any:
    """Adapt a Python value to its stored column form."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _dt(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


def _row_to_product(r: sqlite3.Row) -> TrackedProduct:
    return TrackedProduct(
        id=r["id"],
        product_id=r["product_id"],
        title=r["title"],
        image_url=r["image_url"],
        current_price=Decimal(r["current_price"]),
        target_price=Decimal(r["target_price"]),
        original_price=(
            Decimal(r["original_price"])
            if r["original_price"] is not None else None
        ),
        url=r["url"],
        user_email=r["user_email"],
        is_active=bool(r["is_active"]),
        last_checked=_dt(r["last_checked"]),
        created_at=datetime.fromisoformat(r["created_at"]),
        updated_at=datetime.fromisoformat(r["updated_at"]),
    )


def _row_to_notification(r: sqlite3.Row) -> Notification:
    return Notification(
        id=r["id"],
        product_ref=r["product_ref"],
        kind=NotificationKind(r["kind"]),
        old_price=Decimal(r["old_price"]),
        new_price=Decimal(r["new_price"]),
        sent=bool(r["sent"]),
        created_at=datetime.fromisoformat(r["created_at"]),
    )


def _row_to_settings(r: sqlite3.Row) -> UserSettings:
    return UserSettings(
        id=r["id"],
        user_email=r["user_email"],
        email_price_drops=bool(r["email_price_drops"]),
        email_weekly_summary=bool(r["email_weekly_summary"]),
        check_frequency=r["check_frequency"],
        price_threshold=Decimal(r["price_threshold"]),
        created_at=datetime.fromisoformat(r["created_at"]),
        updated_at=datetime.fromisoformat(r["updated_at"]),
    )


class TrackerDB(Repository):
    """SQLite store shared by the sweep and the delivery consumer.

    One connection is shared across threads; every statement runs
    under ``_lock`` so a product row is never written half-way.
    """

    def __init__(
        self, db_path: Path | str | None = None,
    ) -> None:
        path = Path(db_path) if db_path is not None else Settings.DB_PATH
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("TrackerDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def _query(
        self, sql: str, params: tuple[Any, ...] = (),
    ) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def _write(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Run one write statement and return ``lastrowid``."""
        with self._lock:
            try:
                cur = self._conn.execute(sql, params)
            except sqlite3.IntegrityError:
                self._conn.rollback()
                raise
            self._conn.commit()
            return int(cur.lastrowid or 0)

    # ── Tracked products ─────────────────────────────────

    def list_active(
        self, email: str | None = None,
    ) -> list[TrackedProduct]:
        if email is None:
            rows = self._query(
                f"SELECT {_PRODUCT_COLUMNS} FROM tracked_products "
                "WHERE is_active = 1 ORDER BY id",
            )
        else:
            rows = self._query(
                f"SELECT {_PRODUCT_COLUMNS} FROM tracked_products "
                "WHERE is_active = 1 AND user_email = ? ORDER BY id",
                (email,),
            )
        return [_row_to_product(r) for r in rows]

    def get(self, product_ref: int) -> TrackedProduct | None:
        rows = self._query(
            f"SELECT {_PRODUCT_COLUMNS} FROM tracked_products "
            "WHERE id = ?",
            (product_ref,),
        )
        return _row_to_product(rows[0]) if rows else None

    def find_by_external_id(
        self, product_id: str, email: str,
    ) -> TrackedProduct | None:
        rows = self._query(
            f"SELECT {_PRODUCT_COLUMNS} FROM tracked_products "
            "WHERE product_id = ? AND user_email = ? AND is_active = 1 "
            "LIMIT 1",
            (product_id, email),
        )
        return _row_to_product(rows[0]) if rows else None

    def create(
        self,
        *,
        product_id: str,
        title: str,
        current_price: Decimal,
        target_price: Decimal,
        url: str,
        user_email: str,
        image_url: str | None = None,
        original_price: Decimal | None = None,
    ) -> TrackedProduct:
        ts = datetime.now().isoformat()
        try:
            new_id = self._write(
                "INSERT INTO tracked_products (product_id, title, "
                "image_url, current_price, target_price, original_price, "
                "url, user_email, is_active, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)",
                (
                    product_id, title, image_url,
                    _to_db(current_price), _to_db(target_price),
                    _to_db(original_price), url, user_email, ts, ts,
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateTracking(product_id, user_email) from exc
        logger.info(
            "Tracking %s for %s (id=%d)", product_id, user_email, new_id
        )
        product = self.get(new_id)
        if product is None:
            raise NotFound("Product", new_id)
        return product

    def update(self, product_ref: int, **changes: Any) -> TrackedProduct:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}"
            )
        columns = sorted(changes)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        params = tuple(_to_db(changes[c]) for c in columns)
        with self._lock:
            cur = self._conn.execute(
                "UPDATE tracked_products SET "
                + (assignments + ", " if assignments else "")
                + "updated_at = ? WHERE id = ?",
                (*params, datetime.now().isoformat(), product_ref),
            )
            self._conn.commit()
            found = cur.rowcount > 0
        if not found:
            raise NotFound("Product", product_ref)
        product = self.get(product_ref)
        if product is None:
            raise NotFound("Product", product_ref)
        return product

    def soft_delete(self, product_ref: int) -> None:
        self.update(product_ref, is_active=False)
        logger.info("Product %d deactivated", product_ref)

    # ── Price history ────────────────────────────────────

    def append_history(
        self,
        product_ref: int,
        price: Decimal,
        recorded_at: datetime | None = None,
    ) -> PriceHistoryEntry:
        when = recorded_at or datetime.now()
        new_id = self._write(
            "INSERT INTO price_history (product_ref, price, recorded_at) "
            "VALUES (?, ?, ?)",
            (product_ref, _to_db(price), when.isoformat()),
        )
        return PriceHistoryEntry(
            id=new_id, product_ref=product_ref, price=price,
            recorded_at=when,
        )

    def list_history(self, product_ref: int) -> list[PriceHistoryEntry]:
        rows = self._query(
            "SELECT id, product_ref, price, recorded_at "
            "FROM price_history WHERE product_ref = ? "
            "ORDER BY recorded_at DESC, id DESC",
            (product_ref,),
        )
        return [
            PriceHistoryEntry(
                id=r["id"],
                product_ref=r["product_ref"],
                price=Decimal(r["price"]),
                recorded_at=datetime.fromisoformat(r["recorded_at"]),
            )
            for r in rows
        ]

    # ── Notifications ────────────────────────────────────

    def create_notification(
        self,
        product_ref: int,
        kind: NotificationKind,
        old_price: Decimal,
        new_price: Decimal,
    ) -> Notification:
        now = datetime.now()
        new_id = self._write(
            "INSERT INTO notifications (product_ref, kind, old_price, "
            "new_price, sent, created_at) VALUES (?, ?, ?, ?, 0, ?)",
            (
                product_ref, kind.value, _to_db(old_price),
                _to_db(new_price), now.isoformat(),
            ),
        )
        return Notification(
            id=new_id, product_ref=product_ref, kind=kind,
            old_price=old_price, new_price=new_price, created_at=now,
        )

    def list_pending(self) -> list[Notification]:
        rows = self._query(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications "
            "WHERE sent = 0 ORDER BY created_at, id",
        )
        return [_row_to_notification(r) for r in rows]

    def list_notifications(self, product_ref: int) -> list[Notification]:
        rows = self._query(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications "
            "WHERE product_ref = ? ORDER BY created_at, id",
            (product_ref,),
        )
        return [_row_to_notification(r) for r in rows]

    def mark_sent(self, notification_id: int) -> None:
        self._write(
            "UPDATE notifications SET sent = 1 WHERE id = ?",
            (notification_id,),
        )

    def increment_delivery_attempts(self, notification_id: int) -> int:
        with self._lock:
            self._conn.execute(
                "UPDATE notifications "
                "SET delivery_attempts = delivery_attempts + 1 "
                "WHERE id = ?",
                (notification_id,),
            )
            self._conn.commit()
            row = self._conn.execute(
                "SELECT delivery_attempts FROM notifications WHERE id = ?",
                (notification_id,),
            ).fetchone()
        return int(row[0]) if row else 0

    # ── Settings ─────────────────────────────────────────

    def get_settings(self, email: str) -> UserSettings | None:
        rows = self._query(
            f"SELECT {_SETTINGS_COLUMNS} FROM user_settings "
            "WHERE user_email = ?",
            (email,),
        )
        return _row_to_settings(rows[0]) if rows else None

    def list_all_settings(self) -> list[UserSettings]:
        rows = self._query(
            f"SELECT {_SETTINGS_COLUMNS} FROM user_settings ORDER BY id",
        )
        return [_row_to_settings(r) for r in rows]

    def upsert_settings(self, settings: UserSettings) -> UserSettings:
        ts = datetime.now().isoformat()
        self._write(
            "INSERT INTO user_settings (user_email, email_price_drops, "
            "email_weekly_summary, check_frequency, price_threshold, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_email) DO UPDATE SET "
            "email_price_drops=excluded.email_price_drops, "
            "email_weekly_summary=excluded.email_weekly_summary, "
            "check_frequency=excluded.check_frequency, "
            "price_threshold=excluded.price_threshold, "
            "updated_at=excluded.updated_at",
            (
                settings.user_email,
                _to_db(settings.email_price_drops),
                _to_db(settings.email_weekly_summary),
                settings.check_frequency,
                _to_db(settings.price_threshold),
                ts, ts,
            ),
        )
        stored = self.get_settings(settings.user_email)
        if stored is None:
            raise NotFound("UserSettings", settings.user_email)
        return stored
