# price_engine/storage/target_store.py

"""Tracked-target and price-history store.

The poller only needs the three operations of :class:`TargetStore`;
:class:`SQLiteTargetStore` implements them on SQLite together with the
target management and history queries used by the CLI.
"""

import logging
import re
import sqlite3
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from price_engine.config.settings import Settings
from price_engine.errors import StoreError
from price_engine.models.price_point import PricePoint
from price_engine.models.tracked_target import TrackedTarget

logger = logging.getLogger("price_engine.store")

# Marketing / session params that vary between visits
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "ref", "qid", "sr", "keywords", "th", "psc",
    "utm_source", "utm_medium", "utm_campaign",
    "utm_term", "utm_content", "gclid", "yclid",
    "fbclid", "_openstat", "from",
})

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS tracked_targets (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    url        TEXT    NOT NULL UNIQUE,
    name       TEXT    NOT NULL DEFAULT '',
    last_price TEXT,
    is_active  INTEGER NOT NULL DEFAULT 1,
    created_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS price_points (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    target_id    INTEGER NOT NULL
                 REFERENCES tracked_targets(id) ON DELETE CASCADE,
    price        TEXT    NOT NULL,
    retrieved_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_points_target_date
    ON price_points(target_id, retrieved_at);
"""

_TARGET_COLUMNS = "id, url, name, last_price, is_active"


def normalize_url(raw_url: str) -> str:
    """Strip tracking query params and the fragment from a product URL."""
    parsed = urlparse(raw_url.strip())

    # Amazon-style path tracking (e.g. /ref=sr_1_243)
    path = re.sub(r"/ref=[^/]*", "", parsed.path)

    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


class TargetStore(Protocol):
    """Operations the poller consumes from the product store."""

    def list_active_targets(self) -> list[TrackedTarget]: ...

    def append_price_point(
        self, target_id: int, price: Decimal, retrieved_at: datetime,
    ) -> None: ...

    def update_last_known_price(
        self, target_id: int, price: Decimal,
    ) -> None: ...


def _row_to_target(row: tuple[Any, ...]) -> TrackedTarget:
    return TrackedTarget(
        id=row[0],
        url=row[1],
        name=row[2],
        last_price=Decimal(row[3]) if row[3] is not None else None,
        is_active=bool(row[4]),
    )


class SQLiteTargetStore:
    """SQLite-backed store for tracked targets and their price points.

    Prices are stored as decimal strings so no precision is lost.
    Every ``sqlite3`` failure is re-raised as :class:`StoreError`.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        path = db_path or Settings.DB_PATH
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(path), check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Cannot open store at {path}: {exc}") from exc
        logger.debug("SQLiteTargetStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _write(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Cursor:
        """Execute and commit one statement."""
        try:
            cur = self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StoreError(str(exc)) from exc
        return cur

    def _read(
        self, sql: str, params: tuple[Any, ...] = (),
    ) -> list[tuple[Any, ...]]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    # ── Poller interface ─────────────────────────────────

    def list_active_targets(self) -> list[TrackedTarget]:
        """Return active targets in insertion order."""
        rows = self._read(
            f"SELECT {_TARGET_COLUMNS} FROM tracked_targets "
            "WHERE is_active = 1 ORDER BY id",
        )
        return [_row_to_target(r) for r in rows]

    def append_price_point(
        self, target_id: int, price: Decimal, retrieved_at: datetime,
    ) -> None:
        """Insert one immutable price observation."""
        self._write(
            "INSERT INTO price_points (target_id, price, retrieved_at) "
            "VALUES (?, ?, ?)",
            (target_id, str(price), retrieved_at.isoformat()),
        )

    def update_last_known_price(
        self, target_id: int, price: Decimal,
    ) -> None:
        """Cache the latest price on the target row."""
        self._write(
            "UPDATE tracked_targets SET last_price = ? WHERE id = ?",
            (str(price), target_id),
        )

    # ── Target management ────────────────────────────────

    def add_target(self, url: str, name: str = "") -> TrackedTarget:
        """Track a URL; re-adding a known URL reactivates it."""
        clean = normalize_url(url)
        self._write(
            "INSERT INTO tracked_targets (url, name, created_at) "
            "VALUES (?, ?, ?) "
            "ON CONFLICT(url) DO UPDATE SET is_active = 1, "
            "name = CASE WHEN excluded.name != '' "
            "THEN excluded.name ELSE tracked_targets.name END",
            (clean, name, datetime.now().isoformat()),
        )
        rows = self._read(
            f"SELECT {_TARGET_COLUMNS} FROM tracked_targets "
            "WHERE url = ?",
            (clean,),
        )
        target = _row_to_target(rows[0])
        logger.info("Tracking target %d: %s", target.id, target.url)
        return target

    def set_active(self, target_id: int, active: bool) -> bool:
        """Enable or disable polling for a target. Returns False if unknown."""
        cur = self._write(
            "UPDATE tracked_targets SET is_active = ? WHERE id = ?",
            (1 if active else 0, target_id),
        )
        return cur.rowcount > 0

    def get_target(self, target_id: int) -> TrackedTarget | None:
        """Look up one target by id."""
        rows = self._read(
            f"SELECT {_TARGET_COLUMNS} FROM tracked_targets "
            "WHERE id = ?",
            (target_id,),
        )
        return _row_to_target(rows[0]) if rows else None

    def list_targets(self) -> list[TrackedTarget]:
        """Return every target, active or not."""
        rows = self._read(
            f"SELECT {_TARGET_COLUMNS} FROM tracked_targets ORDER BY id",
        )
        return [_row_to_target(r) for r in rows]

    # ── History queries ──────────────────────────────────

    def get_price_history(self, target_id: int) -> list[PricePoint]:
        """Return all price points for a target, oldest first."""
        rows = self._read(
            "SELECT target_id, price, retrieved_at FROM price_points "
            "WHERE target_id = ? ORDER BY retrieved_at ASC, id ASC",
            (target_id,),
        )
        return [
            PricePoint(
                target_id=r[0],
                price=Decimal(r[1]),
                retrieved_at=datetime.fromisoformat(r[2]),
            )
            for r in rows
        ]

    def get_trend_summary(
        self, target_id: int,
    ) -> dict[str, object] | None:
        """Compute min / max / avg / latest price for a target."""
        history = self.get_price_history(target_id)
        if not history:
            return None
        prices = [p.price for p in history]
        avg = sum(prices, Decimal(0)) / len(prices)
        return {
            "min": min(prices),
            "max": max(prices),
            "avg": avg.quantize(Decimal("0.01")),
            "count": len(prices),
            "latest": history[-1].price,
        }
