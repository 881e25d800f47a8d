# tests/test_target_store.py

"""Tests for the SQLite tracked-target store."""

import sqlite3
import tempfile
import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

from price_engine.errors import StoreError
from price_engine.storage.target_store import (
    SQLiteTargetStore,
    normalize_url,
)


class TestNormalizeUrl(unittest.TestCase):
    """Tests for URL normalization logic."""

    def test_strips_utm_and_click_ids(self) -> None:
        """Marketing params are removed."""
        raw = (
            "https://www.mvideo.ru/products/naushniki-50041234"
            "?utm_source=yandex&utm_medium=cpc&yclid=998&from=main"
        )
        self.assertEqual(
            normalize_url(raw),
            "https://www.mvideo.ru/products/naushniki-50041234",
        )

    def test_strips_ref_path_segment(self) -> None:
        """Amazon-style /ref= path tracking is dropped."""
        raw = "https://www.amazon.ae/Product/dp/B08ZW875PR/ref=sr_1_243?qid=1"
        result = normalize_url(raw)
        self.assertIn("/dp/B08ZW875PR", result)
        self.assertNotIn("ref=", result)
        self.assertNotIn("qid=", result)

    def test_strips_fragment(self) -> None:
        """URL fragments should be dropped."""
        self.assertNotIn(
            "#", normalize_url("https://example.com/product#reviews")
        )

    def test_preserves_non_tracking_params(self) -> None:
        """Unknown params should be preserved."""
        result = normalize_url("https://example.com/p?color=red&size=L")
        self.assertIn("color=red", result)
        self.assertIn("size=L", result)

    def test_empty_url(self) -> None:
        """Empty string should normalize cleanly."""
        self.assertEqual(normalize_url(""), "")


class TestSQLiteTargetStore(unittest.TestCase):
    """Tests for the SQLiteTargetStore class."""

    def setUp(self) -> None:
        """Create a fresh temp DB for each test."""
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "targets.db"
        self.store = SQLiteTargetStore(db_path=self.db_path)

    def tearDown(self) -> None:
        """Close the database."""
        self.store.close()
        self._tmp.cleanup()

    def test_add_and_list_active(self) -> None:
        """Added targets are active and listed in insertion order."""
        first = self.store.add_target("https://shop.example.com/p/1", "Kettle")
        second = self.store.add_target("https://shop.example.com/p/2")

        active = self.store.list_active_targets()

        self.assertEqual([t.id for t in active], [first.id, second.id])
        self.assertEqual(active[0].name, "Kettle")
        self.assertTrue(all(t.is_active for t in active))
        self.assertIsNone(active[0].last_price)

    def test_add_normalizes_url(self) -> None:
        """Tracking params never reach the stored URL."""
        target = self.store.add_target(
            "https://shop.example.com/p/1?utm_source=mail#top"
        )
        self.assertEqual(target.url, "https://shop.example.com/p/1")

    def test_re_adding_reactivates(self) -> None:
        """Adding a known URL again re-enables it without duplicating."""
        target = self.store.add_target("https://shop.example.com/p/1", "A")
        self.store.set_active(target.id, False)

        again = self.store.add_target(
            "https://shop.example.com/p/1?utm_campaign=x"
        )

        self.assertEqual(again.id, target.id)
        self.assertTrue(again.is_active)
        self.assertEqual(again.name, "A")
        self.assertEqual(len(self.store.list_targets()), 1)

    def test_set_active(self) -> None:
        """Disabled targets drop out of the poller's list."""
        target = self.store.add_target("https://shop.example.com/p/1")
        self.assertTrue(self.store.set_active(target.id, False))
        self.assertEqual(self.store.list_active_targets(), [])
        self.assertEqual(len(self.store.list_targets()), 1)

    def test_set_active_unknown_id(self) -> None:
        """Unknown ids report False."""
        self.assertFalse(self.store.set_active(999, True))

    def test_append_and_history(self) -> None:
        """Points come back oldest first with exact decimal prices."""
        target = self.store.add_target("https://shop.example.com/p/1")
        t0 = datetime(2026, 3, 1, 12, 0, 0)
        self.store.append_price_point(target.id, Decimal("1299.90"), t0)
        self.store.append_price_point(
            target.id, Decimal("1199.00"), t0 + timedelta(hours=1),
        )

        history = self.store.get_price_history(target.id)

        self.assertEqual(
            [p.price for p in history],
            [Decimal("1299.90"), Decimal("1199.00")],
        )
        self.assertEqual(history[0].retrieved_at, t0)
        self.assertEqual(history[0].target_id, target.id)

    def test_update_last_known_price(self) -> None:
        """The cached price is readable from the target row."""
        target = self.store.add_target("https://shop.example.com/p/1")
        self.store.update_last_known_price(target.id, Decimal("2490.00"))
        fetched = self.store.get_target(target.id)
        assert fetched is not None
        self.assertEqual(fetched.last_price, Decimal("2490.00"))

    def test_get_unknown_target(self) -> None:
        """Unknown ids return None."""
        self.assertIsNone(self.store.get_target(42))

    def test_trend_summary(self) -> None:
        """min / max / avg / count / latest are computed exactly."""
        target = self.store.add_target("https://shop.example.com/p/1")
        t0 = datetime(2026, 3, 1)
        for i, price in enumerate(("100.00", "200.00", "150.00")):
            self.store.append_price_point(
                target.id, Decimal(price), t0 + timedelta(days=i),
            )

        summary = self.store.get_trend_summary(target.id)

        assert summary is not None
        self.assertEqual(summary["min"], Decimal("100.00"))
        self.assertEqual(summary["max"], Decimal("200.00"))
        self.assertEqual(summary["avg"], Decimal("150.00"))
        self.assertEqual(summary["count"], 3)
        self.assertEqual(summary["latest"], Decimal("150.00"))

    def test_trend_summary_empty(self) -> None:
        """No points means no summary."""
        target = self.store.add_target("https://shop.example.com/p/1")
        self.assertIsNone(self.store.get_trend_summary(target.id))

    def test_persists_across_instances(self) -> None:
        """Data survives reopening the same file."""
        target = self.store.add_target("https://shop.example.com/p/1")
        self.store.append_price_point(
            target.id, Decimal("500.00"), datetime(2026, 3, 1),
        )
        self.store.close()

        self.store = SQLiteTargetStore(db_path=self.db_path)
        self.assertEqual(len(self.store.get_price_history(target.id)), 1)

    def test_sqlite_errors_become_store_errors(self) -> None:
        """Driver failures surface as StoreError."""
        broken = MagicMock()
        broken.execute.side_effect = sqlite3.OperationalError(
            "database is locked"
        )
        self.store._conn.close()
        self.store._conn = broken

        with self.assertRaises(StoreError):
            self.store.append_price_point(
                1, Decimal("100.00"), datetime(2026, 3, 1),
            )
        with self.assertRaises(StoreError):
            self.store.list_active_targets()

    def test_default_path_from_settings(self) -> None:
        """Without a path the store opens Settings.DB_PATH."""
        store = SQLiteTargetStore()
        try:
            store.add_target("https://shop.example.com/p/1")
        finally:
            store.close()


if __name__ == "__main__":
    unittest.main()
