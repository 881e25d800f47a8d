# tests/test_strategy_registry.py

"""Tests for site profile loading and URL-to-profile selection."""

import json
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from typing import Any

from price_engine.models.page_content import PageContent
from price_engine.scrapers.strategies import run_strategy
from price_engine.scrapers.strategy_registry import (
    GENERIC_PROFILE,
    StrategyRegistry,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class TestBundledProfiles(unittest.TestCase):
    """The shipped site_profiles.json."""

    @classmethod
    def setUpClass(cls) -> None:
        cls.registry = StrategyRegistry()

    def test_known_sites_select_their_profile(self) -> None:
        """Each configured host picks its own profile."""
        cases = {
            "https://books.toscrape.com/catalogue/x_1/index.html":
                "books_toscrape",
            "https://www.citilink.ru/product/smartfon-1950342/":
                "citilink",
            "https://www.e-katalog.ru/ASUS-ROG.htm": "ekatalog",
            "https://www.mvideo.ru/products/naushniki-50041234":
                "mvideo",
        }
        for url, expected in cases.items():
            with self.subTest(url=url):
                self.assertEqual(
                    self.registry.select_profile(url).name, expected
                )

    def test_match_is_case_insensitive(self) -> None:
        """Host matching ignores case."""
        self.assertEqual(
            self.registry.select_profile("https://WWW.MVIDEO.RU/p/1").name,
            "mvideo",
        )

    def test_unknown_host_gets_generic(self) -> None:
        """Unmatched URLs fall back to the generic profile."""
        profile = self.registry.select_profile("https://shop.example.com/p")
        self.assertEqual(profile.name, GENERIC_PROFILE)
        self.assertTrue(profile.render_fallback)

    def test_structured_data_comes_first(self) -> None:
        """Every profile except books starts with JSON-LD."""
        for profile in self.registry.profiles:
            if profile.name == "books_toscrape":
                continue
            with self.subTest(profile=profile.name):
                self.assertEqual(profile.strategies[0].kind, "json_ld")

    def test_books_never_renders(self) -> None:
        """Static sites do not enable the rendered fallback."""
        profile = self.registry.select_profile(
            "https://books.toscrape.com/catalogue/x_1/index.html"
        )
        self.assertFalse(profile.render_fallback)

    def test_fallback_scan_is_generic_currency_scan(self) -> None:
        """The rendered-text scan reuses generic's regex strategy."""
        scan = self.registry.fallback_scan
        assert scan is not None
        self.assertEqual(scan.kind, "regex_scan")
        self.assertEqual(scan.label, "generic:currency_scan")
        self.assertEqual(scan.params["min_price"], 100)
        self.assertEqual(scan.params["max_price"], 1000000)

    def test_render_selectors_and_scripts_loaded(self) -> None:
        """Rendered selectors and JS scripts come from the file."""
        self.assertIn(".price__value", self.registry.render_selectors)
        self.assertEqual(self.registry.render_selectors[0],
                         ".product-buy__price")
        self.assertTrue(self.registry.render_scripts)
        for script in self.registry.render_scripts:
            self.assertTrue(script.startswith("() =>"))

    def test_ekatalog_seller_prices_take_minimum(self) -> None:
        """The e-katalog seller scan returns the cheapest offer."""
        profile = self.registry.select_profile(
            "https://www.e-katalog.ru/item.htm"
        )
        with open(FIXTURES_DIR / "ekatalog_sellers.html",
                  encoding="utf-8") as f:
            page = PageContent(url="https://www.e-katalog.ru/item.htm",
                               html=f.read())
        scan = next(
            s for s in profile.strategies
            if s.label == "ekatalog:seller_prices"
        )
        result = run_strategy(scan, page)
        assert result is not None
        self.assertEqual(result.price, Decimal("24500.00"))

    def test_mvideo_listing_takes_median(self) -> None:
        """The M.Video rouble scan returns the upper median."""
        profile = self.registry.select_profile(
            "https://www.mvideo.ru/products/x"
        )
        with open(FIXTURES_DIR / "mvideo_listing.html",
                  encoding="utf-8") as f:
            page = PageContent(url="https://www.mvideo.ru/products/x",
                               html=f.read())
        scan = next(
            s for s in profile.strategies
            if s.label == "mvideo:rub_median"
        )
        result = run_strategy(scan, page)
        assert result is not None
        self.assertEqual(result.price, Decimal("2490.00"))


class TestBadProfiles(unittest.TestCase):
    """Invalid profile files are rejected at load time."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "profiles.json"

    def _write(self, data: Any) -> Path:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        return self.path

    @staticmethod
    def _generic(*strategies: dict[str, Any]) -> dict[str, Any]:
        return {"name": "generic", "match": [],
                "strategies": list(strategies)}

    def test_missing_file(self) -> None:
        """A nonexistent path raises ValueError."""
        with self.assertRaises(ValueError):
            StrategyRegistry(Path(self._tmp.name) / "nope.json")

    def test_invalid_json(self) -> None:
        """Unparseable JSON raises ValueError."""
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(ValueError):
            StrategyRegistry(self.path)

    def test_no_generic_profile(self) -> None:
        """A file without a generic profile is rejected."""
        path = self._write({"profiles": [
            {"name": "shop", "match": ["shop.ru"], "strategies": []},
        ]})
        with self.assertRaises(ValueError):
            StrategyRegistry(path)

    def test_unknown_kind(self) -> None:
        """Strategy kinds outside the known set are rejected."""
        path = self._write({"profiles": [
            self._generic({"kind": "xpath", "expr": "//span"}),
        ]})
        with self.assertRaisesRegex(ValueError, "unknown strategy kind"):
            StrategyRegistry(path)

    def test_missing_required_param(self) -> None:
        """A css_text strategy without a selector is rejected."""
        path = self._write({"profiles": [
            self._generic({"kind": "css_text", "label": "x"}),
        ]})
        with self.assertRaisesRegex(ValueError, "selector"):
            StrategyRegistry(path)

    def test_unknown_reduce_policy(self) -> None:
        """Only first, min and median are accepted."""
        path = self._write({"profiles": [
            self._generic({"kind": "regex_scan", "patterns": ["x"],
                           "reduce": "max"}),
        ]})
        with self.assertRaisesRegex(ValueError, "reduce"):
            StrategyRegistry(path)

    def test_minimal_file_loads(self) -> None:
        """Generic-only files load with default labels and no render scripts."""
        path = self._write({"profiles": [
            self._generic({"kind": "json_ld"}),
        ]})
        registry = StrategyRegistry(path)
        self.assertEqual(len(registry.profiles), 1)
        self.assertEqual(
            registry.generic_profile.strategies[0].label,
            "generic:json_ld",
        )
        self.assertIsNone(registry.fallback_scan)
        self.assertEqual(registry.render_selectors, ())
        self.assertEqual(registry.render_scripts, ())


if __name__ == "__main__":
    unittest.main()
