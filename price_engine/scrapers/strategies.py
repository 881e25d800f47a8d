# price_engine/scrapers/strategies.py

"""Extraction strategies: each one locates a price within page content.

Every strategy has the signature ``(page, strategy) -> ExtractionResult |
None`` and is selected by ``ExtractionStrategy.kind``.  ``None`` means the
strategy ran but found no plausible price.  A strategy that locates price
text which cannot be normalized raises :class:`MalformedPriceText`.
"""

import html
import json
import logging
import re
import statistics
from collections.abc import Callable, Iterator
from decimal import Decimal
from typing import Any

from price_engine.errors import MalformedPriceText
from price_engine.filters.price_normalizer import (
    is_plausible,
    normalize_price,
)
from price_engine.models.extraction_result import ExtractionResult
from price_engine.models.page_content import PageContent
from price_engine.models.site_profile import ExtractionStrategy

logger = logging.getLogger("price_engine.strategies")

StrategyFn = Callable[
    [PageContent, ExtractionStrategy], ExtractionResult | None
]

REDUCE_POLICIES: frozenset[str] = frozenset({"first", "min", "median"})

_JSON_LD_PRICE_KEYS: tuple[str, ...] = ("price", "lowPrice")

_SNIPPET_LEN = 120


# ── Shared helpers ───────────────────────────────────────


def _bounds(
    params: dict[str, Any],
) -> tuple[Decimal | None, Decimal | None]:
    """Read optional ``min_price`` / ``max_price`` from strategy params."""
    low = params.get("min_price")
    high = params.get("max_price")
    return (
        Decimal(str(low)) if low is not None else None,
        Decimal(str(high)) if high is not None else None,
    )


def reduce_prices(prices: list[Decimal], policy: str) -> Decimal:
    """Pick one price out of several candidates.

    ``min`` returns the lowest, ``median`` the upper median and
    ``first`` the earliest match in document order.
    """
    if policy == "first":
        return prices[0]
    if policy == "median":
        return statistics.median_high(prices)
    return min(prices)


def _price_from_text(
    raw: str, strategy: ExtractionStrategy,
) -> ExtractionResult | None:
    """Normalize located price text and apply plausibility bounds."""
    price = normalize_price(raw)
    if price is None:
        raise MalformedPriceText(raw)
    low, high = _bounds(strategy.params)
    if not is_plausible(price, low, high):
        logger.debug(
            "[%s] %s outside plausibility bounds",
            strategy.label,
            price,
        )
        return None
    return ExtractionResult(
        price=price,
        method_label=strategy.label,
        raw_snippet=raw.strip()[:_SNIPPET_LEN],
    )


# ── Structured data ──────────────────────────────────────


def _walk_json_ld(node: Any) -> Iterator[Any]:
    """Yield every scalar ``price``/``lowPrice`` value in a JSON-LD tree."""
    if isinstance(node, list):
        for item in node:
            yield from _walk_json_ld(item)
    elif isinstance(node, dict):
        for key in _JSON_LD_PRICE_KEYS:
            value = node.get(key)
            if value is not None and not isinstance(value, (dict, list)):
                yield value
        for value in node.values():
            if isinstance(value, (dict, list)):
                yield from _walk_json_ld(value)


def extract_json_ld(
    page: PageContent, strategy: ExtractionStrategy,
) -> ExtractionResult | None:
    """Read ``offers.price`` style fields from JSON-LD script blocks."""
    low, high = _bounds(strategy.params)
    candidates: list[tuple[Decimal, str]] = []

    for script in page.soup.find_all(
        "script", type="application/ld+json"
    ):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(
                "[%s] Skipping unparseable JSON-LD block",
                strategy.label,
            )
            continue
        for value in _walk_json_ld(data):
            price = normalize_price(str(value))
            if price is None or not is_plausible(price, low, high):
                continue
            candidates.append((price, str(value)))

    if not candidates:
        return None
    policy = strategy.params.get("reduce", "first")
    chosen = reduce_prices([c[0] for c in candidates], policy)
    snippet = next(s for p, s in candidates if p == chosen)
    return ExtractionResult(
        price=chosen,
        method_label=strategy.label,
        raw_snippet=snippet,
    )


def extract_itemprop(
    page: PageContent, strategy: ExtractionStrategy,
) -> ExtractionResult | None:
    """Read a microdata ``itemprop="price"`` element."""
    el = page.soup.select_one('[itemprop="price"]')
    if el is None:
        return None
    content = el.get("content")
    raw = str(content) if content else el.get_text(" ", strip=True)
    return _price_from_text(raw, strategy)


# ── Site-specific extractors ─────────────────────────────


def extract_attribute(
    page: PageContent, strategy: ExtractionStrategy,
) -> ExtractionResult | None:
    """Read a price carried in a data attribute such as ``data-meta-price``."""
    attr: str = strategy.params["attribute"]
    el = page.soup.find(attrs={attr: True})
    if el is None:
        return None
    value = el.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    if not value:
        return None
    return _price_from_text(str(value), strategy)


def extract_css_text(
    page: PageContent, strategy: ExtractionStrategy,
) -> ExtractionResult | None:
    """Read the text content of the first element matching a selector."""
    el = page.soup.select_one(strategy.params["selector"])
    if el is None:
        return None
    text = el.get_text(" ", strip=True)
    if not text:
        return None
    return _price_from_text(text, strategy)


# ── Raw-text pattern scan ────────────────────────────────


def scan_prices(
    text: str, strategy: ExtractionStrategy,
) -> list[tuple[Decimal, str]]:
    """Collect every plausible price matched by the strategy's patterns.

    Each pattern's first capture group (or the whole match when it has
    none) is normalized; unparseable and out-of-bounds values are
    dropped.  Results keep pattern order, then document order.
    """
    low, high = _bounds(strategy.params)
    flags = re.IGNORECASE if strategy.params.get("ignore_case", True) else 0
    found: list[tuple[Decimal, str]] = []

    for pattern in strategy.params["patterns"]:
        for match in re.finditer(pattern, text, flags):
            raw = match.group(1) if match.groups() else match.group(0)
            price = normalize_price(raw)
            if price is None:
                continue
            if not is_plausible(price, low, high):
                logger.debug(
                    "[%s] Rejected implausible match %s",
                    strategy.label,
                    price,
                )
                continue
            found.append((price, match.group(0)))
    return found


def extract_regex_scan(
    page: PageContent, strategy: ExtractionStrategy,
) -> ExtractionResult | None:
    """Scan the unescaped raw HTML for currency-adjacent numbers."""
    found = scan_prices(html.unescape(page.html), strategy)
    if not found:
        return None
    policy = strategy.params.get("reduce", "min")
    chosen = reduce_prices([p for p, _ in found], policy)
    snippet = next(s for p, s in found if p == chosen)
    logger.debug(
        "[%s] %d candidate prices, %s -> %s",
        strategy.label,
        len(found),
        policy,
        chosen,
    )
    return ExtractionResult(
        price=chosen,
        method_label=strategy.label,
        raw_snippet=snippet.strip()[:_SNIPPET_LEN],
    )


STRATEGY_KINDS: dict[str, StrategyFn] = {
    "json_ld": extract_json_ld,
    "itemprop": extract_itemprop,
    "attribute": extract_attribute,
    "css_text": extract_css_text,
    "regex_scan": extract_regex_scan,
}

# Params each kind cannot run without
REQUIRED_PARAMS: dict[str, tuple[str, ...]] = {
    "attribute": ("attribute",),
    "css_text": ("selector",),
    "regex_scan": ("patterns",),
}


def run_strategy(
    strategy: ExtractionStrategy, page: PageContent,
) -> ExtractionResult | None:
    """Dispatch *strategy* to the routine registered for its kind."""
    return STRATEGY_KINDS[strategy.kind](page, strategy)
