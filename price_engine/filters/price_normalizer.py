# price_engine/filters/price_normalizer.py

"""Price text normalization: raw price-ish text to a canonical Decimal."""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# "from 999" is a lower bound, not a price
_RANGE_QUALIFIER_RE = re.compile(
    r"^\s*(?:от|from|starting\s+at|starts\s+at)\b",
    re.IGNORECASE,
)

# Longest tokens first so "руб." is not left with a stray dot
_CURRENCY_TOKENS: tuple[str, ...] = (
    "&nbsp;", "&#160;",
    "руб.", "руб", "грн", "RUB", "USD", "EUR", "AED", "р.",
    "₽", "₴", "$", "€", "£",
)
_CURRENCY_RE = re.compile(
    "|".join(re.escape(t) for t in _CURRENCY_TOKENS),
    re.IGNORECASE,
)

_WHITESPACE_RE = re.compile(r"\s+")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")

_CENTS = Decimal("0.01")


def normalize_price(text: str | None) -> Decimal | None:
    """Convert text like ``'1 234,56 ₽'`` into ``Decimal('1234.56')``.

    Returns ``None`` when the text holds no price.  Commas are read as
    decimal separators; when several dots remain, all but the last are
    treated as thousands separators.  The result is quantized to two
    fractional digits.  Zero is a valid price.
    """
    if not text or not text.strip():
        return None
    if _RANGE_QUALIFIER_RE.match(text):
        return None

    cleaned = _CURRENCY_RE.sub("", text)
    cleaned = _WHITESPACE_RE.sub("", cleaned)
    cleaned = cleaned.replace(",", ".")
    cleaned = _NON_NUMERIC_RE.sub("", cleaned).rstrip(".")

    if cleaned.count(".") > 1:
        head, _, tail = cleaned.rpartition(".")
        cleaned = head.replace(".", "") + "." + tail

    if not any(ch.isdigit() for ch in cleaned):
        return None

    try:
        return Decimal(cleaned).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def is_plausible(
    price: Decimal,
    min_price: Decimal | int | None = None,
    max_price: Decimal | int | None = None,
) -> bool:
    """Check *price* against optional inclusive plausibility bounds."""
    if min_price is not None and price < min_price:
        return False
    if max_price is not None and price > max_price:
        return False
    return True
