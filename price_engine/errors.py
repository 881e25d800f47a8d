# price_engine/errors.py

"""Exception taxonomy for the price extraction engine.

A strategy that finds nothing returns ``None`` (NotFound); exceptions are
reserved for failures the caller may want to tell apart in its logs.
"""


class PriceEngineError(Exception):
    """Base class for all price_engine errors."""


class FetchError(PriceEngineError):
    """Network failure, timeout, non-200 status, or anti-bot page."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class MalformedPriceText(PriceEngineError):
    """Text matched a price location but failed normalization."""

    def __init__(self, text: str) -> None:
        super().__init__(f"Not a price: {text[:80]!r}")
        self.text = text


class RenderTimeout(PriceEngineError):
    """The headless browser exceeded its navigation or ready-wait budget."""


class StoreError(PriceEngineError):
    """The target/history store failed to read or persist."""
