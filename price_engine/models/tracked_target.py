# price_engine/models/tracked_target.py

"""Tracked target model: a URL under periodic price observation."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class TrackedTarget:
    """A product page URL the poller refreshes every cycle."""

    id: int
    url: str
    is_active: bool = True
    name: str = ""
    last_price: Decimal | None = None
