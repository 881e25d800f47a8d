# price_engine/models/price_point.py

"""Temporal price observation model for price history tracking."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class PricePoint:
    """A single price observation for a target at a point in time."""

    target_id: int
    price: Decimal
    retrieved_at: datetime
