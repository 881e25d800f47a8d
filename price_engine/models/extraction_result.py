# price_engine/models/extraction_result.py

"""Result of one successful extraction attempt."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class ExtractionResult:
    """A normalized price plus the label of the method that found it."""

    price: Decimal
    method_label: str
    raw_snippet: str | None = None
