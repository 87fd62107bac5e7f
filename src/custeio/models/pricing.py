from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PricingRow:
    """One row of a batch pricing list. Numeric fields are kept as typed."""

    description: str = ""
    quantity: str = "1"
    cost: str = ""
    margin: str = ""
    price: str = ""
    # Per-unit breakdown, filled when the row is seeded from an invoice
    original_cost: str = ""
    taxes: str = ""
    discount: str = ""


@dataclass(frozen=True)
class PricingTotals:
    total_cost: Decimal
    total_value: Decimal
    average_margin: Decimal
