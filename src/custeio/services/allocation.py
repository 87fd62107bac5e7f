"""Proportional apportionment (rateio) of invoice-level charges across items."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from custeio.config import CHARGE_FIELDS
from custeio.models.costing import AllocatedCharges
from custeio.models.invoice import InvoiceTotals, LineItem
from custeio.utils.numbers import ZERO


def item_weight(totals: InvoiceTotals, item: LineItem) -> Decimal:
    """Share of the invoice goods value carried by *item*; zero when the invoice has none."""
    if totals.gross_goods == 0:
        return ZERO
    return item.gross_total / totals.gross_goods


def allocate_item(totals: InvoiceTotals, item: LineItem) -> AllocatedCharges:
    """Charges for one item.

    A non-zero value on the item itself wins; otherwise the invoice total is
    split by goods-value weight. Each charge type is decided independently.
    """
    weight = item_weight(totals, item)
    values: dict[str, Decimal] = {}
    for name, _tag in CHARGE_FIELDS:
        explicit = item.explicit_charge(name)
        values[name] = explicit if explicit != 0 else totals.charge(name) * weight
    return AllocatedCharges(**values)


def allocate(totals: InvoiceTotals, items: Sequence[LineItem]) -> list[AllocatedCharges]:
    """Allocate every shared charge to every item, in item order.

    Proportional shares are not renormalised when some items carry explicit
    values, so the per-type sum only approximates the invoice total then.
    """
    return [allocate_item(totals, item) for item in items]
