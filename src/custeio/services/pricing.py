"""Cost / margin / price solver for batch pricing lists.

Rows hold the values exactly as typed. Editing cost, margin or quantity
recomputes the price from the margin; editing the price recomputes the
margin. Derived values are written with two decimal places.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from decimal import Decimal

from custeio.models.invoice import ResolvedDocument
from custeio.models.pricing import PricingRow, PricingTotals
from custeio.services.allocation import allocate
from custeio.utils.numbers import HUNDRED, ZERO, format_plain, is_number, parse_number

PRICE_DRIVERS = frozenset({"cost", "margin", "quantity"})
EDITABLE_FIELDS = PRICE_DRIVERS | {"price", "description"}


def price_from_margin(cost: Decimal, margin: Decimal) -> Decimal:
    return cost * (1 + margin / HUNDRED)


def margin_from_price(cost: Decimal, price: Decimal) -> Decimal:
    return (price / cost - 1) * HUNDRED


def _positive_text(value: Decimal) -> str:
    return format_plain(value) if value > 0 else ""


def resolve_pricing_row(row: PricingRow, changed_field: str) -> PricingRow:
    """Recompute the dependent side of *row* after *changed_field* was edited.

    Raises ValueError for a field name that is not part of a pricing row.
    """
    if changed_field not in EDITABLE_FIELDS:
        raise ValueError(f"Campo de precificação desconhecido: '{changed_field}'")
    if changed_field == "description":
        return row

    cost = parse_number(row.cost)
    margin = parse_number(row.margin)
    price = parse_number(row.price)

    if changed_field in PRICE_DRIVERS:
        if cost > 0:
            return dataclasses.replace(row, price=_positive_text(price_from_margin(cost, margin)))
        return dataclasses.replace(row, margin="", price="")

    # price edited
    if price > 0 and cost > 0:
        return dataclasses.replace(row, margin=_positive_text(margin_from_price(cost, price)))
    return dataclasses.replace(row, margin="")


def update_row(row: PricingRow, field: str, value: str) -> PricingRow:
    """Set *field* to *value* and resolve the row."""
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Campo de precificação desconhecido: '{field}'")
    return resolve_pricing_row(dataclasses.replace(row, **{field: value}), field)


def apply_global_margin(rows: Sequence[PricingRow], margin: str) -> list[PricingRow]:
    """Apply one margin to every row that has a cost; rows without cost are left alone.

    Raises ValueError when *margin* is not a number.
    """
    if not is_number(margin):
        raise ValueError(f"Margem inválida: '{margin}'")
    value = parse_number(margin)

    updated = []
    for row in rows:
        cost = parse_number(row.cost)
        if cost > 0:
            price = format_plain(price_from_margin(cost, value))
            row = dataclasses.replace(row, margin=margin, price=price)
        updated.append(row)
    return updated


def _per_unit(value: Decimal, quantity: Decimal) -> Decimal:
    return value / quantity if quantity > 0 else ZERO


def pricing_totals(rows: Iterable[PricingRow]) -> PricingTotals:
    total_cost = ZERO
    total_value = ZERO
    for row in rows:
        quantity = parse_number(row.quantity)
        total_cost += quantity * parse_number(row.cost)
        total_value += quantity * parse_number(row.price)
    average = (total_value - total_cost) / total_cost * HUNDRED if total_cost > 0 else ZERO
    return PricingTotals(total_cost=total_cost, total_value=total_value, average_margin=average)


def rows_from_document(document: ResolvedDocument) -> list[PricingRow]:
    """Seed a pricing list from an invoice, one row per item.

    Taxes and charges are apportioned like the landed cost, but only a
    discount written on the item itself is deducted and PIS/COFINS are not
    credited.
    """
    charges = allocate(document.totals, document.items)
    rows = []
    for item, share in zip(document.items, charges, strict=True):
        additions = item.ipi + item.icms_st + share.freight + share.insurance + share.other
        discount = item.discount
        net_total = item.gross_total + additions - discount
        rows.append(
            PricingRow(
                description=item.description,
                quantity=format(item.quantity.normalize(), "f"),
                cost=format_plain(_per_unit(net_total, item.quantity)),
                original_cost=format_plain(item.unit_cost),
                taxes=format_plain(_per_unit(additions, item.quantity)),
                discount=format_plain(_per_unit(discount, item.quantity)),
            )
        )
    return rows
