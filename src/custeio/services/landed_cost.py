from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal

from custeio.config import DEFAULT_CONVERSION_FACTOR
from custeio.models.costing import (
    AllocatedCharges,
    AllocatedLineItem,
    CostSummary,
    TaxRegime,
)
from custeio.models.invoice import InvoiceTotals, LineItem
from custeio.services.allocation import allocate
from custeio.utils.numbers import ZERO, parse_number

logger = logging.getLogger(__name__)


def coerce_regime(regime: TaxRegime | str) -> TaxRegime:
    """Accept a TaxRegime or its string value ("lucro_real", "simples_nacional")."""
    if isinstance(regime, TaxRegime):
        return regime
    try:
        return TaxRegime(str(regime).strip().lower())
    except ValueError:
        raise ValueError(f"Regime tributário inválido: '{regime}'") from None


def base_landed_total(item: LineItem, charges: AllocatedCharges) -> Decimal:
    """Gross line value plus taxes and charges borne by the buyer, less discount."""
    return (
        item.gross_total
        + item.ipi
        + item.icms_st
        + charges.freight
        + charges.insurance
        + charges.other
        - charges.discount
    )


def final_landed_total(item: LineItem, charges: AllocatedCharges, regime: TaxRegime) -> Decimal:
    total = base_landed_total(item, charges)
    if regime.credits_pis_cofins:
        total -= item.pis + item.cofins
    return total


def converted_cost(final_unit_cost: Decimal, conversion_factor: str) -> Decimal:
    """Unit cost expressed in the converted unit.

    Blank or unparseable factors count as 1; zero or negative factors give 0.
    """
    factor = parse_number(conversion_factor, default=Decimal(1))
    if factor <= 0:
        return ZERO
    return final_unit_cost / factor


def compute_line(
    item: LineItem,
    charges: AllocatedCharges,
    regime: TaxRegime | str,
    conversion_factor: str = DEFAULT_CONVERSION_FACTOR,
) -> AllocatedLineItem:
    regime = coerce_regime(regime)
    total = final_landed_total(item, charges, regime)
    unit = total / item.quantity if item.quantity > 0 else ZERO
    return AllocatedLineItem(
        item=item,
        charges=charges,
        regime=regime,
        final_total_cost=total,
        final_unit_cost=unit,
        conversion_factor=conversion_factor,
        converted_unit_cost=converted_cost(unit, conversion_factor),
    )


def allocate_and_cost(
    totals: InvoiceTotals,
    items: Sequence[LineItem],
    regime: TaxRegime | str,
    conversion_factor: str = DEFAULT_CONVERSION_FACTOR,
) -> list[AllocatedLineItem]:
    """Allocate shared charges and compute landed cost for every item of one invoice."""
    regime = coerce_regime(regime)
    charges = allocate(totals, items)
    return [
        compute_line(item, share, regime, conversion_factor)
        for item, share in zip(items, charges, strict=True)
    ]


def switch_regime(
    lines: Iterable[AllocatedLineItem], regime: TaxRegime | str
) -> list[AllocatedLineItem]:
    """Recompute every line under *regime* from its stored item and charges.

    Conversion factors typed by the user are carried over.
    """
    regime = coerce_regime(regime)
    logger.debug("Recomputing landed cost under %s", regime.value)
    return [compute_line(line.item, line.charges, regime, line.conversion_factor) for line in lines]


def set_conversion_factor(line: AllocatedLineItem, conversion_factor: str) -> AllocatedLineItem:
    """Change the conversion factor; only the converted unit cost moves."""
    return dataclasses.replace(
        line,
        conversion_factor=conversion_factor,
        converted_unit_cost=converted_cost(line.final_unit_cost, conversion_factor),
    )


def summarize(lines: Iterable[AllocatedLineItem]) -> CostSummary:
    """Column totals for the landed cost table."""
    sums = dict.fromkeys((f.name for f in dataclasses.fields(CostSummary)), ZERO)
    for line in lines:
        sums["gross_total"] += line.item.gross_total
        sums["ipi"] += line.item.ipi
        sums["icms_st"] += line.item.icms_st
        sums["pis"] += line.item.pis
        sums["cofins"] += line.item.cofins
        sums["freight"] += line.charges.freight
        sums["insurance"] += line.charges.insurance
        sums["discount"] += line.charges.discount
        sums["other"] += line.charges.other
        sums["final_total_cost"] += line.final_total_cost
    return CostSummary(**sums)
