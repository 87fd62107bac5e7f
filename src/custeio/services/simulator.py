"""What-if purchase quantities on top of already costed lines."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from custeio.models.costing import AllocatedLineItem, SimulatedLineItem, SimulationSummary
from custeio.utils.numbers import ZERO, parse_number


def _quantity_text(quantity: Decimal) -> str:
    # Decimal("2.0000") -> "2", Decimal("1.5000") -> "1.5"
    return format(quantity.normalize(), "f")


def simulate_line(
    line: AllocatedLineItem, simulated_quantity: str | None = None
) -> SimulatedLineItem:
    """Price *line* at a hypothetical quantity; the original figures are kept alongside.

    With no quantity given the simulation starts from the invoiced quantity.
    """
    if simulated_quantity is None:
        simulated_quantity = _quantity_text(line.quantity)
    return SimulatedLineItem(
        line=line,
        simulated_quantity=simulated_quantity,
        original_total_cost=line.final_unit_cost * line.quantity,
        simulated_total_cost=line.final_unit_cost * parse_number(simulated_quantity),
    )


def simulate(
    lines: Iterable[AllocatedLineItem],
    simulated_quantities: Mapping[int, str] | None = None,
) -> list[SimulatedLineItem]:
    """Simulate every line; *simulated_quantities* maps item index to typed quantity."""
    quantities = simulated_quantities or {}
    return [simulate_line(line, quantities.get(line.index)) for line in lines]


def set_simulated_quantity(item: SimulatedLineItem, value: str) -> SimulatedLineItem:
    return dataclasses.replace(
        item,
        simulated_quantity=value,
        simulated_total_cost=item.final_unit_cost * parse_number(value),
    )


def update_quantity(
    items: Sequence[SimulatedLineItem], index: int, value: str
) -> list[SimulatedLineItem]:
    """Return a new list with item *index* re-simulated at *value*."""
    return [set_simulated_quantity(i, value) if i.index == index else i for i in items]


def remove_item(items: Sequence[SimulatedLineItem], index: int) -> list[SimulatedLineItem]:
    """Drop item *index* from the simulation; the remaining items are returned as-is."""
    return [i for i in items if i.index != index]


def summarize_simulation(items: Iterable[SimulatedLineItem]) -> SimulationSummary:
    original = ZERO
    simulated = ZERO
    for item in items:
        original += item.original_total_cost
        simulated += item.simulated_total_cost
    return SimulationSummary(original_total=original, simulated_total=simulated)
