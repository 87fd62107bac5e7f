from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from custeio.config import DEFAULT_CONVERSION_FACTOR
from custeio.models.invoice import LineItem
from custeio.utils.numbers import ZERO


class TaxRegime(Enum):
    """Whether PIS/COFINS are recoverable credits (Lucro Real) or part of cost."""

    LUCRO_REAL = "lucro_real"
    SIMPLES_NACIONAL = "simples_nacional"

    @property
    def credits_pis_cofins(self) -> bool:
        return self is TaxRegime.LUCRO_REAL


@dataclass(frozen=True)
class AllocatedCharges:
    freight: Decimal = ZERO
    insurance: Decimal = ZERO
    discount: Decimal = ZERO
    other: Decimal = ZERO


@dataclass(frozen=True)
class AllocatedLineItem:
    """A line item with its share of shared charges and its landed cost.

    The source item and charges are kept whole so any recompute (regime,
    conversion factor) starts from the same stored fields.
    """

    item: LineItem
    charges: AllocatedCharges
    regime: TaxRegime
    final_total_cost: Decimal
    final_unit_cost: Decimal
    conversion_factor: str = DEFAULT_CONVERSION_FACTOR
    converted_unit_cost: Decimal = ZERO

    @property
    def index(self) -> int:
        return self.item.index

    @property
    def description(self) -> str:
        return self.item.description

    @property
    def quantity(self) -> Decimal:
        return self.item.quantity


@dataclass(frozen=True)
class SimulatedLineItem:
    line: AllocatedLineItem
    simulated_quantity: str
    original_total_cost: Decimal
    simulated_total_cost: Decimal

    @property
    def index(self) -> int:
        return self.line.index

    @property
    def final_unit_cost(self) -> Decimal:
        return self.line.final_unit_cost


@dataclass(frozen=True)
class CostSummary:
    """Column sums over a set of allocated lines."""

    gross_total: Decimal = ZERO
    ipi: Decimal = ZERO
    icms_st: Decimal = ZERO
    freight: Decimal = ZERO
    insurance: Decimal = ZERO
    discount: Decimal = ZERO
    other: Decimal = ZERO
    pis: Decimal = ZERO
    cofins: Decimal = ZERO
    final_total_cost: Decimal = ZERO


@dataclass(frozen=True)
class SimulationSummary:
    original_total: Decimal
    simulated_total: Decimal

    @property
    def savings(self) -> Decimal:
        """Positive when the simulated purchase costs less than the original."""
        return self.original_total - self.simulated_total
