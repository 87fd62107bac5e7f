from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from custeio.models.invoice import DocumentIdentity


@dataclass(frozen=True)
class Occurrence:
    """A product line as seen in one loaded invoice."""

    access_key: str
    number: str
    emitter_name: str
    quantity: Decimal
    unit_cost: Decimal

    @property
    def value(self) -> Decimal:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class AggregatedProduct:
    code: str
    description: str
    total_quantity: Decimal
    total_value: Decimal
    document_count: int
    occurrences: tuple[Occurrence, ...]


@dataclass
class LoadReport:
    """Outcome of one ingestion batch."""

    loaded: list[DocumentIdentity] = field(default_factory=list)
    skipped: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)
