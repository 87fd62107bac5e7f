"""Public entry points of the costing engine.

``resolve_document`` here returns the StructureError instead of raising it,
so batch callers can keep going; the raising variant lives in
``custeio.services.field_resolver``.
"""

from __future__ import annotations

from custeio.services.aggregator import aggregate
from custeio.services.field_resolver import resolve_document_result as resolve_document
from custeio.services.landed_cost import allocate_and_cost
from custeio.services.pricing import resolve_pricing_row
from custeio.services.simulator import simulate

__all__ = [
    "aggregate",
    "allocate_and_cost",
    "resolve_document",
    "resolve_pricing_row",
    "simulate",
]
