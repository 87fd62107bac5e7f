from __future__ import annotations

from decimal import Decimal

import pytest

from custeio.models.invoice import InvoiceTotals, LineItem
from custeio.services.allocation import allocate, allocate_item, item_weight
from custeio.services.field_resolver import resolve_document


def _item(gross: str, index: int = 0, **charges: str) -> LineItem:
    return LineItem(
        index=index,
        code=str(index),
        description=f"item {index}",
        quantity=Decimal(1),
        unit_cost=Decimal(gross),
        gross_total=Decimal(gross),
        **{k: Decimal(v) for k, v in charges.items()},
    )


class TestItemWeight:
    def test_proportional(self):
        totals = InvoiceTotals(gross_goods=Decimal("1000"))
        assert item_weight(totals, _item("250")) == Decimal("0.25")

    def test_zero_denominator(self):
        totals = InvoiceTotals(gross_goods=Decimal("0"))
        assert item_weight(totals, _item("250")) == 0


class TestAllocate:
    def test_scenario_freight_split(self, scenario_tree):
        doc = resolve_document(scenario_tree)
        a, b = allocate(doc.totals, doc.items)
        assert a.freight == Decimal("60")
        assert b.freight == Decimal("40")
        assert a.insurance == 0
        assert b.discount == 0

    def test_conservation_without_overrides(self):
        totals = InvoiceTotals(
            gross_goods=Decimal("100"),
            freight=Decimal("10"),
            insurance=Decimal("7"),
            discount=Decimal("3"),
            other=Decimal("1"),
        )
        items = [_item("33.33", 0), _item("33.33", 1), _item("33.34", 2)]
        shares = allocate(totals, items)
        for name, expected in (("freight", 10), ("insurance", 7), ("discount", 3), ("other", 1)):
            total = sum((getattr(s, name) for s in shares), Decimal(0))
            assert total == pytest.approx(Decimal(expected))

    def test_explicit_value_wins(self):
        totals = InvoiceTotals(gross_goods=Decimal("1000"), freight=Decimal("100"))
        charges = allocate_item(totals, _item("600", freight="5"))
        assert charges.freight == Decimal("5")

    def test_explicit_zero_falls_back_to_proportional(self):
        totals = InvoiceTotals(gross_goods=Decimal("1000"), freight=Decimal("100"))
        charges = allocate_item(totals, _item("600", freight="0"))
        assert charges.freight == Decimal("60")

    def test_charge_types_independent(self):
        totals = InvoiceTotals(
            gross_goods=Decimal("1000"), freight=Decimal("100"), insurance=Decimal("50")
        )
        charges = allocate_item(totals, _item("500", freight="20"))
        assert charges.freight == Decimal("20")
        assert charges.insurance == Decimal("25")

    def test_mixed_overrides_not_renormalised(self):
        totals = InvoiceTotals(gross_goods=Decimal("1000"), freight=Decimal("100"))
        items = [_item("600", 0, freight="90"), _item("400", 1)]
        shares = allocate(totals, items)
        assert shares[0].freight == Decimal("90")
        assert shares[1].freight == Decimal("40")
        assert sum((s.freight for s in shares), Decimal(0)) == Decimal("130")

    def test_no_goods_value_allocates_nothing(self):
        totals = InvoiceTotals(gross_goods=Decimal("0"), freight=Decimal("100"))
        (share,) = allocate(totals, [_item("0")])
        assert share.freight == 0

    def test_empty_items(self):
        assert allocate(InvoiceTotals(), []) == []
