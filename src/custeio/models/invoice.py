from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from custeio.utils.numbers import ZERO


@dataclass(frozen=True)
class InvoiceTotals:
    """Invoice-level sums from <total><ICMSTot>."""

    gross_goods: Decimal = ZERO  # vProd
    freight: Decimal = ZERO  # vFrete
    insurance: Decimal = ZERO  # vSeg
    discount: Decimal = ZERO  # vDesc
    other: Decimal = ZERO  # vOutro
    icms_st: Decimal = ZERO  # vST
    ipi: Decimal = ZERO  # vIPI
    pis: Decimal = ZERO  # vPIS
    cofins: Decimal = ZERO  # vCOFINS
    icms: Decimal = ZERO  # vICMS
    net_value: Decimal = ZERO  # vNF

    @property
    def total_gross_value(self) -> Decimal:
        """Goods plus every charge and tax added on top of them (discount excluded)."""
        return (
            self.gross_goods
            + self.freight
            + self.insurance
            + self.other
            + self.icms_st
            + self.ipi
        )

    def charge(self, name: str) -> Decimal:
        """Return the shared charge total named *name* (freight, insurance, ...)."""
        return getattr(self, name)


@dataclass(frozen=True)
class LineItem:
    """One <det> entry. Quantity and unit cost are taken as authoritative."""

    index: int
    code: str
    description: str
    quantity: Decimal
    unit_cost: Decimal
    gross_total: Decimal
    ipi: Decimal = ZERO
    icms: Decimal = ZERO
    icms_st: Decimal = ZERO  # ICMS/ICMSST/vICMSST only
    pis: Decimal = ZERO
    cofins: Decimal = ZERO
    # vICMSST of the ICMS variant present (ICMS10, ICMS70, ...); not part of landed cost
    variant_icms_st: Decimal = ZERO
    ipi_rate: Decimal = ZERO
    icms_rate: Decimal = ZERO
    pis_rate: Decimal = ZERO
    cofins_rate: Decimal = ZERO
    ncm: str = ""
    cst: str = ""  # CST or CSOSN
    cfop: str = ""
    # Item-explicit charges; zero means "apportion from the invoice total"
    freight: Decimal = ZERO
    insurance: Decimal = ZERO
    discount: Decimal = ZERO
    other: Decimal = ZERO

    def explicit_charge(self, name: str) -> Decimal:
        return getattr(self, name)


@dataclass(frozen=True)
class DocumentIdentity:
    access_key: str
    number: str = "N/A"
    emitter_name: str = "N/A"
    emitter_cnpj: str = "N/A"
    source: str | None = None


@dataclass(frozen=True)
class ResolvedDocument:
    """Everything extracted from one invoice tree."""

    identity: DocumentIdentity
    totals: InvoiceTotals
    items: tuple[LineItem, ...] = field(default_factory=tuple)

    @property
    def access_key(self) -> str:
        return self.identity.access_key
