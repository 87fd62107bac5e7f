"""Extract invoice totals, line items and identity from a parsed NF-e tree.

Every tax value that may live under more than one sub-group is described
by an ordered tuple of path candidates; ``first_present`` walks them and the
first non-empty leaf wins. Missing or unparseable numbers become zero.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from custeio.config import CHARGE_FIELDS
from custeio.models.invoice import DocumentIdentity, InvoiceTotals, LineItem, ResolvedDocument
from custeio.services.exceptions import StructureError
from custeio.utils.numbers import parse_number

logger = logging.getLogger(__name__)

TreePath = tuple[str, ...]

INVOICE_ROOT_PATHS: tuple[TreePath, ...] = (
    ("nfeProc", "NFe", "infNFe"),
    ("NFe", "infNFe"),
)

# Used only when infNFe carries no Id attribute
PROTOCOL_KEY_PATH: TreePath = ("nfeProc", "protNFe", "infProt", "chNFe")

# Per-item tax fields, relative to <det><imposto>
ITEM_TAX_RULES: dict[str, tuple[TreePath, ...]] = {
    "ipi": (("IPI", "IPITrib", "vIPI"),),
    "ipi_rate": (("IPI", "IPITrib", "pIPI"),),
    "icms_st": (("ICMS", "ICMSST", "vICMSST"),),
    "pis": (("PIS", "PISAliq", "vPIS"), ("PIS", "PISST", "vPIS")),
    "pis_rate": (("PIS", "PISAliq", "pPIS"), ("PIS", "PISST", "pPIS")),
    "cofins": (("COFINS", "COFINSAliq", "vCOFINS"), ("COFINS", "COFINSST", "vCOFINS")),
    "cofins_rate": (("COFINS", "COFINSAliq", "pCOFINS"), ("COFINS", "COFINSST", "pCOFINS")),
}

# Fields read from whichever ICMS variant (ICMS00, ICMS10, ICMSSN102, ...) is present
ICMS_VARIANT_RULES: dict[str, tuple[TreePath, ...]] = {
    "icms": (("vICMS",),),
    "icms_rate": (("pICMS",),),
    "icms_st": (("vICMSST",),),
    "cst": (("CST",), ("CSOSN",)),
}

TOTALS_RULES: dict[str, TreePath] = {
    "gross_goods": ("vProd",),
    "freight": ("vFrete",),
    "insurance": ("vSeg",),
    "discount": ("vDesc",),
    "other": ("vOutro",),
    "icms_st": ("vST",),
    "ipi": ("vIPI",),
    "pis": ("vPIS",),
    "cofins": ("vCOFINS",),
    "icms": ("vICMS",),
    "net_value": ("vNF",),
}


def dig(node: Any, path: TreePath) -> Any:
    """Follow *path* through nested mappings. Returns None when any step is missing."""
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _leaf(value: Any) -> Any:
    # Leaves that carried XML attributes come through as {"@attr": ..., "#text": ...}
    if isinstance(value, Mapping):
        value = value.get("#text")
    if value is None or isinstance(value, list | tuple):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def first_present(node: Any, paths: Sequence[TreePath], default: Any = None) -> Any:
    """Return the leaf at the first path candidate that holds a value, else *default*."""
    for path in paths:
        value = _leaf(dig(node, path))
        if value is not None:
            return value
    return default


def as_list(value: Any) -> list[Any]:
    """Collapse the "absent / single object / list" shapes of a repeated element."""
    if value is None:
        return []
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def _text(node: Any, path: TreePath, default: str = "") -> str:
    value = first_present(node, (path,))
    return default if value is None else str(value).strip()


def find_invoice_root(tree: Any, source: str | None = None) -> Mapping[str, Any]:
    """Locate <infNFe> under the processed (nfeProc) or bare (NFe) wrapper."""
    for path in INVOICE_ROOT_PATHS:
        node = dig(tree, path)
        if isinstance(node, Mapping):
            return node
    raise StructureError("Estrutura do XML da NF-e inválida: <infNFe> não encontrado.", source)


def _variant(icms_group: Any) -> Mapping[str, Any]:
    if not isinstance(icms_group, Mapping):
        return {}
    for value in icms_group.values():
        if isinstance(value, Mapping):
            return value
    return {}


def resolve_totals(inf_nfe: Mapping[str, Any], source: str | None = None) -> InvoiceTotals:
    icms_tot = dig(inf_nfe, ("total", "ICMSTot"))
    if not isinstance(icms_tot, Mapping):
        raise StructureError("Estrutura do XML da NF-e inválida: <ICMSTot> não encontrado.", source)
    values = {
        name: parse_number(first_present(icms_tot, (path,))) for name, path in TOTALS_RULES.items()
    }
    return InvoiceTotals(**values)


def resolve_item(det: Any, index: int) -> LineItem:
    """Build a LineItem from one <det> node. Never raises on missing fields."""
    prod = det.get("prod") if isinstance(det, Mapping) else None
    prod = prod if isinstance(prod, Mapping) else {}
    imposto = det.get("imposto") if isinstance(det, Mapping) else None
    imposto = imposto if isinstance(imposto, Mapping) else {}

    taxes: dict[str, Decimal] = {
        name: parse_number(first_present(imposto, paths)) for name, paths in ITEM_TAX_RULES.items()
    }

    variant = _variant(imposto.get("ICMS"))
    cst = first_present(variant, ICMS_VARIANT_RULES["cst"], default="")

    charges = {
        name: parse_number(first_present(prod, ((tag,),))) for name, tag in CHARGE_FIELDS
    }

    return LineItem(
        index=index,
        code=_text(prod, ("cProd",)),
        description=_text(prod, ("xProd",)),
        quantity=parse_number(first_present(prod, (("qCom",),))),
        unit_cost=parse_number(first_present(prod, (("vUnCom",),))),
        gross_total=parse_number(first_present(prod, (("vProd",),))),
        icms=parse_number(first_present(variant, ICMS_VARIANT_RULES["icms"])),
        icms_rate=parse_number(first_present(variant, ICMS_VARIANT_RULES["icms_rate"])),
        variant_icms_st=parse_number(first_present(variant, ICMS_VARIANT_RULES["icms_st"])),
        cst=str(cst).strip(),
        ncm=_text(prod, ("NCM",)),
        cfop=_text(prod, ("CFOP",)),
        **taxes,
        **charges,
    )


def _access_key(tree: Any, inf_nfe: Mapping[str, Any], source: str | None) -> str:
    raw = first_present(inf_nfe, (("@Id",),)) or first_present(tree, (PROTOCOL_KEY_PATH,))
    if raw is None:
        raise StructureError("NF-e sem chave de acesso (atributo Id de <infNFe>).", source)
    key = str(raw).strip()
    # Id="NFe<44 digits>"; the protocol block carries the bare 44 digits
    if key.startswith("NFe"):
        key = key[3:]
    return key


def resolve_identity(
    tree: Any, inf_nfe: Mapping[str, Any], source: str | None = None
) -> DocumentIdentity:
    return DocumentIdentity(
        access_key=_access_key(tree, inf_nfe, source),
        number=_text(inf_nfe, ("ide", "nNF"), "N/A"),
        emitter_name=_text(inf_nfe, ("emit", "xNome"), "N/A"),
        emitter_cnpj=_text(inf_nfe, ("emit", "CNPJ"), "N/A"),
        source=source,
    )


def resolve_document(tree: Any, source: str | None = None) -> ResolvedDocument:
    """Resolve a parsed NF-e tree into identity, totals and line items.

    Raises StructureError when the invoice root, <det> or <ICMSTot> is missing.
    """
    inf_nfe = find_invoice_root(tree, source)
    if inf_nfe.get("det") is None:
        raise StructureError("Estrutura do XML da NF-e inválida: <det> não encontrado.", source)

    identity = resolve_identity(tree, inf_nfe, source)
    totals = resolve_totals(inf_nfe, source)
    items = tuple(resolve_item(det, i) for i, det in enumerate(as_list(inf_nfe["det"])))

    logger.debug(
        "Resolved NF-e %s (%s): %d item(s)", identity.number, identity.access_key, len(items)
    )
    return ResolvedDocument(identity=identity, totals=totals, items=items)


def resolve_document_result(
    tree: Any, source: str | None = None
) -> ResolvedDocument | StructureError:
    """Like resolve_document, but returns the StructureError instead of raising it."""
    try:
        return resolve_document(tree, source)
    except StructureError as exc:
        return exc
