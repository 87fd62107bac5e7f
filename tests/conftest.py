from __future__ import annotations

from decimal import Decimal

import pytest

from custeio.models.invoice import DocumentIdentity, InvoiceTotals, LineItem, ResolvedDocument

ACCESS_KEY = "35240112345678000199550010000012341000012345"


def make_tree(
    dets,
    *,
    access_key: str = ACCESS_KEY,
    number: str = "1234",
    emitter: str = "DISTRIBUIDORA ALFA LTDA",
    totals: dict | None = None,
    processed: bool = True,
) -> dict:
    """Build a parsed NF-e tree the way xml_tree.parse_bytes shapes it."""
    inf_nfe = {
        "@Id": f"NFe{access_key}",
        "@versao": "4.00",
        "ide": {"nNF": number},
        "emit": {"CNPJ": "12345678000199", "xNome": emitter},
        "det": dets,
        "total": {"ICMSTot": totals if totals is not None else {"vProd": "0.00"}},
    }
    nfe = {"infNFe": inf_nfe}
    if processed:
        return {"nfeProc": {"NFe": nfe, "protNFe": {"infProt": {"chNFe": access_key}}}}
    return {"NFe": nfe}


def make_det(
    code: str,
    description: str,
    quantity: str,
    unit_cost: str,
    gross: str | None = None,
    *,
    imposto: dict | None = None,
    **prod_extra: str,
) -> dict:
    prod = {
        "cProd": code,
        "xProd": description,
        "NCM": "84713012",
        "CFOP": "5102",
        "qCom": quantity,
        "vUnCom": unit_cost,
        "vProd": gross if gross is not None else str(Decimal(quantity) * Decimal(unit_cost)),
        **prod_extra,
    }
    return {"@nItem": "1", "prod": prod, "imposto": imposto or {}}


def make_document(
    access_key: str,
    items: list[tuple[str, str, str, str]],
    *,
    number: str = "1",
    emitter: str = "EMITENTE",
) -> ResolvedDocument:
    """ResolvedDocument from (code, description, quantity, unit_cost) tuples."""
    line_items = tuple(
        LineItem(
            index=i,
            code=code,
            description=desc,
            quantity=Decimal(qty),
            unit_cost=Decimal(cost),
            gross_total=Decimal(qty) * Decimal(cost),
        )
        for i, (code, desc, qty, cost) in enumerate(items)
    )
    return ResolvedDocument(
        identity=DocumentIdentity(access_key=access_key, number=number, emitter_name=emitter),
        totals=InvoiceTotals(gross_goods=sum((li.gross_total for li in line_items), Decimal(0))),
        items=line_items,
    )


@pytest.fixture
def full_imposto() -> dict:
    return {
        "ICMS": {
            "ICMS10": {
                "orig": "0",
                "CST": "10",
                "vBC": "600.00",
                "pICMS": "18.00",
                "vICMS": "108.00",
                "vICMSST": "12.50",
            }
        },
        "IPI": {"cEnq": "999", "IPITrib": {"CST": "50", "pIPI": "5.00", "vIPI": "30.00"}},
        "PIS": {"PISAliq": {"CST": "01", "pPIS": "1.65", "vPIS": "10.00"}},
        "COFINS": {"COFINSAliq": {"CST": "01", "pCOFINS": "7.60", "vCOFINS": "5.00"}},
    }


@pytest.fixture
def scenario_tree(full_imposto) -> dict:
    """Invoice with vProd=1000 and vFrete=100 over items A (600) and B (400)."""
    return make_tree(
        [
            make_det("A", "Produto A", "2", "300.00", "600.00", imposto={
                "PIS": {"PISAliq": {"vPIS": "10.00"}},
                "COFINS": {"COFINSAliq": {"vCOFINS": "5.00"}},
            }),
            make_det("B", "Produto B", "4", "100.00", "400.00"),
        ],
        totals={
            "vProd": "1000.00",
            "vFrete": "100.00",
            "vSeg": "0.00",
            "vDesc": "0.00",
            "vOutro": "0.00",
            "vST": "0.00",
            "vIPI": "0.00",
            "vPIS": "10.00",
            "vCOFINS": "5.00",
            "vICMS": "0.00",
            "vNF": "1100.00",
        },
    )


NFE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<nfeProc xmlns="http://www.portalfiscal.inf.br/nfe" versao="4.00">
  <NFe>
    <infNFe Id="NFe{key}" versao="4.00">
      <ide><nNF>{number}</nNF></ide>
      <emit><CNPJ>12345678000199</CNPJ><xNome>{emitter}</xNome></emit>
      {dets}
      <total>
        <ICMSTot>
          <vProd>{vprod}</vProd><vFrete>{vfrete}</vFrete><vSeg>0.00</vSeg>
          <vDesc>0.00</vDesc><vOutro>0.00</vOutro><vST>0.00</vST><vIPI>0.00</vIPI>
          <vPIS>0.00</vPIS><vCOFINS>0.00</vCOFINS><vICMS>0.00</vICMS><vNF>{vprod}</vNF>
        </ICMSTot>
      </total>
    </infNFe>
  </NFe>
  <protNFe versao="4.00"><infProt><chNFe>{key}</chNFe></infProt></protNFe>
</nfeProc>
"""

DET_XML = """<det nItem="{n}">
        <prod>
          <cProd>{code}</cProd><xProd>{desc}</xProd><NCM>84713012</NCM><CFOP>5102</CFOP>
          <qCom>{qty}</qCom><vUnCom>{cost}</vUnCom><vProd>{gross}</vProd>
        </prod>
        <imposto>
          <ICMS><ICMSSN102><orig>0</orig><CSOSN>102</CSOSN></ICMSSN102></ICMS>
          <PIS><PISOutr><CST>99</CST><vPIS>0.00</vPIS></PISOutr></PIS>
        </imposto>
      </det>"""


def nfe_xml(
    key: str,
    items: list[tuple[str, str, str, str]],
    *,
    number: str = "1",
    emitter: str = "EMITENTE",
    vfrete: str = "0.00",
) -> bytes:
    """Serialized NF-e with one <det> per (code, description, quantity, unit_cost)."""
    dets = []
    total = Decimal(0)
    for n, (code, desc, qty, cost) in enumerate(items, start=1):
        gross = Decimal(qty) * Decimal(cost)
        total += gross
        dets.append(DET_XML.format(n=n, code=code, desc=desc, qty=qty, cost=cost, gross=gross))
    return NFE_XML.format(
        key=key,
        number=number,
        emitter=emitter,
        dets="\n      ".join(dets),
        vprod=total,
        vfrete=vfrete,
    ).encode("utf-8")


@pytest.fixture
def write_nfe(tmp_path):
    """Write an NF-e XML file under tmp_path and return its path."""

    def _write(name: str, key: str, items, **kwargs):
        path = tmp_path / name
        path.write_bytes(nfe_xml(key, items, **kwargs))
        return path

    return _write
