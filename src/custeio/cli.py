from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from lxml import etree

from custeio.config import get_config_dir, load_settings, write_settings_template
from custeio.models.comparison import AggregatedProduct
from custeio.models.invoice import ResolvedDocument
from custeio.services.aggregator import DocumentSet, aggregate, grand_totals, load_files
from custeio.services.exceptions import StructureError
from custeio.services.field_resolver import resolve_document
from custeio.services.landed_cost import allocate_and_cost, summarize
from custeio.services.pricing import apply_global_margin, pricing_totals, rows_from_document
from custeio.services.simulator import simulate, summarize_simulation
from custeio.services.xml_tree import parse_file
from custeio.utils.formatters import format_brl, format_number, format_percent


def _load_single(path: str) -> ResolvedDocument | None:
    """Parse and resolve one XML file, printing the error and returning None on failure."""
    try:
        return resolve_document(parse_file(path), source=Path(path).name)
    except StructureError as e:
        print(f"Erro: {e}")
    except etree.XMLSyntaxError as e:
        print(f"Erro: XML inválido em {path}: {e}")
    except OSError as e:
        print(f"Erro: não foi possível ler {path}: {e}")
    return None


def _print_header(doc: ResolvedDocument) -> None:
    ident = doc.identity
    print(f"NF-e {ident.number} - {ident.emitter_name} (CNPJ {ident.emitter_cnpj})")
    print(f"Chave: {ident.access_key}")
    print(f"Valor total bruto: {format_brl(doc.totals.total_gross_value)}")
    print()


def _cmd_init(args: argparse.Namespace) -> int:
    path = write_settings_template()
    if path is None:
        print(f"  já existe: {get_config_dir() / 'settings.yaml'}")
    else:
        print(f"  criado: {path}")
    return 0


def _cmd_custo(args: argparse.Namespace) -> int:
    settings = load_settings()
    doc = _load_single(args.arquivo)
    if doc is None:
        return 1
    regime = args.regime or settings.tax_regime
    factor = args.fator or settings.conversion_factor
    try:
        lines = allocate_and_cost(doc.totals, doc.items, regime, factor)
    except ValueError as e:
        print(f"Erro: {e}")
        return 1

    _print_header(doc)
    print(f"Regime: {regime}")
    for line in lines:
        print(
            f"  {line.index + 1:>3}. {line.description[:40]:<40} "
            f"qtd {format_number(line.quantity, 4):>12}  "
            f"unit {format_brl(line.final_unit_cost):>16}  "
            f"total {format_brl(line.final_total_cost):>16}  "
            f"conv {format_brl(line.converted_unit_cost):>14}"
        )
    summary = summarize(lines)
    print()
    print(f"Frete rateado:    {format_brl(summary.freight)}")
    print(f"Seguro rateado:   {format_brl(summary.insurance)}")
    print(f"Desconto rateado: {format_brl(summary.discount)}")
    print(f"Outras despesas:  {format_brl(summary.other)}")
    print(f"Custo final:      {format_brl(summary.final_total_cost)}")
    return 0


def _parse_quantities(pairs: list[str]) -> dict[int, str]:
    """Parse ITEM=QTD pairs (1-based item numbers) into index -> quantity."""
    quantities: dict[int, str] = {}
    for pair in pairs:
        item, sep, qty = pair.partition("=")
        if not sep or not item.strip().isdigit() or int(item) < 1:
            raise ValueError(f"Quantidade inválida: '{pair}'. Use ITEM=QTD.")
        quantities[int(item) - 1] = qty.strip()
    return quantities


def _cmd_simular(args: argparse.Namespace) -> int:
    settings = load_settings()
    doc = _load_single(args.arquivo)
    if doc is None:
        return 1
    try:
        quantities = _parse_quantities(args.qtd)
        lines = allocate_and_cost(doc.totals, doc.items, args.regime or settings.tax_regime)
    except ValueError as e:
        print(f"Erro: {e}")
        return 1

    simulated = simulate(lines, quantities)

    _print_header(doc)
    for item in simulated:
        print(
            f"  {item.index + 1:>3}. {item.line.description[:40]:<40} "
            f"{format_number(item.line.quantity, 4):>12} -> {item.simulated_quantity:>10}  "
            f"{format_brl(item.original_total_cost):>16} -> "
            f"{format_brl(item.simulated_total_cost):>16}"
        )
    summary = summarize_simulation(simulated)
    print()
    print(f"Total original:  {format_brl(summary.original_total)}")
    print(f"Total simulado:  {format_brl(summary.simulated_total)}")
    print(f"Economia:        {format_brl(summary.savings)}")
    return 0


def _print_products(products: list[AggregatedProduct]) -> None:
    for p in products:
        print(
            f"  [{p.code}] {p.description}: {p.document_count} NF-e(s), "
            f"qtd {format_number(p.total_quantity, 4)}, {format_brl(p.total_value)}"
        )
        for o in p.occurrences:
            print(
                f"      NF {o.number} {o.emitter_name}: "
                f"{format_number(o.quantity, 4)} x {format_brl(o.unit_cost)}"
            )
    quantity, value = grand_totals(products)
    print()
    print(f"Total: qtd {format_number(quantity, 4)}, {format_brl(value)}")


def _load_set(paths: list[str]) -> DocumentSet:
    settings = load_settings()
    doc_set = DocumentSet()
    report = load_files(doc_set, paths, max_workers=settings.max_workers)
    print(
        f"{len(report.loaded)} NF-e(s) carregada(s), "
        f"{report.skipped} ignorada(s) (já carregadas), {report.failed} com erro."
    )
    for source, message in report.failures:
        print(f"  ERRO {source}: {message}")
    print()
    return doc_set


def _cmd_comparar(args: argparse.Namespace) -> int:
    doc_set = _load_set(args.arquivos)
    if len(doc_set) < 2:
        print("É necessário carregar pelo menos 2 NF-es para comparar.")
        return 1
    products = aggregate(doc_set, "duplicates")
    print(f"{len(products)} produto(s) encontrado(s) em mais de uma NF-e.")
    _print_products(products)
    return 0


def _cmd_buscar(args: argparse.Namespace) -> int:
    if not args.termos.strip():
        print("Termo de busca vazio.")
        return 1
    doc_set = _load_set(args.arquivos)
    if len(doc_set) == 0:
        print("Nenhuma NF-e carregada.")
        return 1
    products = aggregate(doc_set, "search", args.termos)
    print(f"{len(products)} resultado(s) encontrado(s).")
    _print_products(products)
    return 0


def _cmd_precificar(args: argparse.Namespace) -> int:
    doc = _load_single(args.arquivo)
    if doc is None:
        return 1
    rows = rows_from_document(doc)
    try:
        rows = apply_global_margin(rows, args.margem)
    except ValueError as e:
        print(f"Erro: {e}")
        return 1

    _print_header(doc)
    for row in rows:
        print(
            f"  {row.description[:40]:<40} qtd {row.quantity:>8}  "
            f"custo {row.cost:>10}  margem {row.margin or '-':>7}  preço {row.price or '-':>10}"
        )
    totals = pricing_totals(rows)
    print()
    print(f"Custo total:  {format_brl(totals.total_cost)}")
    print(f"Venda total:  {format_brl(totals.total_value)}")
    print(f"Margem média: {format_percent(totals.average_margin)}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="custeio-nfe", description="Custo de entrada e conciliação de produtos de NF-e"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log detalhado")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Cria settings.yaml no diretório de configuração")

    p = sub.add_parser("custo", help="Custo final por item com rateio de despesas")
    p.add_argument("arquivo")
    p.add_argument("--regime", choices=["lucro_real", "simples_nacional"])
    p.add_argument("--fator", help="Fator de conversão de unidade")

    p = sub.add_parser("simular", help="Simula quantidades de compra")
    p.add_argument("arquivo")
    p.add_argument("--qtd", nargs="*", default=[], metavar="ITEM=QTD")
    p.add_argument("--regime", choices=["lucro_real", "simples_nacional"])

    p = sub.add_parser("comparar", help="Produtos presentes em mais de uma NF-e")
    p.add_argument("arquivos", nargs="+")

    p = sub.add_parser("buscar", help="Busca produtos por código ou descrição")
    p.add_argument("termos", help="Termos separados por vírgula")
    p.add_argument("arquivos", nargs="+")

    p = sub.add_parser("precificar", help="Preço de venda a partir de uma margem")
    p.add_argument("arquivo")
    p.add_argument("--margem", required=True)

    return parser


_COMMANDS = {
    "init": _cmd_init,
    "custo": _cmd_custo,
    "simular": _cmd_simular,
    "comparar": _cmd_comparar,
    "buscar": _cmd_buscar,
    "precificar": _cmd_precificar,
}


def main(argv: list[str] | None = None) -> None:
    """Entry point for the custeio-nfe CLI."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    code = _COMMANDS[args.command](args)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
