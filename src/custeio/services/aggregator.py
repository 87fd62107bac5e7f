"""Cross-invoice product comparison and search.

Documents are resolved independently (optionally in parallel) and merged into
a caller-held ``DocumentSet`` at a single point, where already-loaded access
keys are skipped. Comparison and search rebuild their results from the
current set on every call.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal

from custeio.config import DEFAULT_MAX_WORKERS
from custeio.models.comparison import AggregatedProduct, LoadReport, Occurrence
from custeio.models.invoice import ResolvedDocument
from custeio.services.field_resolver import resolve_document
from custeio.services.xml_tree import parse_file
from custeio.utils.numbers import ZERO
from custeio.utils.text import collation_key, split_terms

logger = logging.getLogger(__name__)

AggregationMode = Literal["duplicates", "search"]

NO_DESCRIPTION = "Sem descrição"


class DocumentSet:
    """Loaded invoices keyed by access key, kept ordered by emitter name."""

    def __init__(self, documents: Iterable[ResolvedDocument] = ()) -> None:
        self._documents: list[ResolvedDocument] = []
        self._keys: set[str] = set()
        for doc in documents:
            self.add(doc)

    def add(self, document: ResolvedDocument) -> bool:
        """Add *document*; returns False (and changes nothing) if its key is already loaded."""
        if document.access_key in self._keys:
            return False
        self._keys.add(document.access_key)
        self._documents.append(document)
        self._documents.sort(key=lambda d: collation_key(d.identity.emitter_name))
        return True

    def remove(self, access_key: str) -> bool:
        if access_key not in self._keys:
            return False
        self._keys.discard(access_key)
        self._documents = [d for d in self._documents if d.access_key != access_key]
        return True

    def clear(self) -> None:
        self._documents.clear()
        self._keys.clear()

    def __contains__(self, access_key: object) -> bool:
        return access_key in self._keys

    def __iter__(self) -> Iterator[ResolvedDocument]:
        return iter(list(self._documents))

    def __len__(self) -> int:
        return len(self._documents)


def _merge(doc_set: DocumentSet, labelled: Sequence[tuple[str, Future]]) -> LoadReport:
    report = LoadReport()
    for label, future in labelled:
        exc = future.exception()
        if exc is not None:
            logger.warning("Failed to load %s: %s", label, exc)
            report.failures.append((label, str(exc)))
            continue
        document: ResolvedDocument = future.result()
        if doc_set.add(document):
            report.loaded.append(document.identity)
        else:
            logger.info("Skipping %s: NF-e %s already loaded", label, document.access_key)
            report.skipped += 1
    return report


def _load_all(
    doc_set: DocumentSet,
    inputs: Sequence[tuple[str, Callable[[], ResolvedDocument]]],
    max_workers: int,
) -> LoadReport:
    """Run every resolver task, wait for all of them, then merge in input order."""
    if not inputs:
        return LoadReport()
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        labelled = [(label, pool.submit(task)) for label, task in inputs]
        wait([f for _, f in labelled], return_when=ALL_COMPLETED)
    return _merge(doc_set, labelled)


def load_trees(
    doc_set: DocumentSet,
    trees: Sequence[tuple[str, Any]],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> LoadReport:
    """Resolve already-parsed trees given as (label, tree) pairs and merge them."""
    inputs = [
        (label, lambda tree=tree, label=label: resolve_document(tree, source=label))
        for label, tree in trees
    ]
    return _load_all(doc_set, inputs, max_workers)


def _resolve_file(path: Path) -> ResolvedDocument:
    return resolve_document(parse_file(path), source=path.name)


def load_files(
    doc_set: DocumentSet,
    paths: Iterable[str | Path],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> LoadReport:
    """Parse and resolve NF-e XML files concurrently and merge them into *doc_set*.

    A file that cannot be read, parsed or resolved is reported in
    ``failures`` without affecting the others.
    """
    resolved_paths = [Path(p) for p in paths]
    inputs = [(p.name, lambda p=p: _resolve_file(p)) for p in resolved_paths]
    return _load_all(doc_set, inputs, max_workers)


@dataclass(frozen=True)
class _Row:
    code: str
    description: str
    occurrence: Occurrence


def _rows(documents: Iterable[ResolvedDocument]) -> list[_Row]:
    rows = []
    for doc in documents:
        ident = doc.identity
        for item in doc.items:
            rows.append(
                _Row(
                    code=item.code,
                    description=item.description or NO_DESCRIPTION,
                    occurrence=Occurrence(
                        access_key=ident.access_key,
                        number=ident.number,
                        emitter_name=ident.emitter_name,
                        quantity=item.quantity,
                        unit_cost=item.unit_cost,
                    ),
                )
            )
    return rows


def _build(code: str, description: str, group: Sequence[_Row]) -> AggregatedProduct:
    occurrences = tuple(r.occurrence for r in group)
    return AggregatedProduct(
        code=code,
        description=description,
        total_quantity=sum((o.quantity for o in occurrences), ZERO),
        total_value=sum((o.value for o in occurrences), ZERO),
        document_count=len({o.access_key for o in occurrences}),
        occurrences=occurrences,
    )


def find_duplicates(documents: Iterable[ResolvedDocument]) -> list[AggregatedProduct]:
    """Products (by code) that appear in two or more distinct invoices.

    Ordered by number of invoices (descending), then description.
    """
    groups: dict[str, list[_Row]] = {}
    for row in _rows(documents):
        groups.setdefault(row.code, []).append(row)

    results = [
        _build(code, group[0].description, group)
        for code, group in groups.items()
        if len({r.occurrence.access_key for r in group}) >= 2
    ]
    results.sort(key=lambda p: (-p.document_count, collation_key(p.description)))
    return results


def _matches(row: _Row, terms: Sequence[str]) -> bool:
    code = row.code.lower()
    description = row.description.lower()
    return any(term in code or term in description for term in terms)


def search(documents: Iterable[ResolvedDocument], query: str) -> list[AggregatedProduct]:
    """Products whose code or description contains any comma-separated term.

    Matches are grouped by (code, description) and ordered by description.
    """
    terms = split_terms(query or "")
    if not terms:
        return []
    groups: dict[tuple[str, str], list[_Row]] = {}
    for row in _rows(documents):
        if _matches(row, terms):
            groups.setdefault((row.code, row.description), []).append(row)

    results = [_build(code, desc, group) for (code, desc), group in groups.items()]
    results.sort(key=lambda p: collation_key(p.description))
    return results


def aggregate(
    documents: Iterable[ResolvedDocument],
    mode: AggregationMode,
    query: str | None = None,
) -> list[AggregatedProduct]:
    if mode == "duplicates":
        return find_duplicates(documents)
    if mode == "search":
        return search(documents, query or "")
    raise ValueError(f"Modo de agregação desconhecido: '{mode}'")


def grand_totals(products: Iterable[AggregatedProduct]) -> tuple[Decimal, Decimal]:
    """(total quantity, total value) across an aggregation result."""
    quantity = ZERO
    value = ZERO
    for p in products:
        quantity += p.total_quantity
        value += p.total_value
    return quantity, value
