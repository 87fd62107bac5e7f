"""Turn NF-e XML into the plain nested tree the resolver reads.

Elements become dicts, repeated siblings become lists, leaves become their
stripped text and attributes are stored under ``@name`` keys. Namespaces are
dropped so callers address tags by their local name.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from lxml import etree

_PARSER = etree.XMLParser(remove_blank_text=True, remove_comments=True, resolve_entities=False)


def _local(tag: str) -> str:
    return etree.QName(tag).localname


def element_to_tree(el: etree._Element) -> Any:
    """Convert one element (recursively) to dict / str."""
    children = [c for c in el if isinstance(c.tag, str)]
    attrs = {f"@{_local(k)}": v for k, v in el.attrib.items()}
    if not children:
        text = (el.text or "").strip()
        if not attrs:
            return text
        if text:
            attrs["#text"] = text
        return attrs

    node: dict[str, Any] = dict(attrs)
    for child in children:
        key = _local(child.tag)
        value = element_to_tree(child)
        if key in node:
            existing = node[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[key] = [existing, value]
        else:
            node[key] = value
    return node


def parse_bytes(data: bytes) -> dict[str, Any]:
    """Parse XML bytes into ``{root_tag: tree}``.

    Raises lxml.etree.XMLSyntaxError for malformed input.
    """
    root = etree.fromstring(data, parser=_PARSER)
    return {_local(root.tag): element_to_tree(root)}


def parse_file(path: str | Path) -> dict[str, Any]:
    """Read and parse an XML file (encoding taken from the XML declaration)."""
    return parse_bytes(Path(path).read_bytes())
