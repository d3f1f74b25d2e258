"""Render snapshots as stable, pretty-printed XML files.

Output rules:
- Records keep the order the API returned them in; nothing is sorted.
- No generation timestamp or other per-run metadata is embedded.
- Plain ASCII; anything outside it becomes an XML character reference.
- Composite snapshots are the documents one after another, separated by
  a blank line, without per-document XML declarations.
"""
import copy
import logging
from pathlib import Path
from typing import Iterable

from lxml import etree

logger = logging.getLogger(__name__)

ENCODING = "ascii"


def _reset_whitespace(document: etree._Element) -> None:
    """Drop formatting whitespace so indentation is always recomputed."""
    for element in document.iter():
        if len(element) and element.text is not None and not element.text.strip():
            element.text = None
        if element.tail is not None and not element.tail.strip():
            element.tail = None


def render_document(document: etree._Element) -> str:
    """Pretty-print a single document. The input is not modified."""
    doc = copy.deepcopy(document)
    _reset_whitespace(doc)
    data = etree.tostring(doc, encoding="us-ascii", pretty_print=True, xml_declaration=False)
    return data.decode(ENCODING)


def render(documents: Iterable[etree._Element]) -> str:
    """Render one or more documents into the text of a single export file."""
    return "\n".join(render_document(doc) for doc in documents)


def write_snapshot(path: Path, text: str) -> bool:
    """Write rendered text to path, overwriting any previous content.

    Returns:
        True if the file content changed
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    changed = True
    if path.exists():
        changed = path.read_bytes() != text.encode(ENCODING, errors="xmlcharrefreplace")

    with open(path, "w", encoding=ENCODING, errors="xmlcharrefreplace", newline="\n") as f:
        f.write(text)

    logger.debug(f"Wrote {path.name} ({'changed' if changed else 'unchanged'})")
    return changed
