"""Volatile field stripping for fetched NSX documents.

Some fields change on every poll (refresh timestamps, uptime, CPU and
memory counters) without any configuration change behind them. They are
removed before serialization so the git diff stays empty between runs
when nothing meaningful changed.

Field path syntax:
    "lastRefreshedAt"                          - element name, any depth
    "edgeSummary/appliancesSummary/statusFromVseUpdatedOn"
                                               - path from the document root;
                                                 the first step may also name
                                                 the root element itself
"""
import logging
from typing import Iterable

from lxml import etree

logger = logging.getLogger(__name__)


def find_field(document: etree._Element, path: str) -> list[etree._Element]:
    """Return every element in document addressed by path."""
    steps = [s for s in path.strip("/").split("/") if s]
    if not steps:
        return []

    if len(steps) == 1:
        return list(document.iter(steps[0]))

    found = document.findall("/".join(steps))
    if document.tag == steps[0]:
        seen = {id(el) for el in found}
        for el in document.findall("/".join(steps[1:])):
            if id(el) not in seen:
                found.append(el)
    return found


def _blank(element: etree._Element) -> None:
    for child in list(element):
        element.remove(child)
    element.text = None


def strip_volatile(document: etree._Element, paths: Iterable[str]) -> etree._Element:
    """Remove every volatile field from document in place.

    A path that matches nothing is a no-op. When a path addresses the
    document root it cannot be detached, so its content is blanked.

    Returns:
        The same document, for chaining
    """
    for path in paths:
        matches = find_field(document, path)
        for element in matches:
            parent = element.getparent()
            if parent is None:
                _blank(element)
            else:
                parent.remove(element)
        if matches:
            logger.debug(f"Stripped {len(matches)} x {path} from <{document.tag}>")
    return document


def normalize_documents(
    documents: Iterable[etree._Element],
    paths: Iterable[str],
) -> list[etree._Element]:
    """Apply strip_volatile to each document of a snapshot."""
    paths = tuple(paths)
    return [strip_volatile(doc, paths) for doc in documents]
