"""Fetch, normalize and serialize NSX configuration snapshots.

This package provides:
- CATEGORIES: ordered registry of exported resource categories
- strip_volatile/normalize_documents: volatile field removal
- render/write_snapshot: stable pretty-printed XML output
"""

from .resources import (
    CATEGORIES,
    MANAGER_PATHS,
    ResourceCategory,
    RunCache,
    Snapshot,
    get_category,
)
from .normalize import find_field, strip_volatile, normalize_documents
from .serializer import render, render_document, write_snapshot

__all__ = [
    "CATEGORIES",
    "MANAGER_PATHS",
    "ResourceCategory",
    "RunCache",
    "Snapshot",
    "get_category",
    "find_field",
    "strip_volatile",
    "normalize_documents",
    "render",
    "render_document",
    "write_snapshot",
]
