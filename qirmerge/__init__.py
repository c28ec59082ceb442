"""Composition engine for paginated quality inspection reports.

The package plans final page numbers, renders the index page, stamps
footer numbers onto source pages and copies everything into one PDF.
"""

from __future__ import annotations

from .assembler import assemble, report_filename
from .config import Settings, configure_logging, load_settings
from .exceptions import (
    CopyError,
    DecodeError,
    FetchError,
    ParseError,
    PlanError,
    QirMergeError,
    RenderError,
    SourceError,
)
from .index import render_index
from .models import (
    CertEntry,
    CertificateOutcome,
    CertificateSource,
    DocumentReference,
    LoadedDocument,
    MergedDocument,
    MergeRequest,
    PagePlan,
    ReportHeader,
    SourceKind,
    StampOutcome,
)
from .pipeline import MergeContext, compose_report, load_sources, merge_report
from .plan import compute_plan
from .resolver import parse_document, resolve
from .stamper import stamp, stamp_pages

__version__ = "1.0.0"

__all__ = [
    "assemble",
    "report_filename",
    "compute_plan",
    "render_index",
    "stamp",
    "stamp_pages",
    "resolve",
    "parse_document",
    "merge_report",
    "load_sources",
    "compose_report",
    "MergeContext",
    "Settings",
    "load_settings",
    "configure_logging",
    "SourceKind",
    "DocumentReference",
    "LoadedDocument",
    "CertificateSource",
    "CertEntry",
    "CertificateOutcome",
    "PagePlan",
    "ReportHeader",
    "StampOutcome",
    "MergeRequest",
    "MergedDocument",
    "QirMergeError",
    "SourceError",
    "FetchError",
    "DecodeError",
    "ParseError",
    "PlanError",
    "RenderError",
    "CopyError",
]
