"""Page copying for the final merged report."""

from __future__ import annotations

from io import BytesIO
import logging
import re
from typing import Sequence

from pypdf import PdfReader, PdfWriter

from .exceptions import CopyError
from .models import CertEntry, LoadedDocument, MergedDocument, PagePlan, ReportHeader
from .resolver import open_reader

LOGGER = logging.getLogger("qirmerge.assembler")

PRODUCER = "qirmerge"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9\-_.]")


def report_filename(header: ReportHeader) -> str:
    """Return ``QIR-<reportNo>-<date>.pdf`` with unsafe characters replaced."""

    return _UNSAFE_FILENAME_CHARS.sub("_", f"QIR-{header.report_no}-{header.date}.pdf")


def _reader_for(doc: LoadedDocument, role: str) -> PdfReader:
    try:
        return open_reader(doc.raw_bytes)
    except Exception as exc:
        raise CopyError(f"Unable to open {role} for copying: {exc}") from exc


def _copy_pages(writer: PdfWriter, reader: PdfReader, indices: Sequence[int], role: str) -> None:
    try:
        for index in indices:
            writer.add_page(reader.pages[index])
    except Exception as exc:
        LOGGER.error("Failed to copy pages from %s: %s", role, exc)
        raise CopyError(f"Failed to copy pages from {role}: {exc}") from exc


def assemble(
    base: LoadedDocument,
    index: LoadedDocument,
    certificates: Sequence[tuple[CertEntry, LoadedDocument]],
    *,
    plan: PagePlan,
    header: ReportHeader | None = None,
) -> MergedDocument:
    """Copy every page into one document in report order.

    Order: base page 1, the index page, base pages 2..N, then each
    certificate's pages in the order given. Page content and sizes are
    kept as they are.

    Raises:
        CopyError: If any page cannot be copied, the page count disagrees
            with *plan*, or the result cannot be serialized.
    """

    header = header or ReportHeader()
    writer = PdfWriter()

    base_reader = _reader_for(base, "base document")
    base_total = len(base_reader.pages)
    if base_total < 1:
        raise CopyError("Base document has no pages to copy")
    index_reader = _reader_for(index, "index page")

    _copy_pages(writer, base_reader, [0], "base document")
    _copy_pages(writer, index_reader, [0], "index page")
    _copy_pages(writer, base_reader, range(1, base_total), "base document")

    for entry, document in certificates:
        reader = _reader_for(document, f"certificate {entry.label!r}")
        if len(reader.pages) != entry.page_count:
            raise CopyError(
                f"Certificate {entry.label!r} has {len(reader.pages)} page(s), "
                f"planned {entry.page_count}"
            )
        _copy_pages(writer, reader, range(len(reader.pages)), f"certificate {entry.label!r}")
        LOGGER.debug("Copied %r to p.%d-%d", entry.label, entry.start_page, entry.end_page)

    page_count = len(writer.pages)
    if page_count != plan.total_pages:
        raise CopyError(f"Merged document has {page_count} page(s), planned {plan.total_pages}")

    try:
        writer.add_outline_item("Report Header & Part Information", 0)
        writer.add_outline_item("Index", plan.index_page_number - 1)
        for entry, _ in certificates:
            writer.add_outline_item(entry.label, entry.start_page - 1)
        writer.add_metadata(
            {
                "/Title": f"Quality Inspection Report {header.report_no}",
                "/Producer": PRODUCER,
            }
        )
        buffer = BytesIO()
        writer.write(buffer)
    except Exception as exc:
        LOGGER.error("Failed to serialize merged document: %s", exc)
        raise CopyError(f"Failed to serialize merged document: {exc}") from exc

    return MergedDocument(
        raw_bytes=buffer.getvalue(),
        page_count=page_count,
        plan=plan,
        filename=report_filename(header),
    )


__all__ = ["assemble", "report_filename"]
