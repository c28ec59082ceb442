"""Footer numbering and heading overlays for existing PDF pages."""

from __future__ import annotations

from io import BytesIO
import logging
from typing import Sequence

from pypdf import PageObject, PdfReader, PdfWriter
from reportlab.lib.colors import Color
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .models import LoadedDocument, StampOutcome
from .resolver import open_reader

LOGGER = logging.getLogger("qirmerge.stamper")

# Sizes are scaled from an A4 landscape page so text keeps the same
# physical size on portrait, landscape and odd-sized pages.
REFERENCE_WIDTH = 841.0
FOOTER_FONT_SIZE = 8.0
FOOTER_BAND_RATIO = 2.6
HEADING_FONT_SIZE = 11.0
HEADING_BAND_RATIO = 2.8

FOOTER_FONT = "Helvetica"
HEADING_FONT = "Helvetica-Bold"

FOOTER_FILL = Color(0.96, 0.96, 0.96)
FOOTER_OPACITY = 0.9
FOOTER_TEXT = Color(0.20, 0.20, 0.20)
HEADING_FILL = Color(1.0, 1.0, 1.0)
HEADING_OPACITY = 0.75
HEADING_TEXT = Color(0.10, 0.10, 0.10)


def scaled_font_size(page_width: float, base_size: float) -> float:
    """Return *base_size* scaled to *page_width*, rounded to one decimal."""

    return round(page_width / REFERENCE_WIDTH * base_size, 1)


def _page_geometry(page: PageObject) -> tuple[float, float, float, float]:
    if page.rotation % 360:
        page.transfer_rotation_to_content()
    box = page.mediabox
    return float(box.left), float(box.bottom), float(box.width), float(box.height)


def _draw_footer(pdf: canvas.Canvas, width: float, page_number: int) -> None:
    font_size = scaled_font_size(width, FOOTER_FONT_SIZE)
    band_height = font_size * FOOTER_BAND_RATIO

    pdf.saveState()
    pdf.setFillColor(FOOTER_FILL)
    pdf.setFillAlpha(FOOTER_OPACITY)
    pdf.rect(0, 0, width, band_height, stroke=0, fill=1)
    pdf.restoreState()

    text = str(page_number)
    pdf.setFont(FOOTER_FONT, font_size)
    pdf.setFillColor(FOOTER_TEXT)
    text_width = stringWidth(text, FOOTER_FONT, font_size)
    pdf.drawString(width / 2 - text_width / 2, band_height * 0.25, text)


def _draw_heading(pdf: canvas.Canvas, width: float, height: float, heading: str) -> None:
    font_size = scaled_font_size(width, HEADING_FONT_SIZE)
    band_height = font_size * HEADING_BAND_RATIO
    text = heading.encode("cp1252", "replace").decode("cp1252")

    pdf.saveState()
    pdf.setFillColor(HEADING_FILL)
    pdf.setFillAlpha(HEADING_OPACITY)
    pdf.rect(0, height - band_height, width, band_height, stroke=0, fill=1)
    pdf.restoreState()

    pdf.setFont(HEADING_FONT, font_size)
    pdf.setFillColor(HEADING_TEXT)
    text_width = stringWidth(text, HEADING_FONT, font_size)
    pdf.drawString((width - text_width) / 2, height - font_size * 2.0, text)


def _build_overlay(
    sizes: Sequence[tuple[float, float]],
    page_numbers: Sequence[int],
    heading: str | None,
) -> PdfReader:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer)
    for index, ((width, height), page_number) in enumerate(zip(sizes, page_numbers)):
        pdf.setPageSize((width, height))
        _draw_footer(pdf, width, page_number)
        if index == 0 and heading:
            _draw_heading(pdf, width, height, heading)
        pdf.showPage()
    pdf.save()
    buffer.seek(0)
    return PdfReader(buffer)


def _stamp(doc: LoadedDocument, page_numbers: Sequence[int], heading: str | None) -> LoadedDocument:
    reader = open_reader(doc.raw_bytes)
    pages = list(reader.pages)
    if len(pages) != len(page_numbers):
        raise ValueError(
            f"Expected {len(pages)} page number(s), got {len(page_numbers)}"
        )

    geometry = [_page_geometry(page) for page in pages]
    overlay = _build_overlay(
        [(width, height) for _, _, width, height in geometry],
        page_numbers,
        heading,
    )

    writer = PdfWriter()
    for page, overlay_page, (left, bottom, _, _) in zip(pages, overlay.pages, geometry):
        if left or bottom:
            page.merge_translated_page(overlay_page, left, bottom)
        else:
            page.merge_page(overlay_page)
        writer.add_page(page)

    buffer = BytesIO()
    writer.write(buffer)
    return LoadedDocument(raw_bytes=buffer.getvalue(), page_count=len(pages), label=doc.label)


def stamp_pages(
    doc: LoadedDocument,
    page_numbers: Sequence[int],
    heading: str | None = None,
) -> StampOutcome:
    """Overlay one footer number per page of *doc*, plus an optional heading.

    The heading is drawn on the first page only; blank headings are ignored.
    Failures never propagate: the outcome then carries the original
    document and the error message.
    """

    cleaned_heading = (heading or "").strip() or None
    try:
        stamped = _stamp(doc, list(page_numbers), cleaned_heading)
    except Exception as exc:  # pypdf and reportlab errors vary
        LOGGER.warning("Stamping %s failed, keeping original pages: %s", doc.label or "document", exc)
        return StampOutcome.failure(doc, str(exc))
    return StampOutcome.success(doc, stamped)


def stamp(doc: LoadedDocument, start_page_number: int, heading: str | None = None) -> StampOutcome:
    """Number the pages of *doc* consecutively from *start_page_number*."""

    numbers = range(start_page_number, start_page_number + doc.page_count)
    return stamp_pages(doc, numbers, heading)


__all__ = ["stamp", "stamp_pages", "scaled_font_size", "REFERENCE_WIDTH"]
