"""Rendering of the table of contents page inserted after the report header."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from io import BytesIO
import logging

from reportlab.lib.colors import Color
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .exceptions import RenderError
from .models import LoadedDocument, PagePlan, ReportHeader
from .resolver import parse_document

LOGGER = logging.getLogger("qirmerge.index")

PAGE_WIDTH = 841.89
PAGE_HEIGHT = 595.28
PLACEHOLDER = "—"

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

BLACK = Color(0.10, 0.10, 0.10)
DARK_GREY = Color(0.30, 0.30, 0.30)
MID_GREY = Color(0.55, 0.55, 0.55)
LIGHT_GREY = Color(0.82, 0.82, 0.82)
OFF_WHITE = Color(0.95, 0.95, 0.95)
HEADER_FILL = Color(0.88, 0.88, 0.88)
WHITE = Color(1.0, 1.0, 1.0)

MARGIN = 40
CELL_PADDING = 10
ROW_HEIGHT = 24
SUB_ROW_INDENT = 18


class RowStyle(str, Enum):
    HEADER = "header"
    SECTION = "section"
    SUB = "sub"


@dataclass(frozen=True)
class IndexRow:
    """One table row: a label and the page it points to."""

    label: str
    page: str
    style: RowStyle = RowStyle.SECTION


def _page_label(page_number: int | None) -> str:
    return PLACEHOLDER if page_number is None else str(page_number)


def index_rows(plan: PagePlan) -> list[IndexRow]:
    """Return the table rows for *plan*, column header first."""

    inspection = str(plan.inspection_page_number)
    rows = [
        IndexRow("Section", "Page", RowStyle.HEADER),
        IndexRow("Report Header & Part Information", "1"),
        IndexRow("Index", str(plan.index_page_number)),
        IndexRow("Part Drawing", "3"),
        IndexRow("Inspection", inspection, RowStyle.HEADER),
        IndexRow("Dimensional Inspection", inspection, RowStyle.SUB),
        IndexRow("Visual Inspection", PLACEHOLDER, RowStyle.SUB),
        IndexRow(
            "Tests & Certificates",
            _page_label(plan.certificates_start_page),
            RowStyle.HEADER,
        ),
    ]
    rows.extend(
        IndexRow(entry.label, str(entry.start_page), RowStyle.SUB)
        for entry in plan.certificate_entries
    )
    return rows


def _encodable(text: str) -> str:
    # Standard Type 1 fonts only cover WinAnsi.
    return text.encode("cp1252", "replace").decode("cp1252")


class _IndexCanvas:
    """Draws the index table onto a reportlab canvas."""

    def __init__(self, pdf: canvas.Canvas) -> None:
        self.pdf = pdf
        self.table_x = MARGIN
        self.table_width = PAGE_WIDTH - 2 * MARGIN
        self.row_y = PAGE_HEIGHT - 112

    def _text(self, x: float, y: float, text: str, font: str, size: float, color: Color) -> None:
        self.pdf.setFont(font, size)
        self.pdf.setFillColor(color)
        self.pdf.drawString(x, y, text)

    def _line(self, x1: float, y1: float, x2: float, y2: float, width: float, color: Color) -> None:
        self.pdf.setLineWidth(width)
        self.pdf.setStrokeColor(color)
        self.pdf.line(x1, y1, x2, y2)

    def _rect(self, x: float, y: float, width: float, height: float, color: Color) -> None:
        self.pdf.setFillColor(color)
        self.pdf.rect(x, y, width, height, stroke=0, fill=1)

    def draw_title(self, header: ReportHeader) -> None:
        self._rect(0, 0, PAGE_WIDTH, PAGE_HEIGHT, WHITE)
        top = PAGE_HEIGHT
        self._text(MARGIN, top - 52, "Quality Inspection Report", FONT_BOLD, 20, BLACK)
        self._text(MARGIN, top - 70, _encodable(header.subtitle), FONT_REGULAR, 9, MID_GREY)
        self._line(MARGIN, top - 80, PAGE_WIDTH - MARGIN, top - 80, 0.5, LIGHT_GREY)
        self._text(MARGIN, top - 97, "TABLE OF CONTENTS", FONT_BOLD, 8, MID_GREY)

    def draw_row(self, row: IndexRow) -> None:
        is_header = row.style is RowStyle.HEADER
        is_sub = row.style is RowStyle.SUB
        left = self.table_x
        right = self.table_x + self.table_width
        bottom = self.row_y - ROW_HEIGHT

        fill = HEADER_FILL if is_header else (WHITE if is_sub else OFF_WHITE)
        self._rect(left, bottom, self.table_width, ROW_HEIGHT, fill)
        self._line(left, bottom, right, bottom, 0.3, LIGHT_GREY)

        font = FONT_BOLD if is_header else FONT_REGULAR
        size = 8.5 if is_header else 8
        label_color = BLACK if is_header else (MID_GREY if is_sub else DARK_GREY)
        text_y = bottom + (ROW_HEIGHT - size) / 2 + 1
        indent = SUB_ROW_INDENT if is_sub else 0

        self._text(left + CELL_PADDING + indent, text_y, _encodable(row.label), font, size, label_color)

        page_text = _encodable(row.page)
        page_width = stringWidth(page_text, font, size)
        page_color = BLACK if is_header else DARK_GREY
        self._text(right - CELL_PADDING - page_width, text_y, page_text, font, size, page_color)

        self.row_y = bottom

    def draw_table(self, rows: list[IndexRow]) -> None:
        left = self.table_x
        right = self.table_x + self.table_width
        top = self.row_y

        self._line(left, top, right, top, 0.6, DARK_GREY)
        for row in rows:
            self.draw_row(row)

        bottom = self.row_y
        self._line(left, bottom, right, bottom, 0.6, DARK_GREY)
        self._line(left, top, left, bottom, 0.6, DARK_GREY)
        self._line(right, top, right, bottom, 0.6, DARK_GREY)

    def draw_page_number(self, page_number: int) -> None:
        text = str(page_number)
        width = stringWidth(text, FONT_REGULAR, 8)
        self._text(PAGE_WIDTH / 2 - width / 2, 20, text, FONT_REGULAR, 8, MID_GREY)


def render_index(plan: PagePlan, header: ReportHeader) -> LoadedDocument:
    """Render the one-page table of contents for *plan*.

    Tables longer than the page run off the bottom edge; the index is never
    split across pages.

    Raises:
        RenderError: If the page cannot be drawn or serialized.
    """

    rows = index_rows(plan)
    buffer = BytesIO()
    try:
        pdf = canvas.Canvas(buffer, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
        pdf.setTitle(f"Index {header.report_no}")
        drawer = _IndexCanvas(pdf)
        drawer.draw_title(header)
        drawer.draw_table(rows)
        drawer.draw_page_number(plan.index_page_number)
        pdf.showPage()
        pdf.save()
        document = parse_document(buffer.getvalue(), label="Index")
    except Exception as exc:
        LOGGER.error("Failed to render index page: %s", exc)
        raise RenderError(f"Failed to render index page: {exc}") from exc

    LOGGER.debug("Rendered index with %d row(s)", len(rows))
    return document


__all__ = ["render_index", "index_rows", "IndexRow", "RowStyle", "PLACEHOLDER"]
