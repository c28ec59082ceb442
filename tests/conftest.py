from __future__ import annotations

import base64
from io import BytesIO
from pathlib import Path
from typing import Callable, Sequence
import sys

import pytest
from pypdf import PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from qirmerge.models import LoadedDocument  # noqa: E402

PdfFactory = Callable[..., bytes]


def build_pdf(
    pages: int = 1,
    *,
    width: float = 200,
    height: float = 200,
    sizes: Sequence[tuple[float, float]] | None = None,
) -> bytes:
    writer = PdfWriter()
    for width_, height_ in sizes or [(width, height)] * pages:
        writer.add_blank_page(width=width_, height=height_)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture()
def pdf_factory() -> PdfFactory:
    return build_pdf


@pytest.fixture()
def document_factory(pdf_factory: PdfFactory) -> Callable[..., LoadedDocument]:
    def _create(pages: int = 1, label: str | None = None, **kwargs: object) -> LoadedDocument:
        raw = pdf_factory(pages, **kwargs)
        sizes = kwargs.get("sizes")
        count = len(sizes) if sizes else pages  # type: ignore[arg-type]
        return LoadedDocument(raw_bytes=raw, page_count=count, label=label)

    return _create


@pytest.fixture()
def b64_factory(pdf_factory: PdfFactory) -> Callable[..., str]:
    def _create(pages: int = 1, **kwargs: object) -> str:
        return base64.b64encode(pdf_factory(pages, **kwargs)).decode("ascii")

    return _create
