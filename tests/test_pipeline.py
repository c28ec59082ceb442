from __future__ import annotations

import asyncio
import base64
from io import BytesIO
import logging
from typing import Callable

import httpx
import pytest
from pypdf import PdfReader

from qirmerge import (
    DocumentReference,
    FetchError,
    LoadedDocument,
    MergeContext,
    MergeRequest,
    PlanError,
    ReportHeader,
    Settings,
    SourceKind,
    merge_report,
)
from qirmerge.models import CertificateOutcome
from qirmerge.pipeline import LoadedSources, collect_certificates, compose_report


def _inline(pdf: bytes, label: str | None = None) -> DocumentReference:
    return DocumentReference(SourceKind.INLINE, base64.b64encode(pdf).decode("ascii"), label=label)


def _page_texts(raw: bytes) -> list[str]:
    return [page.extract_text() for page in PdfReader(BytesIO(raw)).pages]


def test_end_to_end_scenario(pdf_factory: Callable[..., bytes]) -> None:
    request = MergeRequest(
        header=ReportHeader(report_no="R-9", part_name="Shaft", date="2024-06-30"),
        qir_source=_inline(pdf_factory(5)),
        certificates=(
            _inline(pdf_factory(2), "Mill TC"),
            _inline(pdf_factory(1), "Hardness"),
        ),
    )

    merged = asyncio.run(merge_report(request, context=MergeContext(settings=Settings())))

    assert merged.page_count == 5 + 1 + 2 + 1
    assert [(entry.label, entry.start_page) for entry in merged.plan.certificate_entries] == [
        ("Mill TC", 7),
        ("Hardness", 9),
    ]
    assert merged.filename == "QIR-R-9-2024-06-30.pdf"

    texts = _page_texts(merged.raw_bytes)
    assert "Mill TC" in texts[1]
    assert "Hardness" in texts[1]
    # footers: base page 1 keeps 1, later base pages shift past the index
    assert texts[0].strip() == "1"
    assert texts[2].strip() == "3"
    assert texts[5].strip() == "6"
    assert "Mill TC" in texts[6] and "7" in texts[6]
    assert texts[7].strip() == "8"
    assert "Hardness" in texts[8] and "9" in texts[8]


def test_blank_and_broken_certificates_are_dropped(
    pdf_factory: Callable[..., bytes], caplog: pytest.LogCaptureFixture
) -> None:
    request = MergeRequest(
        header=ReportHeader(),
        qir_source=_inline(pdf_factory(4)),
        certificates=(
            DocumentReference(SourceKind.INLINE, "   ", label="Blank"),
            DocumentReference(SourceKind.INLINE, base64.b64encode(b"junk").decode(), label="Junk"),
            _inline(pdf_factory(2), "Good"),
        ),
    )

    with caplog.at_level(logging.WARNING, logger="qirmerge.pipeline"):
        merged = asyncio.run(merge_report(request, context=MergeContext(settings=Settings())))

    assert merged.page_count == 4 + 1 + 2
    assert [entry.label for entry in merged.plan.certificate_entries] == ["Good"]
    assert merged.plan.certificate_entries[0].start_page == 6
    assert "Junk" in caplog.text
    assert "Blank" not in caplog.text


def test_base_failure_is_fatal() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    request = MergeRequest(
        header=ReportHeader(),
        qir_source=DocumentReference(SourceKind.REMOTE, "https://files.example.com/qir.pdf"),
    )

    async def _run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await merge_report(request, context=MergeContext(settings=Settings()), client=client)

    with pytest.raises(FetchError):
        asyncio.run(_run())


def test_inspection_page_beyond_base_is_fatal(pdf_factory: Callable[..., bytes]) -> None:
    request = MergeRequest(header=ReportHeader(), qir_source=_inline(pdf_factory(3)))

    with pytest.raises(PlanError):
        asyncio.run(merge_report(request, context=MergeContext(settings=Settings(inspection_page=5))))


def test_inspection_page_on_last_base_page(pdf_factory: Callable[..., bytes]) -> None:
    request = MergeRequest(header=ReportHeader(), qir_source=_inline(pdf_factory(3)))

    merged = asyncio.run(merge_report(request, context=MergeContext(settings=Settings(inspection_page=4))))

    assert merged.page_count == 4
    assert merged.plan.inspection_page_number == 4


@pytest.mark.parametrize("concurrent", [True, False])
def test_certificate_order_ignores_completion_order(
    pdf_factory: Callable[..., bytes], concurrent: bool
) -> None:
    delays = {"/slow.pdf": 0.05, "/medium.pdf": 0.02, "/fast.pdf": 0.0}
    bodies = {"/slow.pdf": pdf_factory(1), "/medium.pdf": pdf_factory(2), "/fast.pdf": pdf_factory(3)}

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delays[request.url.path])
        return httpx.Response(200, content=bodies[request.url.path])

    refs = [
        DocumentReference(SourceKind.REMOTE, f"https://files.example.com{path}", label=path)
        for path in ("/slow.pdf", "/medium.pdf", "/fast.pdf")
    ]
    context = MergeContext(settings=Settings(concurrent_fetch=concurrent))

    async def _run() -> list[CertificateOutcome]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await collect_certificates(refs, client=client, context=context)

    outcomes = asyncio.run(_run())

    assert [outcome.label for outcome in outcomes] == ["/slow.pdf", "/medium.pdf", "/fast.pdf"]
    assert [outcome.document.page_count for outcome in outcomes] == [1, 2, 3]


def test_compose_uses_unstamped_pages_when_stamping_fails(
    monkeypatch: pytest.MonkeyPatch, document_factory: Callable[..., LoadedDocument]
) -> None:
    from qirmerge import pipeline
    from qirmerge.models import StampOutcome

    def failing_stamp(doc: LoadedDocument, start: int, heading: str | None = None) -> StampOutcome:
        return StampOutcome.failure(doc, "boom")

    monkeypatch.setattr(pipeline, "stamp", failing_stamp)

    cert = document_factory(2, label="Mill TC")
    sources = LoadedSources(
        base=document_factory(4),
        certificates=(CertificateOutcome(reference=_inline(cert.raw_bytes, "Mill TC"), document=cert),),
    )

    merged = compose_report(sources, ReportHeader(), context=MergeContext(settings=Settings()))

    assert merged.page_count == 4 + 1 + 2
    texts = _page_texts(merged.raw_bytes)
    assert texts[5].strip() == ""


def test_context_prefixes_request_id(caplog: pytest.LogCaptureFixture) -> None:
    context = MergeContext(settings=Settings(), request_id="abc123")
    with caplog.at_level(logging.INFO, logger="qirmerge.pipeline"):
        context.logger.info("hello")
    assert "[abc123] hello" in caplog.text
