"""End-to-end orchestration of a single report merge request."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, MutableMapping, Sequence
import uuid

import httpx

from .assembler import assemble
from .config import Settings, load_settings
from .exceptions import SourceError
from .index import render_index
from .models import (
    CertEntry,
    CertificateOutcome,
    CertificateSource,
    DocumentReference,
    LoadedDocument,
    MergedDocument,
    MergeRequest,
    ReportHeader,
)
from .plan import compute_plan
from .resolver import resolve
from .stamper import stamp, stamp_pages

LOGGER = logging.getLogger("qirmerge.pipeline")


class _RequestLogger(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['request_id']}] {msg}", kwargs


@dataclass
class MergeContext:
    """Per-request state handed explicitly through the pipeline."""

    settings: Settings = field(default_factory=load_settings)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    logger: logging.LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = _RequestLogger(LOGGER, {"request_id": self.request_id})


@dataclass(frozen=True)
class LoadedSources:
    """Base document plus the per-certificate load outcomes, in request order."""

    base: LoadedDocument
    certificates: tuple[CertificateOutcome, ...] = ()


async def _load_certificate(
    ref: DocumentReference,
    *,
    client: httpx.AsyncClient,
    context: MergeContext,
) -> CertificateOutcome:
    try:
        document = await resolve(ref, client=client, timeout=context.settings.fetch_timeout)
    except SourceError as exc:
        return CertificateOutcome(reference=ref, error=str(exc))
    return CertificateOutcome(reference=ref, document=document)


async def collect_certificates(
    refs: Sequence[DocumentReference],
    *,
    client: httpx.AsyncClient,
    context: MergeContext,
) -> list[CertificateOutcome]:
    """Resolve every non-blank certificate and pair it with its outcome.

    Blank references are skipped without counting as failures. The result
    keeps request order whether or not loads run concurrently.
    """

    usable = [ref for ref in refs if not ref.is_blank]
    skipped = len(refs) - len(usable)
    if skipped:
        context.logger.debug("Skipping %d certificate(s) without a value", skipped)

    if context.settings.concurrent_fetch:
        outcomes = list(
            await asyncio.gather(
                *(_load_certificate(ref, client=client, context=context) for ref in usable)
            )
        )
    else:
        outcomes = [await _load_certificate(ref, client=client, context=context) for ref in usable]

    for outcome in outcomes:
        if outcome.ok:
            context.logger.info("    %r: %d page(s)", outcome.label, outcome.document.page_count)
        else:
            context.logger.warning("    Skipped %r: %s", outcome.label, outcome.error)
    return outcomes


async def load_sources(
    request: MergeRequest,
    *,
    context: MergeContext,
    client: httpx.AsyncClient | None = None,
) -> LoadedSources:
    """Resolve the base document (fatal on failure) and all certificates."""

    if client is None:
        async with httpx.AsyncClient(
            timeout=context.settings.fetch_timeout, follow_redirects=True
        ) as owned:
            return await load_sources(request, context=context, client=owned)

    context.logger.info("[1] Loading QIR...")
    base = await resolve(request.qir_source, client=client, timeout=context.settings.fetch_timeout)
    context.logger.info("    %d pages", base.page_count)

    context.logger.info("[2] Loading certificates...")
    outcomes = await collect_certificates(request.certificates, client=client, context=context)
    return LoadedSources(base=base, certificates=tuple(outcomes))


def compose_report(
    sources: LoadedSources,
    header: ReportHeader,
    *,
    context: MergeContext,
) -> MergedDocument:
    """Plan, render, stamp and assemble already loaded documents."""

    survivors = [
        outcome
        for outcome in sources.certificates
        if outcome.ok and outcome.document.page_count > 0
    ]
    plan = compute_plan(
        sources.base.page_count,
        context.settings.inspection_page,
        [CertificateSource(label=outcome.label, page_count=outcome.document.page_count) for outcome in survivors],
    )
    context.logger.info(
        "[3] inspection=p.%d, certs=p.%s",
        plan.inspection_page_number,
        plan.certificates_start_page or "-",
    )

    context.logger.info("[4] Building index...")
    index = render_index(plan, header)

    context.logger.info("[5] Numbering QIR pages...")
    base = stamp_pages(sources.base, plan.base_page_numbers).document

    certificates: list[tuple[CertEntry, LoadedDocument]] = []
    for entry, outcome in zip(plan.certificate_entries, survivors):
        stamped = stamp(outcome.document, entry.start_page, heading=entry.label)
        certificates.append((entry, stamped.document))
        context.logger.info("    %r p.%d-%d", entry.label, entry.start_page, entry.end_page)

    context.logger.info("[6] Merging...")
    merged = assemble(base, index, certificates, plan=plan, header=header)
    context.logger.info(
        "Done: %d pages, %d KB",
        merged.page_count,
        round(len(merged.raw_bytes) / 1024),
    )
    return merged


async def merge_report(
    request: MergeRequest,
    *,
    context: MergeContext | None = None,
    client: httpx.AsyncClient | None = None,
) -> MergedDocument:
    """Produce the merged report for *request*.

    Base document, plan, index and assembly failures propagate. Failed
    certificates are left out and stamping failures fall back to the
    unstamped pages.
    """

    context = context or MergeContext()
    context.logger.info(
        "/merge: %s with %d cert(s)", request.header.report_no, len(request.certificates)
    )
    sources = await load_sources(request, context=context, client=client)
    return compose_report(sources, request.header, context=context)


__all__ = [
    "MergeContext",
    "LoadedSources",
    "collect_certificates",
    "load_sources",
    "compose_report",
    "merge_report",
]
