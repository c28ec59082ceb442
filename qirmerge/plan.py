"""Page plan calculation for merged inspection reports."""

from __future__ import annotations

import logging
from typing import Iterable

from .exceptions import PlanError
from .models import (
    DEFAULT_CERTIFICATE_LABEL,
    INDEX_PAGE_NUMBER,
    CertEntry,
    CertificateSource,
    PagePlan,
)

LOGGER = logging.getLogger("qirmerge.plan")


def _normalise_label(label: str | None) -> str:
    cleaned = (label or "").strip()
    return cleaned or DEFAULT_CERTIFICATE_LABEL


def compute_plan(
    base_page_count: int,
    inspection_page_number: int,
    certs: Iterable[CertificateSource],
) -> PagePlan:
    """Return the :class:`PagePlan` for a report.

    Final layout::

        p.1            base page 1 (report header)
        p.2            index (inserted)
        p.3 .. p.N+1   base pages 2..N
        p.N+2 onwards  certificates, in input order

    Args:
        base_page_count: Number of pages in the base document.
        inspection_page_number: Final page number of the inspection section.
            It is not derived from the base document, so callers must keep
            it in line with the base layout. Base pages fill final pages 1
            and 3 to N+1, so it may not exceed *base_page_count* + 1 or
            point at the index.
        certs: Certificates in request order. Entries without pages are
            dropped.

    Raises:
        PlanError: If the base document is empty or the inspection page
            is out of range.
    """

    if base_page_count < 1:
        raise PlanError("Base document must contain at least one page")

    last_base_page = base_page_count + 1
    if not 1 <= inspection_page_number <= last_base_page:
        raise PlanError(
            f"Inspection page {inspection_page_number} is outside the base document "
            f"(final pages 1-{last_base_page} for {base_page_count} page(s))"
        )
    if inspection_page_number == INDEX_PAGE_NUMBER:
        raise PlanError(f"Inspection page cannot be the index page (p.{INDEX_PAGE_NUMBER})")

    entries: list[CertEntry] = []
    next_page = base_page_count + 2
    for cert in certs:
        if cert.page_count < 1:
            LOGGER.debug("Dropping certificate %r without pages", cert.label)
            continue
        entries.append(
            CertEntry(
                label=_normalise_label(cert.label),
                start_page=next_page,
                page_count=cert.page_count,
            )
        )
        next_page += cert.page_count

    plan = PagePlan(
        base_page_count=base_page_count,
        inspection_page_number=inspection_page_number,
        certificate_entries=tuple(entries),
    )
    LOGGER.debug(
        "Planned %d page(s): inspection=p.%d, certificates=%s",
        plan.total_pages,
        inspection_page_number,
        plan.certificates_start_page,
    )
    return plan


__all__ = ["compute_plan"]
