"""Value objects shared by the :mod:`qirmerge` composition engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from .exceptions import DecodeError

DEFAULT_CERTIFICATE_LABEL = "Certificate"
INDEX_PAGE_NUMBER = 2


class SourceKind(str, Enum):
    """How a :class:`DocumentReference` locator should be interpreted."""

    REMOTE = "url"
    INLINE = "base64"


@dataclass(frozen=True)
class DocumentReference:
    """Pointer to a PDF, either a URL or an inline base64 payload."""

    kind: SourceKind
    locator: str = field(repr=False)
    label: str | None = None

    @property
    def is_blank(self) -> bool:
        return not (self.locator or "").strip()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DocumentReference":
        """Build a reference from the wire form ``{type, value, label?}``.

        Only ``"url"`` selects a remote locator. Any other or missing
        ``type`` is read as an inline base64 payload, so a bad value fails
        when that one source is decoded.
        """

        raw_kind = str(payload.get("type") or "").strip().lower()
        kind = SourceKind.REMOTE if raw_kind == SourceKind.REMOTE.value else SourceKind.INLINE

        label = payload.get("label")
        return cls(
            kind=kind,
            locator=str(payload.get("value") or ""),
            label=str(label) if label is not None else None,
        )


@dataclass(frozen=True)
class LoadedDocument:
    """Raw PDF bytes together with their page count."""

    raw_bytes: bytes = field(repr=False)
    page_count: int
    label: str | None = None

    def __post_init__(self) -> None:
        if self.page_count < 0:
            raise ValueError("page_count must not be negative")


@dataclass(frozen=True)
class CertificateSource:
    """Calculator input describing one loaded certificate."""

    label: str | None
    page_count: int


@dataclass(frozen=True)
class CertEntry:
    """Final placement of a certificate inside the merged report."""

    label: str
    start_page: int
    page_count: int

    @property
    def end_page(self) -> int:
        return self.start_page + self.page_count - 1


@dataclass(frozen=True)
class PagePlan:
    """Final page numbers of every logical section of the report.

    Base page 1 keeps its number, the index is always inserted as page 2 and
    every later base page shifts by one. Certificates follow the base pages
    in contiguous ranges.
    """

    base_page_count: int
    inspection_page_number: int
    certificate_entries: tuple[CertEntry, ...] = ()

    @property
    def index_page_number(self) -> int:
        return INDEX_PAGE_NUMBER

    @property
    def base_page_numbers(self) -> list[int]:
        """Final page number of each base page, in original order."""

        return [1 if index == 0 else index + 2 for index in range(self.base_page_count)]

    @property
    def certificates_start_page(self) -> int | None:
        if not self.certificate_entries:
            return None
        return self.certificate_entries[0].start_page

    @property
    def certificate_page_count(self) -> int:
        return sum(entry.page_count for entry in self.certificate_entries)

    @property
    def total_pages(self) -> int:
        return self.base_page_count + 1 + self.certificate_page_count


@dataclass(frozen=True)
class ReportHeader:
    """Identifying fields printed at the top of the index page."""

    report_no: str = "QIR"
    part_name: str = ""
    date: str = ""

    @property
    def subtitle(self) -> str:
        return f"{self.report_no}   ·   {self.part_name}   ·   {self.date}"


@dataclass(frozen=True)
class StampOutcome:
    """Result of a stamping attempt.

    A successful outcome carries the stamped document. A failed one keeps
    the original document and the reason, so callers can continue with the
    unstamped pages.
    """

    original: LoadedDocument
    stamped: LoadedDocument | None = None
    error: str | None = None

    @classmethod
    def success(cls, original: LoadedDocument, stamped: LoadedDocument) -> "StampOutcome":
        return cls(original=original, stamped=stamped)

    @classmethod
    def failure(cls, original: LoadedDocument, error: str) -> "StampOutcome":
        return cls(original=original, error=error)

    @property
    def ok(self) -> bool:
        return self.stamped is not None

    @property
    def document(self) -> LoadedDocument:
        return self.stamped if self.stamped is not None else self.original


@dataclass(frozen=True)
class CertificateOutcome:
    """Pairs a certificate reference with what loading it produced."""

    reference: DocumentReference
    document: LoadedDocument | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.document is not None

    @property
    def label(self) -> str:
        label = (self.reference.label or "").strip()
        return label or DEFAULT_CERTIFICATE_LABEL


@dataclass(frozen=True)
class MergeRequest:
    """Everything needed to compose one report."""

    header: ReportHeader
    qir_source: DocumentReference
    certificates: tuple[DocumentReference, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MergeRequest":
        """Build a request from the JSON body accepted by ``POST /merge``."""

        qir_payload = payload.get("qirSource") or payload.get("qir_source")
        if not isinstance(qir_payload, Mapping):
            raise DecodeError("qirSource must be an object with 'type' and 'value'")

        raw_certificates: Sequence[Any] = payload.get("certificates") or []
        certificates = tuple(
            DocumentReference.from_payload(item)
            for item in raw_certificates
            if isinstance(item, Mapping)
        )

        header = ReportHeader(
            report_no=str(payload.get("reportNo") or payload.get("report_no") or "QIR"),
            part_name=str(payload.get("partName") or payload.get("part_name") or ""),
            date=str(payload.get("date") or ""),
        )
        return cls(
            header=header,
            qir_source=DocumentReference.from_payload(qir_payload),
            certificates=certificates,
        )


@dataclass(frozen=True)
class MergedDocument:
    """Serialized output of a merge request."""

    raw_bytes: bytes = field(repr=False)
    page_count: int
    plan: PagePlan
    filename: str


__all__ = [
    "DEFAULT_CERTIFICATE_LABEL",
    "INDEX_PAGE_NUMBER",
    "SourceKind",
    "DocumentReference",
    "LoadedDocument",
    "CertificateSource",
    "CertEntry",
    "PagePlan",
    "ReportHeader",
    "StampOutcome",
    "CertificateOutcome",
    "MergeRequest",
    "MergedDocument",
]
