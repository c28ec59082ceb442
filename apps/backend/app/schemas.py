"""Pydantic models describing the merge API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from qirmerge import DecodeError, DocumentReference, MergeRequest, ReportHeader


class SourcePayload(BaseModel):
    """A document given either as a URL or as base64 data."""

    type: str = "base64"
    value: str = ""

    def to_reference(self, label: str | None = None) -> DocumentReference:
        return DocumentReference.from_payload({"type": self.type, "value": self.value, "label": label})


class CertificatePayload(SourcePayload):
    """A certificate to append after the base report."""

    label: str | None = None


class MergePayload(BaseModel):
    """Body accepted by ``POST /merge``."""

    report_no: str = Field("QIR", alias="reportNo")
    part_name: str = Field("", alias="partName")
    date: str = ""
    qir_source: SourcePayload | None = Field(None, alias="qirSource")
    certificates: list[CertificatePayload] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def to_request(self) -> MergeRequest:
        if self.qir_source is None:
            raise DecodeError("qirSource is required")
        return MergeRequest(
            header=ReportHeader(
                report_no=self.report_no,
                part_name=self.part_name,
                date=self.date,
            ),
            qir_source=self.qir_source.to_reference(label="QIR"),
            certificates=tuple(cert.to_reference(cert.label) for cert in self.certificates),
        )


class HealthResponse(BaseModel):
    """Liveness payload returned from ``GET /``."""

    status: str
    service: str
    version: str


__all__ = ["SourcePayload", "CertificatePayload", "MergePayload", "HealthResponse"]
