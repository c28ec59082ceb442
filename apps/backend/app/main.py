"""FastAPI application exposing the QIR report merge pipeline."""

from __future__ import annotations

from typing import AsyncIterator

import httpx
from fastapi import Depends, FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from qirmerge import (
    MergeContext,
    QirMergeError,
    Settings,
    compose_report,
    configure_logging,
    load_settings,
    load_sources,
)

from .schemas import HealthResponse, MergePayload

SERVICE_NAME = "QIR Merge Server"
SERVICE_VERSION = "1.0.0"

SETTINGS = load_settings()
configure_logging(SETTINGS.log_level)

app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def get_settings() -> Settings:
    """Return the settings loaded at startup."""

    return SETTINGS


async def get_http_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    """Provide a request-scoped HTTP client for remote documents."""

    async with httpx.AsyncClient(timeout=settings.fetch_timeout, follow_redirects=True) as client:
        yield client


def _error_response(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Liveness check."""

    return HealthResponse(status="ok", service=SERVICE_NAME, version=SERVICE_VERSION)


@app.get("/health", response_class=JSONResponse)
async def health() -> dict[str, str]:
    """Lightweight health endpoint for uptime checks."""
    return {"status": "ok"}


@app.post(
    "/merge",
    response_class=Response,
    summary="Merge a QIR with its certificates",
    response_description="The merged report PDF.",
)
async def merge(
    payload: MergePayload,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Compose the base QIR, a generated index and the certificates into one PDF.

    Certificates that cannot be loaded are left out. Any other failure is
    reported as ``500`` with an ``error`` message and no document.
    """

    context = MergeContext(settings=settings)
    try:
        request = payload.to_request()
        context.logger.info(
            "/merge: %s with %d cert(s)", request.header.report_no, len(request.certificates)
        )
        sources = await load_sources(request, context=context, client=client)
        merged = await run_in_threadpool(
            compose_report,
            sources,
            request.header,
            context=context,
        )
    except QirMergeError as exc:
        context.logger.error("Error: %s", exc)
        return _error_response(exc)
    except Exception as exc:  # pragma: no cover - defensive conversion to HTTP error
        context.logger.exception("Unexpected error while merging")
        return _error_response(exc)

    headers = {
        "Content-Disposition": f'attachment; filename="{merged.filename}"',
        "X-QIR-Page-Count": str(merged.page_count),
        "X-QIR-Certificate-Count": str(len(merged.plan.certificate_entries)),
    }
    return Response(content=merged.raw_bytes, media_type="application/pdf", headers=headers)


__all__ = ["app", "get_settings", "get_http_client"]
