"""Turn :class:`DocumentReference` values into loaded PDF documents."""

from __future__ import annotations

import base64
import binascii
from io import BytesIO
import logging
import re

from fastapi.concurrency import run_in_threadpool
import httpx
from pypdf import PdfReader

from .config import DEFAULT_FETCH_TIMEOUT
from .exceptions import DecodeError, FetchError, ParseError
from .models import DocumentReference, LoadedDocument, SourceKind

LOGGER = logging.getLogger("qirmerge.resolver")

_DATA_URI_PREFIX = re.compile(r"^data:[^,]*;base64,", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def open_reader(raw_bytes: bytes) -> PdfReader:
    """Return a :class:`PdfReader` for *raw_bytes*, decrypting when needed."""

    reader = PdfReader(BytesIO(raw_bytes))
    if reader.is_encrypted:
        LOGGER.debug("Attempting to decrypt encrypted PDF")
        if not reader.decrypt(""):
            raise ParseError("Unable to decrypt encrypted PDF")
    return reader


def parse_document(raw_bytes: bytes, label: str | None = None) -> LoadedDocument:
    """Validate *raw_bytes* as a PDF and return a :class:`LoadedDocument`."""

    if not raw_bytes:
        raise ParseError("PDF payload is empty")
    try:
        reader = open_reader(raw_bytes)
        page_count = len(reader.pages)
    except ParseError:
        raise
    except Exception as exc:  # pypdf raises a variety of errors for bad input
        raise ParseError(f"Invalid PDF: {exc}") from exc
    return LoadedDocument(raw_bytes=raw_bytes, page_count=page_count, label=label)


def decode_inline(payload: str) -> bytes:
    """Decode a base64 payload, tolerating whitespace and a data URI prefix."""

    cleaned = _WHITESPACE.sub("", _DATA_URI_PREFIX.sub("", payload.strip()))
    if not cleaned:
        raise DecodeError("Inline payload is empty")
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Inline payload is not valid base64: {exc}") from exc


async def fetch_remote(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> bytes:
    """Download *url* with a single bounded request."""

    LOGGER.info("Fetching: %s...", url[:70])
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
                response = await owned.get(url)
        else:
            response = await client.get(url, timeout=timeout)
    except httpx.TimeoutException as exc:
        raise FetchError(f"Timed out after {timeout:g}s fetching PDF") from exc
    except httpx.InvalidURL as exc:
        raise FetchError(f"Invalid URL: {exc}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Network error fetching PDF: {exc}") from exc

    if not response.is_success:
        raise FetchError(f"HTTP {response.status_code} fetching PDF")
    return response.content


async def resolve(
    ref: DocumentReference,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> LoadedDocument:
    """Load the document *ref* points to.

    Raises:
        FetchError: The remote locator failed or timed out.
        DecodeError: The inline payload is not valid base64.
        ParseError: The bytes are not a readable PDF.
    """

    if ref.kind is SourceKind.REMOTE:
        raw_bytes = await fetch_remote(ref.locator, client=client, timeout=timeout)
    else:
        raw_bytes = decode_inline(ref.locator)

    document = await run_in_threadpool(parse_document, raw_bytes, label=ref.label)
    LOGGER.debug("Resolved %s source with %d page(s)", ref.kind.value, document.page_count)
    return document


__all__ = ["resolve", "parse_document", "decode_inline", "fetch_remote", "open_reader"]
