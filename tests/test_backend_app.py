from __future__ import annotations

from io import BytesIO
from typing import Callable, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient
from pypdf import PdfReader

from apps.backend.app.main import app, get_http_client


client = TestClient(app)


@pytest.fixture()
def remote_files() -> Iterator[dict[str, bytes | int]]:
    """Serve ``files[path]`` for any URL; ints are returned as status codes."""

    files: dict[str, bytes | int] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        body = files.get(request.url.path, 404)
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, content=body)

    async def _client() -> Iterator[httpx.AsyncClient]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as mock_client:
            yield mock_client

    app.dependency_overrides[get_http_client] = _client
    yield files
    app.dependency_overrides.clear()


def _page_count(content: bytes) -> int:
    return len(PdfReader(BytesIO(content)).pages)


def test_root_reports_liveness() -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "QIR Merge Server", "version": "1.0.0"}


def test_health() -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_merge_end_to_end(b64_factory: Callable[..., str]) -> None:
    payload = {
        "reportNo": "R-9",
        "partName": "Shaft",
        "date": "2024-06-30",
        "qirSource": {"type": "base64", "value": b64_factory(5)},
        "certificates": [
            {"label": "Mill TC", "type": "base64", "value": b64_factory(2)},
            {"label": "Hardness", "type": "base64", "value": b64_factory(1)},
        ],
    }

    response = client.post("/merge", json=payload)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert (
        response.headers["content-disposition"]
        == 'attachment; filename="QIR-R-9-2024-06-30.pdf"'
    )
    assert response.headers["x-qir-page-count"] == "9"
    assert response.headers["x-qir-certificate-count"] == "2"
    assert _page_count(response.content) == 9

    index_text = PdfReader(BytesIO(response.content)).pages[1].extract_text()
    assert "Mill TC" in index_text
    assert "Hardness" in index_text


def test_merge_with_remote_sources(remote_files: dict[str, bytes | int], pdf_factory: Callable[..., bytes]) -> None:
    remote_files["/qir.pdf"] = pdf_factory(4)
    remote_files["/mill.pdf"] = pdf_factory(3)
    remote_files["/gone.pdf"] = 404

    payload = {
        "reportNo": "QIR 1/2",
        "date": "2024",
        "qirSource": {"type": "url", "value": "https://files.example.com/qir.pdf"},
        "certificates": [
            {"label": "Gone", "type": "url", "value": "https://files.example.com/gone.pdf"},
            {"label": "Mill TC", "type": "url", "value": "https://files.example.com/mill.pdf"},
        ],
    }

    response = client.post("/merge", json=payload)

    assert response.status_code == 200
    assert _page_count(response.content) == 4 + 1 + 3
    assert 'filename="QIR-QIR_1_2-2024.pdf"' in response.headers["content-disposition"]
    assert response.headers["x-qir-certificate-count"] == "1"


def test_unparsable_certificate_is_omitted(b64_factory: Callable[..., str]) -> None:
    payload = {
        "qirSource": {"type": "base64", "value": b64_factory(5)},
        "certificates": [
            {"label": "Broken", "type": "base64", "value": "bm90IGEgcGRm"},
            {"label": "Hardness", "type": "base64", "value": b64_factory(1)},
        ],
    }

    response = client.post("/merge", json=payload)

    assert response.status_code == 200
    assert _page_count(response.content) == 5 + 1 + 1
    assert 'filename="QIR-QIR-.pdf"' in response.headers["content-disposition"]


def test_malformed_certificate_url_is_omitted(
    remote_files: dict[str, bytes | int], b64_factory: Callable[..., str]
) -> None:
    payload = {
        "qirSource": {"type": "base64", "value": b64_factory(5)},
        "certificates": [
            {"label": "Bad", "type": "url", "value": "http://[::1"},
            {"label": "Hardness", "type": "base64", "value": b64_factory(1)},
        ],
    }

    response = client.post("/merge", json=payload)

    assert response.status_code == 200
    assert _page_count(response.content) == 5 + 1 + 1
    assert response.headers["x-qir-certificate-count"] == "1"


def test_unknown_certificate_type_is_read_as_base64(b64_factory: Callable[..., str]) -> None:
    payload = {
        "qirSource": {"type": "base64", "value": b64_factory(5)},
        "certificates": [
            {"label": "Odd", "type": "pdf", "value": b64_factory(1)},
            {"label": "Junk", "type": "pdf", "value": "%%%"},
            {"label": "Hardness", "type": "base64", "value": b64_factory(1)},
        ],
    }

    response = client.post("/merge", json=payload)

    assert response.status_code == 200
    assert _page_count(response.content) == 5 + 1 + 1 + 1
    assert response.headers["x-qir-certificate-count"] == "2"


def test_blank_certificate_values_are_skipped(b64_factory: Callable[..., str]) -> None:
    payload = {
        "qirSource": {"type": "base64", "value": b64_factory(4)},
        "certificates": [{"label": "Empty", "type": "url", "value": "  "}],
    }

    response = client.post("/merge", json=payload)

    assert response.status_code == 200
    assert response.headers["x-qir-certificate-count"] == "0"
    assert _page_count(response.content) == 5


def test_failing_base_fetch_returns_500(remote_files: dict[str, bytes | int]) -> None:
    remote_files["/qir.pdf"] = 503

    response = client.post(
        "/merge",
        json={"qirSource": {"type": "url", "value": "https://files.example.com/qir.pdf"}},
    )

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"error": "HTTP 503 fetching PDF"}


def test_missing_base_returns_500() -> None:
    response = client.post("/merge", json={"reportNo": "R1"})

    assert response.status_code == 500
    assert "qirSource" in response.json()["error"]


def test_base_too_short_for_inspection_page(b64_factory: Callable[..., str]) -> None:
    response = client.post("/merge", json={"qirSource": {"type": "base64", "value": b64_factory(2)}})

    assert response.status_code == 500
    assert "Inspection page" in response.json()["error"]


def test_cors_preflight() -> None:
    response = client.options(
        "/merge",
        headers={
            "Origin": "https://portal.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
