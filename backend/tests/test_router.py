"""Tests for event routing and the Lambda entry point."""

from __future__ import annotations

import base64
import io
import json
import sys
from pathlib import Path

from pypdf import PdfReader

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

import lambda_function  # noqa: E402  pylint: disable=wrong-import-position
from errors import RenderFailure  # noqa: E402  pylint: disable=wrong-import-position
from router import PDF_ROUTE, LambdaRouter  # noqa: E402  pylint: disable=wrong-import-position


def _ok(event):
    return {"statusCode": 200, "body": "ok"}


def test_options_preflight_returns_cors_headers() -> None:
    response = LambdaRouter().handle({"httpMethod": "OPTIONS", "path": PDF_ROUTE}, {})

    assert response["statusCode"] == 200
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"
    assert "X-Document-Renderer" in response["headers"]["Access-Control-Expose-Headers"]


def test_dispatch_adds_cors_headers() -> None:
    response = LambdaRouter().handle({"httpMethod": "GET", "path": "/api/ping/"}, {("GET", "/api/ping"): _ok})

    assert response["statusCode"] == 200
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"


def test_unknown_route_is_not_found() -> None:
    response = LambdaRouter().handle({"httpMethod": "GET", "path": "/api/nope"}, {})

    assert response["statusCode"] == 404
    assert json.loads(response["body"]) == {"error": "Not found"}


def test_handler_exceptions_become_500() -> None:
    def _boom(event):
        raise RuntimeError("kaboom")

    response = LambdaRouter().handle({"httpMethod": "GET", "path": "/api/x"}, {("GET", "/api/x"): _boom})

    assert response["statusCode"] == 500
    assert "kaboom" in json.loads(response["body"])["error"]
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"


def test_browser_is_verified_only_for_pdf_route() -> None:
    checks: list[bool] = []

    def _verify() -> bool:
        checks.append(True)
        return False

    router = LambdaRouter(_verify)
    handlers = {("POST", PDF_ROUTE): _ok, ("GET", "/api/health"): _ok}

    router.handle({"httpMethod": "GET", "path": "/api/health"}, handlers)
    response = router.handle({"httpMethod": "POST", "path": PDF_ROUTE}, handlers)

    assert checks == [True]
    assert response["statusCode"] == 200


def test_lambda_health_check() -> None:
    response = lambda_function.lambda_handler({"httpMethod": "GET", "path": "/api/health"}, None)

    assert response["statusCode"] == 200
    assert json.loads(response["body"])["status"] == "healthy"


def test_lambda_returns_fallback_pdf_when_browser_fails(monkeypatch) -> None:
    class _NoBrowser:
        def render(self, html_content):
            raise RenderFailure("chromium unavailable")

    monkeypatch.setattr(lambda_function.pdf_service, "_renderer", _NoBrowser())
    monkeypatch.setattr(lambda_function, "is_hosted_runtime", lambda: False)
    event = {
        "httpMethod": "POST",
        "path": PDF_ROUTE,
        "body": json.dumps({"contractHtml": "<h1>Invoice #1</h1><p>Total: $100</p>", "filename": "inv-1"}),
    }

    response = lambda_function.lambda_handler(event, None)

    assert response["statusCode"] == 200
    assert response["headers"]["X-Document-Renderer"] == "text"
    assert response["headers"]["Content-Disposition"] == 'attachment; filename="inv-1.pdf"'
    data = base64.b64decode(response["body"])
    assert data.startswith(b"%PDF-1.4")
    text = PdfReader(io.BytesIO(data)).pages[0].extract_text()
    assert "Invoice #1" in text
