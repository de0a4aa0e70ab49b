"""Tests for the browser renderer and the always-succeeding orchestrator."""

from __future__ import annotations

import io
import logging
import sys
from pathlib import Path

import pytest
from pypdf import PdfReader

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

import pdf_generation  # noqa: E402  pylint: disable=wrong-import-position
from errors import EncodingFailure, ExtractionFailure, RenderFailure  # noqa: E402  pylint: disable=wrong-import-position
from minimal_pdf import encode_minimal_pdf  # noqa: E402  pylint: disable=wrong-import-position
from pdf_generation import (  # noqa: E402  pylint: disable=wrong-import-position
    FALLBACK_PLACEHOLDER_TEXT,
    DocumentRenderer,
    PDFGenerationService,
)
from pdf_settings import RendererConfig  # noqa: E402  pylint: disable=wrong-import-position
from playwright_environment import HOSTED_CHROME_ARGS, LOCAL_CHROME_ARGS  # noqa: E402  pylint: disable=wrong-import-position


RENDERED_PDF = encode_minimal_pdf("rendered by chromium")


# Fakes ------------------------------------------------------------------

class FailingRenderer:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or RenderFailure("browser launch failed")
        self.calls = 0

    def render(self, html_content: str) -> bytes:
        self.calls += 1
        raise self.exc


class StaticRenderer:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.seen: list[str] = []

    def render(self, html_content: str) -> bytes:
        self.seen.append(html_content)
        return self.data


class FakeResponse:
    def __init__(self, status: int, url: str) -> None:
        self.status = status
        self.url = url


class FakePage:
    def __init__(self, pdf_bytes: bytes, set_content_error: Exception | None = None) -> None:
        self.pdf_bytes = pdf_bytes
        self.set_content_error = set_content_error
        self.handlers: dict[str, object] = {}
        self.content_kwargs: dict = {}
        self.waits: list[int] = []
        self.pdf_kwargs: dict = {}

    def on(self, event: str, callback) -> None:
        self.handlers[event] = callback

    def set_content(self, html: str, **kwargs) -> None:
        self.content_kwargs = kwargs
        if self.set_content_error is not None:
            raise self.set_content_error

    def wait_for_timeout(self, ms: int) -> None:
        self.waits.append(ms)

    def pdf(self, **kwargs) -> bytes:
        self.pdf_kwargs = kwargs
        return self.pdf_bytes


class FakeBrowser:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.closed = False
        self.viewport = None

    def new_page(self, viewport=None) -> FakePage:
        self.viewport = viewport
        return self.page

    def close(self) -> None:
        self.closed = True


class FakeChromium:
    def __init__(self, page: FakePage, launch_errors: list[Exception | None]) -> None:
        self.page = page
        self.launch_errors = list(launch_errors)
        self.launches: list[dict] = []
        self.browsers: list[FakeBrowser] = []

    def launch(self, **kwargs) -> FakeBrowser:
        self.launches.append(kwargs)
        error = self.launch_errors.pop(0) if self.launch_errors else None
        if error is not None:
            raise error
        browser = FakeBrowser(self.page)
        self.browsers.append(browser)
        return browser


class FakePlaywrightFactory:
    """Stands in for ``sync_playwright``: callable returning a context manager."""

    def __init__(self, page: FakePage, launch_errors: list[Exception | None] | None = None) -> None:
        self.chromium = FakeChromium(page, launch_errors or [])
        self.entered = 0
        self.exited = 0

    def __call__(self):
        return self

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.exited += 1
        return False


# DocumentRenderer ---------------------------------------------------------

def test_renderer_prints_a4_with_backgrounds_and_closes_browser() -> None:
    page = FakePage(RENDERED_PDF)
    factory = FakePlaywrightFactory(page)
    renderer = DocumentRenderer(RendererConfig(), playwright_factory=factory)

    data = renderer.render("<p>hello</p>")

    assert data == RENDERED_PDF
    assert page.content_kwargs["wait_until"] == "networkidle"
    assert page.waits == [1500]
    assert page.pdf_kwargs["format"] == "A4"
    assert page.pdf_kwargs["print_background"] is True
    assert page.pdf_kwargs["margin"] == {"top": "20mm", "right": "16mm", "bottom": "20mm", "left": "16mm"}
    assert factory.chromium.launches[0]["args"] == list(LOCAL_CHROME_ARGS)
    assert factory.chromium.browsers[0].closed is True
    assert factory.chromium.browsers[0].viewport == {"width": 1200, "height": 800}
    assert factory.entered == factory.exited == 1


def test_renderer_releases_browser_when_loading_fails() -> None:
    page = FakePage(RENDERED_PDF, set_content_error=TimeoutError("networkidle timeout"))
    factory = FakePlaywrightFactory(page)
    renderer = DocumentRenderer(RendererConfig(), playwright_factory=factory)

    with pytest.raises(RenderFailure) as excinfo:
        renderer.render("<p>slow</p>")

    assert isinstance(excinfo.value.__cause__, TimeoutError)
    assert all(browser.closed for browser in factory.chromium.browsers)
    assert factory.entered == factory.exited


def test_hosted_renderer_falls_back_to_local_launch() -> None:
    page = FakePage(RENDERED_PDF)
    factory = FakePlaywrightFactory(page, launch_errors=[RuntimeError("hosted chromium crashed"), None])
    renderer = DocumentRenderer(RendererConfig(hosted=True), playwright_factory=factory)

    data = renderer.render("<p>hello</p>")

    assert data == RENDERED_PDF
    launches = factory.chromium.launches
    assert [launch["args"] for launch in launches] == [list(HOSTED_CHROME_ARGS), list(LOCAL_CHROME_ARGS)]
    assert all(launch["chromium_sandbox"] is False for launch in launches)
    assert factory.entered == factory.exited == 2


def test_renderer_raises_render_failure_when_every_launch_fails() -> None:
    page = FakePage(RENDERED_PDF)
    error = RuntimeError("no browser")
    factory = FakePlaywrightFactory(page, launch_errors=[error, error])
    renderer = DocumentRenderer(RendererConfig(hosted=True), playwright_factory=factory)

    with pytest.raises(RenderFailure) as excinfo:
        renderer.render("<p>hello</p>")

    assert excinfo.value.__cause__ is error


def test_renderer_rejects_non_pdf_output() -> None:
    factory = FakePlaywrightFactory(FakePage(b"<html>not a pdf</html>"))
    renderer = DocumentRenderer(RendererConfig(), playwright_factory=factory)

    with pytest.raises(RenderFailure):
        renderer.render("<p>hello</p>")


def test_renderer_logs_http_errors_while_loading(caplog) -> None:
    page = FakePage(RENDERED_PDF)
    renderer = DocumentRenderer(RendererConfig(grace_delay_ms=0), playwright_factory=FakePlaywrightFactory(page))
    renderer.render("<img src='https://cdn.example.com/missing.png'>")

    with caplog.at_level(logging.WARNING):
        page.handlers["response"](FakeResponse(404, "https://cdn.example.com/missing.png"))
        page.handlers["response"](FakeResponse(200, "https://cdn.example.com/ok.png"))

    assert page.waits == []
    assert "HTTP 404" in caplog.text
    assert "ok.png" not in caplog.text


def test_missing_browser_triggers_single_install_and_retry(monkeypatch) -> None:
    installs: list[str] = []
    monkeypatch.setattr(
        pdf_generation,
        "ensure_playwright_browser_installed",
        lambda logger: installs.append("chromium") or True,
    )
    page = FakePage(RENDERED_PDF)
    missing = RuntimeError("Executable doesn't exist at /ms-playwright/chromium/chrome")
    factory = FakePlaywrightFactory(page, launch_errors=[missing, None])
    renderer = DocumentRenderer(RendererConfig(auto_install_browsers=True), playwright_factory=factory)

    assert renderer.render("<p>x</p>") == RENDERED_PDF
    assert installs == ["chromium"]


# PDFGenerationService -------------------------------------------------------

def _extract_text(data: bytes) -> str:
    return "\n".join(page.extract_text() for page in PdfReader(io.BytesIO(data)).pages)


def test_browser_output_is_returned_when_rendering_succeeds() -> None:
    renderer = StaticRenderer(RENDERED_PDF)
    service = PDFGenerationService(renderer=renderer)

    result = service.render_with_details("<p>hi</p>")

    assert result.data == RENDERED_PDF
    assert result.source == "browser"
    assert renderer.seen == ["<p>hi</p>"]


def test_render_failure_falls_back_to_extracted_text() -> None:
    service = PDFGenerationService(renderer=FailingRenderer())

    result = service.render_with_details(
        "<html><body><h1>Invoice #1</h1><p>Total: $100</p></body></html>"
    )

    assert result.source == "text"
    assert result.data.startswith(b"%PDF-")
    text = _extract_text(result.data)
    assert "Invoice #1" in text
    assert "Total: $100" in text


def test_fallback_text_excludes_script_content() -> None:
    service = PDFGenerationService(renderer=FailingRenderer())

    data = service.render_document("<body><script>alert(1)</script><p>Contract</p></body>")

    assert b"alert(1)" not in data
    assert b"alert\\(1\\)" not in data
    assert "Contract" in _extract_text(data)


def test_empty_html_still_yields_a_valid_document() -> None:
    service = PDFGenerationService(renderer=FailingRenderer())

    data = service.render_document("")

    assert data.startswith(b"%PDF-1.4\n")
    assert data.rstrip().endswith(b"%%EOF")
    assert len(PdfReader(io.BytesIO(data)).pages) == 1
    assert "Document" in _extract_text(data)


def test_none_html_is_treated_as_empty() -> None:
    service = PDFGenerationService(renderer=FailingRenderer())

    assert service.render_document(None) == service.render_document("")


def test_unexpected_renderer_errors_also_fall_back() -> None:
    service = PDFGenerationService(renderer=FailingRenderer(ValueError("bug in renderer")))

    result = service.render_with_details("<p>still here</p>")

    assert result.source == "text"
    assert "still here" in _extract_text(result.data)


def test_extraction_failure_uses_placeholder(monkeypatch) -> None:
    def _boom(html_content):
        raise ExtractionFailure("cannot strip")

    monkeypatch.setattr(pdf_generation, "extract_plain_text", _boom)
    service = PDFGenerationService(renderer=FailingRenderer())

    result = service.render_with_details("<p>ignored</p>")

    assert result.source == "placeholder"
    assert FALLBACK_PLACEHOLDER_TEXT in _extract_text(result.data)


def test_encoding_failure_propagates() -> None:
    class BrokenEncoder:
        def encode_document(self, text):
            raise EncodingFailure("xref drift")

    service = PDFGenerationService(renderer=FailingRenderer(), encoder=BrokenEncoder())

    with pytest.raises(EncodingFailure):
        service.render_document("<p>x</p>")


def test_truncation_is_reported_in_result(caplog) -> None:
    service = PDFGenerationService(renderer=FailingRenderer())

    with caplog.at_level(logging.WARNING):
        result = service.render_with_details("<p>" + "word " * 800 + "</p>")

    assert result.source == "text"
    assert result.truncated is True
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING and "truncated" in r.getMessage()]
    assert len(warnings) == 1


def test_long_fallback_text_stays_on_one_page() -> None:
    service = PDFGenerationService(renderer=FailingRenderer())

    data = service.render_document("<p>" + " ".join(["x" * 45] * 80) + "</p>")

    reader = PdfReader(io.BytesIO(data))
    assert len(reader.pages) == 1
    assert data.count(b"/Type /Page ") == 1
    assert data.count(b"\nstream\n") == 1


def test_non_string_input_is_rejected() -> None:
    service = PDFGenerationService(renderer=FailingRenderer())

    with pytest.raises(TypeError):
        service.render_document(b"<p>bytes</p>")  # type: ignore[arg-type]


def test_config_is_read_per_call_when_no_renderer_injected(monkeypatch) -> None:
    built: list[RendererConfig] = []

    class RecordingRenderer:
        def __init__(self, config, logger=None):
            built.append(config)

        def render(self, html_content):
            raise RenderFailure("no browser in tests")

    monkeypatch.setattr(pdf_generation, "DocumentRenderer", RecordingRenderer)
    monkeypatch.setenv("PDF_HOSTED_RUNTIME", "true")
    service = PDFGenerationService()

    service.render_document("<p>one</p>")
    monkeypatch.setenv("PDF_HOSTED_RUNTIME", "false")
    service.render_document("<p>two</p>")

    assert [config.hosted for config in built] == [True, False]
