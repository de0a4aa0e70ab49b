"""HTML to PDF rendering with graceful degradation.

``DocumentRenderer`` drives headless Chromium through Playwright and is the
high-fidelity path.  ``PDFGenerationService`` hides the renderer behind a
single call that always returns PDF bytes: when the browser fails it strips
the HTML to text and hands it to the minimal encoder, and when even text
extraction fails it encodes a fixed placeholder line.
"""
from __future__ import annotations

import io
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from playwright.sync_api import sync_playwright
from pypdf import PdfReader

from errors import ExtractionFailure, RenderFailure
from html_processing import extract_plain_text
from minimal_pdf import MinimalPdfEncoder
from pdf_settings import RendererConfig, load_renderer_config
from playwright_environment import LaunchPlan, resolve_launch_plans
from playwright_install import ensure_playwright_browser_installed, is_missing_browser_error


FALLBACK_PLACEHOLDER_TEXT = "Error generating PDF. Check logs."

SOURCE_BROWSER = "browser"
SOURCE_TEXT = "text"
SOURCE_PLACEHOLDER = "placeholder"


class Renderer(Protocol):
    def render(self, html_content: str) -> bytes: ...


@dataclass(frozen=True)
class RenderResult:
    data: bytes
    source: str
    truncated: bool = False


class DocumentRenderer:
    """Render HTML to PDF bytes with headless Chromium.

    Each call owns its own Playwright driver and browser process; both are
    torn down before the call returns, whether rendering succeeded or not.
    Any failure is reported as ``RenderFailure``.
    """

    def __init__(
        self,
        config: RendererConfig,
        logger: Optional[logging.Logger] = None,
        playwright_factory: Callable = sync_playwright,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._playwright_factory = playwright_factory

    # Public API -----------------------------------------------------
    def render(self, html_content: str) -> bytes:
        plans = resolve_launch_plans(self.config, self.logger)
        last_error: Optional[BaseException] = None

        for plan in plans:
            try:
                return self._render_with_plan(plan, html_content)
            except Exception as exc:
                if self._should_install_browser(plan, exc):
                    try:
                        return self._render_with_plan(plan, html_content)
                    except Exception as retry_exc:
                        exc = retry_exc
                self.logger.error(
                    "Browser render with %s launch plan failed (%s): %s",
                    plan.name,
                    type(exc).__name__,
                    exc,
                )
                last_error = exc

        raise RenderFailure(
            f"Browser rendering failed after {len(plans)} launch plan(s): {last_error}"
        ) from last_error

    # Internal helpers ---------------------------------------------------
    def _should_install_browser(self, plan: LaunchPlan, exc: Exception) -> bool:
        if not self.config.auto_install_browsers or plan.executable_path:
            return False
        if not is_missing_browser_error(exc):
            return False
        self.logger.warning("Playwright Chromium is missing; attempting install")
        return ensure_playwright_browser_installed(self.logger)

    def _render_with_plan(self, plan: LaunchPlan, html_content: str) -> bytes:
        config = self.config
        start_time = time.time()
        self.logger.info(
            "Launching Chromium (%s plan, %s flags) for %s characters of HTML",
            plan.name,
            len(plan.args),
            len(html_content),
        )

        with self._playwright_factory() as p:
            launch_kwargs = {
                "headless": True,
                "args": list(plan.args),
                "timeout": config.launch_timeout_ms,
                "chromium_sandbox": plan.chromium_sandbox,
            }
            if plan.executable_path:
                launch_kwargs["executable_path"] = plan.executable_path

            browser = p.chromium.launch(**launch_kwargs)
            self.logger.info("Browser launched in %.2fs", time.time() - start_time)
            try:
                page = browser.new_page(viewport=dict(config.viewport))
                self._attach_diagnostics(page)

                page.set_content(
                    html_content,
                    wait_until="networkidle",
                    timeout=config.navigation_timeout_ms,
                )
                if config.grace_delay_ms:
                    # Images and web fonts may still be decoding after network idle.
                    page.wait_for_timeout(config.grace_delay_ms)

                pdf_bytes = page.pdf(
                    format=config.page_format,
                    margin=dict(config.margins),
                    print_background=True,
                    prefer_css_page_size=False,
                    display_header_footer=False,
                )
            finally:
                self._close_browser(browser)

        page_count = self._validate_output(pdf_bytes)
        self.logger.info(
            "PDF rendered with Chromium: %s bytes, %s page(s) in %.2fs",
            len(pdf_bytes),
            page_count,
            time.time() - start_time,
        )
        return bytes(pdf_bytes)

    def _attach_diagnostics(self, page) -> None:
        logger = self.logger

        def _on_console(message) -> None:
            logger.info("Page console [%s]: %s", message.type, message.text)

        def _on_page_error(error) -> None:
            logger.warning("Page error: %s", error)

        def _on_request_failed(request) -> None:
            logger.warning("Request failed: %s (%s)", request.url, request.failure)

        def _on_response(response) -> None:
            if response.status >= 400:
                logger.warning("HTTP %s while loading %s", response.status, response.url)

        page.on("console", _on_console)
        page.on("pageerror", _on_page_error)
        page.on("requestfailed", _on_request_failed)
        page.on("response", _on_response)

    def _close_browser(self, browser) -> None:
        try:
            browser.close()
        except Exception as exc:
            self.logger.warning("Failed to close browser cleanly: %s", exc)

    @staticmethod
    def _validate_output(pdf_bytes) -> int:
        if not pdf_bytes or not bytes(pdf_bytes[:5]) == b"%PDF-":
            raise RenderFailure("Chromium returned data without a PDF header")
        try:
            return len(PdfReader(io.BytesIO(bytes(pdf_bytes))).pages)
        except Exception as exc:
            raise RenderFailure(f"Chromium returned an unreadable PDF: {exc}") from exc


class PDFGenerationService:
    """Single entry point turning HTML into PDF bytes; never fails on HTML input."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        renderer: Optional[Renderer] = None,
        encoder: Optional[MinimalPdfEncoder] = None,
        config: Optional[RendererConfig] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._renderer = renderer
        self._encoder = encoder or MinimalPdfEncoder()
        self._config = config

    # Public API -----------------------------------------------------
    def render_document(self, html_content: Optional[str]) -> bytes:
        return self.render_with_details(html_content).data

    def render_with_details(self, html_content: Optional[str]) -> RenderResult:
        if html_content is None:
            html_content = ""
        if not isinstance(html_content, str):
            raise TypeError(f"html_content must be str, not {type(html_content).__name__}")

        try:
            data = self._get_renderer().render(html_content)
            return RenderResult(data=data, source=SOURCE_BROWSER)
        except RenderFailure as exc:
            self.logger.error("PDF rendering failed, using text fallback: %s", exc)
        except Exception:
            self.logger.exception("Unexpected renderer error, using text fallback")

        return self.render_fallback(html_content)

    def render_fallback(self, html_content: str) -> RenderResult:
        """Encode the visible text of ``html_content`` as a minimal PDF."""
        try:
            text = extract_plain_text(html_content)
            source = SOURCE_TEXT
        except ExtractionFailure as exc:
            self.logger.error("Text extraction failed, using placeholder: %s", exc)
            text = FALLBACK_PLACEHOLDER_TEXT
            source = SOURCE_PLACEHOLDER

        self.logger.info("Creating fallback PDF from %s characters of text", len(text))
        document = self._encoder.encode_document(text)
        if document.truncated:
            self.logger.warning(
                "Fallback PDF truncated: %s line(s) on %s page(s) kept",
                document.line_count,
                document.page_count,
            )
        return RenderResult(data=document.data, source=source, truncated=document.truncated)

    # Internal helpers ---------------------------------------------------
    def _get_renderer(self) -> Renderer:
        if self._renderer is not None:
            return self._renderer
        config = self._config or load_renderer_config()
        self.logger.info(
            "Renderer configuration: hosted=%s, format=%s, margins=%s",
            config.hosted,
            config.page_format,
            dict(config.margins),
        )
        return DocumentRenderer(config, logger=self.logger)


_default_service = PDFGenerationService()


def render_document(html_content: Optional[str]) -> bytes:
    """Render ``html_content`` to PDF bytes using the default service."""
    return _default_service.render_document(html_content)


__all__ = [
    "DocumentRenderer",
    "FALLBACK_PLACEHOLDER_TEXT",
    "PDFGenerationService",
    "RenderResult",
    "render_document",
]
