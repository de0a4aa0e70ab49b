"""Request handler for /api/generate-contract-pdf events."""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict

from document_templates import build_service_document_html
from filename_utils import resolve_pdf_filename
from html_processing import absolutize_image_urls
from request_parser import RequestBodyError, RequestParser


class GeneratePdfInputError(Exception):
    """Raised when the request does not carry a document to render."""


class GeneratePdfHandler:
    """Turns a contract HTML string or booking ``pdfData`` into a PDF download.

    Rendering itself cannot fail: ``render_with_details`` always yields a
    document, degraded to plain text when the browser is unavailable.
    """

    def __init__(
        self,
        logger,
        render_with_details: Callable[[str], Any],
        site_url: str,
    ) -> None:
        self._logger = logger
        self._render_with_details = render_with_details
        self._site_url = site_url

    # Public API ---------------------------------------------------------

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        try:
            try:
                payload = RequestParser(event).json()
                html_content = self._resolve_html(payload)
            except (RequestBodyError, GeneratePdfInputError) as exc:
                self._logger.warning("Rejected PDF request: %s", exc)
                return self._bad_request(str(exc))

            if payload.get("preview") is True:
                return {
                    "statusCode": 200,
                    "headers": {"Content-Type": "text/html; charset=utf-8"},
                    "body": html_content,
                }

            html_content = absolutize_image_urls(html_content, self._site_url)
            filename = resolve_pdf_filename(payload.get("filename"))

            result = self._render_with_details(html_content)
            self._logger.info(
                "Generated %s (%s bytes, source=%s, truncated=%s)",
                filename,
                len(result.data),
                result.source,
                result.truncated,
            )
            return {
                "statusCode": 200,
                "headers": {
                    "Content-Type": "application/pdf",
                    "Content-Disposition": f'attachment; filename="{filename}"',
                    "Cache-Control": "no-store",
                    "X-Document-Renderer": result.source,
                    "X-Document-Truncated": "true" if result.truncated else "false",
                },
                "body": base64.b64encode(result.data).decode("ascii"),
                "isBase64Encoded": True,
            }
        except Exception as exc:
            self._logger.exception("Error in handle_generate_pdf")
            return self._server_error(f"PDF generation failed: {exc}")

    # Internal helpers ---------------------------------------------------

    def _resolve_html(self, payload: Dict[str, Any]) -> str:
        pdf_data = payload.get("pdfData")
        if pdf_data:
            if not isinstance(pdf_data, dict):
                raise GeneratePdfInputError("pdfData must be an object")
            data = {**pdf_data, "doc_type": payload.get("docType") or "receipt"}
            html_content = build_service_document_html(data)
            self._logger.info("Built service document HTML (%s characters)", len(html_content))
            return html_content

        contract_html = payload.get("contractHtml")
        if not contract_html or not isinstance(contract_html, str):
            raise GeneratePdfInputError("Missing contractHtml or pdfData in request")
        return contract_html

    # Response helpers ---------------------------------------------------

    @staticmethod
    def _bad_request(message: str) -> Dict[str, Any]:
        return {
            "statusCode": 400,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": message}),
        }

    @staticmethod
    def _server_error(message: str) -> Dict[str, Any]:
        return {
            "statusCode": 500,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": message}),
        }


def create_generate_pdf_handler(logger, render_with_details, site_url: str):
    handler = GeneratePdfHandler(
        logger=logger,
        render_with_details=render_with_details,
        site_url=site_url,
    )
    return handler.handle
