import base64
import binascii
import json
from typing import Any, Dict


class RequestBodyError(Exception):
    """Raised when the request body is not the JSON object a handler expects."""


class RequestParser:
    """Utility for working with API Gateway events."""

    def __init__(self, event: Dict[str, Any]):
        self.event = event or {}
        self.headers = self._lower_headers(self.event.get("headers", {}))
        self.method = str(self.event.get("httpMethod") or "").upper()
        self.path = str(self.event.get("path") or "")
        self.query = self.event.get("queryStringParameters") or {}
        self.body = self._get_body_bytes(self.event)

    @staticmethod
    def _lower_headers(headers: Dict[str, Any]) -> Dict[str, str]:
        return {str(k).lower(): v for k, v in (headers or {}).items()}

    @staticmethod
    def _get_body_bytes(event: Dict[str, Any]) -> bytes:
        body = event.get("body") or b""
        if event.get("isBase64Encoded"):
            try:
                return base64.b64decode(body)
            except (binascii.Error, ValueError) as exc:
                raise RequestBodyError(f"Invalid base64 body: {exc}") from exc
        if isinstance(body, str):
            return body.encode("utf-8", errors="ignore")
        return body

    def json(self) -> Dict[str, Any]:
        """Return the JSON object body; an empty body is an empty object."""
        raw = (self.body or b"").decode("utf-8", "ignore").strip()
        if not raw:
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RequestBodyError(f"Invalid JSON body: {exc.msg}") from exc
        if not isinstance(payload, dict):
            raise RequestBodyError("JSON body must be an object")
        return payload
