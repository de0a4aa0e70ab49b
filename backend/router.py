import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

Handler = Callable[[Dict[str, Any]], Dict[str, Any]]

PDF_ROUTE = "/api/generate-contract-pdf"


class LambdaRouter:
    """Simple router for API Gateway events."""

    def __init__(self, verify_browser: Optional[Callable[[], bool]] = None):
        self.verify_browser = verify_browser
        self.logger = logging.getLogger(__name__)
        self.cors_headers = {
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Headers': 'Content-Type, Authorization',
            'Access-Control-Allow-Methods': 'OPTIONS, POST, GET',
            'Access-Control-Expose-Headers': 'Content-Disposition, X-Document-Renderer, X-Document-Truncated',
        }

    def handle(self, event: Dict[str, Any], handlers: Dict[Tuple[str, str], Handler]) -> Dict[str, Any]:
        try:
            self._log_memory()

            path = (event.get('path', '') or '').rstrip('/') or '/'
            method = (event.get('httpMethod', '') or '').upper()

            if method == 'OPTIONS':
                return {'statusCode': 200, 'headers': dict(self.cors_headers), 'body': ''}

            self.logger.info(f"Processing request: {method} {path}")

            if path == PDF_ROUTE and method == 'POST' and self.verify_browser is not None:
                if not self.verify_browser():
                    self.logger.error("Playwright browser verification failed - text fallback PDFs likely")

            func = handlers.get((method, path))
            if func:
                response = func(event)
            else:
                response = {
                    'statusCode': 404,
                    'headers': {'Content-Type': 'application/json'},
                    'body': json.dumps({'error': 'Not found'})
                }

            response.setdefault('headers', {})
            response['headers'].update(self.cors_headers)
            return response

        except Exception as e:
            self.logger.exception("Lambda handler error")
            return {
                'statusCode': 500,
                'headers': {'Content-Type': 'application/json', **self.cors_headers},
                'body': json.dumps({'error': f'Internal server error: {str(e)}'})
            }

    def _log_memory(self) -> None:
        try:
            import psutil
            memory_info = psutil.virtual_memory()
            self.logger.info(f"Available memory: {memory_info.available / 1024 / 1024:.1f} MB")
        except Exception as e:
            self.logger.debug(f"Memory check unavailable: {e}")
