import json
import logging
import os
from typing import Any, Dict

from handlers import create_generate_pdf_handler
from logging_utils import configure_logging
from pdf_generation import PDFGenerationService
from pdf_settings import resolve_site_url
from playwright_environment import (
    cleanup_browser_processes as cleanup_playwright_artifacts,
    is_hosted_runtime,
    verify_playwright_installation as verify_playwright_env,
)
from router import PDF_ROUTE, LambdaRouter


############################################
# In AWS Lambda the root logger may already have a handler at WARNING level
# (so logging.basicConfig would NO-OP). configure_logging adjusts the root
# level explicitly so INFO logs always reach CloudWatch.
############################################


configure_logging()
logger = logging.getLogger(__name__)

SERVICE_NAME = os.environ.get('SERVICE_NAME', 'fleet-document-service')

# Renderer configuration is read from the environment on every call.
pdf_service = PDFGenerationService(logger=logger)
render_document = pdf_service.render_document

handle_generate_pdf = create_generate_pdf_handler(
    logger=logger,
    render_with_details=pdf_service.render_with_details,
    site_url=resolve_site_url(),
)


def handle_health(event: Dict[str, Any]) -> Dict[str, Any]:
    """Handle health check."""
    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps({'status': 'healthy', 'service': SERVICE_NAME, 'hosted': is_hosted_runtime()})
    }


def cleanup_browser_processes() -> None:
    cleanup_playwright_artifacts(logger)


def verify_playwright_installation() -> bool:
    return verify_playwright_env(logger)


router = LambdaRouter(verify_playwright_installation if is_hosted_runtime() else None)
HANDLERS = {
    ("POST", PDF_ROUTE): handle_generate_pdf,
    ("GET", "/api/health"): handle_health,
}


def lambda_handler(event, context):
    """Main Lambda entry point."""
    try:
        return router.handle(event, HANDLERS)
    finally:
        if is_hosted_runtime():
            cleanup_browser_processes()
        logger.info("Lambda handler completed")
