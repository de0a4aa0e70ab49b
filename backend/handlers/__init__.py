"""Factories for Lambda request handlers."""

from .generate_pdf_handler import create_generate_pdf_handler

__all__ = ["create_generate_pdf_handler"]
