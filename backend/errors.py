"""Exceptions raised inside the document generation pipeline."""
from __future__ import annotations


class DocumentPipelineError(Exception):
    """Base class for document pipeline failures."""


class RenderFailure(DocumentPipelineError):
    """The browser renderer could not produce a document."""


class ExtractionFailure(DocumentPipelineError):
    """Plain text could not be extracted from the HTML input."""


class EncodingFailure(DocumentPipelineError):
    """The minimal PDF encoder produced an inconsistent object graph.

    Never expected in practice; there is no further fallback beneath the
    encoder, so this is propagated to the caller.
    """


__all__ = [
    "DocumentPipelineError",
    "RenderFailure",
    "ExtractionFailure",
    "EncodingFailure",
]
