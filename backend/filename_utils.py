"""Helpers for deriving safe download filenames."""
from __future__ import annotations

import os
import re
import time
from typing import Optional


def sanitize_filename(name: Optional[str], default: str = "file") -> str:
    """Return a safe base filename without extension.

    Keeps letters, numbers, spaces and ``_ . - ( )``; directory components
    and quotes are dropped so the value is safe inside a
    ``Content-Disposition`` header.
    """
    try:
        base = os.path.basename(str(name or "").replace("\\", "/"))
        base, _ = os.path.splitext(base)
        base = re.sub(r"[^A-Za-z0-9 _().\-]", "_", base).strip(" ._")
        base = re.sub(r"[ _]+", " ", base).strip()
        return base or default
    except Exception:
        return default


def default_pdf_filename(prefix: str = "contract") -> str:
    return f"{prefix}-{int(time.time() * 1000)}.pdf"


def resolve_pdf_filename(requested: Optional[str], prefix: str = "contract") -> str:
    """Sanitized ``requested`` name with a ``.pdf`` extension, or a timestamped default."""
    if not requested or not str(requested).strip():
        return default_pdf_filename(prefix)
    base = sanitize_filename(requested, default="")
    if not base:
        return default_pdf_filename(prefix)
    return f"{base}.pdf"


__all__ = ["default_pdf_filename", "resolve_pdf_filename", "sanitize_filename"]
