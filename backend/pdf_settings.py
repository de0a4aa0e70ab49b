import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from playwright_environment import is_hosted_runtime


logger = logging.getLogger(__name__)

DEFAULT_PDF_PAGE_FORMAT = "A4"
PDF_PAGE_FORMAT_ENV_KEYS = (
    "PDF_PAGE_FORMAT",
    "PDF_PAGE_SIZE",
)
PDF_DEFAULT_MARGINS: Dict[str, str] = {
    "top": "20mm",
    "right": "16mm",
    "bottom": "20mm",
    "left": "16mm",
}

DEFAULT_VIEWPORT = {"width": 1200, "height": 800}
DEFAULT_GRACE_DELAY_MS = 1500
DEFAULT_NAVIGATION_TIMEOUT_MS = 30000
DEFAULT_LAUNCH_TIMEOUT_MS = 30000

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RendererConfig:
    """Everything the browser renderer needs, resolved ahead of the call."""

    hosted: bool = False
    page_format: str = DEFAULT_PDF_PAGE_FORMAT
    margins: Mapping[str, str] = field(default_factory=lambda: dict(PDF_DEFAULT_MARGINS))
    viewport: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_VIEWPORT))
    grace_delay_ms: int = DEFAULT_GRACE_DELAY_MS
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    launch_timeout_ms: int = DEFAULT_LAUNCH_TIMEOUT_MS
    executable_path: Optional[str] = None
    auto_install_browsers: bool = False


def _standardize_page_key(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"[^A-Z0-9]+", "-", value.upper()).strip('-')


def _normalize_margin_value(value: str | None, fallback: str, side: str) -> str:
    if value is None:
        return fallback

    candidate = str(value).strip()
    if not candidate:
        return fallback

    lower_candidate = candidate.lower()
    if lower_candidate.endswith(("in", "cm", "mm", "px")):
        return candidate

    if re.fullmatch(r"\d+(?:\.\d+)?", candidate):
        normalized = f"{candidate}mm"
        logger.debug("Normalized numeric margin for %s side: %s -> %s", side, candidate, normalized)
        return normalized

    logger.warning(
        "Invalid margin value '%s' for %s side. Falling back to %s.",
        value,
        side,
        fallback,
    )
    return fallback


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def resolve_pdf_layout_settings() -> Tuple[str, Dict[str, str]]:
    page_format = DEFAULT_PDF_PAGE_FORMAT

    for key in PDF_PAGE_FORMAT_ENV_KEYS:
        val = (os.environ.get(key) or '').strip()
        if val and _standardize_page_key(val) != DEFAULT_PDF_PAGE_FORMAT:
            logger.warning(
                "Ignoring %s=%s; documents are always printed on %s.",
                key,
                val,
                DEFAULT_PDF_PAGE_FORMAT,
            )

    margins = dict(PDF_DEFAULT_MARGINS)

    general_margin = os.environ.get('PDF_MARGIN')
    if general_margin:
        normalized_general = _normalize_margin_value(general_margin, margins['top'], 'all')
        for side in ('top', 'right', 'bottom', 'left'):
            margins[side] = normalized_general

    for side in ('top', 'right', 'bottom', 'left'):
        side_value = os.environ.get(f'PDF_MARGIN_{side.upper()}')
        if side_value:
            margins[side] = _normalize_margin_value(side_value, margins[side], side)

    logger.debug("Using PDF page format '%s' with margins %s", page_format, margins)
    return page_format, margins


def load_renderer_config() -> RendererConfig:
    """Build a ``RendererConfig`` from the current process environment."""
    page_format, margins = resolve_pdf_layout_settings()
    return RendererConfig(
        hosted=is_hosted_runtime(),
        page_format=page_format,
        margins=margins,
        grace_delay_ms=_env_int("PDF_RENDER_GRACE_MS", DEFAULT_GRACE_DELAY_MS),
        navigation_timeout_ms=_env_int("PDF_NAVIGATION_TIMEOUT_MS", DEFAULT_NAVIGATION_TIMEOUT_MS),
        launch_timeout_ms=_env_int("PDF_BROWSER_LAUNCH_TIMEOUT_MS", DEFAULT_LAUNCH_TIMEOUT_MS),
        executable_path=os.environ.get("CHROMIUM_EXECUTABLE_PATH") or None,
        auto_install_browsers=os.environ.get("PLAYWRIGHT_AUTO_INSTALL", "").strip().lower() in _TRUTHY,
    )


def resolve_site_url() -> str:
    """Base URL used to absolutize root-relative assets in rendered HTML."""
    site_url = os.environ.get("SITE_URL")
    if not site_url and os.environ.get("VERCEL_URL"):
        site_url = f"https://{os.environ['VERCEL_URL']}"
    return (site_url or "http://localhost:3000").rstrip('/')
