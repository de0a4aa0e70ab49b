import html
import logging
import re

from errors import ExtractionFailure


logger = logging.getLogger(__name__)

MAX_FALLBACK_TEXT_CHARS = 4000
EMPTY_TEXT_PLACEHOLDER = "Document"

_SCRIPT_OPEN_RE = re.compile(r'<script\b', re.IGNORECASE)
_SCRIPT_CLOSE_RE = re.compile(r'</script\s*>', re.IGNORECASE)
_STYLE_OPEN_RE = re.compile(r'<style\b', re.IGNORECASE)
_STYLE_CLOSE_RE = re.compile(r'</style\s*>', re.IGNORECASE)
_COMMENT_OPEN_RE = re.compile(r'<!--')
_COMMENT_CLOSE_RE = re.compile(r'-->')
_TAG_RE = re.compile(r'<[^<>]+>')
_ROOT_RELATIVE_SRC_RE = re.compile(r'src="/(?!/)')


def _drop_blocks(html_content: str, open_re: re.Pattern, close_re: re.Pattern) -> str:
    """Remove every ``open ... close`` span in one left-to-right pass.

    An opening marker with no closing marker swallows the rest of the input,
    the same way a browser treats an unterminated script or comment.
    """
    kept = []
    pos = 0
    while True:
        opening = open_re.search(html_content, pos)
        if opening is None:
            kept.append(html_content[pos:])
            break
        kept.append(html_content[pos:opening.start()])
        closing = close_re.search(html_content, opening.end())
        if closing is None:
            break
        pos = closing.end()
    return ''.join(kept)


def strip_non_content_blocks(html_content: str) -> str:
    """Remove script/style blocks (with their bodies) and HTML comments."""
    html_content = _drop_blocks(html_content, _SCRIPT_OPEN_RE, _SCRIPT_CLOSE_RE)
    html_content = _drop_blocks(html_content, _STYLE_OPEN_RE, _STYLE_CLOSE_RE)
    return _drop_blocks(html_content, _COMMENT_OPEN_RE, _COMMENT_CLOSE_RE)


def normalize_whitespace(text: str) -> str:
    if not text:
        return ""
    content = text.replace('\u200B', '').replace('\uFEFF', '').replace('\u00AD', '')
    content = re.sub(r'[\u00A0\u2000-\u200A\u202F\u205F\u3000]', ' ', content)
    content = re.sub(r'\s+', ' ', content)
    return content.strip()


def extract_plain_text(html_content: str | None, max_chars: int = MAX_FALLBACK_TEXT_CHARS) -> str:
    """Reduce an HTML document to a single collapsed line of visible text.

    Script and style bodies are dropped entirely, remaining tags become word
    breaks, entities are decoded and the result is capped at ``max_chars``.
    An empty result is replaced with ``"Document"`` so the fallback page is
    never blank.

    Raises:
        ExtractionFailure: if the input cannot be processed as text.
    """
    try:
        content = strip_non_content_blocks(html_content or "")
        content = _TAG_RE.sub(' ', content)
        content = html.unescape(content)
        content = normalize_whitespace(content)
        content = content[:max_chars].rstrip()
    except Exception as exc:
        raise ExtractionFailure(f"Could not extract text from HTML: {exc}") from exc

    if not content:
        logger.debug("No visible text found in HTML; using placeholder")
        return EMPTY_TEXT_PLACEHOLDER
    return content


def absolutize_image_urls(html_content: str, base_url: str) -> str:
    """Point root-relative ``src="/..."`` references at ``base_url``.

    The headless browser loads the document from ``about:blank`` so
    root-relative assets would otherwise never resolve.
    """
    if not html_content or not base_url:
        return html_content or ""
    base = base_url.rstrip('/')
    rewritten, count = _ROOT_RELATIVE_SRC_RE.subn(f'src="{base}/', html_content)
    if count:
        logger.info("Rewrote %s root-relative image source(s) against %s", count, base)
    return rewritten


__all__ = [
    "EMPTY_TEXT_PLACEHOLDER",
    "MAX_FALLBACK_TEXT_CHARS",
    "absolutize_image_urls",
    "extract_plain_text",
    "normalize_whitespace",
    "strip_non_content_blocks",
]
