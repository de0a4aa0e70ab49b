"""Hand-built PDF encoder used when the browser renderer is unavailable.

The encoder lays plain text out in Helvetica on a single A4 page and
serializes the object graph (catalog, page tree, page, content stream, font)
directly into bytes.  It has no dependency on any rendering engine, embeds no
timestamps and is deterministic: the same text always produces the same bytes.

The default budget is one page; the line budget fits inside the MediaBox
(the last baseline of 47 lines sits at y=60).  Callers may pass a larger
``max_pages`` budget, in which case the object order for ``n`` pages is::

    1            Catalog
    2            Pages
    3, 5, ...    Page objects
    4, 6, ...    Content streams (one per page)
    2n + 3       Font

so the default document is always ``Catalog, Pages, Page, Contents, Font``.
"""
from __future__ import annotations

import logging
import re
import textwrap
from dataclasses import dataclass
from typing import List, Optional, Sequence

from errors import EncodingFailure


logger = logging.getLogger(__name__)

PDF_HEADER = b"%PDF-1.4\n"
# Comment line with high-bit bytes so transports treat the file as binary.
BINARY_MARKER = b"%" + bytes([0xE2, 0xE3, 0xCF, 0xD3]) + b"\n"

PAGE_WIDTH = 595
PAGE_HEIGHT = 842
FONT_NAME = "Helvetica"
FONT_SIZE = 11
TEXT_START_X = 40
TEXT_START_Y = 750
LINE_HEIGHT = 15

MAX_LINE_CHARS = 90
LINES_PER_PAGE = 47
MAX_PAGES = 1
MAX_TEXT_CHARS = 3000

_FREE_LIST_HEAD = b"0000000000 65535 f \n"
_OBJECT_MARKER_RE = re.compile(rb"(\d+) 0 obj\n")


@dataclass(frozen=True)
class PdfObject:
    """One indirect object: its number and the bytes between ``obj`` and ``endobj``."""

    number: int
    body: bytes


@dataclass(frozen=True)
class MinimalDocument:
    data: bytes
    page_count: int
    line_count: int
    truncated: bool


def escape_pdf_text(text: str) -> str:
    """Escape the characters that are significant inside a PDF string literal."""
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _encode_latin1(text: str) -> str:
    return text.encode("latin-1", errors="replace").decode("latin-1")


def _stream_object(number: int, data: bytes) -> PdfObject:
    body = b"<< /Length %d >>\nstream\n" % len(data) + data + b"\nendstream"
    return PdfObject(number, body)


class MinimalPdfEncoder:
    """Encode plain text into a minimal, always-valid PDF."""

    def __init__(
        self,
        max_line_chars: int = MAX_LINE_CHARS,
        lines_per_page: int = LINES_PER_PAGE,
        max_pages: int = MAX_PAGES,
        max_text_chars: int = MAX_TEXT_CHARS,
    ) -> None:
        self.max_line_chars = max(1, int(max_line_chars))
        self.lines_per_page = max(1, int(lines_per_page))
        self.max_pages = max(1, int(max_pages))
        self.max_text_chars = max(0, int(max_text_chars))

    @property
    def max_lines(self) -> int:
        return self.lines_per_page * self.max_pages

    # Public API -----------------------------------------------------
    def encode(self, text: Optional[str]) -> bytes:
        return self.encode_document(text).data

    def encode_document(self, text: Optional[str]) -> MinimalDocument:
        lines, truncated = self.layout_lines(text or "")
        pages = [
            lines[start:start + self.lines_per_page]
            for start in range(0, len(lines), self.lines_per_page)
        ] or [[]]

        objects = self._build_objects(pages)
        data = self._serialize(objects)
        self._verify(data, objects)

        if truncated:
            logger.debug(
                "Minimal PDF text truncated to %s line(s) across %s page(s)",
                len(lines),
                len(pages),
            )
        return MinimalDocument(
            data=data,
            page_count=len(pages),
            line_count=len(lines),
            truncated=truncated,
        )

    def layout_lines(self, text: str) -> tuple[List[str], bool]:
        """Split ``text`` into display lines that fit the width and line budget.

        Returns the (unescaped) lines and whether anything was dropped.
        """
        truncated = len(text) > self.max_text_chars
        text = _encode_latin1(text[:self.max_text_chars])

        lines: List[str] = []
        for paragraph in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            lines.extend(
                textwrap.wrap(
                    paragraph,
                    width=self.max_line_chars,
                    break_long_words=True,
                    break_on_hyphens=False,
                )
            )

        if len(lines) > self.max_lines:
            lines = lines[:self.max_lines]
            truncated = True
        return lines, truncated

    # Internal helpers ---------------------------------------------------
    def _content_stream(self, lines: Sequence[str]) -> bytes:
        parts = [f"BT /F1 {FONT_SIZE} Tf {TEXT_START_X} {TEXT_START_Y} Td\n"]
        for line in lines:
            parts.append(f"({escape_pdf_text(line)}) Tj\n")
            parts.append(f"0 -{LINE_HEIGHT} Td\n")
        parts.append("ET")
        return "".join(parts).encode("latin-1")

    def _build_objects(self, pages: Sequence[Sequence[str]]) -> List[PdfObject]:
        page_numbers = [3 + 2 * index for index in range(len(pages))]
        font_number = 3 + 2 * len(pages)
        kids = " ".join(f"{number} 0 R" for number in page_numbers)

        objects = [
            PdfObject(1, b"<< /Type /Catalog /Pages 2 0 R >>"),
            PdfObject(2, f"<< /Type /Pages /Count {len(pages)} /Kids [{kids}] >>".encode("ascii")),
        ]
        for page_number, page_lines in zip(page_numbers, pages):
            content_number = page_number + 1
            page = (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {PAGE_WIDTH} {PAGE_HEIGHT}] "
                f"/Contents {content_number} 0 R "
                f"/Resources << /Font << /F1 {font_number} 0 R >> >> >>"
            )
            objects.append(PdfObject(page_number, page.encode("ascii")))
            objects.append(_stream_object(content_number, self._content_stream(page_lines)))
        objects.append(
            PdfObject(
                font_number,
                f"<< /Type /Font /Subtype /Type1 /BaseFont /{FONT_NAME} >>".encode("ascii"),
            )
        )
        return objects

    @staticmethod
    def _serialize(objects: Sequence[PdfObject]) -> bytes:
        buffer = bytearray(PDF_HEADER)
        buffer += BINARY_MARKER

        offsets: List[int] = []
        for obj in objects:
            # Offset is taken before the object is appended.
            offsets.append(len(buffer))
            buffer += b"%d 0 obj\n" % obj.number
            buffer += obj.body
            buffer += b"\nendobj\n"

        xref_start = len(buffer)
        buffer += b"xref\n0 %d\n" % (len(objects) + 1)
        buffer += _FREE_LIST_HEAD
        for offset in offsets:
            buffer += b"%010d 00000 n \n" % offset
        buffer += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
        buffer += b"startxref\n%d\n" % xref_start
        buffer += b"%%EOF\n"
        return bytes(buffer)

    @staticmethod
    def _verify(data: bytes, objects: Sequence[PdfObject]) -> None:
        """Re-read the cross-reference table and check it against the buffer."""
        try:
            xref_start = int(data.rsplit(b"startxref\n", 1)[1].split(b"\n", 1)[0])
            if not data.startswith(b"xref\n", xref_start):
                raise EncodingFailure(f"startxref {xref_start} does not point at the xref table")

            table = data[xref_start:].split(b"\n")
            entries = table[3:3 + len(objects)]
            for obj, entry in zip(objects, entries):
                offset = int(entry[:10])
                marker = _OBJECT_MARKER_RE.match(data, offset)
                if marker is None or int(marker.group(1)) != obj.number:
                    raise EncodingFailure(f"xref offset {offset} does not point at object {obj.number}")

            for obj in objects:
                if b"stream\n" not in obj.body:
                    continue
                declared = int(re.match(rb"<< /Length (\d+) >>", obj.body).group(1))
                stream = obj.body.split(b"stream\n", 1)[1].rsplit(b"\nendstream", 1)[0]
                if declared != len(stream):
                    raise EncodingFailure(
                        f"object {obj.number} declares /Length {declared} but carries {len(stream)} bytes"
                    )
        except EncodingFailure:
            raise
        except Exception as exc:
            raise EncodingFailure(f"Generated PDF failed self-check: {exc}") from exc


_default_encoder = MinimalPdfEncoder()


def encode_minimal_pdf(text: Optional[str]) -> bytes:
    """Encode ``text`` on a single A4 page (90 chars x 47 lines)."""
    return _default_encoder.encode(text)


__all__ = [
    "MinimalDocument",
    "MinimalPdfEncoder",
    "PdfObject",
    "encode_minimal_pdf",
    "escape_pdf_text",
]
