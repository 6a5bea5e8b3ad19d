"""Ingest stage — PDF validation, page metadata, and background rendering.

Every caller that needs to touch the PDF file goes through this module or
:mod:`invoicemerge.tocr`; nothing else calls ``pdfplumber.open()``.

Public API
----------
- :func:`ingest_pdf` — validate a PDF and read its page sizes
- :func:`render_page_image` — rasterise one page for overlays
- :class:`PdfMeta` / :class:`PageInfo` — metadata containers
- :class:`IngestError` — raised on validation or open failures
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pdfplumber
from PIL import Image

log = logging.getLogger(__name__)


@dataclass
class PageInfo:
    """Size of one PDF page in points."""

    number: int  # 1-based
    width: float
    height: float

    def to_dict(self) -> dict:
        """Serialize page info to a JSON-compatible dict."""
        return {
            "num": self.number,
            "width": round(self.width, 3),
            "height": round(self.height, 3),
        }


@dataclass
class PdfMeta:
    """What :func:`ingest_pdf` learned about a file.

    The pdfplumber handle is closed again before this is returned.
    """

    path: Path
    num_pages: int
    pages: List[PageInfo] = field(default_factory=list)
    file_size_bytes: int = 0
    pdf_metadata: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    def page(self, number: int) -> PageInfo:
        """Return :class:`PageInfo` for 1-based page *number*."""
        if number < 1:
            raise IndexError(f"page numbers start at 1, got {number}")
        return self.pages[number - 1]

    def to_dict(self) -> dict:
        """Serialize PDF metadata to a JSON-compatible dict."""
        d: dict = {
            "path": str(self.path),
            "num_pages": self.num_pages,
            "file_size_bytes": self.file_size_bytes,
        }
        if self.pdf_metadata:
            d["pdf_metadata"] = self.pdf_metadata
        if self.error:
            d["error"] = self.error
        d["pages"] = [p.to_dict() for p in self.pages]
        return d


class IngestError(Exception):
    """Raised when a PDF cannot be ingested."""


def validate_pdf_path(pdf_path: Path | str) -> Path:
    """Return *pdf_path* as a Path or raise :class:`IngestError`."""
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise IngestError(f"File not found: {pdf_path}")
    if not pdf_path.is_file():
        raise IngestError(f"Not a file: {pdf_path}")
    if pdf_path.stat().st_size == 0:
        raise IngestError(f"Empty file: {pdf_path}")
    if pdf_path.suffix.lower() != ".pdf":
        raise IngestError(f"Not a PDF (suffix={pdf_path.suffix!r}): {pdf_path}")
    return pdf_path


def _clean_metadata(raw: dict) -> Dict[str, str]:
    """Coerce the PDF info dict to ``str -> str`` (values may be bytes)."""
    out: Dict[str, str] = {}
    for k, v in (raw or {}).items():
        if isinstance(v, bytes):
            v = v.decode("utf-8", errors="replace")
        out[str(k)] = str(v) if v is not None else ""
    return out


def ingest_pdf(pdf_path: Path | str) -> PdfMeta:
    """Validate a PDF and read its page count, page sizes and info dict.

    Raises
    ------
    IngestError
        When the file is missing, empty, not a ``.pdf``, encrypted, or
        cannot be opened.
    """
    pdf_path = validate_pdf_path(pdf_path)

    try:
        with pdfplumber.open(pdf_path) as pdf:
            if hasattr(pdf, "doc") and hasattr(pdf.doc, "is_extractable"):
                if not pdf.doc.is_extractable:
                    raise IngestError(
                        f"PDF does not permit text extraction: {pdf_path}"
                    )
            pages = [
                PageInfo(number=i, width=float(pg.width), height=float(pg.height))
                for i, pg in enumerate(pdf.pages, start=1)
            ]
            pdf_metadata = _clean_metadata(pdf.metadata)
    except IngestError:
        raise
    except Exception as exc:
        raise IngestError(f"Cannot open PDF {pdf_path}: {exc}") from exc

    meta = PdfMeta(
        path=pdf_path.resolve(),
        num_pages=len(pages),
        pages=pages,
        file_size_bytes=pdf_path.stat().st_size,
        pdf_metadata=pdf_metadata,
    )
    log.info(
        "Ingested %s: %d pages, %.1f KB",
        pdf_path.name,
        meta.num_pages,
        meta.file_size_bytes / 1024,
    )
    return meta


def render_page_image(
    pdf_path: Path | str,
    page_number: int,
    resolution: int = 144,
) -> Image.Image:
    """Rasterise 1-based *page_number* to an RGB image at *resolution* DPI."""
    with pdfplumber.open(pdf_path) as pdf:
        page = pdf.pages[page_number - 1]
        img = page.to_image(resolution=resolution).original.copy()
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img
