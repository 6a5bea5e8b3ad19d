"""Ingest stage — PDF file validation, metadata, and rendering.

Public API
----------
- :func:`ingest_pdf` — open + validate a PDF, return :class:`PdfMeta`
- :func:`render_page_image` — render one page to a PIL Image
- :class:`IngestError` — raised on validation failures
"""

from .ingest import (
    IngestError,
    PageInfo,
    PdfMeta,
    ingest_pdf,
    render_page_image,
    validate_pdf_path,
)

__all__ = [
    "IngestError",
    "PageInfo",
    "PdfMeta",
    "ingest_pdf",
    "render_page_image",
    "validate_pdf_path",
]
