"""Text-layer extraction — PDF glyphs to positioned fragments.

Public API
----------
- :func:`extract_document` — extract every page of a PDF path
- :func:`extract_pdf` — same, keeping per-page diagnostics
- :func:`extract_page_fragments` — extract from an open pdfplumber Page
- :class:`PageExtraction` — page + diagnostics container
- :class:`DocumentExtraction` — document + per-page diagnostics
- :func:`matrix_angle_and_size` — rotation/font size from a text matrix
"""

from .extract import (
    DocumentExtraction,
    PageExtraction,
    extract_document,
    extract_page_fragments,
    extract_pdf,
    matrix_angle_and_size,
    page_links,
)

__all__ = [
    "DocumentExtraction",
    "PageExtraction",
    "extract_document",
    "extract_page_fragments",
    "extract_pdf",
    "matrix_angle_and_size",
    "page_links",
]
