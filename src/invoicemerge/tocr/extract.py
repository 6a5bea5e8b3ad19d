"""Text-layer extraction — pdfplumber characters/words to :class:`Fragment`.

Two modes share one page loop:

``"chars"``
    One fragment per glyph from ``page.chars``.  Rotation and font size
    come from the glyph's text matrix ``(a, b, c, d, e, f)``:
    ``angle = degrees(atan2(b, a))`` and ``font_size = hypot(a, b)``.
    This is the granularity the merge passes are tuned for.

``"words"``
    pdfplumber's ``extract_words`` with ``fontname``/``size``/``upright``
    attributes.  Non-upright words get ``angle = 90``.

Fragment geometry uses pdfplumber's top-down frame: ``x = x0``,
``y = bottom``, ``height = bottom - top``, so ``y - height`` is the
glyph's top edge.  Hyperlink targets come from the page's URI
annotations.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pdfplumber

from ..config import MergeConfig
from ..ingest import IngestError, validate_pdf_path
from ..models import Document, Fragment, Page

log = logging.getLogger(__name__)


@dataclass
class PageExtraction:
    """Output of a single-page extraction."""

    page: Page
    diagnostics: Dict[str, Any] = field(default_factory=dict)


def _empty_diagnostics(cfg: MergeConfig) -> Dict[str, Any]:
    """Return a zero-valued diagnostics dict with the full schema."""
    return {
        "mode": cfg.extract_mode,
        "fragments_raw": 0,
        "fragments_total": 0,
        "fragments_degenerate_skipped": 0,
        "fragments_clipped": 0,
        "rotated_count": 0,
        "links": 0,
        "font_names": {},
        "font_sizes": {},
    }


def matrix_angle_and_size(
    matrix: Optional[Tuple[float, ...]],
) -> Tuple[float, Optional[float]]:
    """Rotation in degrees and scale of a PDF text matrix.

    Returns ``(0.0, None)`` when the matrix is missing or short.
    """
    if not matrix or len(matrix) < 6:
        return 0.0, None
    a, b = float(matrix[0]), float(matrix[1])
    return math.degrees(math.atan2(b, a)), math.hypot(a, b)


def _clip(
    x0: float, top: float, x1: float, bottom: float, page_w: float, page_h: float
) -> Tuple[float, float, float, float]:
    return (
        max(0.0, min(page_w, x0)),
        max(0.0, min(page_h, top)),
        max(0.0, min(page_w, x1)),
        max(0.0, min(page_h, bottom)),
    )


def _to_fragment(
    obj: dict,
    angle: float,
    font_size: Optional[float],
    page_w: float,
    page_h: float,
    cfg: MergeConfig,
    diag: Dict[str, Any],
) -> Optional[Fragment]:
    """Shared geometry handling for chars and words."""
    raw = (
        float(obj.get("x0", 0.0)),
        float(obj.get("top", 0.0)),
        float(obj.get("x1", 0.0)),
        float(obj.get("bottom", 0.0)),
    )
    if cfg.extract_clip_to_page:
        box = _clip(*raw, page_w, page_h)
        if box != raw:
            diag["fragments_clipped"] += 1
    else:
        box = raw
    x0, top, x1, bottom = box
    # Skip degenerate boxes (fully clipped)
    if x1 <= x0 or bottom <= top:
        diag["fragments_degenerate_skipped"] += 1
        return None
    return Fragment(
        text=obj.get("text", ""),
        x=x0,
        y=bottom,
        width=x1 - x0,
        height=bottom - top,
        font_size=font_size,
        angle=angle,
        font_name=obj.get("fontname", "") or "",
    )


def _char_fragments(
    page: "pdfplumber.page.Page", cfg: MergeConfig, diag: Dict[str, Any]
) -> List[Fragment]:
    page_w, page_h = float(page.width), float(page.height)
    chars = page.chars
    diag["fragments_raw"] = len(chars)
    out = []
    for ch in chars:
        angle, size = matrix_angle_and_size(ch.get("matrix"))
        if size is None and ch.get("size") is not None:
            size = float(ch["size"])
        frag = _to_fragment(ch, angle, size, page_w, page_h, cfg, diag)
        if frag is not None:
            out.append(frag)
    return out


def _word_fragments(
    page: "pdfplumber.page.Page", cfg: MergeConfig, diag: Dict[str, Any]
) -> List[Fragment]:
    page_w, page_h = float(page.width), float(page.height)
    words = page.extract_words(
        x_tolerance=cfg.extract_x_tolerance,
        y_tolerance=cfg.extract_y_tolerance,
        extra_attrs=["fontname", "size", "upright"],
    )
    diag["fragments_raw"] = len(words)
    out = []
    for w in words:
        angle = 0.0 if w.get("upright", True) else 90.0
        size = float(w["size"]) if w.get("size") is not None else None
        frag = _to_fragment(w, angle, size, page_w, page_h, cfg, diag)
        if frag is not None:
            out.append(frag)
    return out


def page_links(page: "pdfplumber.page.Page") -> List[str]:
    """URI targets of the page's link annotations, in annotation order."""
    return [h["uri"] for h in page.hyperlinks if h.get("uri")]


def extract_page_fragments(
    page: "pdfplumber.page.Page",
    page_number: int,
    cfg: MergeConfig | None = None,
) -> PageExtraction:
    """Extract fragments and links from an already-opened pdfplumber page."""
    if cfg is None:
        cfg = MergeConfig()

    diag = _empty_diagnostics(cfg)
    if cfg.extract_mode == "words":
        fragments = _word_fragments(page, cfg, diag)
    else:
        fragments = _char_fragments(page, cfg, diag)

    links = page_links(page)
    names: Counter = Counter(f.font_name for f in fragments if f.font_name)
    sizes: Counter = Counter(
        str(round(f.font_size, 1)) for f in fragments if f.font_size is not None
    )
    diag["fragments_total"] = len(fragments)
    diag["rotated_count"] = sum(
        1 for f in fragments if f.is_rotated(cfg.rotation_tolerance_deg)
    )
    diag["links"] = len(links)
    diag["font_names"] = dict(names.most_common(20))
    diag["font_sizes"] = dict(sizes.most_common(20))

    if not fragments:
        log.warning(
            "page %d: zero fragments extracted (blank or image-only page)",
            page_number,
        )
    if diag["rotated_count"]:
        log.info("page %d: %d rotated fragments", page_number, diag["rotated_count"])

    return PageExtraction(
        page=Page(
            number=page_number,
            width=float(page.width),
            height=float(page.height),
            fragments=fragments,
            links=links,
        ),
        diagnostics=diag,
    )


_SUMMED_KEYS = (
    "fragments_raw",
    "fragments_total",
    "fragments_degenerate_skipped",
    "fragments_clipped",
    "rotated_count",
    "links",
)


@dataclass
class DocumentExtraction:
    """A whole-PDF extraction: the document plus one diagnostics dict per page."""

    document: Document
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)

    def totals(self) -> Dict[str, Any]:
        """Sum the per-page counters; font histograms are merged."""
        out: Dict[str, Any] = {key: 0 for key in _SUMMED_KEYS}
        names: Counter = Counter()
        sizes: Counter = Counter()
        for diag in self.diagnostics:
            for key in _SUMMED_KEYS:
                out[key] += diag.get(key, 0)
            names.update(diag.get("font_names", {}))
            sizes.update(diag.get("font_sizes", {}))
        out["font_names"] = dict(names.most_common(20))
        out["font_sizes"] = dict(sizes.most_common(20))
        return out


def extract_pdf(
    pdf_path: Path | str,
    cfg: MergeConfig | None = None,
) -> DocumentExtraction:
    """Extract every page of *pdf_path*, keeping per-page diagnostics.

    Raises
    ------
    IngestError
        When the file fails validation or pdfplumber cannot read it.
    """
    if cfg is None:
        cfg = MergeConfig()
    pdf_path = validate_pdf_path(pdf_path)

    try:
        with pdfplumber.open(pdf_path) as pdf:
            results = [
                extract_page_fragments(pg, i, cfg)
                for i, pg in enumerate(pdf.pages, start=1)
            ]
    except Exception as exc:
        raise IngestError(f"Cannot extract text from {pdf_path}: {exc}") from exc

    doc = Document(pages=[r.page for r in results], source=str(pdf_path))
    log.info(
        "Extracted %s: %d pages, %d fragments",
        pdf_path.name,
        len(doc.pages),
        doc.fragment_count(),
    )
    return DocumentExtraction(
        document=doc, diagnostics=[r.diagnostics for r in results]
    )


def extract_document(
    pdf_path: Path | str,
    cfg: MergeConfig | None = None,
) -> Document:
    """Extract every page of *pdf_path* into a :class:`Document`.

    Same as :func:`extract_pdf` without the diagnostics.
    """
    return extract_pdf(pdf_path, cfg).document
