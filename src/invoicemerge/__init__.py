"""Geometry-first text reassembly and field extraction for PDF invoices.

Frequently-used symbols are re-exported here for convenience.
For specialised imports (individual merge passes, field rules, overlay
internals) import directly from the relevant submodule, e.g.::

    from invoicemerge.grouping import merge_rows, RowMergeRule
    from invoicemerge.analysis.invoice_fields import FIELD_RULES
"""

# ── Core models & config ──────────────────────────────────────────────

from .analysis import extract_invoice_fields
from .config import ConfigValidationError, MergeConfig
from .export import draw_merge_overlay, serialize_document, write_json
from .grouping import merge_columns, merge_lines, merge_rows
from .ingest import IngestError, PdfMeta, ingest_pdf, render_page_image
from .models import (
    Document,
    Fragment,
    FragmentKind,
    InputShapeError,
    InvoiceRecord,
    Page,
)
from .pipeline import (
    DocumentResult,
    StageResult,
    build_pass_plan,
    integrate_document,
    run_batch,
    run_document,
    run_pipeline,
)
from .tocr import extract_document, extract_pdf

__all__ = [
    # Models & config
    "MergeConfig",
    "ConfigValidationError",
    "Document",
    "Fragment",
    "FragmentKind",
    "InputShapeError",
    "InvoiceRecord",
    "Page",
    # Passes
    "merge_rows",
    "merge_columns",
    "merge_lines",
    "extract_invoice_fields",
    # Pipeline
    "DocumentResult",
    "StageResult",
    "build_pass_plan",
    "integrate_document",
    "run_batch",
    "run_document",
    "run_pipeline",
    # Ingest / extraction
    "IngestError",
    "PdfMeta",
    "ingest_pdf",
    "render_page_image",
    "extract_document",
    "extract_pdf",
    # Export
    "draw_merge_overlay",
    "serialize_document",
    "write_json",
]
