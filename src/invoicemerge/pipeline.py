"""Pipeline stage infrastructure: gating, timing, and stage-result recording.

Provides a canonical pipeline contract for the merge flow:

    ingest → extract → row_first → column_first → column_second
           → row_second → row_third → line_merge → fields

Every stage produces a :class:`StageResult`.  Gating logic is centralised
in :func:`gate` so that the CLI, batch runner and tests behave identically.

:func:`run_pipeline` takes an already-built :class:`Document` (from
``Document.from_dict`` or :func:`invoicemerge.tocr.extract_document`) and
performs no file I/O.  :func:`run_document` adds the two PDF stages in
front of it, and :func:`run_batch` fans documents out over a thread pool.
"""

from __future__ import annotations

import logging
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence

from .analysis import extract_invoice_fields
from .config import MergeConfig
from .grouping import (
    ColumnMergeRule,
    RowMergeRule,
    line_texts,
    merge_columns,
    merge_lines,
    merge_rows,
)
from .models import Document, InvoiceRecord, validate_document

logger = logging.getLogger("invoicemerge.pipeline")

# ── Skip reasons (exhaustive enumeration) ──────────────────────────────


class SkipReason(str, Enum):
    """Why a pipeline stage was skipped."""

    no_pages = "no_pages"
    no_fragments = "no_fragments"
    upstream_failed = "upstream_failed"
    not_applicable = "not_applicable"


# ── Stage result ───────────────────────────────────────────────────────


@dataclass
class StageResult:
    """Outcome record for a single pipeline stage."""

    stage: str
    enabled: bool = True
    ran: bool = False
    status: str = "skipped"  # "success" | "skipped" | "failed"
    skip_reason: Optional[str] = None
    duration_ms: int = 0
    counts: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize stage result to a JSON-compatible dict."""
        d: Dict[str, Any] = {
            "stage": self.stage,
            "enabled": self.enabled,
            "ran": self.ran,
            "status": self.status,
        }
        if self.skip_reason is not None:
            d["skip_reason"] = self.skip_reason
        d["duration_ms"] = self.duration_ms
        if self.counts:
            d["counts"] = self.counts
        if self.inputs:
            d["inputs"] = self.inputs
        if self.error is not None:
            d["error"] = self.error
        return d


# ── Canonical gating function ──────────────────────────────────────────

# Ordered stage names: the canonical pipeline sequence.
STAGE_ORDER: List[str] = [
    "ingest",
    "extract",
    "row_first",
    "column_first",
    "column_second",
    "row_second",
    "row_third",
    "line_merge",
    "fields",
]

_PASS_STAGES = ("row_first", "column_first", "column_second", "row_second", "row_third")


def gate(
    stage: str,
    cfg: MergeConfig,
    inputs: Dict[str, Any] | None = None,
) -> tuple[bool, Optional[str]]:
    """Decide whether *stage* should run.

    Parameters
    ----------
    stage : str
        One of :data:`STAGE_ORDER`.
    cfg : MergeConfig
        Effective configuration for the run.
    inputs : dict, optional
        Lightweight metadata about upstream outputs, e.g.
        ``{"pages": 2, "fragments_in": 140}``.

    Returns
    -------
    (should_run, skip_reason)
        *should_run* is ``True`` when the stage should execute.
        When ``False``, *skip_reason* explains why.
    """
    if inputs is None:
        inputs = {}

    if stage in ("ingest", "extract"):
        return True, None

    if stage in _PASS_STAGES or stage in ("line_merge", "fields"):
        if inputs.get("upstream_failed"):
            return False, SkipReason.upstream_failed.value
        if inputs.get("pages", 1) == 0:
            return False, SkipReason.no_pages.value
        if inputs.get("fragments_in", 1) == 0:
            return False, SkipReason.no_fragments.value
        return True, None

    # Unknown stage is not applicable.
    return False, SkipReason.not_applicable.value


# ── Stage context manager ──────────────────────────────────────────────


@contextmanager
def run_stage(
    stage: str,
    cfg: MergeConfig,
    inputs: Dict[str, Any] | None = None,
) -> Generator[StageResult, None, None]:
    """Context manager that wraps a pipeline stage with gating + timing.

    Usage::

        with run_stage("row_first", cfg, {"fragments_in": n}) as sr:
            if sr.ran:
                doc = merge_rows(doc, 5.0, "first", cfg)
                sr.counts["fragments_out"] = doc.fragment_count()

    The yielded :class:`StageResult` has ``ran=True`` only when
    :func:`gate` approves the stage.  Exceptions mark the stage failed
    and are re-raised.
    """
    should_run, skip_reason = gate(stage, cfg, inputs)

    sr = StageResult(stage=stage)
    if inputs:
        sr.inputs = dict(inputs)

    if not should_run:
        sr.ran = False
        sr.status = "skipped"
        sr.skip_reason = skip_reason
        yield sr
        return

    sr.ran = True
    t0 = time.perf_counter()
    try:
        yield sr
        if sr.status not in ("success", "failed"):
            sr.status = "success"
    except Exception as exc:
        sr.status = "failed"
        sr.error = {
            "type": type(exc).__name__,
            "message": str(exc),
            "stack": traceback.format_exc(),
        }
        raise
    finally:
        elapsed = time.perf_counter() - t0
        sr.duration_ms = int(elapsed * 1000)


# ── Pass plan ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PassSpec:
    """One step of the five-pass merge sequence."""

    stage: str
    kind: str  # "rows" | "columns"
    bucket: float
    rule: str

    def apply(self, document: Document, cfg: MergeConfig) -> Document:
        if self.kind == "rows":
            return merge_rows(document, self.bucket, RowMergeRule(self.rule), cfg)
        return merge_columns(document, self.bucket, ColumnMergeRule(self.rule), cfg)


def build_pass_plan(cfg: MergeConfig | None = None) -> List[PassSpec]:
    """The fixed pass order with bucket widths taken from *cfg*."""
    if cfg is None:
        cfg = MergeConfig()
    return [
        PassSpec("row_first", "rows", cfg.row_bucket_first, RowMergeRule.first.value),
        PassSpec(
            "column_first",
            "columns",
            cfg.column_bucket_first,
            ColumnMergeRule.first.value,
        ),
        PassSpec(
            "column_second",
            "columns",
            cfg.column_bucket_second,
            ColumnMergeRule.second.value,
        ),
        PassSpec(
            "row_second", "rows", cfg.row_bucket_second, RowMergeRule.second.value
        ),
        PassSpec("row_third", "rows", cfg.row_bucket_third, RowMergeRule.third.value),
    ]


def integrate_document(
    document: Document, cfg: MergeConfig | None = None
) -> Document:
    """Run the five merge passes in order and return the integrated document."""
    if cfg is None:
        cfg = MergeConfig()
    for spec in build_pass_plan(cfg):
        document = spec.apply(document, cfg)
        logger.debug(
            "%s: %d fragments", spec.stage, document.fragment_count()
        )
    return document


# ── Document-level result ──────────────────────────────────────────────


@dataclass
class DocumentResult:
    """Everything one document run produced.

    ``raw`` is the document as extracted or parsed, ``integrated`` the
    output of the five passes, ``lined`` the line-merged document the
    fields were read from.  ``extraction`` holds one diagnostics dict
    per page when the document came from a PDF.
    """

    source: Optional[str] = None
    raw: Optional[Document] = None
    integrated: Optional[Document] = None
    lined: Optional[Document] = None
    record: InvoiceRecord = field(default_factory=InvoiceRecord)
    stages: Dict[str, StageResult] = field(default_factory=dict)
    extraction: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, str]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return a lightweight summary suitable for JSON serialisation."""
        d: Dict[str, Any] = {
            "source": self.source,
            "ok": self.ok,
            "record": self.record.to_dict(),
            "missing_fields": self.record.missing_fields(),
            "stages": {n: sr.to_dict() for n, sr in self.stages.items()},
        }
        if self.raw is not None:
            d["pages"] = len(self.raw.pages)
            d["fragments_raw"] = self.raw.fragment_count()
        if self.integrated is not None:
            d["fragments_integrated"] = self.integrated.fragment_count()
        if self.extraction:
            d["extraction"] = self.extraction
        if self.error is not None:
            d["error"] = self.error
        return d


# ── Stage helpers (keep run_pipeline focused on orchestration) ─────────


def _run_document_stage(
    result: DocumentResult,
    stage: str,
    cfg: MergeConfig,
    document: Document,
    step: Callable[[Document], Document],
) -> Document:
    """Run one Document -> Document stage; skipped stages pass through."""
    inputs = {
        "pages": len(document.pages),
        "fragments_in": document.fragment_count(),
    }
    blank = sum(1 for _, f in document.iter_fragments() if f.is_blank())
    with run_stage(stage, cfg, inputs) as sr:
        if sr.ran:
            document = step(document)
            sr.counts["fragments_out"] = document.fragment_count()
            if stage in _PASS_STAGES:
                sr.counts["blank_dropped"] = blank
    result.stages[stage] = sr
    return document


def run_pipeline(
    document: Document,
    cfg: MergeConfig | None = None,
) -> DocumentResult:
    """Run the merge passes, line merge and field extraction on *document*.

    This is the **library-grade** entry point.  It performs no file I/O
    and never mutates *document*.

    Raises
    ------
    InputShapeError
        When a fragment or page carries invalid geometry.
    """
    if cfg is None:
        cfg = MergeConfig()

    validate_document(document)
    result = DocumentResult(source=document.source, raw=document)

    current = document
    for spec in build_pass_plan(cfg):
        current = _run_document_stage(
            result,
            spec.stage,
            cfg,
            current,
            lambda d, spec=spec: spec.apply(d, cfg),
        )
    result.integrated = current

    result.lined = _run_document_stage(
        result, "line_merge", cfg, current, lambda d: merge_lines(d, cfg)
    )

    inputs = {
        "pages": len(result.lined.pages),
        "fragments_in": result.lined.fragment_count(),
    }
    with run_stage("fields", cfg, inputs) as sr:
        if sr.ran:
            result.record = extract_invoice_fields(result.lined)
            sr.counts = {
                "lines": len(line_texts(result.lined)),
                "fields_found": 5 - len(result.record.missing_fields()),
            }
    result.stages["fields"] = sr

    logger.info(
        "run_pipeline %s: %d -> %d fragments, missing %s",
        document.source or "<document>",
        document.fragment_count(),
        current.fragment_count(),
        result.record.missing_fields() or "nothing",
    )
    return result


def run_document(
    pdf_path: Path | str,
    cfg: MergeConfig | None = None,
) -> DocumentResult:
    """Ingest + extract *pdf_path*, then :func:`run_pipeline` on it.

    Raises
    ------
    IngestError
        When the PDF cannot be opened or read.
    """
    from .ingest import ingest_pdf
    from .tocr import extract_pdf

    if cfg is None:
        cfg = MergeConfig()

    stages: Dict[str, StageResult] = {}
    with run_stage("ingest", cfg) as sr:
        meta = ingest_pdf(pdf_path)
        sr.counts = {"pages": meta.num_pages, "file_size_bytes": meta.file_size_bytes}
    stages["ingest"] = sr

    with run_stage("extract", cfg, {"mode": cfg.extract_mode}) as sr:
        extraction = extract_pdf(pdf_path, cfg)
        document = extraction.document
        sr.counts = {
            "pages": len(document.pages),
            "fragments": document.fragment_count(),
            **extraction.totals(),
        }
    stages["extract"] = sr

    result = run_pipeline(document, cfg)
    result.extraction = extraction.diagnostics
    result.stages = {**stages, **result.stages}
    return result


def failed_result(source: str, exc: Exception) -> DocumentResult:
    """A :class:`DocumentResult` recording that *source* raised *exc*."""
    failed = DocumentResult(source=source)
    failed.error = {"type": type(exc).__name__, "message": str(exc)}
    failed.stages["error"] = StageResult(
        stage="pipeline",
        status="failed",
        error=failed.error,
    )
    return failed


def run_batch(
    pdf_paths: Sequence[Path | str],
    cfg: MergeConfig | None = None,
    max_workers: int | None = None,
) -> List[DocumentResult]:
    """Process several PDFs in parallel; results are in input order.

    A failing document is logged and returned as a :class:`DocumentResult`
    with ``error`` set; the remaining documents still run.
    """
    if cfg is None:
        cfg = MergeConfig()
    if not pdf_paths:
        return []

    def _one(path: Path | str) -> DocumentResult:
        try:
            return run_document(path, cfg)
        except Exception as exc:
            logger.error("run_batch %s failed: %s", path, exc)
            return failed_result(str(path), exc)

    workers = max_workers or min(4, len(pdf_paths))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_one, pdf_paths))

    logger.info(
        "run_batch: %d documents, %d failed",
        len(results),
        sum(1 for r in results if not r.ok),
    )
    return results
