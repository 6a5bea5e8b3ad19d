"""Command-line entry point.

Usage
-----
    invoicemerge parse invoice.pdf --output raw.json
    invoicemerge integrate invoice.pdf
    invoicemerge integrate raw.json            # upstream JSON instead of a PDF
    invoicemerge extract a.pdf b.pdf c.pdf --workers 3
    invoicemerge overlay invoice.pdf --out overlays --resolution 144
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from .config import ConfigValidationError, EXTRACT_MODES, MergeConfig
from .export import (
    deserialize_document,
    draw_merge_overlay,
    serialize_document,
    write_json,
)
from .ingest import IngestError, render_page_image
from .models import Document, InputShapeError
from .pipeline import (
    DocumentResult,
    failed_result,
    integrate_document,
    run_batch,
    run_pipeline,
)
from .tocr import extract_document

log = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    shared = argparse.ArgumentParser(add_help=False)
    shared.add_argument(
        "--mode",
        choices=list(EXTRACT_MODES),
        default="chars",
        help="Extraction granularity: one fragment per glyph or per word.",
    )
    shared.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )
    shared.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write JSON here instead of stdout.",
    )

    p = argparse.ArgumentParser(
        prog="invoicemerge",
        description="Reassemble PDF invoice text and extract invoice fields.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("parse", parents=[shared], help="Dump raw fragments.")
    sp.add_argument("pdf", type=Path)

    sp = sub.add_parser(
        "integrate", parents=[shared], help="Dump fragments after the merge passes."
    )
    sp.add_argument("pdf", type=Path, help="PDF or upstream JSON document.")

    sp = sub.add_parser("extract", parents=[shared], help="Extract invoice fields.")
    sp.add_argument("pdfs", type=Path, nargs="+")
    sp.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Documents processed in parallel (default: up to 4).",
    )

    sp = sub.add_parser(
        "overlay", parents=[shared], help="Render merged fragments as PNGs."
    )
    sp.add_argument("pdf", type=Path)
    sp.add_argument("--out", type=Path, required=True, help="Output directory.")
    sp.add_argument(
        "--resolution",
        type=int,
        default=None,
        help="Render DPI for the page background (default: from config).",
    )
    return p.parse_args(argv)


def _load_document(path: Path, cfg: MergeConfig) -> Document:
    """Extract a PDF, or read an upstream JSON document.

    Raises
    ------
    IngestError
        When the file cannot be read.
    InputShapeError
        When a JSON file is not valid JSON or not a document.
    """
    if path.suffix.lower() == ".json":
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise IngestError(f"Cannot read {path}: {exc}") from exc
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise InputShapeError(f"{path}: invalid JSON: {exc}") from exc
        document, _ = deserialize_document(data)
        if document.source is None:
            document.source = str(path)
        return document
    return extract_document(path, cfg)


def _emit(payload: Any, output: Path | None) -> None:
    if output is not None:
        write_json(output, payload)
        print(f"Wrote {output}")
    else:
        print(json.dumps(payload, indent=2, ensure_ascii=False))


def _cmd_parse(args: argparse.Namespace, cfg: MergeConfig) -> int:
    document = _load_document(args.pdf, cfg)
    _emit(serialize_document(document), args.output)
    return 0


def _cmd_integrate(args: argparse.Namespace, cfg: MergeConfig) -> int:
    document = _load_document(args.pdf, cfg)
    _emit(serialize_document(integrate_document(document, cfg)), args.output)
    return 0


def _run_json(path: Path, cfg: MergeConfig) -> DocumentResult:
    try:
        return run_pipeline(_load_document(path, cfg), cfg)
    except Exception as exc:
        log.error("extract %s failed: %s", path, exc)
        return failed_result(str(path), exc)


def _cmd_extract(args: argparse.Namespace, cfg: MergeConfig) -> int:
    pdfs = [p for p in args.pdfs if p.suffix.lower() != ".json"]
    jsons = [p for p in args.pdfs if p.suffix.lower() == ".json"]

    results = run_batch(pdfs, cfg, max_workers=args.workers) if pdfs else []
    by_source = {str(p): r for p, r in zip(pdfs, results)}
    for path in jsons:
        by_source[str(path)] = _run_json(path, cfg)

    payload = []
    failed = 0
    for path in args.pdfs:
        result = by_source[str(path)]
        entry: dict[str, Any] = {"source": str(path), "record": result.record.to_dict()}
        if result.error is not None:
            entry["error"] = result.error
            failed += 1
        payload.append(entry)

    _emit(payload, args.output)
    return 1 if failed else 0


def _cmd_overlay(args: argparse.Namespace, cfg: MergeConfig) -> int:
    resolution = args.resolution or cfg.overlay_render_dpi
    scale = resolution / 72.0
    document = integrate_document(extract_document(args.pdf, cfg), cfg)
    stem = args.pdf.stem
    for page in document.pages:
        background = render_page_image(args.pdf, page.number, resolution=resolution)
        out = draw_merge_overlay(
            page,
            args.out / f"{stem}_page_{page.number}.png",
            scale=scale,
            background=background,
            cfg=cfg,
        )
        print(f"Overlay saved -> {out}")
    return 0


_COMMANDS = {
    "parse": _cmd_parse,
    "integrate": _cmd_integrate,
    "extract": _cmd_extract,
    "overlay": _cmd_overlay,
}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        cfg = MergeConfig(extract_mode=args.mode)
        return _COMMANDS[args.command](args, cfg)
    except (IngestError, InputShapeError, ConfigValidationError) as exc:
        log.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
