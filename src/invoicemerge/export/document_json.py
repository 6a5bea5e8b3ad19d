"""Serialization helpers for document and invoice output.

JSON layout
-----------
::

    {
      "version": 1,
      "source": "invoice.pdf",
      "document": {"pages": [{"pageInfo": {...}, "content": [...], "links": [...]}]},
      "record": {"invoiceNumber": "...", ...}        # optional
    }

The ``document`` member uses the same page/content shape the upstream
extractor emits, so a payload can be fed straight back into
:meth:`Document.from_dict`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from ..models import Document, InputShapeError, InvoiceRecord

FORMAT_VERSION = 1


def serialize_document(
    document: Document,
    record: InvoiceRecord | None = None,
) -> dict[str, Any]:
    """Serialize *document* (and optionally its record) to a JSON-friendly dict."""
    data: dict[str, Any] = {
        "version": FORMAT_VERSION,
        "source": document.source,
        "document": document.to_dict(),
    }
    if record is not None:
        data["record"] = record.to_dict()
    return data


def deserialize_document(
    data: dict[str, Any],
) -> tuple[Document, Optional[InvoiceRecord]]:
    """Inverse of :func:`serialize_document`.

    A bare upstream dict (``{"pages": [...]}``) is accepted as well.

    Raises
    ------
    InputShapeError
        When ``version`` is newer than this reader understands, or the
        document member is malformed.
    """
    if not isinstance(data, dict):
        raise InputShapeError(f"expected a JSON object, got {type(data).__name__}")
    if "document" not in data:
        return Document.from_dict(data), None

    version = data.get("version", FORMAT_VERSION)
    if not isinstance(version, int) or version > FORMAT_VERSION:
        raise InputShapeError(f"Unsupported document format version {version}")

    document = Document.from_dict(data["document"])
    if data.get("source") is not None:
        document.source = data["source"]
    record = InvoiceRecord.from_dict(data["record"]) if "record" in data else None
    return document, record


def write_json(path: Path | str, payload: Any) -> Path:
    """Write *payload* as indented UTF-8 JSON; CJK text stays unescaped."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    return path
