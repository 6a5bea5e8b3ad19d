from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class InputShapeError(ValueError):
    """Raised when a page or fragment lacks usable geometry."""


class FragmentKind(str, Enum):
    """Merge state of a fragment."""

    plain = "plain"
    row_merged = "row_merged"
    column_merged = "column_merged"


_REQUIRED_GEOMETRY = ("x", "y", "width", "height")


def _coerce_number(value: Any, name: str, where: str) -> float:
    """Return *value* as a finite float or raise :class:`InputShapeError`."""
    if isinstance(value, bool) or value is None:
        raise InputShapeError(f"{where}: {name}={value!r} is not a number")
    try:
        num = float(value)
    except (TypeError, ValueError) as exc:
        raise InputShapeError(f"{where}: {name}={value!r} is not a number") from exc
    if not math.isfinite(num):
        raise InputShapeError(f"{where}: {name}={value!r} is not finite")
    return num


def _optional_number(value: Any, name: str, where: str) -> Optional[float]:
    if value is None:
        return None
    return _coerce_number(value, name, where)


@dataclass
class Fragment:
    """One positioned text run, before or after merging.

    ``y`` is the edge of the glyph box the extractor reports as its
    position; ``y - height`` is the opposite edge.  Merge passes never
    look at anything but these four numbers, ``angle`` and ``text``.
    """

    text: str
    x: float
    y: float
    width: float
    height: float
    font_size: Optional[float] = None
    angle: float = 0.0
    has_eol: bool = False
    font_name: str = ""
    kind: FragmentKind = FragmentKind.plain
    baseline_y: Optional[float] = None
    column_key: Optional[float] = None
    column_index: Optional[int] = None
    direct_concat: Optional[str] = None
    semicolon_joined: Optional[str] = None

    @property
    def is_vertically_merged(self) -> bool:
        """True once a column pass has merged this fragment."""
        return self.kind is FragmentKind.column_merged

    @property
    def is_horizontally_merged(self) -> bool:
        """True once a row pass has merged this fragment."""
        return self.kind is FragmentKind.row_merged

    @property
    def is_single_char(self) -> bool:
        """Exactly one non-whitespace character."""
        return len(self.text) == 1 and not self.text.isspace()

    def is_blank(self) -> bool:
        """Empty or whitespace-only text."""
        return not self.text or not self.text.strip()

    def is_rotated(self, tolerance_deg: float = 0.1) -> bool:
        """Rotation magnitude above *tolerance_deg*."""
        return abs(self.angle or 0.0) > tolerance_deg

    def right(self) -> float:
        """Right edge (``x + width``)."""
        return self.x + self.width

    def bbox(self) -> Tuple[float, float, float, float]:
        """Axis-aligned box as ``(x0, y0, x1, y1)`` ignoring rotation."""
        y0 = min(self.y, self.y - self.height)
        y1 = max(self.y, self.y - self.height)
        return (self.x, y0, self.x + self.width, y1)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the extractor-compatible dict shape."""
        d: Dict[str, Any] = {
            "str": self.text,
            "x": round(self.x, 3),
            "y": round(self.y, 3),
            "width": round(self.width, 3),
            "height": round(self.height, 3),
            "angle": round(self.angle, 3),
            "hasEOL": self.has_eol,
            "kind": self.kind.value,
        }
        if self.font_size is not None:
            d["fontSize"] = round(self.font_size, 3)
        if self.font_name:
            d["fontName"] = self.font_name
        if self.baseline_y is not None:
            d["baselineY"] = round(self.baseline_y, 3)
        if self.column_key is not None:
            d["columnKey"] = self.column_key
        if self.column_index is not None:
            d["columnIndex"] = self.column_index
        if self.direct_concat is not None:
            d["directConcat"] = self.direct_concat
        if self.semicolon_joined is not None:
            d["semicolonJoined"] = self.semicolon_joined
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any], where: str = "fragment") -> "Fragment":
        """Build a fragment from an extractor dict.

        Raises
        ------
        InputShapeError
            When ``str``/``x``/``y``/``width``/``height`` are missing,
            non-numeric, non-finite, or the size is negative.
        """
        if not isinstance(d, dict):
            raise InputShapeError(f"{where}: expected a mapping, got {type(d).__name__}")
        missing = [k for k in _REQUIRED_GEOMETRY if k not in d]
        if missing:
            raise InputShapeError(f"{where}: missing geometry {missing}")
        text = d.get("str", d.get("text"))
        if text is None:
            raise InputShapeError(f"{where}: missing text")
        geom = {k: _coerce_number(d[k], k, where) for k in _REQUIRED_GEOMETRY}
        if geom["width"] < 0 or geom["height"] < 0:
            raise InputShapeError(
                f"{where}: negative size width={geom['width']} height={geom['height']}"
            )
        kind = d.get("kind", FragmentKind.plain.value)
        try:
            kind = FragmentKind(kind)
        except ValueError as exc:
            raise InputShapeError(f"{where}: unknown kind {kind!r}") from exc
        column_index = _optional_number(d.get("columnIndex"), "columnIndex", where)
        return cls(
            text=str(text),
            font_size=_optional_number(d.get("fontSize"), "fontSize", where),
            angle=_optional_number(d.get("angle"), "angle", where) or 0.0,
            has_eol=bool(d.get("hasEOL", False)),
            font_name=str(d.get("fontName", "") or ""),
            kind=kind,
            baseline_y=_optional_number(d.get("baselineY"), "baselineY", where),
            column_key=_optional_number(d.get("columnKey"), "columnKey", where),
            column_index=int(column_index) if column_index is not None else None,
            direct_concat=d.get("directConcat"),
            semicolon_joined=d.get("semicolonJoined"),
            **geom,
        )


@dataclass
class Page:
    """Fragments of one PDF page plus its size and link targets."""

    number: int  # 1-based
    width: float
    height: float
    fragments: List[Fragment] = field(default_factory=list)
    links: List[str] = field(default_factory=list)

    def texts(self) -> List[str]:
        """Fragment texts in page order."""
        return [f.text for f in self.fragments]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the extractor-compatible page shape."""
        return {
            "pageInfo": {
                "num": self.number,
                "width": round(self.width, 3),
                "height": round(self.height, 3),
            },
            "content": [f.to_dict() for f in self.fragments],
            "links": list(self.links),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any], number: int = 1) -> "Page":
        """Build a page; ``pageInfo.width``/``height`` are required."""
        where = f"page {number}"
        if not isinstance(d, dict):
            raise InputShapeError(f"{where}: expected a mapping, got {type(d).__name__}")
        info = d.get("pageInfo")
        if not isinstance(info, dict):
            raise InputShapeError(f"{where}: missing pageInfo")
        for key in ("width", "height"):
            if key not in info:
                raise InputShapeError(f"{where}: pageInfo missing {key}")
        num = int(_coerce_number(info.get("num", number), "num", where))
        content = d.get("content", [])
        if not isinstance(content, list):
            raise InputShapeError(f"{where}: content must be a list")
        links = d.get("links") or []
        if not isinstance(links, list):
            raise InputShapeError(f"{where}: links must be a list")
        return cls(
            number=num,
            width=_coerce_number(info["width"], "width", where),
            height=_coerce_number(info["height"], "height", where),
            fragments=[
                Fragment.from_dict(item, where=f"{where} fragment {i}")
                for i, item in enumerate(content)
            ],
            links=[str(u) for u in links],
        )


@dataclass
class Document:
    """Ordered pages of one source PDF."""

    pages: List[Page] = field(default_factory=list)
    source: Optional[str] = None

    def fragment_count(self) -> int:
        """Total fragments over all pages."""
        return sum(len(p.fragments) for p in self.pages)

    def iter_fragments(self):
        """Yield ``(page, fragment)`` in page then array order."""
        for page in self.pages:
            for frag in page.fragments:
                yield page, frag

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the extractor-compatible document shape."""
        d: Dict[str, Any] = {"pages": [p.to_dict() for p in self.pages]}
        if self.source:
            d["source"] = self.source
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Document":
        """Build a document from ``{"pages": [...]}``."""
        if not isinstance(d, dict) or not isinstance(d.get("pages"), list):
            raise InputShapeError("document: expected a mapping with a 'pages' list")
        return cls(
            pages=[Page.from_dict(p, number=i + 1) for i, p in enumerate(d["pages"])],
            source=d.get("source"),
        )


def validate_document(document: Document) -> None:
    """Check every page and fragment for usable geometry.

    Raises
    ------
    InputShapeError
        On the first page or fragment with missing, non-finite or
        negative-size geometry.
    """
    for page in document.pages:
        where = f"page {page.number}"
        for name in ("width", "height"):
            _coerce_number(getattr(page, name), name, where)
        for i, frag in enumerate(page.fragments):
            fwhere = f"{where} fragment {i}"
            if not isinstance(frag.text, str):
                raise InputShapeError(f"{fwhere}: text is not a string")
            for name in _REQUIRED_GEOMETRY:
                _coerce_number(getattr(frag, name), name, fwhere)
            if frag.width < 0 or frag.height < 0:
                raise InputShapeError(
                    f"{fwhere}: negative size width={frag.width} height={frag.height}"
                )


# ── Invoice record ─────────────────────────────────────────────────────

# Python attribute -> downstream JSON key.
INVOICE_FIELD_KEYS: Dict[str, str] = {
    "invoice_number": "invoiceNumber",
    "invoice_date": "invoiceDate",
    "amount_excluding_tax": "amountExcludingTax",
    "tax_amount": "taxAmount",
    "amount_including_tax": "amountIncludingTax",
}


@dataclass
class InvoiceRecord:
    """Structured invoice fields; empty string means not found."""

    invoice_number: str = ""
    invoice_date: str = ""  # YYYY年MM月DD日 as printed
    amount_excluding_tax: str = ""
    tax_amount: str = ""
    amount_including_tax: str = ""

    def missing_fields(self) -> List[str]:
        """Names of fields still unset."""
        return [f.name for f in fields(self) if not getattr(self, f.name)]

    def is_complete(self) -> bool:
        """True when every field has a value."""
        return not self.missing_fields()

    def to_dict(self) -> Dict[str, str]:
        """Serialize with the downstream camelCase keys."""
        return {key: getattr(self, attr) for attr, key in INVOICE_FIELD_KEYS.items()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InvoiceRecord":
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            **{attr: str(d.get(key, "") or "") for attr, key in INVOICE_FIELD_KEYS.items()}
        )
