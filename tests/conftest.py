"""Shared test fixtures for invoicemerge."""

import pytest

from invoicemerge.config import MergeConfig
from invoicemerge.models import Document, Fragment, FragmentKind, Page

# ── Helpers ────────────────────────────────────────────────────────────


def make_fragment(
    text: str,
    x: float,
    y: float,
    width: float = 10.0,
    height: float = 10.0,
    angle: float = 0.0,
    kind: FragmentKind = FragmentKind.plain,
    **kwargs,
) -> Fragment:
    """Create a Fragment with sane defaults (10x10 unrotated glyph)."""
    return Fragment(
        text=text,
        x=x,
        y=y,
        width=width,
        height=height,
        angle=angle,
        kind=kind,
        **kwargs,
    )


def make_page(
    fragments: list[Fragment] | None = None,
    number: int = 1,
    width: float = 595.0,
    height: float = 842.0,
    links: list[str] | None = None,
) -> Page:
    """Create an A4-sized Page."""
    return Page(
        number=number,
        width=width,
        height=height,
        fragments=list(fragments or []),
        links=list(links or []),
    )


def make_document(*pages: list[Fragment], source: str | None = None) -> Document:
    """Build a Document with one page per fragment list."""
    return Document(
        pages=[make_page(frags, number=i + 1) for i, frags in enumerate(pages)],
        source=source,
    )


def upstream_dict(*contents: list[dict]) -> dict:
    """Build an upstream extractor dict with one page per content list."""
    return {
        "pages": [
            {
                "pageInfo": {"num": i + 1, "width": 595.0, "height": 842.0},
                "content": list(content),
                "links": [],
            }
            for i, content in enumerate(contents)
        ]
    }


def item(text: str, x: float, y: float, width: float = 10.0, height: float = 10.0, **extra) -> dict:
    """One upstream content item."""
    d = {
        "str": text,
        "x": x,
        "y": y,
        "width": width,
        "height": height,
        "fontSize": height,
        "angle": 0,
        "hasEOL": False,
    }
    d.update(extra)
    return d


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def default_cfg() -> MergeConfig:
    """Return a default MergeConfig."""
    return MergeConfig()


@pytest.fixture
def invoice_document() -> Document:
    """A small invoice page exercising every merge pass.

    Layout (y grows downwards, all glyphs 10 high)::

        y=50   发 票 号 码 ： 9 8 7 6 5 4 3 2     (one glyph per char, touching)
        y=80   开票日期：2024年01月15日           (one run)
        y=110  合计¥1000.00¥130.00               (one run)
        y=140  价税合计 ... ￥1130.00             (two runs on one line)
        x=500  壹 / 佰 stacked vertically at y=10 and y=21
    """
    number_line = [
        make_fragment(ch, 100 + i * 10, 50)
        for i, ch in enumerate("发票号码：98765432")
    ]
    return make_document(
        number_line
        + [
            make_fragment("开票日期：2024年01月15日", 100, 80, width=160),
            make_fragment("合计¥1000.00¥130.00", 100, 110, width=150),
            make_fragment("价税合计(大写)", 100, 140, width=80),
            make_fragment("￥1130.00", 300, 140, width=50),
            make_fragment("壹", 500, 10),
            make_fragment("佰", 500, 21),
        ],
        source="invoice.pdf",
    )
