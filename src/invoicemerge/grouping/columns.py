"""Column clustering and vertical merge of single characters.

Vertically set labels come out of the extractor as one fragment per
character.  Those characters are bucketed on quantized ``x``, sorted by
``y`` and chained while the spacing between the running fragment and the
next character passes the rule.  The first link of a chain fixes
``baseline_y``; the chain's ``height`` then spans from that anchor to the
last character's ``y``.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from enum import Enum
from typing import List

from ..config import MergeConfig
from ..models import Document, Fragment, FragmentKind, Page
from .buckets import bucket_by

log = logging.getLogger(__name__)


class ColumnMergeRule(str, Enum):
    """Spacing rule used by a vertical merge pass."""

    first = "first"  # signed spacing below column_first_max_spacing
    second = "second"  # |spacing| within a multiple of the next char height


def vertical_spacing(a: Fragment, b: Fragment) -> float:
    """Distance from *a*'s ``y`` to the far edge of *b* (``b.y - b.height``)."""
    return (b.y - b.height) - a.y


def can_merge_vertically(
    a: Fragment,
    b: Fragment,
    rule: ColumnMergeRule,
    cfg: MergeConfig | None = None,
) -> bool:
    """Return True when *b* continues the column chain ending at *a*."""
    if cfg is None:
        cfg = MergeConfig()
    spacing = vertical_spacing(a, b)
    if rule == ColumnMergeRule.first:
        return spacing < cfg.column_first_max_spacing
    return abs(spacing) <= b.height * cfg.column_second_spacing_mult


def _stack(a: Fragment, b: Fragment) -> Fragment:
    baseline = a.baseline_y if a.baseline_y is not None else a.y
    return replace(
        a,
        text=a.text + b.text,
        y=b.y,
        baseline_y=baseline,
        height=b.y - baseline,
        width=b.right() - a.x,
        kind=FragmentKind.column_merged,
    )


def merge_column(
    fragments: List[Fragment],
    rule: ColumnMergeRule,
    cfg: MergeConfig | None = None,
) -> List[Fragment]:
    """Chain consecutive characters of one column bucket.

    *fragments* must already be sorted by ``y``.  Nothing is merged when
    the bucket has a single member or a non-positive mean height.
    """
    if cfg is None:
        cfg = MergeConfig()
    if len(fragments) < 2:
        return list(fragments)
    mean_h = sum(f.height for f in fragments) / len(fragments)
    if mean_h <= 0:
        return list(fragments)

    merged: List[Fragment] = []
    i = 0
    while i < len(fragments):
        current = fragments[i]
        j = i + 1
        while j < len(fragments) and can_merge_vertically(
            current, fragments[j], rule, cfg
        ):
            current = _stack(current, fragments[j])
            j += 1
        merged.append(current)
        i = j
    return merged


def merge_columns_on_page(
    page: Page,
    bucket: float,
    rule: ColumnMergeRule,
    cfg: MergeConfig | None = None,
) -> Page:
    """Run one vertical merge pass over a single page (returns a new page)."""
    if cfg is None:
        cfg = MergeConfig()

    # Blank fragments never survive a pass; other multi-character
    # fragments pass through untouched.
    passthrough = [
        f for f in page.fragments if len(f.text) != 1 and not f.is_blank()
    ]
    singles = [f for f in page.fragments if f.is_single_char]

    out: List[Fragment] = list(passthrough)
    for key, column in bucket_by(singles, lambda f: f.x, bucket).items():
        column.sort(key=lambda f: f.y)
        stacked = merge_column(column, rule, cfg)
        for index, frag in enumerate(stacked):
            stacked[index] = replace(frag, column_key=key, column_index=index)
        out.extend(stacked)

    merged = sum(1 for f in out if f.is_vertically_merged)
    log.debug(
        "page %d: %d single chars -> %d column-merged fragments",
        page.number,
        len(singles),
        merged,
    )
    return replace(page, fragments=out, links=list(page.links))


def merge_columns(
    document: Document,
    bucket: float,
    rule: ColumnMergeRule,
    cfg: MergeConfig | None = None,
) -> Document:
    """Vertical merge pass over every page of *document*.

    The input document is deep-copied first and never mutated.
    """
    if cfg is None:
        cfg = MergeConfig()
    rule = ColumnMergeRule(rule)
    snapshot = copy.deepcopy(document)
    pages = [merge_columns_on_page(p, bucket, rule, cfg) for p in snapshot.pages]
    return replace(snapshot, pages=pages)
