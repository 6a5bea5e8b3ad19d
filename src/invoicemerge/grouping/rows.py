"""Row clustering and horizontal merge.

Fragments are bucketed on quantized ``y``, each bucket is sorted by
``x`` and swept left to right.  The running fragment absorbs its right
neighbour while the pass rule accepts the pair; a rejected pair starts a
new run.  Three rules exist, one per row pass of the orchestrator:

``first``
    signed gap below ``first_pass_max_gap`` (joins touching or
    overlapping runs).
``second``
    both sides single characters and the absolute gap within
    ``second_pass_gap_tol_mult`` character heights of one character
    height (character-spaced labels).
``third``
    absolute gap within ``third_pass_gap_tol_mult`` character heights
    of one character height.

All rules additionally require both fragments upright and of similar
height.  Column-merged fragments are never re-clustered here.
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


class RowMergeRule(str, Enum):
    """Gap rule used by a horizontal merge pass."""

    first = "first"
    second = "second"
    third = "third"


def _heights_similar(a: Fragment, b: Fragment, cfg: MergeConfig) -> bool:
    max_h = max(a.height, b.height)
    return abs(a.height - b.height) < max_h * cfg.height_similarity_ratio


def _gap_accepted(
    a: Fragment, b: Fragment, rule: RowMergeRule, cfg: MergeConfig
) -> bool:
    gap = b.x - a.right()
    if rule == RowMergeRule.first:
        return gap < cfg.first_pass_max_gap

    char_h = a.height or 1.0
    distance = abs(gap)
    if rule == RowMergeRule.second:
        if len(a.text) != 1 or len(b.text) != 1:
            return False
        return abs(distance - char_h) < char_h * cfg.second_pass_gap_tol_mult
    return abs(distance - char_h) < char_h * cfg.third_pass_gap_tol_mult


def can_merge_horizontally(
    a: Fragment,
    b: Fragment,
    rule: RowMergeRule,
    cfg: MergeConfig | None = None,
) -> bool:
    """Return True when *b* may be appended to *a* under *rule*."""
    if cfg is None:
        cfg = MergeConfig()
    if a.is_rotated(cfg.rotation_tolerance_deg) or b.is_rotated(
        cfg.rotation_tolerance_deg
    ):
        return False
    return _gap_accepted(a, b, rule, cfg) and _heights_similar(a, b, cfg)


def _join(a: Fragment, b: Fragment) -> Fragment:
    """Append *b* to *a*; origin, height and attributes come from *a*."""
    return replace(
        a,
        text=a.text + b.text,
        width=b.right() - a.x,
        kind=FragmentKind.row_merged,
    )


def merge_row(
    fragments: List[Fragment],
    rule: RowMergeRule,
    cfg: MergeConfig | None = None,
) -> List[Fragment]:
    """Greedy left-to-right merge of one row bucket.

    *fragments* must already be sorted by ``x``.  Returns a new list;
    inputs are not modified.
    """
    if cfg is None:
        cfg = MergeConfig()
    if len(fragments) < 2:
        return list(fragments)

    merged: List[Fragment] = []
    i = 0
    while i < len(fragments):
        current = fragments[i]
        j = i + 1
        while j < len(fragments) and can_merge_horizontally(
            current, fragments[j], rule, cfg
        ):
            current = _join(current, fragments[j])
            j += 1
        merged.append(current)
        i = j
    return merged


def merge_rows_on_page(
    page: Page,
    bucket: float,
    rule: RowMergeRule,
    cfg: MergeConfig | None = None,
) -> Page:
    """Run one horizontal merge pass over a single page (returns a new page)."""
    if cfg is None:
        cfg = MergeConfig()

    kept = [f for f in page.fragments if not f.is_blank()]
    skipped = len(page.fragments) - len(kept)
    if skipped:
        log.debug("page %d: skipped %d blank fragments", page.number, skipped)

    columns = [f for f in kept if f.is_vertically_merged]
    candidates = [f for f in kept if not f.is_vertically_merged]

    out: List[Fragment] = list(columns)
    for row in bucket_by(candidates, lambda f: f.y, bucket).values():
        row.sort(key=lambda f: f.x)
        out.extend(merge_row(row, rule, cfg))

    return replace(page, fragments=out, links=list(page.links))


def merge_rows(
    document: Document,
    bucket: float,
    rule: RowMergeRule,
    cfg: MergeConfig | None = None,
) -> Document:
    """Horizontal merge pass over every page of *document*.

    The input document is deep-copied first and never mutated.
    """
    if cfg is None:
        cfg = MergeConfig()
    rule = RowMergeRule(rule)
    snapshot = copy.deepcopy(document)
    pages = [merge_rows_on_page(p, bucket, rule, cfg) for p in snapshot.pages]
    return replace(snapshot, pages=pages)
