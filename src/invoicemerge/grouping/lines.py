from __future__ import annotations

import copy
from dataclasses import replace
from typing import List

from ..config import MergeConfig
from ..models import Document, Fragment, Page
from .buckets import bucket_by


def group_lines(fragments: List[Fragment], bucket: float) -> List[List[Fragment]]:
    """Bucket *fragments* on quantized ``y``; each line sorted by ``x``.

    Lines come back in ascending key order.  Merge flags are ignored.
    """
    lines = []
    for line in bucket_by(fragments, lambda f: f.y, bucket).values():
        line.sort(key=lambda f: f.x)
        lines.append(line)
    return lines


def merge_lines_on_page(page: Page, bucket: float) -> Page:
    """Annotate the head fragment of every line with its joined texts."""
    out: List[Fragment] = []
    for line in group_lines(page.fragments, bucket):
        texts = [f.text for f in line]
        head = replace(
            line[0],
            direct_concat="".join(texts),
            semicolon_joined=";".join(texts),
        )
        out.append(head)
        out.extend(
            replace(f, direct_concat=None, semicolon_joined=None) for f in line[1:]
        )
    return replace(page, fragments=out, links=list(page.links))


def merge_lines(document: Document, cfg: MergeConfig | None = None) -> Document:
    """Line merge over every page; pages list fragments line by line."""
    if cfg is None:
        cfg = MergeConfig()
    snapshot = copy.deepcopy(document)
    pages = [merge_lines_on_page(p, cfg.line_bucket) for p in snapshot.pages]
    return replace(snapshot, pages=pages)


def line_texts(document: Document, semicolon: bool = False) -> List[str]:
    """Joined text of every line head, in page then line order."""
    attr = "semicolon_joined" if semicolon else "direct_concat"
    return [
        getattr(frag, attr)
        for _, frag in document.iter_fragments()
        if getattr(frag, attr) is not None
    ]
