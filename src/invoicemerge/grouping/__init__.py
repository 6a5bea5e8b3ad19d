"""Geometric clustering passes: rows, columns and lines.

Public API
----------
- :func:`merge_rows` — horizontal merge pass (passes 1, 4, 5)
- :func:`merge_columns` — vertical merge pass over single characters (2, 3)
- :func:`merge_lines` — final line grouping with joined texts
- :func:`quantize` / :func:`bucket_by` — coordinate bucketing helpers
"""

from .buckets import bucket_by, quantize
from .columns import (
    ColumnMergeRule,
    can_merge_vertically,
    merge_column,
    merge_columns,
    vertical_spacing,
)
from .lines import group_lines, line_texts, merge_lines
from .rows import RowMergeRule, can_merge_horizontally, merge_row, merge_rows

__all__ = [
    "bucket_by",
    "quantize",
    "ColumnMergeRule",
    "can_merge_vertically",
    "merge_column",
    "merge_columns",
    "vertical_spacing",
    "group_lines",
    "line_texts",
    "merge_lines",
    "RowMergeRule",
    "can_merge_horizontally",
    "merge_row",
    "merge_rows",
]
