from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, TypeVar

T = TypeVar("T")


def quantize(value: float, bucket: float) -> float:
    """Snap *value* to the nearest multiple of *bucket*.

    Halves round up (towards +inf), so ``quantize(-2.5, 5) == 0`` and
    ``quantize(2.5, 5) == 5``.
    """
    if bucket <= 0:
        raise ValueError(f"bucket={bucket} must be > 0")
    return math.floor(value / bucket + 0.5) * bucket


def bucket_by(
    items: Iterable[T],
    coord: Callable[[T], float],
    bucket: float,
) -> Dict[float, List[T]]:
    """Group *items* by the quantized value of ``coord(item)``.

    Members keep their input order; keys are returned in ascending order.
    """
    groups: Dict[float, List[T]] = {}
    for item in items:
        groups.setdefault(quantize(coord(item), bucket), []).append(item)
    return {k: groups[k] for k in sorted(groups)}
