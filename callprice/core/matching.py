from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from callprice.core.models import PriceSample


def closest_sample(
    samples: Iterable[PriceSample],
    target: datetime,
    max_delta: timedelta | float | None = None,
) -> PriceSample | None:
    """Return the sample nearest to ``target`` in a single pass.

    Ties keep the sample seen first. Input order is not assumed to be sorted;
    a target before every sample therefore resolves to the earliest one.
    With ``max_delta`` set, a best match farther away than the tolerance
    yields None.
    """
    best: PriceSample | None = None
    best_distance: float | None = None
    for sample in samples:
        distance = abs((sample.timestamp - target).total_seconds())
        if best_distance is None or distance < best_distance:
            best = sample
            best_distance = distance

    if best is None or max_delta is None:
        return best
    limit = max_delta.total_seconds() if isinstance(max_delta, timedelta) else float(max_delta)
    if best_distance is not None and best_distance > limit:
        return None
    return best
