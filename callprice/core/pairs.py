from __future__ import annotations

from typing import Iterable, Mapping

from callprice.core.models import TradingPair

# DexScreener rolling change windows, in seconds.
CHANGE_BUCKETS: tuple[tuple[str, int], ...] = (
    ("m5", 5 * 60),
    ("h1", 3600),
    ("h6", 6 * 3600),
    ("h24", 24 * 3600),
)


def select_most_liquid(pairs: Iterable[TradingPair]) -> TradingPair | None:
    """Highest ``liquidity_usd`` wins; equal liquidity keeps the earlier pair."""
    best: TradingPair | None = None
    for pair in pairs:
        if best is None or pair.liquidity_usd > best.liquidity_usd:
            best = pair
    return best


def nearest_change_bucket(price_change: Mapping[str, float], age_seconds: float) -> tuple[str, float] | None:
    best: tuple[str, float] | None = None
    best_gap: float | None = None
    for bucket, span in CHANGE_BUCKETS:
        pct = price_change.get(bucket)
        if pct is None:
            continue
        gap = abs(span - age_seconds)
        if best_gap is None or gap < best_gap:
            best = (bucket, pct)
            best_gap = gap
    return best


def estimate_from_price_change(
    current_price: float,
    price_change: Mapping[str, float],
    age_seconds: float,
) -> float | None:
    """Undo the rolling percent change closest to ``age_seconds``.

    A change of exactly 0 carries no signal and yields None, as does any
    reconstruction that would not be a positive price.
    """
    picked = nearest_change_bucket(price_change, age_seconds)
    if picked is None:
        return None
    _, pct = picked
    if pct == 0:
        return None
    divisor = 1 + pct / 100
    if divisor <= 0:
        return None
    estimate = current_price / divisor
    return estimate if estimate > 0 else None
