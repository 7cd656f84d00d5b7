from __future__ import annotations

from callprice.core.errors import ValidationError
from callprice.core.models import PerformanceResult, Sentiment


def _sentiment(value: Sentiment | str) -> Sentiment:
    if isinstance(value, Sentiment):
        return value
    try:
        return Sentiment(str(value).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown sentiment: {value!r}") from exc


def evaluate_performance(entry_price: float, current_price: float, sentiment: Sentiment | str) -> PerformanceResult:
    """Signed move from entry to current; bearish calls profit when price falls."""
    if not entry_price > 0:
        raise ValidationError(f"entry_price must be positive, got {entry_price!r}")
    if not current_price >= 0:
        raise ValidationError(f"current_price must not be negative, got {current_price!r}")
    raw = (current_price - entry_price) / entry_price * 100
    signed = raw if _sentiment(sentiment) is Sentiment.BULLISH else -raw
    return PerformanceResult(raw_percent_change=raw, signed_performance=signed, is_win=signed > 0)


def calculate_performance(entry_price: float, current_price: float, sentiment: Sentiment | str) -> float:
    return evaluate_performance(entry_price, current_price, sentiment).signed_performance
