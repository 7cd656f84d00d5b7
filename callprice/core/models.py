from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Mapping


class AssetClass(str, Enum):
    CRYPTO = "CRYPTO"
    STOCK = "STOCK"


class Sentiment(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PriceQuery:
    symbol: str
    asset_class: AssetClass | None = None
    point_in_time: datetime | None = None

    @property
    def is_historical(self) -> bool:
        return self.point_in_time is not None


@dataclass(frozen=True)
class PriceSample:
    timestamp: datetime
    price: float


@dataclass(frozen=True)
class ResolvedPrice:
    price: float
    provider: str
    matched_timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if not self.price > 0:
            raise ValueError(f"ResolvedPrice requires a positive price, got {self.price!r}")


@dataclass(frozen=True)
class TradingPair:
    chain_id: str
    pair_address: str
    base_token_address: str
    liquidity_usd: float
    base_symbol: str = ""
    price_usd: float | None = None
    price_change: Mapping[str, float] = field(default_factory=dict)
    pair_created_at: datetime | None = None


@dataclass(frozen=True)
class ContractPrice(ResolvedPrice):
    symbol_hint: str | None = None
    pair: TradingPair | None = None


@dataclass(frozen=True)
class LaunchRecord:
    symbol: str
    launch_date: datetime
    launch_price: float


@dataclass(frozen=True)
class PerformanceResult:
    raw_percent_change: float
    signed_performance: float
    is_win: bool

    @property
    def is_flat(self) -> bool:
        return self.signed_performance == 0


@dataclass(frozen=True)
class Granularity:
    """A provider-native candle interval plus the window fetched around the target."""

    interval: str
    step: int
    window_before: int
    window_after: int

    @property
    def lookback_window_seconds(self) -> int:
        return self.window_before + self.window_after

    def window(self, target: datetime) -> tuple[datetime, datetime]:
        return (
            target - timedelta(seconds=self.window_before),
            target + timedelta(seconds=self.window_after),
        )
