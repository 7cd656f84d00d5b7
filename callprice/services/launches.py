from __future__ import annotations

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable

from callprice.core.models import LaunchRecord, ResolvedPrice, as_utc

# First traded (or sale) prices, used before any provider has data.
DEFAULT_LAUNCHES: tuple[LaunchRecord, ...] = (
    LaunchRecord("BTC", datetime(2010, 7, 17, tzinfo=timezone.utc), 0.0008),
    LaunchRecord("ETH", datetime(2015, 7, 30, tzinfo=timezone.utc), 0.311),
    LaunchRecord("SOL", datetime(2020, 4, 10, tzinfo=timezone.utc), 0.22),
)


class LaunchGuard:
    def __init__(self, records: Iterable[LaunchRecord] = DEFAULT_LAUNCHES) -> None:
        self.records = MappingProxyType({r.symbol: r for r in records})

    def check(self, symbol: str, point_in_time: datetime | None) -> ResolvedPrice | None:
        if point_in_time is None:
            return None
        record = self.records.get(symbol)
        if record is None or as_utc(point_in_time) >= record.launch_date:
            return None
        return ResolvedPrice(price=record.launch_price, provider="launch_record", matched_timestamp=record.launch_date)
