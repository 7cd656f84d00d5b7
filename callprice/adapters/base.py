from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable

from callprice.core.errors import MalformedResponseError, NotFoundError, ProviderUnavailableError
from callprice.core.matching import closest_sample
from callprice.core.models import Granularity, PriceQuery, PriceSample, ResolvedPrice

logger = logging.getLogger(__name__)

_OUTCOMES: tuple[tuple[type[Exception], str], ...] = (
    (NotFoundError, "not_found"),
    (MalformedResponseError, "malformed"),
    (ProviderUnavailableError, "unavailable"),
)


def positive_price(value: Any) -> float | None:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if price != price or price <= 0:  # NaN
        return None
    return price


def from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def match_samples(
    provider: str,
    samples: Iterable[PriceSample],
    target: datetime,
    granularity: Granularity,
) -> ResolvedPrice | None:
    """Closest positive sample to ``target``, bounded by the requested window."""
    usable = [s for s in samples if s.price > 0]
    best = closest_sample(usable, target, max_delta=granularity.lookback_window_seconds)
    if best is None:
        return None
    return ResolvedPrice(price=best.price, provider=provider, matched_timestamp=best.timestamp)


class PriceProvider(ABC):
    """One upstream price source.

    ``fetch_price`` never raises: upstream errors, schema mismatches and bugs
    in ``_fetch`` are logged at this boundary and read as "no price".
    """

    name: str = "provider"

    async def fetch_price(self, query: PriceQuery) -> ResolvedPrice | None:
        started = time.perf_counter()
        try:
            result = await self._fetch(query)
        except Exception as exc:  # noqa: BLE001
            outcome = next((label for kind, label in _OUTCOMES if isinstance(exc, kind)), "error")
            log = logger.info if outcome != "error" else logger.warning
            log(
                "provider_failed",
                extra={
                    "event": "provider_failed",
                    "provider": self.name,
                    "symbol": query.symbol,
                    "outcome": outcome,
                    "error": str(exc),
                    "latency_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
            return None

        logger.debug(
            "provider_result",
            extra={
                "event": "provider_result",
                "provider": self.name,
                "symbol": query.symbol,
                "outcome": "hit" if result is not None else "miss",
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return result

    @abstractmethod
    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        raise NotImplementedError
