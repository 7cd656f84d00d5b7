from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from callprice.core.cache import RedisCache
from callprice.core.models import as_utc, utcnow


@dataclass(frozen=True)
class PriceObservation:
    address: str
    price: float
    observed_at: datetime
    symbol: str | None = None


class PriceObservationStore(Protocol):
    async def get_observation(self, address: str) -> PriceObservation | None: ...

    async def record_observation(self, address: str, price: float, symbol: str | None = None) -> None: ...


class RedisObservationStore:
    """Last seen price per contract address, kept for fallback when DexScreener is down."""

    def __init__(self, cache: RedisCache, ttl: int) -> None:
        self.cache = cache
        self.ttl = ttl

    @staticmethod
    def _key(address: str) -> str:
        return f"ca_price:{address}"

    async def get_observation(self, address: str) -> PriceObservation | None:
        key = self._key(address)
        cached = await self.cache.get_json(key)
        if cached is None:
            return None
        try:
            price = float(cached["price"])
            observed_at = as_utc(datetime.fromisoformat(cached["ts"]))
        except (KeyError, TypeError, ValueError):
            price = 0.0
        if price <= 0:
            # Unusable record; drop it.
            await self.cache.delete(key)
            return None
        return PriceObservation(address=address, price=price, observed_at=observed_at, symbol=cached.get("symbol"))

    async def record_observation(self, address: str, price: float, symbol: str | None = None) -> None:
        await self.cache.set_json(
            self._key(address),
            {
                "address": address,
                "symbol": symbol,
                "price": float(price),
                "source": "dexscreener",
                "ts": utcnow().isoformat(),
            },
            ttl=self.ttl,
        )
