from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Mapping, Sequence

from callprice.adapters.base import PriceProvider
from callprice.core.models import AssetClass, PriceQuery, ResolvedPrice

logger = logging.getLogger(__name__)


class ProviderChain:
    """Ordered fallback over price providers, one list per asset class.

    Providers run one at a time and the first positive price ends the walk;
    later providers are not called. A provider that raises or outlives
    ``timeout`` counts as a miss.
    """

    def __init__(self, providers: Mapping[AssetClass, Sequence[PriceProvider]], timeout: float = 12.0) -> None:
        self.providers = MappingProxyType({cls: tuple(seq) for cls, seq in providers.items()})
        self.timeout = timeout

    def providers_for(self, asset_class: AssetClass) -> tuple[PriceProvider, ...]:
        return self.providers.get(asset_class, ())

    async def resolve(self, query: PriceQuery) -> ResolvedPrice | None:
        asset_class = query.asset_class or AssetClass.CRYPTO
        tried: list[str] = []
        for provider in self.providers_for(asset_class):
            tried.append(provider.name)
            try:
                result = await asyncio.wait_for(provider.fetch_price(query), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "provider_timeout",
                    extra={"event": "provider_timeout", "provider": provider.name, "symbol": query.symbol, "outcome": "timeout"},
                )
                continue
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "provider_failed",
                    extra={"event": "provider_failed", "provider": provider.name, "symbol": query.symbol, "outcome": "error", "error": str(exc)},
                )
                continue

            if result is None or not result.price > 0:
                logger.info(
                    "provider_miss",
                    extra={"event": "provider_miss", "provider": provider.name, "symbol": query.symbol, "outcome": "miss"},
                )
                continue

            logger.info(
                "price_chain_hit",
                extra={
                    "event": "price_chain_hit",
                    "provider": result.provider,
                    "symbol": query.symbol,
                    "outcome": "hit",
                    "tried": tried,
                },
            )
            return result

        logger.warning(
            "price_chain_exhausted",
            extra={"event": "price_chain_exhausted", "symbol": query.symbol, "outcome": "exhausted", "tried": tried},
        )
        return None
