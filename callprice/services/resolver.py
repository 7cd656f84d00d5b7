from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Iterable, Protocol

from callprice.adapters.symbols import looks_like_contract_address, normalize_symbol
from callprice.core.errors import ValidationError
from callprice.core.models import AssetClass, ContractPrice, PriceQuery, ResolvedPrice, Sentiment, as_utc, utcnow
from callprice.services.chain import ProviderChain
from callprice.services.classifier import AssetClassifier
from callprice.services.contracts import ContractAddressResolver
from callprice.services.launches import LaunchGuard
from callprice.services.performance import calculate_performance

logger = logging.getLogger(__name__)

SYMBOL_RE = re.compile(r"^[A-Z0-9][A-Z0-9.=&_-]{0,19}$")


class BatchQuoteSource(Protocol):
    async def fetch_many(self, symbols: Iterable[str]) -> dict[str, ResolvedPrice]: ...


class PriceResolver:
    """Entry point for price lookups by ticker or contract address."""

    def __init__(
        self,
        chain: ProviderChain,
        contracts: ContractAddressResolver,
        classifier: AssetClassifier | None = None,
        launches: LaunchGuard | None = None,
        max_concurrent_queries: int = 8,
        batch_quotes: BatchQuoteSource | None = None,
    ) -> None:
        self.chain = chain
        self.contracts = contracts
        self.classifier = classifier or AssetClassifier()
        self.launches = launches or LaunchGuard()
        self.max_concurrent_queries = max_concurrent_queries
        self.batch_quotes = batch_quotes

    @staticmethod
    def _clamp(point_in_time: datetime | None) -> datetime | None:
        if point_in_time is None:
            return None
        target = as_utc(point_in_time)
        now = utcnow()
        # A call cannot be priced in the future; treat it as "now".
        return None if target >= now else target

    async def resolve_price(
        self,
        symbol: str,
        asset_class: AssetClass | str | None = None,
        point_in_time: datetime | None = None,
    ) -> ResolvedPrice | None:
        raw = (symbol or "").strip()
        if looks_like_contract_address(raw):
            return await self.resolve_price_by_contract_address(raw, point_in_time)

        normalized = normalize_symbol(raw)
        if not SYMBOL_RE.match(normalized):
            logger.info("symbol_rejected", extra={"event": "symbol_rejected", "symbol": raw, "outcome": "invalid"})
            return None

        klass = self.classifier.classify(normalized, asset_class)
        target = self._clamp(point_in_time)

        launch = self.launches.check(normalized, target)
        if launch is not None:
            logger.info(
                "launch_price_used",
                extra={"event": "launch_price_used", "symbol": normalized, "provider": launch.provider, "outcome": "hit"},
            )
            return launch

        return await self.chain.resolve(PriceQuery(symbol=normalized, asset_class=klass, point_in_time=target))

    async def resolve_price_by_contract_address(
        self, address: str, point_in_time: datetime | None = None
    ) -> ContractPrice | None:
        address = (address or "").strip()
        if not address:
            return None
        return await self.contracts.resolve(address, self._clamp(point_in_time))

    def calculate_performance(self, entry_price: float, current_price: float, sentiment: Sentiment | str) -> float:
        return calculate_performance(entry_price, current_price, sentiment)

    async def resolve_many(self, queries: Iterable[PriceQuery]) -> list[ResolvedPrice | None]:
        """Resolve a batch concurrently; results line up with ``queries``.

        Current-price queries are first answered by batched lookups (coin ids
        and contract addresses, many per request); only the misses, and all
        historical queries, go through the provider chain one by one. A query
        that raises yields None in its slot.
        """
        queries = list(queries)
        prefetched = await self._prefetch_current(queries)
        slots = asyncio.Semaphore(self.max_concurrent_queries)

        async def _one(index: int, query: PriceQuery) -> ResolvedPrice | None:
            if index in prefetched:
                return prefetched[index]
            async with slots:
                try:
                    return await self.resolve_price(query.symbol, query.asset_class, query.point_in_time)
                except Exception as exc:  # noqa: BLE001
                    logger.warning(
                        "batch_query_failed",
                        extra={"event": "batch_query_failed", "symbol": query.symbol, "outcome": "error", "error": str(exc)},
                    )
                    return None

        return list(await asyncio.gather(*(_one(i, q) for i, q in enumerate(queries))))

    async def _prefetch_current(self, queries: list[PriceQuery]) -> dict[int, ResolvedPrice]:
        addresses: dict[int, str] = {}
        symbols: dict[int, str] = {}
        for index, query in enumerate(queries):
            if self._clamp(query.point_in_time) is not None:
                continue
            raw = (query.symbol or "").strip()
            if looks_like_contract_address(raw):
                addresses[index] = raw
                continue
            if self.batch_quotes is None:
                continue
            normalized = normalize_symbol(raw)
            if not SYMBOL_RE.match(normalized):
                continue
            try:
                klass = self.classifier.classify(normalized, query.asset_class)
            except ValidationError:
                continue
            if klass is AssetClass.CRYPTO:
                symbols[index] = normalized

        found: dict[int, ResolvedPrice] = {}
        if not addresses and not symbols:
            return found
        if addresses:
            try:
                by_address = await self.contracts.resolve_current_many(addresses.values())
            except Exception as exc:  # noqa: BLE001
                logger.warning("batch_prefetch_failed", extra={"event": "batch_prefetch_failed", "outcome": "error", "error": str(exc)})
                by_address = {}
            found.update({i: by_address[a] for i, a in addresses.items() if a in by_address})
        if symbols and self.batch_quotes is not None:
            try:
                by_symbol = await self.batch_quotes.fetch_many(symbols.values())
            except Exception as exc:  # noqa: BLE001
                logger.warning("batch_prefetch_failed", extra={"event": "batch_prefetch_failed", "outcome": "error", "error": str(exc)})
                by_symbol = {}
            found.update({i: by_symbol[s] for i, s in symbols.items() if s in by_symbol})

        logger.info(
            "batch_prefetched",
            extra={"event": "batch_prefetched", "outcome": f"{len(found)}/{len(addresses) + len(symbols)}"},
        )
        return found
