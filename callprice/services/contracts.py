from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from callprice.adapters.base import PriceProvider
from callprice.adapters.dexscreener import DexScreenerClient
from callprice.adapters.geckoterminal import GeckoTerminalClient
from callprice.adapters.observations import PriceObservationStore
from callprice.adapters.symbols import AliasTable
from callprice.core.models import ContractPrice, PriceQuery, ResolvedPrice, TradingPair, as_utc, utcnow
from callprice.core.pairs import estimate_from_price_change, select_most_liquid

logger = logging.getLogger(__name__)


class ContractAddressResolver:
    """Prices a token known only by its on-chain address.

    The most liquid DexScreener pair is the reference market. Past prices come
    from GeckoTerminal candles on that pair when the target is older than
    ``recent_window``, otherwise from DexScreener's rolling percent changes.
    When neither works, the last observation kept by ``store`` is returned.
    """

    def __init__(
        self,
        dex: DexScreenerClient,
        terminal: GeckoTerminalClient,
        store: PriceObservationStore | None = None,
        recent_window: timedelta = timedelta(hours=24),
    ) -> None:
        self.dex = dex
        self.terminal = terminal
        self.store = store
        self.recent_window = recent_window

    async def resolve(self, address: str, point_in_time: datetime | None = None) -> ContractPrice | None:
        address = address.strip()
        now = utcnow()
        target = as_utc(point_in_time) if point_in_time is not None else None
        if target is not None and target >= now:
            target = None

        try:
            pairs = await self.dex.token_pairs(address)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "contract_pairs_unavailable",
                extra={"event": "contract_pairs_unavailable", "address": address, "outcome": "unavailable", "error": str(exc)},
            )
            return await self._fallback(address)

        if not pairs:
            logger.info("contract_pairs_not_found", extra={"event": "contract_pairs_not_found", "address": address, "outcome": "not_found"})
            return None

        pair = select_most_liquid(p for p in pairs if p.price_usd is not None)
        if pair is None or pair.price_usd is None:
            return await self._fallback(address)

        if target is not None and pair.pair_created_at is not None and target < pair.pair_created_at:
            # Nothing traded before the pair existed; price the call at its opening.
            logger.info(
                "contract_target_before_pair",
                extra={"event": "contract_target_before_pair", "address": address, "outcome": "clamped"},
            )
            target = pair.pair_created_at

        if target is None:
            result: ContractPrice | None = self._contract_price(pair.price_usd, "dexscreener", now, pair)
        else:
            result = await self._historical(pair, target, now)
            if result is None:
                result = await self._fallback(address, pair)

        await self._record(address, pair)
        return result

    async def resolve_current_many(self, addresses: Iterable[str]) -> dict[str, ContractPrice]:
        """Current prices for many addresses through batched pair lookups.

        Addresses with no priced pair, or whose lookup failed, are left out so
        the caller can retry them one by one.
        """
        grouped = await self.dex.token_pairs_many(addresses)
        now = utcnow()
        prices: dict[str, ContractPrice] = {}
        for address, pairs in grouped.items():
            pair = select_most_liquid(p for p in pairs if p.price_usd is not None)
            if pair is None or pair.price_usd is None:
                continue
            prices[address] = self._contract_price(pair.price_usd, "dexscreener", now, pair)
            await self._record(address, pair)
        return prices

    @staticmethod
    def _contract_price(price: float, provider: str, matched: datetime | None, pair: TradingPair) -> ContractPrice:
        return ContractPrice(
            price=price,
            provider=provider,
            matched_timestamp=matched,
            symbol_hint=pair.base_symbol or None,
            pair=pair,
        )

    async def _historical(self, pair: TradingPair, target: datetime, now: datetime) -> ContractPrice | None:
        age = now - target
        if age > self.recent_window:
            try:
                candle = await self.terminal.price_at(pair, target, "geckoterminal")
            except Exception as exc:  # noqa: BLE001
                logger.info(
                    "contract_candles_failed",
                    extra={"event": "contract_candles_failed", "address": pair.base_token_address, "provider": "geckoterminal", "error": str(exc)},
                )
                return None
            if candle is None:
                return None
            return self._contract_price(candle.price, candle.provider, candle.matched_timestamp, pair)

        estimate = estimate_from_price_change(pair.price_usd or 0.0, pair.price_change, age.total_seconds())
        if estimate is None:
            return None
        return self._contract_price(estimate, "dexscreener_change", target, pair)

    async def _fallback(self, address: str, pair: TradingPair | None = None) -> ContractPrice | None:
        if self.store is None:
            return None
        try:
            observation = await self.store.get_observation(address)
        except Exception as exc:  # noqa: BLE001
            logger.warning("observation_read_failed", extra={"event": "observation_read_failed", "address": address, "error": str(exc)})
            return None
        if observation is None:
            return None
        logger.info(
            "contract_observation_fallback",
            extra={"event": "contract_observation_fallback", "address": address, "provider": "observation_cache", "outcome": "hit"},
        )
        return ContractPrice(
            price=observation.price,
            provider="observation_cache",
            matched_timestamp=observation.observed_at,
            symbol_hint=(pair.base_symbol if pair and pair.base_symbol else observation.symbol),
            pair=pair,
        )

    async def _record(self, address: str, pair: TradingPair) -> None:
        if self.store is None or pair.price_usd is None:
            return
        try:
            await self.store.record_observation(address, pair.price_usd, pair.base_symbol or None)
        except Exception as exc:  # noqa: BLE001
            logger.warning("observation_write_failed", extra={"event": "observation_write_failed", "address": address, "error": str(exc)})


class KnownContractPriceProvider(PriceProvider):
    """Symbols whose canonical market is a known on-chain token."""

    name = "dexscreener_contract"

    def __init__(self, resolver: ContractAddressResolver, aliases: AliasTable) -> None:
        self.resolver = resolver
        self.aliases = aliases

    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        contract = self.aliases.contract_for(query.symbol)
        if contract is None:
            return None
        return await self.resolver.resolve(contract.address, query.point_in_time)
