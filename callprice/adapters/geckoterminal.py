from __future__ import annotations

import math
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

from callprice.adapters.base import PriceProvider, from_epoch, match_samples, positive_price
from callprice.adapters.schemas import GtOhlcvResponse, GtPoolsResponse, parse_payload
from callprice.core.granularity import GranularitySelector
from callprice.core.http import ResilientHTTPClient
from callprice.core.models import Granularity, PriceQuery, PriceSample, ResolvedPrice, TradingPair, utcnow
from callprice.core.pairs import select_most_liquid

MAX_CANDLES = 1000

# DexScreener chain ids that GeckoTerminal names differently.
GT_NETWORKS: Mapping[str, str] = MappingProxyType(
    {
        "ethereum": "eth",
        "polygon": "polygon_pos",
        "avalanche": "avax",
        "fantom": "ftm",
        "sui": "sui-network",
    }
)


def network_for_chain(chain_id: str) -> str:
    return GT_NETWORKS.get(chain_id, chain_id)


class GeckoTerminalClient:
    def __init__(self, http: ResilientHTTPClient, geckoterminal_base: str, selector: GranularitySelector) -> None:
        self.http = http
        self.geckoterminal_base = geckoterminal_base.rstrip("/")
        self.selector = selector
        self.headers = {"Accept": "application/json;version=20230302"}

    async def ohlcv_samples(self, network: str, pool: str, granularity: Granularity, target: datetime) -> list[PriceSample]:
        timeframe, _, aggregate = granularity.interval.partition(":")
        _, end = granularity.window(target)
        end = min(end, utcnow())
        limit = min(MAX_CANDLES, math.ceil(granularity.lookback_window_seconds / granularity.step) + 1)
        payload = await self.http.get_json(
            f"{self.geckoterminal_base}/networks/{network}/pools/{pool}/ohlcv/{timeframe}",
            params={
                "aggregate": aggregate or "1",
                "before_timestamp": int(end.timestamp()),
                "limit": limit,
                "currency": "usd",
            },
            headers=self.headers,
        )
        samples = []
        for row in parse_payload(GtOhlcvResponse, payload).data.attributes.ohlcv_list:
            # [time, open, high, low, close, volume]
            if len(row) < 5 or row[0] is None:
                continue
            close = positive_price(row[4])
            if close is not None:
                samples.append(PriceSample(timestamp=from_epoch(row[0]), price=close))
        return samples

    async def price_at(self, pair: TradingPair, target: datetime, provider: str) -> ResolvedPrice | None:
        """Candle close nearest ``target`` on ``pair``, finest granularity first."""
        network = network_for_chain(pair.chain_id)
        for granularity in self.selector.candidates("geckoterminal", target):
            samples = await self.ohlcv_samples(network, pair.pair_address, granularity, target)
            matched = match_samples(provider, samples, target, granularity)
            if matched is not None:
                return matched
        return None

    async def search_pools(self, query: str) -> list[TradingPair]:
        payload = await self.http.get_json(
            f"{self.geckoterminal_base}/search/pools",
            params={"query": query},
            headers=self.headers,
        )
        pools = []
        for pool in parse_payload(GtPoolsResponse, payload).data:
            attrs = pool.attributes
            network = pool.relationships.network.data.id if pool.relationships.network.data else None
            if not attrs.address or not network:
                continue
            # Pool names read "BASE / QUOTE" (sometimes with a fee suffix).
            base_symbol = (attrs.name or "").split(" / ")[0].strip().upper()
            pools.append(
                TradingPair(
                    chain_id=network,
                    pair_address=attrs.address,
                    base_token_address="",
                    liquidity_usd=float(attrs.reserve_in_usd or 0.0),
                    base_symbol=base_symbol,
                    price_usd=positive_price(attrs.base_token_price_usd),
                )
            )
        return pools


class GeckoTerminalPriceProvider(PriceProvider):
    """On-chain candles for tokens found only through pool search."""

    name = "geckoterminal"

    def __init__(self, client: GeckoTerminalClient) -> None:
        self.client = client

    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        pools = [p for p in await self.client.search_pools(query.symbol) if p.base_symbol == query.symbol]
        pool = select_most_liquid(pools)
        if pool is None:
            return None
        if query.point_in_time is None and pool.price_usd is not None:
            return ResolvedPrice(price=pool.price_usd, provider=self.name, matched_timestamp=utcnow())
        # Search results already carry GeckoTerminal network ids, which map to themselves.
        return await self.client.price_at(pool, query.point_in_time or utcnow(), self.name)
