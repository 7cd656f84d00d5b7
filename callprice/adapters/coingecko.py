from __future__ import annotations

import logging
from typing import Iterable

from callprice.adapters.base import PriceProvider, from_epoch, match_samples, positive_price
from callprice.adapters.schemas import CoinGeckoRange, CoinGeckoSearch, CoinGeckoSimplePrice, CoinGeckoUsdQuote, parse_payload
from callprice.adapters.symbols import AliasTable
from callprice.core.granularity import GranularitySelector
from callprice.core.http import ResilientHTTPClient
from callprice.core.models import PriceQuery, PriceSample, ResolvedPrice, utcnow

logger = logging.getLogger(__name__)

IDS_PER_CALL = 50


class CoinGeckoPriceProvider(PriceProvider):
    name = "coingecko"

    def __init__(
        self,
        http: ResilientHTTPClient,
        coingecko_base: str,
        aliases: AliasTable,
        selector: GranularitySelector,
        api_key: str = "",
        pro: bool = False,
    ) -> None:
        self.http = http
        self.coingecko_base = coingecko_base.rstrip("/")
        self.aliases = aliases
        self.selector = selector
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["x-cg-pro-api-key" if pro else "x-cg-demo-api-key"] = api_key

    async def _resolve_coin_id(self, symbol: str) -> str | None:
        cg_id = self.aliases.coingecko_id(symbol)
        if cg_id:
            return cg_id
        payload = await self.http.get_json(f"{self.coingecko_base}/search", params={"query": symbol}, headers=self.headers)
        for coin in parse_payload(CoinGeckoSearch, payload).coins:
            if (coin.symbol or "").upper() == symbol and coin.id:
                return coin.id
        logger.info("coingecko_id_not_found", extra={"event": "coingecko_id_not_found", "symbol": symbol})
        return None

    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        cg_id = await self._resolve_coin_id(query.symbol)
        if not cg_id:
            return None

        if query.point_in_time is None:
            payload = await self.http.get_json(
                f"{self.coingecko_base}/simple/price",
                params={"ids": cg_id, "vs_currencies": "usd"},
                headers=self.headers,
            )
            quote = parse_payload(CoinGeckoSimplePrice, payload).root.get(cg_id)
            price = positive_price(quote.usd) if quote else None
            if price is None:
                return None
            return ResolvedPrice(price=price, provider=self.name, matched_timestamp=utcnow())

        granularity = self.selector.select(self.name, query.point_in_time)
        if granularity is None:
            return None
        start, end = granularity.window(query.point_in_time)
        payload = await self.http.get_json(
            f"{self.coingecko_base}/coins/{cg_id}/market_chart/range",
            params={
                "vs_currency": "usd",
                "from": int(start.timestamp()),
                "to": int(min(end, utcnow()).timestamp()),
            },
            headers=self.headers,
        )
        samples = [
            PriceSample(timestamp=from_epoch(row[0] / 1000), price=row[1])
            for row in parse_payload(CoinGeckoRange, payload).prices
            if len(row) >= 2 and row[0] is not None and positive_price(row[1]) is not None
        ]
        return match_samples(self.name, samples, query.point_in_time, granularity)

    async def fetch_many(self, symbols: Iterable[str]) -> dict[str, ResolvedPrice]:
        """Current prices for many symbols, ``IDS_PER_CALL`` coin ids per request.

        Only symbols with a known coin id are batched; a failed chunk is
        logged and its symbols are left out of the result.
        """
        ids: dict[str, str] = {}
        for symbol in symbols:
            cg_id = self.aliases.coingecko_id(symbol)
            if cg_id:
                ids.setdefault(symbol, cg_id)
        unique = list(dict.fromkeys(ids.values()))

        quotes: dict[str, CoinGeckoUsdQuote] = {}
        for start in range(0, len(unique), IDS_PER_CALL):
            chunk = unique[start : start + IDS_PER_CALL]
            try:
                payload = await self.http.get_json(
                    f"{self.coingecko_base}/simple/price",
                    params={"ids": ",".join(chunk), "vs_currencies": "usd"},
                    headers=self.headers,
                )
                quotes.update(parse_payload(CoinGeckoSimplePrice, payload).root)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "coingecko_batch_failed",
                    extra={"event": "coingecko_batch_failed", "provider": self.name, "outcome": "error", "error": str(exc)},
                )

        now = utcnow()
        prices: dict[str, ResolvedPrice] = {}
        for symbol, cg_id in ids.items():
            quote = quotes.get(cg_id)
            price = positive_price(quote.usd) if quote else None
            if price is not None:
                prices[symbol] = ResolvedPrice(price=price, provider=self.name, matched_timestamp=now)
        return prices
