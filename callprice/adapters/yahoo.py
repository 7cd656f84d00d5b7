from __future__ import annotations

from callprice.adapters.base import PriceProvider, from_epoch, match_samples, positive_price
from callprice.adapters.schemas import YahooChartResponse, YahooResult, parse_payload
from callprice.adapters.symbols import AliasTable
from callprice.core.granularity import GranularitySelector
from callprice.core.http import ResilientHTTPClient
from callprice.core.models import AssetClass, PriceQuery, PriceSample, ResolvedPrice, utcnow

# The chart endpoint rejects requests without a browser-like agent.
YAHOO_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; callprice/1.0)"}


class YahooPriceProvider(PriceProvider):
    name = "yahoo"

    def __init__(
        self,
        http: ResilientHTTPClient,
        yahoo_base: str,
        aliases: AliasTable,
        selector: GranularitySelector,
    ) -> None:
        self.http = http
        self.yahoo_base = yahoo_base.rstrip("/")
        self.aliases = aliases
        self.selector = selector

    async def _chart(self, ticker: str, params: dict) -> YahooResult | None:
        payload = await self.http.get_json(f"{self.yahoo_base}/{ticker}", params=params, headers=YAHOO_HEADERS)
        chart = parse_payload(YahooChartResponse, payload).chart
        if not chart.result:
            return None
        return chart.result[0]

    @staticmethod
    def _samples(result: YahooResult) -> list[PriceSample]:
        closes = result.indicators.quote[0].close if result.indicators.quote else []
        samples = []
        for ts, close in zip(result.timestamp, closes):
            price = positive_price(close)
            if ts is None or price is None:
                continue
            samples.append(PriceSample(timestamp=from_epoch(ts), price=price))
        return samples

    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        ticker = self.aliases.yahoo_ticker(query.symbol, query.asset_class or AssetClass.STOCK)

        if query.point_in_time is None:
            result = await self._chart(ticker, {"interval": "1d", "range": "5d"})
            if result is None:
                return None
            live = positive_price(result.meta.regular_market_price)
            if live is not None:
                return ResolvedPrice(price=live, provider=self.name, matched_timestamp=utcnow())
            samples = self._samples(result)
            if not samples:
                return None
            last = samples[-1]
            return ResolvedPrice(price=last.price, provider=self.name, matched_timestamp=last.timestamp)

        for granularity in self.selector.candidates(self.name, query.point_in_time):
            start, end = granularity.window(query.point_in_time)
            end = min(end, utcnow())
            result = await self._chart(
                ticker,
                {
                    "period1": int(start.timestamp()),
                    "period2": int(end.timestamp()),
                    "interval": granularity.interval,
                    "events": "history",
                },
            )
            if result is None:
                continue
            matched = match_samples(self.name, self._samples(result), query.point_in_time, granularity)
            if matched is not None:
                return matched
        return None
