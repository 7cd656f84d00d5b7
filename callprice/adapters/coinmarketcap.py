from __future__ import annotations

from datetime import datetime

from callprice.adapters.base import PriceProvider, match_samples, positive_price
from callprice.adapters.schemas import CmcAsset, CmcResponse, parse_payload
from callprice.adapters.symbols import AliasTable
from callprice.core.granularity import GranularitySelector
from callprice.core.http import ResilientHTTPClient
from callprice.core.models import PriceQuery, PriceSample, ResolvedPrice, as_utc, utcnow


def _parse_timestamp(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        return None


class CoinMarketCapPriceProvider(PriceProvider):
    """CoinMarketCap quotes. Skipped entirely when no API key is configured."""

    name = "coinmarketcap"

    def __init__(
        self,
        http: ResilientHTTPClient,
        coinmarketcap_base: str,
        api_key: str,
        aliases: AliasTable,
        selector: GranularitySelector,
    ) -> None:
        self.http = http
        self.coinmarketcap_base = coinmarketcap_base.rstrip("/")
        self.api_key = api_key
        self.aliases = aliases
        self.selector = selector

    @property
    def headers(self) -> dict[str, str]:
        return {"X-CMC_PRO_API_KEY": self.api_key, "Accept": "application/json"}

    @staticmethod
    def _first_asset(response: CmcResponse, symbol: str) -> CmcAsset | None:
        entry = response.data.get(symbol)
        if isinstance(entry, list):
            # Symbol lookups return every listing sharing the ticker, ranked by CMC.
            return entry[0] if entry else None
        return entry

    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        if not self.api_key:
            return None
        symbol = self.aliases.coinmarketcap_symbol(query.symbol)

        if query.point_in_time is None:
            payload = await self.http.get_json(
                f"{self.coinmarketcap_base}/v2/cryptocurrency/quotes/latest",
                params={"symbol": symbol, "convert": "USD"},
                headers=self.headers,
            )
            asset = self._first_asset(parse_payload(CmcResponse, payload), symbol)
            price = positive_price(asset.quote.usd.price) if asset and asset.quote.usd else None
            if price is None:
                return None
            return ResolvedPrice(price=price, provider=self.name, matched_timestamp=utcnow())

        granularity = self.selector.select(self.name, query.point_in_time)
        if granularity is None:
            return None
        start, end = granularity.window(query.point_in_time)
        payload = await self.http.get_json(
            f"{self.coinmarketcap_base}/v2/cryptocurrency/quotes/historical",
            params={
                "symbol": symbol,
                "time_start": start.isoformat(),
                "time_end": min(end, utcnow()).isoformat(),
                "interval": granularity.interval,
                "convert": "USD",
            },
            headers=self.headers,
        )
        asset = self._first_asset(parse_payload(CmcResponse, payload), symbol)
        if asset is None:
            return None
        samples = []
        for quote in asset.quotes:
            ts = _parse_timestamp(quote.timestamp)
            price = positive_price(quote.quote.usd.price) if quote.quote.usd else None
            if ts is not None and price is not None:
                samples.append(PriceSample(timestamp=ts, price=price))
        return match_samples(self.name, samples, query.point_in_time, granularity)
