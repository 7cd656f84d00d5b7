from __future__ import annotations

from callprice.adapters.base import PriceProvider
from callprice.core.models import PriceQuery, ResolvedPrice, utcnow


def parse_mock_prices(raw: str) -> dict[str, float]:
    """Parse ``"BTC:65000,ETH:3000"``; malformed entries are skipped."""
    out: dict[str, float] = {}
    if not raw:
        return out
    for item in raw.split(","):
        if ":" not in item:
            continue
        k, v = item.split(":", 1)
        try:
            price = float(v)
        except ValueError:
            continue
        if price > 0:
            out[k.strip().upper()] = price
    return out


class StaticPriceProvider(PriceProvider):
    """Fixed prices for offline runs; placed ahead of the network providers in test mode."""

    name = "test_mode"

    def __init__(self, prices: dict[str, float]) -> None:
        self.prices = dict(prices)

    def set_price(self, symbol: str, price: float) -> None:
        self.prices[symbol.upper()] = float(price)

    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        price = self.prices.get(query.symbol)
        if price is None:
            return None
        return ResolvedPrice(price=price, provider=self.name, matched_timestamp=query.point_in_time or utcnow())
