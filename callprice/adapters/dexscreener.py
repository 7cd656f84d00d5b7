from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable

from callprice.adapters.base import PriceProvider, from_epoch, positive_price
from callprice.adapters.schemas import DexPair, DexPairsResponse, parse_payload
from callprice.core.errors import NotFoundError
from callprice.core.http import ResilientHTTPClient
from callprice.core.models import PriceQuery, ResolvedPrice, TradingPair, utcnow
from callprice.core.pairs import estimate_from_price_change, select_most_liquid

logger = logging.getLogger(__name__)

ADDRESSES_PER_CALL = 30


def _address_key(address: str) -> str:
    # EVM addresses compare case-insensitively; base58 does not.
    return address.lower() if address.startswith("0x") else address


def _to_trading_pair(raw: DexPair) -> TradingPair | None:
    if not raw.chain_id or not raw.pair_address:
        return None
    changes = {k: float(v) for k, v in (raw.price_change or {}).items() if v is not None}
    return TradingPair(
        chain_id=raw.chain_id,
        pair_address=raw.pair_address,
        base_token_address=raw.base_token.address or "",
        liquidity_usd=float(raw.liquidity.usd or 0.0) if raw.liquidity else 0.0,
        base_symbol=(raw.base_token.symbol or "").upper(),
        price_usd=positive_price(raw.price_usd),
        price_change=changes,
        pair_created_at=from_epoch(raw.pair_created_at / 1000) if raw.pair_created_at else None,
    )


class DexScreenerClient:
    def __init__(self, http: ResilientHTTPClient, dexscreener_base: str) -> None:
        self.http = http
        self.dexscreener_base = dexscreener_base.rstrip("/")

    async def _pairs(self, url: str, params: dict | None = None) -> list[TradingPair]:
        try:
            payload = await self.http.get_json(url, params=params)
        except NotFoundError:
            return []
        pairs = parse_payload(DexPairsResponse, payload).pairs or []
        out = []
        for raw in pairs:
            pair = _to_trading_pair(raw)
            if pair is not None:
                out.append(pair)
        return out

    async def token_pairs(self, address: str) -> list[TradingPair]:
        """All pairs trading ``address``, in DexScreener's response order."""
        return await self._pairs(f"{self.dexscreener_base}/tokens/{address}")

    async def token_pairs_many(self, addresses: Iterable[str]) -> dict[str, list[TradingPair]]:
        """Pairs per address, ``ADDRESSES_PER_CALL`` addresses per request.

        Pairs are grouped by base token, so a pair where the address is only
        the quote token is not attributed to it. Addresses from a failed
        chunk are absent from the result; the others map to their pairs
        (possibly none).
        """
        wanted = list(dict.fromkeys(a.strip() for a in addresses if a and a.strip()))
        owners = {_address_key(a): a for a in wanted}
        grouped: dict[str, list[TradingPair]] = {}
        for start in range(0, len(wanted), ADDRESSES_PER_CALL):
            chunk = wanted[start : start + ADDRESSES_PER_CALL]
            try:
                pairs = await self._pairs(f"{self.dexscreener_base}/tokens/{','.join(chunk)}")
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "dexscreener_batch_failed",
                    extra={"event": "dexscreener_batch_failed", "provider": "dexscreener", "outcome": "error", "error": str(exc)},
                )
                continue
            for address in chunk:
                grouped[address] = []
            for pair in pairs:
                owner = owners.get(_address_key(pair.base_token_address))
                if owner in grouped:
                    grouped[owner].append(pair)
        return grouped

    async def search_pairs(self, query: str) -> list[TradingPair]:
        return await self._pairs(f"{self.dexscreener_base}/search", params={"q": query})


class DexSearchPriceProvider(PriceProvider):
    """Pair search by ticker, for tokens the listing aggregators do not carry.

    Only pairs whose base token symbol matches exactly are considered, so an
    unknown ticker does not borrow the price of a similarly named token.
    """

    name = "dexscreener_search"

    def __init__(self, client: DexScreenerClient, recent_window: timedelta = timedelta(hours=24)) -> None:
        self.client = client
        self.recent_window = recent_window

    async def _fetch(self, query: PriceQuery) -> ResolvedPrice | None:
        candidates = [p for p in await self.client.search_pairs(query.symbol) if p.base_symbol == query.symbol]
        pair = select_most_liquid(p for p in candidates if p.price_usd is not None)
        if pair is None or pair.price_usd is None:
            return None

        now = utcnow()
        if query.point_in_time is None:
            return ResolvedPrice(price=pair.price_usd, provider=self.name, matched_timestamp=now)

        age = now - query.point_in_time
        if age > self.recent_window:
            return None
        estimate = estimate_from_price_change(pair.price_usd, pair.price_change, max(age.total_seconds(), 0.0))
        if estimate is None:
            return None
        return ResolvedPrice(price=estimate, provider=self.name, matched_timestamp=query.point_in_time)
