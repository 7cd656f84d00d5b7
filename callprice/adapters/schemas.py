"""Response schemas for the upstream price APIs.

Every field is optional: upstreams drop keys freely, and a missing value
should read as "no data" rather than fail the whole payload. Shapes that are
outright wrong (a string where a list belongs) still fail validation and are
surfaced as ``MalformedResponseError`` by :func:`parse_payload`.
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic import ValidationError as PydanticValidationError

from callprice.core.errors import MalformedResponseError


class Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


SchemaT = TypeVar("SchemaT", bound=BaseModel)


def parse_payload(schema: type[SchemaT], payload: Any) -> SchemaT:
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        raise MalformedResponseError(f"{schema.__name__}: {exc.error_count()} validation errors") from exc


# Yahoo chart


class YahooMeta(Lenient):
    regular_market_price: Optional[float] = Field(default=None, alias="regularMarketPrice")


class YahooQuote(Lenient):
    close: list[Optional[float]] = Field(default_factory=list)


class YahooIndicators(Lenient):
    quote: list[YahooQuote] = Field(default_factory=list)


class YahooResult(Lenient):
    meta: YahooMeta = Field(default_factory=YahooMeta)
    timestamp: list[Optional[int]] = Field(default_factory=list)
    indicators: YahooIndicators = Field(default_factory=YahooIndicators)


class YahooChart(Lenient):
    result: Optional[list[YahooResult]] = None


class YahooChartResponse(Lenient):
    chart: YahooChart = Field(default_factory=YahooChart)


# CoinGecko


class CoinGeckoUsdQuote(Lenient):
    usd: Optional[float] = None


class CoinGeckoSimplePrice(RootModel[dict[str, CoinGeckoUsdQuote]]):
    pass


class CoinGeckoRange(Lenient):
    prices: list[list[Optional[float]]] = Field(default_factory=list)


class CoinGeckoSearchCoin(Lenient):
    id: Optional[str] = None
    symbol: Optional[str] = None


class CoinGeckoSearch(Lenient):
    coins: list[CoinGeckoSearchCoin] = Field(default_factory=list)


# CoinMarketCap


class CmcUsd(Lenient):
    price: Optional[float] = None


class CmcQuoteMap(Lenient):
    usd: Optional[CmcUsd] = Field(default=None, alias="USD")


class CmcHistoricalQuote(Lenient):
    timestamp: Optional[str] = None
    quote: CmcQuoteMap = Field(default_factory=CmcQuoteMap)


class CmcAsset(Lenient):
    id: Optional[int] = None
    symbol: Optional[str] = None
    quote: CmcQuoteMap = Field(default_factory=CmcQuoteMap)
    quotes: list[CmcHistoricalQuote] = Field(default_factory=list)


class CmcResponse(Lenient):
    data: dict[str, list[CmcAsset] | CmcAsset] = Field(default_factory=dict)


# DexScreener


class DexToken(Lenient):
    address: Optional[str] = None
    symbol: Optional[str] = None


class DexLiquidity(Lenient):
    usd: Optional[float] = None


class DexPair(Lenient):
    chain_id: Optional[str] = Field(default=None, alias="chainId")
    pair_address: Optional[str] = Field(default=None, alias="pairAddress")
    base_token: DexToken = Field(default_factory=DexToken, alias="baseToken")
    price_usd: Optional[float] = Field(default=None, alias="priceUsd")
    liquidity: Optional[DexLiquidity] = None
    price_change: Optional[dict[str, Optional[float]]] = Field(default=None, alias="priceChange")
    pair_created_at: Optional[int] = Field(default=None, alias="pairCreatedAt")


class DexPairsResponse(Lenient):
    pairs: Optional[list[DexPair]] = None


# GeckoTerminal


class GtOhlcvAttributes(Lenient):
    ohlcv_list: list[list[Optional[float]]] = Field(default_factory=list)


class GtOhlcvData(Lenient):
    attributes: GtOhlcvAttributes = Field(default_factory=GtOhlcvAttributes)


class GtOhlcvResponse(Lenient):
    data: GtOhlcvData = Field(default_factory=GtOhlcvData)


class GtPoolAttributes(Lenient):
    address: Optional[str] = None
    name: Optional[str] = None
    base_token_price_usd: Optional[float] = None
    reserve_in_usd: Optional[float] = None


class GtRef(Lenient):
    id: Optional[str] = None


class GtRelation(Lenient):
    data: Optional[GtRef] = None


class GtPoolRelationships(Lenient):
    network: GtRelation = Field(default_factory=GtRelation)


class GtPool(Lenient):
    attributes: GtPoolAttributes = Field(default_factory=GtPoolAttributes)
    relationships: GtPoolRelationships = Field(default_factory=GtPoolRelationships)


class GtPoolsResponse(Lenient):
    data: list[GtPool] = Field(default_factory=list)
