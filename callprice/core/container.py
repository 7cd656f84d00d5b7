from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

import httpx

from callprice.adapters.base import PriceProvider
from callprice.adapters.coingecko import CoinGeckoPriceProvider
from callprice.adapters.coinmarketcap import CoinMarketCapPriceProvider
from callprice.adapters.dexscreener import DexScreenerClient, DexSearchPriceProvider
from callprice.adapters.geckoterminal import GeckoTerminalClient, GeckoTerminalPriceProvider
from callprice.adapters.observations import RedisObservationStore
from callprice.adapters.static import StaticPriceProvider, parse_mock_prices
from callprice.adapters.symbols import DEFAULT_ALIASES, AliasTable
from callprice.adapters.yahoo import YahooPriceProvider
from callprice.core.cache import RedisCache
from callprice.core.config import Settings, get_settings
from callprice.core.granularity import DEFAULT_POLICIES, GranularitySelector
from callprice.core.http import ResilientHTTPClient
from callprice.core.models import AssetClass
from callprice.services.chain import ProviderChain
from callprice.services.contracts import ContractAddressResolver, KnownContractPriceProvider
from callprice.services.resolver import PriceResolver

logger = logging.getLogger(__name__)


@dataclass
class ServiceHub:
    settings: Settings
    http: ResilientHTTPClient
    cache: RedisCache
    chain: ProviderChain
    contracts: ContractAddressResolver
    resolver: PriceResolver

    async def close(self) -> None:
        await self.http.close()
        await self.cache.close()


def _selector(settings: Settings) -> GranularitySelector:
    policies = dict(DEFAULT_POLICIES)
    policies["coingecko"] = policies["coingecko"].with_max_history(settings.coingecko_max_history_days)
    policies["geckoterminal"] = policies["geckoterminal"].with_max_history(settings.geckoterminal_max_history_days)
    return GranularitySelector(policies)


def build_hub(
    settings: Settings | None = None,
    aliases: AliasTable = DEFAULT_ALIASES,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ServiceHub:
    settings = settings or get_settings()
    http = ResilientHTTPClient(
        transport=transport,
        timeout=settings.http_timeout,
        retries=settings.http_retries,
        backoff_base=settings.http_backoff_base,
        breaker_threshold=settings.breaker_threshold,
        breaker_cooldown=settings.breaker_cooldown,
        max_concurrency_per_host=settings.http_max_concurrency_per_host,
    )
    cache = RedisCache(settings.redis_url, namespace=settings.redis_namespace)
    selector = _selector(settings)
    recent_window = timedelta(hours=settings.recent_window_hours)

    dex = DexScreenerClient(http, settings.dexscreener_base)
    terminal = GeckoTerminalClient(http, settings.geckoterminal_base, selector)
    contracts = ContractAddressResolver(
        dex,
        terminal,
        store=RedisObservationStore(cache, ttl=settings.observation_ttl),
        recent_window=recent_window,
    )

    yahoo = YahooPriceProvider(http, settings.yahoo_base, aliases, selector)
    coingecko = CoinGeckoPriceProvider(
        http,
        settings.coingecko_base,
        aliases,
        selector,
        api_key=settings.coingecko_api_key,
        pro=settings.coingecko_pro,
    )
    crypto: list[PriceProvider] = [
        yahoo,
        CoinMarketCapPriceProvider(http, settings.coinmarketcap_base, settings.coinmarketcap_api_key, aliases, selector),
        coingecko,
        KnownContractPriceProvider(contracts, aliases),
        DexSearchPriceProvider(dex, recent_window=recent_window),
        GeckoTerminalPriceProvider(terminal),
    ]
    stock: list[PriceProvider] = [yahoo]

    if settings.test_mode:
        static = StaticPriceProvider(parse_mock_prices(settings.mock_prices))
        crypto.insert(0, static)
        stock.insert(0, static)
        logger.info("test_mode_enabled", extra={"event": "test_mode_enabled", "symbol": ",".join(sorted(static.prices))})

    chain = ProviderChain({AssetClass.CRYPTO: crypto, AssetClass.STOCK: stock}, timeout=settings.provider_timeout)
    # Test mode answers from fixed prices, so nothing is prefetched upstream.
    resolver = PriceResolver(
        chain,
        contracts,
        max_concurrent_queries=settings.max_concurrent_queries,
        batch_quotes=None if settings.test_mode else coingecko,
    )
    return ServiceHub(
        settings=settings,
        http=http,
        cache=cache,
        chain=chain,
        contracts=contracts,
        resolver=resolver,
    )
