from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from callprice.adapters.observations import PriceObservation
from callprice.adapters.symbols import DEFAULT_ALIASES
from callprice.core.errors import ProviderUnavailableError
from callprice.core.models import PriceQuery, ResolvedPrice, TradingPair
from callprice.services.contracts import ContractAddressResolver, KnownContractPriceProvider

CA = "9BB6NFEcjBCtnNLFko2FqVQBq8HHM13kCyYcdQbgpump"


def _pair(address: str, liquidity: float, price: float | None = 1.5, **changes: float) -> TradingPair:
    return TradingPair(
        chain_id="solana",
        pair_address=address,
        base_token_address=CA,
        liquidity_usd=liquidity,
        base_symbol="FARTCOIN",
        price_usd=price,
        price_change=changes,
    )


class DummyDex:
    def __init__(self, pairs: list[TradingPair] | None = None, error: Exception | None = None) -> None:
        self.pairs = pairs or []
        self.error = error
        self.calls = 0

    async def token_pairs(self, address: str) -> list[TradingPair]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.pairs

    async def token_pairs_many(self, addresses) -> dict[str, list[TradingPair]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {a: [p for p in self.pairs if p.base_token_address == a] for a in addresses}


class DummyTerminal:
    def __init__(self, price: float | None = None) -> None:
        self.price = price
        self.calls: list[tuple[str, datetime]] = []

    async def price_at(self, pair: TradingPair, target: datetime, provider: str) -> ResolvedPrice | None:
        self.calls.append((pair.pair_address, target))
        if self.price is None:
            return None
        return ResolvedPrice(price=self.price, provider=provider, matched_timestamp=target)


class DummyStore:
    def __init__(self, observation: PriceObservation | None = None, fail_writes: bool = False) -> None:
        self.observation = observation
        self.fail_writes = fail_writes
        self.writes: list[tuple[str, float, str | None]] = []

    async def get_observation(self, address: str) -> PriceObservation | None:
        return self.observation

    async def record_observation(self, address: str, price: float, symbol: str | None = None) -> None:
        if self.fail_writes:
            raise ConnectionError("redis down")
        self.writes.append((address, price, symbol))


def _hours_ago(hours: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


@pytest.mark.asyncio
async def test_current_price_from_most_liquid_pair() -> None:
    dex = DummyDex([_pair("thin", 1_000, price=1.4), _pair("deep", 900_000, price=1.5), _pair("mid", 50_000, price=1.6)])
    resolver = ContractAddressResolver(dex, DummyTerminal())

    result = await resolver.resolve(CA)

    assert result.price == 1.5
    assert result.provider == "dexscreener"
    assert result.pair.pair_address == "deep"
    assert result.symbol_hint == "FARTCOIN"


@pytest.mark.asyncio
async def test_liquidity_tie_uses_first_listed_pair() -> None:
    dex = DummyDex([_pair("first", 100.0, price=2.0), _pair("second", 100.0, price=3.0)])
    result = await ContractAddressResolver(dex, DummyTerminal()).resolve(CA)
    assert result.price == 2.0


@pytest.mark.asyncio
async def test_unpriced_pairs_are_ignored() -> None:
    dex = DummyDex([_pair("deep", 1_000_000, price=None), _pair("shallow", 10.0, price=0.7)])
    result = await ContractAddressResolver(dex, DummyTerminal()).resolve(CA)
    assert result.pair.pair_address == "shallow"


@pytest.mark.asyncio
async def test_unknown_token_returns_none() -> None:
    store = DummyStore(PriceObservation(CA, 1.0, _hours_ago(1)))
    resolver = ContractAddressResolver(DummyDex([]), DummyTerminal(), store=store)
    assert await resolver.resolve(CA) is None


@pytest.mark.asyncio
async def test_recent_history_reverses_price_change_bucket() -> None:
    dex = DummyDex([_pair("deep", 1_000, price=1.5, m5=1.0, h1=50.0, h6=10.0, h24=-20.0)])
    terminal = DummyTerminal(price=9.0)
    resolver = ContractAddressResolver(dex, terminal)

    result = await resolver.resolve(CA, _hours_ago(1))

    assert result.provider == "dexscreener_change"
    assert result.price == pytest.approx(1.0)
    assert terminal.calls == []


@pytest.mark.asyncio
async def test_zero_change_falls_back_to_store() -> None:
    observed = _hours_ago(2)
    store = DummyStore(PriceObservation(CA, 1.25, observed, symbol="FARTCOIN"))
    dex = DummyDex([_pair("deep", 1_000, price=1.5, h1=0.0)])
    resolver = ContractAddressResolver(dex, DummyTerminal(), store=store)

    result = await resolver.resolve(CA, _hours_ago(1))

    assert result.provider == "observation_cache"
    assert result.price == 1.25
    assert result.matched_timestamp == observed


@pytest.mark.asyncio
async def test_older_history_uses_candles() -> None:
    dex = DummyDex([_pair("deep", 1_000, price=1.5, h24=5.0)])
    terminal = DummyTerminal(price=0.4)
    resolver = ContractAddressResolver(dex, terminal)

    result = await resolver.resolve(CA, _hours_ago(24 * 10))

    assert result.provider == "geckoterminal"
    assert result.price == 0.4
    assert terminal.calls[0][0] == "deep"


@pytest.mark.asyncio
async def test_dex_outage_falls_back_to_last_observation() -> None:
    store = DummyStore(PriceObservation(CA, 1.1, _hours_ago(3), symbol="FARTCOIN"))
    resolver = ContractAddressResolver(DummyDex(error=ProviderUnavailableError("503")), DummyTerminal(), store=store)

    result = await resolver.resolve(CA)

    assert result.provider == "observation_cache"
    assert result.price == 1.1
    assert result.symbol_hint == "FARTCOIN"
    assert store.writes == []


@pytest.mark.asyncio
async def test_dex_outage_without_store_returns_none() -> None:
    resolver = ContractAddressResolver(DummyDex(error=ProviderUnavailableError("503")), DummyTerminal())
    assert await resolver.resolve(CA) is None


@pytest.mark.asyncio
async def test_successful_lookup_writes_through() -> None:
    store = DummyStore()
    resolver = ContractAddressResolver(DummyDex([_pair("deep", 1_000, price=1.5)]), DummyTerminal(), store=store)

    await resolver.resolve(CA)

    assert store.writes == [(CA, 1.5, "FARTCOIN")]


@pytest.mark.asyncio
async def test_store_write_failure_does_not_fail_lookup() -> None:
    store = DummyStore(fail_writes=True)
    resolver = ContractAddressResolver(DummyDex([_pair("deep", 1_000, price=1.5)]), DummyTerminal(), store=store)

    result = await resolver.resolve(CA)

    assert result.price == 1.5


@pytest.mark.asyncio
async def test_known_contract_provider_maps_symbol_to_address() -> None:
    dex = DummyDex([_pair("deep", 1_000, price=1.5)])
    provider = KnownContractPriceProvider(ContractAddressResolver(dex, DummyTerminal()), DEFAULT_ALIASES)

    hit = await provider.fetch_price(PriceQuery(symbol="FARTCOIN"))
    miss = await provider.fetch_price(PriceQuery(symbol="NOTLISTED"))

    assert hit.price == 1.5
    assert hit.provider == "dexscreener"
    assert miss is None
    assert dex.calls == 1


@pytest.mark.asyncio
async def test_target_before_pair_creation_uses_pair_opening() -> None:
    created = _hours_ago(24 * 10)
    pair = TradingPair(
        chain_id="solana",
        pair_address="young",
        base_token_address=CA,
        liquidity_usd=5_000,
        base_symbol="FARTCOIN",
        price_usd=1.5,
        pair_created_at=created,
    )
    terminal = DummyTerminal(price=0.02)
    resolver = ContractAddressResolver(DummyDex([pair]), terminal)

    result = await resolver.resolve(CA, _hours_ago(24 * 30))

    assert terminal.calls == [("young", created)]
    assert result.price == 0.02
    assert result.matched_timestamp == created


@pytest.mark.asyncio
async def test_target_after_pair_creation_is_kept() -> None:
    pair = TradingPair(
        chain_id="solana",
        pair_address="old",
        base_token_address=CA,
        liquidity_usd=5_000,
        price_usd=1.5,
        pair_created_at=_hours_ago(24 * 90),
    )
    terminal = DummyTerminal(price=0.3)
    target = _hours_ago(24 * 30)

    await ContractAddressResolver(DummyDex([pair]), terminal).resolve(CA, target)

    assert terminal.calls == [("old", target)]


@pytest.mark.asyncio
async def test_current_many_takes_most_liquid_pair_per_address() -> None:
    other = "0x6982508145454ce325ddbe47a25d4ec3d2311933"
    pairs = [
        _pair("thin", 100, price=1.0),
        _pair("deep", 9_000, price=1.2),
        TradingPair(chain_id="ethereum", pair_address="pepe", base_token_address=other, liquidity_usd=50, price_usd=None),
    ]
    store = DummyStore()
    dex = DummyDex(pairs)
    resolver = ContractAddressResolver(dex, DummyTerminal(), store=store)

    prices = await resolver.resolve_current_many([CA, other])

    assert dex.calls == 1
    assert list(prices) == [CA]
    assert (prices[CA].price, prices[CA].pair.pair_address, prices[CA].provider) == (1.2, "deep", "dexscreener")
    assert store.writes == [(CA, 1.2, "FARTCOIN")]
