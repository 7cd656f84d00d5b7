from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from callprice.core.models import AssetClass

PAIR_SUFFIXES = ("USDT", "USD", "PERP")
CHART_SUFFIXES = (".P", ".D")
SEPARATORS = ("-", "/", ".")

FUTURES_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "GOLD": "GC=F",
        "XAU": "GC=F",
        "SILVER": "SI=F",
        "XAG": "SI=F",
        "OIL": "CL=F",
        "WTI": "CL=F",
        "CRUDE": "CL=F",
        "NATGAS": "NG=F",
        "COPPER": "HG=F",
    }
)

DOMINANCE_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "BTC.D": "BTC",
        "BTCDOM": "BTC",
        "ETH.D": "ETH",
        "USDT.D": "USDT",
        "USDT.P": "USDT",
    }
)

EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
BASE58_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def _strip_separator(value: str) -> str:
    if value.endswith(SEPARATORS) and len(value) > 1:
        return value[:-1]
    return value


def _normalize_once(s: str) -> str:
    s = s.lstrip("$")

    if s.endswith("_F") and len(s) > 2:
        return s[:-2] + "=F"
    if s in FUTURES_ALIASES:
        return FUTURES_ALIASES[s]
    if s in DOMINANCE_ALIASES:
        return DOMINANCE_ALIASES[s]

    for suffix in CHART_SUFFIXES:
        if s.endswith(suffix) and len(s) > len(suffix):
            return s[: -len(suffix)]

    for suffix in PAIR_SUFFIXES:
        if s.endswith(suffix) and len(s) > len(suffix):
            return _strip_separator(s[: -len(suffix)])
    return s


def normalize_symbol(symbol: str) -> str:
    """Reduce a raw ticker spelling to its canonical upper-case base symbol.

    Each pass strips a ``$`` prefix, maps futures and dominance aliases, then
    drops one chart or pair suffix. Passes repeat until nothing changes, which
    keeps the function idempotent for stacked suffixes such as ``BTCUSDT.P``.
    Every rule either shortens the string or lands on a fixed alias target,
    so the loop terminates.
    """
    s = re.sub(r"\s+", "", str(symbol or "")).upper()
    while True:
        nxt = _normalize_once(s)
        if nxt == s:
            return s
        s = nxt


def looks_like_contract_address(value: str) -> bool:
    candidate = (value or "").strip()
    return bool(EVM_ADDRESS_RE.match(candidate) or BASE58_ADDRESS_RE.match(candidate))


@dataclass(frozen=True)
class KnownContract:
    chain_id: str
    address: str


COINGECKO_IDS: Mapping[str, str] = MappingProxyType(
    {
        # Majors
        "BTC": "bitcoin",
        "ETH": "ethereum",
        "SOL": "solana",
        "DOGE": "dogecoin",
        "XRP": "ripple",
        "BNB": "binancecoin",
        "LTC": "litecoin",
        "ADA": "cardano",
        "AVAX": "avalanche-2",
        "DOT": "polkadot",
        "MATIC": "matic-network",
        "LINK": "chainlink",
        "TON": "the-open-network",
        "TRX": "tron",
        "UNI": "uniswap",
        "ATOM": "cosmos",
        "APT": "aptos",
        "ARB": "arbitrum",
        "OP": "optimism",
        "SUI": "sui",
        "NEAR": "near",
        "SEI": "sei-network",
        "INJ": "injective-protocol",
        "FTM": "fantom",
        "ALGO": "algorand",
        "ICP": "internet-computer",
        "FIL": "filecoin",
        "HBAR": "hedera-hashgraph",
        "VET": "vechain",
        "BCH": "bitcoin-cash",
        "XMR": "monero",
        "ZEC": "zcash",
        "DASH": "dash",
        # Memes
        "PEPE": "pepe",
        "SHIB": "shiba-inu",
        "HYPE": "hyperliquid",
        "WIF": "dogwifcoin",
        "BONK": "bonk",
        "FLOKI": "floki",
        "TRUMP": "official-trump",
        "PENGU": "pudgy-penguins",
        "FARTCOIN": "fartcoin",
        "SPX6900": "spx6900",
        # DeFi, gaming, AI
        "AAVE": "aave",
        "CRV": "curve-dao-token",
        "GALA": "gala",
        "AXS": "axie-infinity",
        "SAND": "the-sandbox",
        "MANA": "decentraland",
        "IMX": "immutable-x",
        "ENS": "ethereum-name-service",
        "AI16Z": "ai16z",
        "VIRTUAL": "virtual-protocol",
        "RENDER": "render-token",
        "RNDR": "render-token",
        "FET": "fetch-ai",
        "TAO": "bittensor",
        "JUP": "jupiter-exchange-solana",
        "ASTER": "aster-2",
        "LIT": "lighter",
        "ME": "magic-eden",
        "PUMP": "pump-fun",
        "USDT": "tether",
    }
)

# Yahoo lists newer coins under a numbered ticker to avoid collisions.
YAHOO_CRYPTO_TICKERS: Mapping[str, str] = MappingProxyType(
    {
        "SUI": "SUI20947-USD",
        "TAO": "TAO22974-USD",
        "UNI": "UNI7083-USD",
        "APT": "APT21794-USD",
        "PEPE": "PEPE24478-USD",
        "TON": "TON11419-USD",
        "ARB": "ARB11841-USD",
        "HYPE": "HYPE32196-USD",
    }
)

YAHOO_STOCK_TICKERS: Mapping[str, str] = MappingProxyType(
    {
        "BRK.B": "BRK-B",
        "BRK.A": "BRK-A",
    }
)

KNOWN_CONTRACTS: Mapping[str, KnownContract] = MappingProxyType(
    {
        "67": KnownContract("solana", "BbT6YKRoiicuYyVYLT8HqJFuttGMTVwmkohdPDmDMK8j"),
        "BONK": KnownContract("solana", "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"),
        "WIF": KnownContract("solana", "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"),
        "FARTCOIN": KnownContract("solana", "9BB6NFEcjBCtnNLFko2FqVQBq8HHM13kCyYcdQbgpump"),
    }
)


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class AliasTable:
    """Canonical symbol to provider-specific identifiers. Read-only."""

    coingecko: Mapping[str, str] = field(default_factory=dict)
    yahoo_crypto: Mapping[str, str] = field(default_factory=dict)
    yahoo_stock: Mapping[str, str] = field(default_factory=dict)
    coinmarketcap: Mapping[str, str] = field(default_factory=dict)
    contracts: Mapping[str, KnownContract] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("coingecko", "yahoo_crypto", "yahoo_stock", "coinmarketcap", "contracts"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    def coingecko_id(self, symbol: str) -> str | None:
        return self.coingecko.get(symbol)

    def yahoo_ticker(self, symbol: str, asset_class: AssetClass) -> str:
        if asset_class is AssetClass.STOCK:
            return self.yahoo_stock.get(symbol, symbol)
        return self.yahoo_crypto.get(symbol, f"{symbol}-USD")

    def coinmarketcap_symbol(self, symbol: str) -> str:
        return self.coinmarketcap.get(symbol, symbol)

    def contract_for(self, symbol: str) -> KnownContract | None:
        return self.contracts.get(symbol)


DEFAULT_ALIASES = AliasTable(
    coingecko=COINGECKO_IDS,
    yahoo_crypto=YAHOO_CRYPTO_TICKERS,
    yahoo_stock=YAHOO_STOCK_TICKERS,
    contracts=KNOWN_CONTRACTS,
)
