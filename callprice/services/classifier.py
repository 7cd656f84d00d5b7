from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet

from callprice.core.errors import ValidationError
from callprice.core.models import AssetClass

ALWAYS_STOCK = frozenset(
    {
        "BMNR", "MSFT", "GOOG", "GOOGL", "AMZN", "NFLX", "META", "TSLA", "NVDA",
        "AMD", "INTC", "CRCL", "USO", "GLD", "SLV",
        "GC=F", "SI=F", "CL=F", "NG=F", "HG=F",
    }
)

# Tickers that collide with listed equities but are only ever meant as coins.
ALWAYS_CRYPTO = frozenset(
    {
        "BTC", "ETH", "SOL", "PEPE", "WIF", "BONK", "DOGE", "XRP",
        "CHZ", "ZEN", "ZEC", "TAO", "ASTER", "ASTR", "WLFI",
    }
)

KNOWN_STOCKS = frozenset(
    {
        "AAPL", "COIN", "MSTR", "HOOD", "PLTR", "GME", "AMC", "BABA", "HIMS",
        "LAC", "SPY", "QQQ", "IWM", "DIA", "SMCI", "ARM", "AVGO", "ORCL",
        "UBER", "SHOP", "SQ", "PYPL", "RIOT", "MARA", "CLSK", "IBIT", "BRK.B",
    }
)


def parse_asset_class(value: AssetClass | str) -> AssetClass:
    if isinstance(value, AssetClass):
        return value
    try:
        return AssetClass(str(value).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown asset class: {value!r}") from exc


@dataclass(frozen=True)
class ClassifierRules:
    always_stock: AbstractSet[str] = field(default_factory=lambda: ALWAYS_STOCK)
    always_crypto: AbstractSet[str] = field(default_factory=lambda: ALWAYS_CRYPTO)
    known_stocks: AbstractSet[str] = field(default_factory=lambda: KNOWN_STOCKS)

    def __post_init__(self) -> None:
        for name in ("always_stock", "always_crypto", "known_stocks"):
            object.__setattr__(self, name, frozenset(getattr(self, name)))


class AssetClassifier:
    def __init__(self, rules: ClassifierRules | None = None) -> None:
        self.rules = rules or ClassifierRules()

    def classify(self, symbol: str, requested: AssetClass | str | None = None) -> AssetClass:
        """Decide which market a normalized symbol trades in.

        The always-stock list (and any ``=F`` futures ticker) beats everything,
        including the caller's choice; the always-crypto list comes next.
        Otherwise the caller decides, and failing that the symbol is crypto
        unless it is a known equity.
        """
        if symbol in self.rules.always_stock or symbol.endswith("=F"):
            return AssetClass.STOCK
        if symbol in self.rules.always_crypto:
            return AssetClass.CRYPTO
        if requested:
            return parse_asset_class(requested)
        if symbol in self.rules.known_stocks:
            return AssetClass.STOCK
        return AssetClass.CRYPTO
