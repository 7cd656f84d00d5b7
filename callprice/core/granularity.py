from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Mapping

from callprice.core.models import Granularity, as_utc, utcnow

MINUTE = 60
HOUR = 3600
DAY = 86400


@dataclass(frozen=True)
class Tier:
    max_age: timedelta | None
    granularity: Granularity


@dataclass(frozen=True)
class GranularityPolicy:
    """Ordered tiers for one provider.

    ``max_history`` is how far back the provider serves data at all and
    ``max_span`` caps the requested window width.
    """

    tiers: tuple[Tier, ...]
    max_history: timedelta | None = None
    max_span: timedelta | None = None

    def with_max_history(self, days: int) -> GranularityPolicy:
        return GranularityPolicy(tiers=self.tiers, max_history=timedelta(days=days), max_span=self.max_span)


# Daily windows lean forward so a Saturday target still finds Monday's close.
DAILY_BEFORE = 3 * DAY
DAILY_AFTER = 4 * DAY

DEFAULT_POLICY = GranularityPolicy(
    tiers=(
        Tier(timedelta(days=7), Granularity("1m", MINUTE, 30 * MINUTE, 30 * MINUTE)),
        Tier(timedelta(days=55), Granularity("5m", 5 * MINUTE, 2 * HOUR, 2 * HOUR)),
        Tier(timedelta(days=730), Granularity("1h", HOUR, 6 * HOUR, 6 * HOUR)),
        Tier(None, Granularity("1d", DAY, DAILY_BEFORE, DAILY_AFTER)),
    )
)

YAHOO_POLICY = DEFAULT_POLICY

# market_chart/range picks its own resolution from the span: under a day is
# 5-minutely near now, up to 90 days hourly, beyond that daily.
COINGECKO_POLICY = GranularityPolicy(
    tiers=(
        Tier(timedelta(days=1), Granularity("5m", 5 * MINUTE, 30 * MINUTE, 30 * MINUTE)),
        Tier(timedelta(days=90), Granularity("1h", HOUR, 3 * HOUR, 3 * HOUR)),
        Tier(None, Granularity("1d", DAY, DAILY_BEFORE, DAILY_AFTER)),
    ),
    max_history=timedelta(days=365),
    max_span=timedelta(days=90),
)

COINMARKETCAP_POLICY = GranularityPolicy(
    tiers=(
        Tier(timedelta(days=55), Granularity("5m", 5 * MINUTE, 30 * MINUTE, 30 * MINUTE)),
        Tier(timedelta(days=730), Granularity("1h", HOUR, 6 * HOUR, 6 * HOUR)),
        Tier(None, Granularity("daily", DAY, DAILY_BEFORE, DAILY_AFTER)),
    )
)

GECKOTERMINAL_POLICY = GranularityPolicy(
    tiers=(
        Tier(timedelta(days=7), Granularity("minute:1", MINUTE, 30 * MINUTE, 30 * MINUTE)),
        Tier(timedelta(days=55), Granularity("minute:5", 5 * MINUTE, 2 * HOUR, 2 * HOUR)),
        Tier(timedelta(days=730), Granularity("hour:1", HOUR, 6 * HOUR, 6 * HOUR)),
        Tier(None, Granularity("day:1", DAY, DAILY_BEFORE, DAILY_AFTER)),
    ),
    max_history=timedelta(days=180),
)

DEFAULT_POLICIES: Mapping[str, GranularityPolicy] = MappingProxyType(
    {
        "yahoo": YAHOO_POLICY,
        "coingecko": COINGECKO_POLICY,
        "coinmarketcap": COINMARKETCAP_POLICY,
        "geckoterminal": GECKOTERMINAL_POLICY,
    }
)


class GranularitySelector:
    def __init__(
        self,
        policies: Mapping[str, GranularityPolicy] | None = None,
        default: GranularityPolicy = DEFAULT_POLICY,
    ) -> None:
        self.policies = MappingProxyType(dict(policies if policies is not None else DEFAULT_POLICIES))
        self.default = default

    def policy_for(self, provider: str) -> GranularityPolicy:
        return self.policies.get(provider, self.default)

    def select(self, provider: str, target: datetime | None, now: datetime | None = None) -> Granularity | None:
        """Pick the candle interval and window for ``provider`` at ``target``.

        Returns None when the target is older than the provider keeps data.
        """
        now = as_utc(now) if now is not None else utcnow()
        age = timedelta(0) if target is None else max(now - as_utc(target), timedelta(0))

        policy = self.policy_for(provider)
        if policy.max_history is not None and age > policy.max_history:
            return None

        chosen = policy.tiers[-1].granularity
        for tier in policy.tiers:
            if tier.max_age is None or age < tier.max_age:
                chosen = tier.granularity
                break
        return self._capped(policy, chosen)

    def candidates(self, provider: str, target: datetime | None, now: datetime | None = None) -> list[Granularity]:
        """Granularities to try in order: the selected tier, then the coarsest.

        A fine window over a closed market (weekend, holiday, overnight) or a
        pool with no trades holds no candles; the coarsest tier's window spans
        at least one session either side of the target.
        """
        first = self.select(provider, target, now)
        if first is None:
            return []
        policy = self.policy_for(provider)
        coarsest = self._capped(policy, policy.tiers[-1].granularity)
        return [first] if coarsest == first else [first, coarsest]

    @staticmethod
    def _capped(policy: GranularityPolicy, chosen: Granularity) -> Granularity:
        if policy.max_span is not None and chosen.lookback_window_seconds > policy.max_span.total_seconds():
            half = int(policy.max_span.total_seconds() // 2)
            chosen = Granularity(chosen.interval, chosen.step, min(chosen.window_before, half), min(chosen.window_after, half))
        return chosen
