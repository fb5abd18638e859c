"""
Data model for the pricing core.

All records are immutable once constructed: quotes are shared between every
caller that reads the same cache entry, and projections are handed back to
callers as finished results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

CacheKey = Tuple[str, Tuple[str, ...]]


def normalize_currencies(currencies: Iterable[str]) -> Tuple[str, ...]:
    """Lowercase, strip, de-duplicate and sort currency codes.

    Blank entries are dropped; the caller decides whether an empty result is an error.
    """
    if isinstance(currencies, str):
        currencies = currencies.split(",")
    cleaned = {str(c).strip().lower() for c in currencies if c is not None and str(c).strip()}
    return tuple(sorted(cleaned))


def make_cache_key(coin_id: str, currencies: Iterable[str]) -> CacheKey:
    """Cache key: coin id plus the canonical sorted currency list."""
    return coin_id.strip(), normalize_currencies(currencies)


@dataclass(frozen=True)
class PriceQuote:
    """Prices for one coin, all fetched in a single provider call."""

    coin_id: str
    prices: Dict[str, float]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def currencies(self) -> FrozenSet[str]:
        return frozenset(self.prices)

    def price(self, currency: str) -> Optional[float]:
        return self.prices.get(currency.lower())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coinId": self.coin_id,
            "prices": dict(self.prices),
            "fetchedAt": self.fetched_at.isoformat().replace("+00:00", "Z"),
        }


@dataclass(frozen=True)
class CoinSearchResult:
    """A catalog entry matched by a search."""

    id: str
    symbol: str
    name: str
    market_cap_rank: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "symbol": self.symbol, "name": self.name}
        if self.market_cap_rank is not None:
            data["marketCapRank"] = self.market_cap_rank
        return data


@dataclass(frozen=True)
class StakingProjection:
    """Result of a compound-growth staking projection.

    ``principal``, ``final_amount`` and ``gain_amount`` are denominated in the
    staked coin; ``converted`` holds ``final_amount`` expressed in each display
    currency the provider could price.
    """

    principal: float
    apy: float
    years: float
    coin_id: str
    display_currencies: Tuple[str, ...]
    final_amount: float
    gain_amount: float
    yearly_balances: Tuple[float, ...] = ()
    converted: Dict[str, float] = field(default_factory=dict)
    unit_prices: Dict[str, float] = field(default_factory=dict)
    conversion_available: bool = False
    conversion_error: Optional[Dict[str, str]] = None

    @property
    def display_currency(self) -> str:
        return self.display_currencies[0] if self.display_currencies else ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "principal": self.principal,
            "apy": self.apy,
            "years": self.years,
            "coinId": self.coin_id,
            "displayCurrency": self.display_currency,
            "finalAmount": self.final_amount,
            "gainAmount": self.gain_amount,
            "yearlyBalances": list(self.yearly_balances),
            "conversionAvailable": self.conversion_available,
        }
        if self.conversion_available:
            data["converted"] = dict(self.converted)
            data["unitPrices"] = dict(self.unit_prices)
        if self.conversion_error is not None:
            data["conversionError"] = dict(self.conversion_error)
        return data
