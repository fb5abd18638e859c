"""
Shared fixtures for pricing core tests.
"""
import asyncio
from typing import Dict, Iterable, List, Optional

import pytest

from iogmcp.exceptions import NotFoundError
from iogmcp.pricing.models import CoinSearchResult, PriceQuote, normalize_currencies
from iogmcp.pricing.provider import PriceProvider


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider(PriceProvider):
    """In-memory provider recording every call.

    ``gate`` (when set) holds ``get_price`` until released, so tests can pile
    up concurrent callers. ``failures`` are raised, in order, before any
    successful answer.
    """

    def __init__(self, prices: Optional[Dict[str, Dict[str, float]]] = None, catalog: Optional[List[CoinSearchResult]] = None):
        self.prices = prices if prices is not None else {"cardano": {"usd": 0.45, "eur": 0.41}}
        self.catalog = catalog if catalog is not None else []
        self.price_calls: List[tuple] = []
        self.list_calls = 0
        self.search_calls: List[str] = []
        self.failures: List[Exception] = []
        self.list_failures: List[Exception] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def get_price(self, coin_id: str, currencies: Iterable[str]) -> PriceQuote:
        currencies = normalize_currencies(currencies)
        self.price_calls.append((coin_id, currencies))
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        if coin_id not in self.prices:
            raise NotFoundError(f"Coin '{coin_id}' not found", identifier=coin_id)
        known = self.prices[coin_id]
        return PriceQuote(coin_id=coin_id, prices={c: known[c] for c in currencies if c in known})

    async def search(self, query: str) -> List[CoinSearchResult]:
        self.search_calls.append(query)
        return list(self.catalog)

    async def list_coins(self) -> List[CoinSearchResult]:
        self.list_calls += 1
        if self.list_failures:
            raise self.list_failures.pop(0)
        return list(self.catalog)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_catalog():
    return [
        CoinSearchResult(id="adamant", symbol="adm", name="Adamant"),
        CoinSearchResult(id="cardano", symbol="ada", name="Cardano", market_cap_rank=10),
        CoinSearchResult(id="bitcoin", symbol="btc", name="Bitcoin", market_cap_rank=1),
        CoinSearchResult(id="ada-dao", symbol="adao", name="ADA DAO"),
        CoinSearchResult(id="sada", symbol="sada", name="Sada Token"),
        CoinSearchResult(id="ethereum", symbol="eth", name="Ethereum", market_cap_rank=2),
    ]


@pytest.fixture
def stub_provider(sample_catalog):
    return StubProvider(
        prices={
            "cardano": {"usd": 0.45, "eur": 0.41},
            "bitcoin": {"usd": 65000.0, "eur": 60000.0},
        },
        catalog=sample_catalog,
    )
