"""
CoinGecko price provider.

Fetches spot prices and coin metadata from the CoinGecko REST API and
normalizes the responses into the pricing core's data model.

Endpoints used:
- ``/simple/price``: spot prices for one coin in several quote currencies
- ``/search``: free-text coin search
- ``/coins/list``: the full id/symbol/name catalog

Error mapping (transport error -> pricing error):
- 404, or a 200 response without the requested coin -> ``NotFoundError``
- 429 -> ``RateLimitedError`` (after the HTTP client's bounded retries)
- 5xx, network errors, timeouts, undecodable payloads, auth failures
  -> ``ProviderUnavailableError``
- other 4xx -> ``InvalidInputError``
"""

import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from iogmcp.config import PricingConfig
from iogmcp.exceptions import (
    InvalidInputError,
    NotFoundError,
    ProviderUnavailableError,
    RateLimitedError,
    PricingError,
)
from iogmcp.pricing.coin_search import rank_coins
from iogmcp.pricing.http_client import DataHTTPClient, HTTPClientError
from iogmcp.pricing.models import CoinSearchResult, PriceQuote, normalize_currencies

__all__ = ["PriceProvider", "CoinGeckoPriceProvider"]

_ENDPOINT_NAME = "coingecko"

_API_ENDPOINTS = {
    "simple_price": "/simple/price",
    "search": "/search",
    "coins_list": "/coins/list",
}


class PriceProvider(ABC):
    """Source of spot prices and coin metadata."""

    @abstractmethod
    async def get_price(self, coin_id: str, currencies: Iterable[str]) -> PriceQuote:
        """Fetch a quote for ``coin_id`` in each of ``currencies`` with one upstream call."""

    @abstractmethod
    async def search(self, query: str) -> List[CoinSearchResult]:
        """Search coins by free text, ranked by match quality."""

    @abstractmethod
    async def list_coins(self) -> List[CoinSearchResult]:
        """Return the provider's full coin catalog."""

    async def aclose(self) -> None:
        """Release any held resources."""


def _coerce_price(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or value < 0:
        return None
    return value


def _to_search_result(entry: Dict[str, Any]) -> Optional[CoinSearchResult]:
    coin_id = entry.get("id")
    if not coin_id or not isinstance(coin_id, str):
        return None
    rank = entry.get("market_cap_rank")
    return CoinSearchResult(
        id=coin_id,
        symbol=str(entry.get("symbol") or ""),
        name=str(entry.get("name") or ""),
        market_cap_rank=rank if isinstance(rank, int) and not isinstance(rank, bool) else None,
    )


class CoinGeckoPriceProvider(PriceProvider):
    """Price provider backed by the CoinGecko public or Pro API.

    Example:
        ```python
        provider = CoinGeckoPriceProvider(PricingConfig())
        quote = await provider.get_price("cardano", {"usd", "eur"})
        print(quote.prices)  # {"eur": 0.41, "usd": 0.45}
        await provider.aclose()
        ```
    """

    def __init__(
        self,
        config: Optional[PricingConfig] = None,
        http_client: Optional[DataHTTPClient] = None,
        **endpoint_kwargs: Any,
    ):
        """
        Args:
            config: Provider configuration (base URL, key, timeout, retry policy)
            http_client: Pre-built transport; one is created from ``config`` if omitted
            **endpoint_kwargs: Extra ``httpx.AsyncClient`` arguments for the endpoint
                (e.g. ``transport=httpx.MockTransport(handler)``)
        """
        self.config = config or PricingConfig()
        self.base_url = self.config.resolved_base_url()
        self._http_client = http_client or DataHTTPClient(
            default_timeout=self.config.timeout_seconds,
            max_retries=self.config.max_retries,
            retry_delay=self.config.retry_delay_seconds,
            max_retry_delay=self.config.max_retry_delay_seconds,
            default_rate_limit=self.config.rate_limit_seconds,
        )
        self._endpoint_kwargs = endpoint_kwargs

        logger.debug(f"Initialized CoinGeckoPriceProvider against {self.base_url}")

    async def _setup_endpoint(self) -> None:
        headers = {"accept": "application/json"}
        if self.config.api_key:
            headers["x-cg-pro-api-key"] = self.config.api_key

        await self._http_client.add_endpoint(
            name=_ENDPOINT_NAME,
            base_url=self.base_url,
            headers=headers,
            timeout=self.config.timeout_seconds,
            **self._endpoint_kwargs,
        )

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None, identifier: Optional[str] = None) -> Any:
        """One logical upstream call, with transport errors mapped to pricing errors."""
        if not self._http_client.has_endpoint(_ENDPOINT_NAME):
            await self._setup_endpoint()

        try:
            return await self._http_client.get(_ENDPOINT_NAME, path, params=params or {})
        except HTTPClientError as e:
            raise self._map_error(e, path, identifier) from e

    @staticmethod
    def _map_error(error: HTTPClientError, path: str, identifier: Optional[str]) -> PricingError:
        status = error.status_code
        if status == 404:
            return NotFoundError(f"'{identifier or path}' not found at provider", identifier=identifier, cause=error)
        if status == 429:
            return RateLimitedError("Market-data provider rate limit exceeded", retry_after=error.retry_after, cause=error)
        if status is not None and 400 <= status < 500 and status not in (401, 403):
            return InvalidInputError(f"Provider rejected request to {path}: HTTP {status}")
        if error.is_timeout:
            return ProviderUnavailableError(f"Market-data provider timed out on {path}", cause=error)
        return ProviderUnavailableError(
            f"Market-data provider unavailable on {path}: {error}", status_code=status, cause=error
        )

    async def get_price(self, coin_id: str, currencies: Iterable[str]) -> PriceQuote:
        """Fetch spot prices for ``coin_id``.

        Currencies the provider does not recognize are simply absent from the
        returned quote.

        Raises:
            InvalidInputError: blank coin id or no currencies (no network call is made)
            NotFoundError: coin id unknown to the provider
            RateLimitedError / ProviderUnavailableError: upstream failures
        """
        if not isinstance(coin_id, str) or not coin_id.strip():
            raise InvalidInputError("coinId must be a non-empty string", field="coinId", value=coin_id)
        coin_id = coin_id.strip()

        vs_currencies = normalize_currencies(currencies or ())
        if not vs_currencies:
            raise InvalidInputError("At least one currency code is required", field="currencies", value=currencies)

        params = {"ids": coin_id, "vs_currencies": ",".join(vs_currencies)}
        data = await self._request(_API_ENDPOINTS["simple_price"], params, identifier=coin_id)

        if not isinstance(data, dict):
            raise ProviderUnavailableError(f"Unexpected price payload type: {type(data).__name__}")

        coin_prices = data.get(coin_id)
        if not isinstance(coin_prices, dict):
            raise NotFoundError(f"Coin '{coin_id}' not found", identifier=coin_id)

        prices: Dict[str, float] = {}
        for currency in vs_currencies:
            price = _coerce_price(coin_prices.get(currency))
            if price is not None:
                prices[currency] = price

        logger.debug(f"Fetched {coin_id} prices for {sorted(prices)}")
        return PriceQuote(coin_id=coin_id, prices=prices, fetched_at=datetime.now(timezone.utc))

    async def search(self, query: str) -> List[CoinSearchResult]:
        """Search via the provider's ``/search`` endpoint, re-ranked locally."""
        query = (query or "").strip()
        if not query:
            return []

        data = await self._request(_API_ENDPOINTS["search"], {"query": query})
        if not isinstance(data, dict):
            raise ProviderUnavailableError(f"Unexpected search payload type: {type(data).__name__}")

        coins = [c for c in (_to_search_result(e) for e in data.get("coins", []) if isinstance(e, dict)) if c]
        return rank_coins(query, coins)

    async def list_coins(self) -> List[CoinSearchResult]:
        """Fetch the full coin catalog from ``/coins/list``."""
        data = await self._request(_API_ENDPOINTS["coins_list"])
        if not isinstance(data, list):
            raise ProviderUnavailableError(f"Unexpected coins list payload type: {type(data).__name__}")

        coins = [c for c in (_to_search_result(e) for e in data if isinstance(e, dict)) if c]
        logger.info(f"Loaded {len(coins)} coins from CoinGecko")
        return coins

    async def aclose(self) -> None:
        await self._http_client.aclose()
