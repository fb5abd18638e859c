"""
CryptoPricingService - transport-independent entry points to the pricing core.

Every public coroutine returns a plain dict: the result on success, or
``{"error": {"kind": ..., "message": ...}}`` on failure. Nothing raised by
the provider, cache or calculator escapes, apart from cancellation.
"""

from typing import Any, Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ValidationError, validator

from iogmcp.config import ToolServerConfig
from iogmcp.error_handler import ErrorHandler
from iogmcp.exceptions import InvalidInputError
from iogmcp.pricing.coin_search import CoinSearch
from iogmcp.pricing.price_cache import PriceCache
from iogmcp.pricing.provider import CoinGeckoPriceProvider, PriceProvider
from iogmcp.pricing.staking import StakingCalculator

__all__ = ["StakingRequest", "CryptoPricingService"]


class StakingRequest(BaseModel):
    """Parameter bag accepted by ``staking_projection``."""
    amount: float
    years: float
    apy: float
    coinId: str
    currency: Optional[Union[str, List[str]]] = None

    @validator('amount', 'years', 'apy', pre=True)
    def reject_bool(cls, v):
        if isinstance(v, bool):
            raise ValueError('must be a number, not a boolean')
        return v

    @validator('coinId')
    def validate_coin_id(cls, v):
        if not v or not v.strip():
            raise ValueError('coinId cannot be empty')
        return v.strip()


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "Invalid staking parameters - " + "; ".join(parts)


class CryptoPricingService:
    """
    Owns the provider, cache, catalog search and staking calculator.

    Example:
        ```python
        service = CryptoPricingService(load_config())
        await service.price_lookup("cardano", ["usd", "eur"])
        await service.staking_projection({"amount": 1000, "years": 5, "apy": 5, "coinId": "cardano"})
        await service.aclose()
        ```
    """

    def __init__(
        self,
        config: Optional[ToolServerConfig] = None,
        provider: Optional[PriceProvider] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.config = config or ToolServerConfig()
        self.provider = provider or CoinGeckoPriceProvider(self.config.pricing)
        self.cache = PriceCache.from_config(self.provider, self.config.cache)
        self.search = CoinSearch(
            self.provider,
            refresh_seconds=self.config.search.catalog_refresh_seconds,
            max_results=self.config.search.max_results,
        )
        self.calculator = StakingCalculator(self.cache, default_currency=self.config.pricing.default_currency)
        self.error_handler = error_handler or ErrorHandler()

        logger.info(
            f"Pricing service ready (cache ttl={self.config.cache.ttl_seconds}s, "
            f"max_entries={self.config.cache.max_entries})"
        )

    def start_background_tasks(self) -> None:
        """Start the cache sweeper when configured. Must run inside an event loop."""
        interval = self.config.cache.sweep_interval_seconds
        if interval > 0:
            self.cache.start_sweeper(interval)

    def _error(self, error: Exception, component: str) -> Dict[str, Any]:
        tool_error = self.error_handler.handle_error(error, component=component, reraise=False)
        return {"error": tool_error.to_dict()}

    async def price_lookup(self, coin_id: str, currencies: Union[None, str, List[str]] = None) -> Dict[str, Any]:
        """Spot prices for ``coin_id``; defaults to the configured currency."""
        if not currencies:
            currencies = [self.config.pricing.default_currency]
        try:
            quote = await self.cache.get_or_fetch(coin_id, currencies)
        except Exception as e:
            return self._error(e, "pricing.price_lookup")
        return quote.to_dict()

    async def staking_projection(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Staking projection from a loosely typed parameter bag."""
        try:
            if not isinstance(params, dict):
                raise InvalidInputError("Staking parameters must be an object")
            try:
                request = StakingRequest(**params)
            except ValidationError as e:
                raise InvalidInputError(_describe_validation_error(e))

            projection = await self.calculator.project(
                principal=request.amount,
                years=request.years,
                apy_percent=request.apy,
                coin_id=request.coinId,
                display_currencies=request.currency,
            )
        except Exception as e:
            return self._error(e, "pricing.staking_projection")
        return projection.to_dict()

    async def coin_search(self, query: str, limit: Optional[int] = None) -> Dict[str, Any]:
        """Ranked coin matches for ``query``."""
        try:
            results = await self.search.search(query, limit=limit)
        except Exception as e:
            return self._error(e, "pricing.coin_search")
        return {"coins": [coin.to_dict() for coin in results]}

    def stats(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.stats(),
            "catalog_size": self.search.catalog_size,
            "errors": self.error_handler.get_error_stats(),
        }

    async def aclose(self) -> None:
        await self.cache.aclose()
        await self.provider.aclose()
        logger.debug("Pricing service closed")
