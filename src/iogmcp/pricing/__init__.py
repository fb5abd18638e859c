"""
Cryptocurrency pricing core: provider, coalescing cache, coin search and
staking projections.
"""

from .models import CoinSearchResult, PriceQuote, StakingProjection, make_cache_key, normalize_currencies
from .http_client import DataHTTPClient, HTTPClientError
from .provider import PriceProvider, CoinGeckoPriceProvider
from .price_cache import CacheEntry, PriceCache
from .coin_search import CoinSearch, rank_coins
from .staking import StakingCalculator, compound
from .service import CryptoPricingService, StakingRequest

__all__ = [
    "CoinSearchResult",
    "PriceQuote",
    "StakingProjection",
    "make_cache_key",
    "normalize_currencies",
    "DataHTTPClient",
    "HTTPClientError",
    "PriceProvider",
    "CoinGeckoPriceProvider",
    "CacheEntry",
    "PriceCache",
    "CoinSearch",
    "rank_coins",
    "StakingCalculator",
    "compound",
    "CryptoPricingService",
    "StakingRequest",
]
