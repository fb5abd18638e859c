"""
IOG MCP Tools - a small tool server for education apps.

Tools: arithmetic calculator, placeholder search, persona/product lookup and
cryptocurrency pricing with staking projections (CoinGecko).
"""

__version__ = "0.1.0"

from .config import ToolServerConfig, load_config, auto_load_config
from .exceptions import (
    IOGToolError,
    InvalidInputError,
    NotFoundError,
    RateLimitedError,
    ProviderUnavailableError,
    ToolNotFoundError,
    InternalError,
)

__all__ = [
    "__version__",
    "ToolServerConfig",
    "load_config",
    "auto_load_config",
    "IOGToolError",
    "InvalidInputError",
    "NotFoundError",
    "RateLimitedError",
    "ProviderUnavailableError",
    "ToolNotFoundError",
    "InternalError",
]
