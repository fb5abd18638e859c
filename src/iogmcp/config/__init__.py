"""
Configuration module for the IOG MCP tool server.

Exports:
    - ToolServerConfig: The main Pydantic model for all configuration settings.
    - PricingConfig, CacheConfig, SearchConfig, DataConfig, ServerConfig, LoggingConfig:
      Sub-models for specific configuration sections.
    - load_config: Load configuration from files and environment variables.
    - find_config_file / auto_load_config / get_config_info: helpers.
"""
from .config import (
    ToolServerConfig,
    PricingConfig,
    CacheConfig,
    SearchConfig,
    DataConfig,
    ServerConfig,
    LoggingConfig,
    load_config,
    DEFAULT_PUBLIC_BASE_URL,
    DEFAULT_PRO_BASE_URL,
)

from .config_utils import (
    find_config_file,
    auto_load_config,
    get_config_info,
)

__all__ = [
    "ToolServerConfig",
    "PricingConfig",
    "CacheConfig",
    "SearchConfig",
    "DataConfig",
    "ServerConfig",
    "LoggingConfig",
    "load_config",
    "find_config_file",
    "auto_load_config",
    "get_config_info",
    "DEFAULT_PUBLIC_BASE_URL",
    "DEFAULT_PRO_BASE_URL",
]
