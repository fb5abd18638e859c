"""
Utility functions for working with configurations.
"""

from pathlib import Path
from typing import Optional, Dict, Any
from loguru import logger

from .config import ToolServerConfig, load_config


def find_config_file() -> Optional[Path]:
    """
    Find configuration file using the standard search paths.

    Search order:
    1. ./iogmcp.yaml (primary)
    2. ./config.yaml (common alternative)
    3. ~/.iogmcp/config.yaml

    Returns:
        Path to configuration file if found, None otherwise
    """
    search_paths = [
        Path("./iogmcp.yaml"),
        Path("./config.yaml"),
        Path.home() / ".iogmcp" / "config.yaml",
    ]

    for path in search_paths:
        if path.exists() and path.is_file():
            logger.info(f"Found configuration file: {path}")
            return path

    logger.debug("No configuration file found, using environment variables and defaults")
    return None


def auto_load_config(setup_logging: bool = False) -> ToolServerConfig:
    """Automatically load configuration using standard search and precedence."""
    config_file = find_config_file()
    return load_config(config_file=config_file, use_env=True, setup_logging=setup_logging)


def get_config_info(config: ToolServerConfig) -> Dict[str, Any]:
    """Summarize the configuration without exposing secrets."""
    return {
        "environment": config.environment,
        "pricing_base_url": config.pricing.resolved_base_url(),
        "pricing_api_key_configured": bool(config.pricing.api_key),
        "cache_ttl_seconds": config.cache.ttl_seconds,
        "cache_max_entries": config.cache.max_entries,
        "stale_if_error_seconds": config.cache.stale_if_error_seconds,
        "data_dir": config.data.data_dir,
        "log_level": config.logging.level,
    }
