"""
Configuration system for the IOG MCP tool server.

This module provides a configuration system that can load settings from:
- Environment variables (and a local ``.env`` file)
- YAML files
- Python dictionaries
- Programmatic configuration
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List, Union
from pydantic import BaseModel, Field, validator
from dotenv import load_dotenv
from loguru import logger

DEFAULT_PUBLIC_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class PricingConfig(BaseModel):
    """Configuration for the market-data provider."""
    base_url: Optional[str] = Field(default_factory=lambda: os.getenv("COINGECKO_BASE_URL"))
    api_key: Optional[str] = Field(default_factory=lambda: os.getenv("COINGECKO_API_KEY"))
    timeout_seconds: float = 10.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    max_retry_delay_seconds: float = 30.0
    rate_limit_seconds: Optional[float] = None  # minimum spacing between outbound calls
    default_currency: str = "usd"

    @validator('timeout_seconds', 'retry_delay_seconds', 'max_retry_delay_seconds')
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError('Timeouts and delays must be positive')
        return v

    @validator('max_retries')
    def validate_max_retries(cls, v):
        if v < 0:
            raise ValueError('max_retries cannot be negative')
        if v > 10:
            logger.warning(f'High retry count ({v}) may hold callers for a long time')
        return v

    @validator('default_currency')
    def validate_default_currency(cls, v):
        if not v or not v.strip():
            raise ValueError('default_currency cannot be empty')
        return v.strip().lower()

    def resolved_base_url(self) -> str:
        """Explicit URL wins; otherwise Pro API when a key is configured, public API if not."""
        if self.base_url:
            return self.base_url
        if self.api_key:
            return DEFAULT_PRO_BASE_URL
        return DEFAULT_PUBLIC_BASE_URL


class CacheConfig(BaseModel):
    """Configuration for the in-memory price cache."""
    ttl_seconds: float = 60.0
    max_entries: int = 512
    stale_if_error_seconds: float = 0.0  # 0 disables serving expired quotes on provider failure
    sweep_interval_seconds: float = 0.0  # 0 disables the background sweeper

    @validator('ttl_seconds')
    def validate_ttl(cls, v):
        if v <= 0:
            raise ValueError('ttl_seconds must be positive')
        return v

    @validator('max_entries')
    def validate_max_entries(cls, v):
        if v < 1:
            raise ValueError('max_entries must be at least 1')
        return v

    @validator('stale_if_error_seconds', 'sweep_interval_seconds')
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('Value cannot be negative')
        return v


class SearchConfig(BaseModel):
    """Configuration for coin catalog search."""
    catalog_refresh_seconds: float = 3600.0
    max_results: int = 25

    @validator('catalog_refresh_seconds')
    def validate_refresh(cls, v):
        if v <= 0:
            raise ValueError('catalog_refresh_seconds must be positive')
        return v

    @validator('max_results')
    def validate_max_results(cls, v):
        if v < 1:
            raise ValueError('max_results must be at least 1')
        return v


class DataConfig(BaseModel):
    """Location of the persona/product JSON files."""
    data_dir: str = Field(default_factory=lambda: os.getenv("IOGMCP_DATA_DIR", str(DEFAULT_DATA_DIR)))
    personas_file: str = "personas.json"
    products_file: str = "products.json"
    products_details_dir: str = "products"

    def get_data_dir(self) -> Path:
        return Path(self.data_dir)


class ServerConfig(BaseModel):
    """Configuration for the FastAPI web server."""
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", 3002)))
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @validator('port')
    def validate_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging."""
    level: str = "INFO"
    console_style: str = "clean"  # "clean", "timestamp", or "detailed"
    enable_console: bool = True
    enable_file: bool = False
    file_path: Optional[str] = None  # defaults to logs/iogmcp.log
    file_rotation: str = "10 MB"
    file_retention: int = 3

    @validator('level')
    def validate_level(cls, v):
        valid_levels = ['TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()

    @validator('console_style')
    def validate_console_style(cls, v):
        valid_styles = ['clean', 'timestamp', 'detailed']
        if v not in valid_styles:
            raise ValueError(f'console_style must be one of: {valid_styles}')
        return v

    def get_log_file_path(self) -> Path:
        """Get the log file path."""
        if self.file_path:
            return Path(self.file_path)
        return Path("logs") / "iogmcp.log"


class ToolServerConfig(BaseModel):
    """Main configuration class for the tool server."""

    pricing: PricingConfig = Field(default_factory=PricingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    environment: str = Field(default_factory=lambda: os.getenv("IOGMCP_ENV", "development"))

    class Config:
        extra = "allow"
        validate_assignment = True

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ToolServerConfig":
        """
        Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            yaml.YAMLError: If the YAML is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in configuration file {path}: {e}")
            raise

        if data is None:
            data = {}

        logger.info(f"Loaded configuration from {path}")
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = "IOGMCP_") -> "ToolServerConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables (default: "IOGMCP_")
        """
        data: Dict[str, Dict[str, Any]] = {}

        env_mappings = {
            f"{prefix}PRICING_BASE_URL": ("pricing", "base_url", str),
            f"{prefix}PRICING_API_KEY": ("pricing", "api_key", str),
            f"{prefix}PRICING_TIMEOUT": ("pricing", "timeout_seconds", float),
            f"{prefix}PRICING_MAX_RETRIES": ("pricing", "max_retries", int),
            f"{prefix}PRICING_RATE_LIMIT": ("pricing", "rate_limit_seconds", float),
            f"{prefix}DEFAULT_CURRENCY": ("pricing", "default_currency", str),
            f"{prefix}CACHE_TTL": ("cache", "ttl_seconds", float),
            f"{prefix}CACHE_MAX_ENTRIES": ("cache", "max_entries", int),
            f"{prefix}CACHE_STALE_IF_ERROR": ("cache", "stale_if_error_seconds", float),
            f"{prefix}CACHE_SWEEP_INTERVAL": ("cache", "sweep_interval_seconds", float),
            f"{prefix}SEARCH_REFRESH": ("search", "catalog_refresh_seconds", float),
            f"{prefix}HOST": ("server", "host", str),
            f"{prefix}PORT": ("server", "port", int),
            f"{prefix}LOG_LEVEL": ("logging", "level", str),
            f"{prefix}LOG_FILE": ("logging", "file_path", str),
        }

        for env_var, (section, key, caster) in env_mappings.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                data.setdefault(section, {})[key] = caster(value)
                logger.debug(f"Set config from {env_var}: {section}.{key}")
            except ValueError as e:
                logger.warning(f"Failed to set config from {env_var}: {e}")

        return cls(**data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolServerConfig":
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.dict(exclude_none=True)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2, sort_keys=True)

        logger.info(f"Configuration saved to {path}")

    def merge_with(self, other: Union["ToolServerConfig", Dict[str, Any]]) -> "ToolServerConfig":
        """
        Merge this configuration with another, with other taking precedence.

        Args:
            other: Another config (or a partial dict of overrides)

        Returns:
            New ToolServerConfig with merged values
        """
        other_dict = other.to_dict() if isinstance(other, ToolServerConfig) else other

        def deep_merge(base: dict, overlay: dict) -> dict:
            """Recursively merge dictionaries."""
            result = base.copy()
            for key, value in overlay.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = value
            return result

        return ToolServerConfig.from_dict(deep_merge(self.to_dict(), other_dict))

    def setup_logging(self) -> None:
        """Configure logging based on the current settings."""
        from ..core.logging_config import setup_logging
        setup_logging(self.logging)


def _read_yaml_overrides(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    return data or {}


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    use_env: bool = True,
    env_prefix: str = "IOGMCP_",
    setup_logging: bool = False,
) -> ToolServerConfig:
    """
    Load configuration using the standard precedence:
    1. Default configuration
    2. Environment variables (if use_env=True)
    3. Configuration file (if provided)

    Args:
        config_file: Optional path to YAML configuration file
        use_env: Whether to load from environment variables (and ``.env``)
        env_prefix: Prefix for environment variables
        setup_logging: Whether to install the loguru sinks described by the config
    """
    if use_env:
        load_dotenv()
        config = ToolServerConfig.from_env(env_prefix)
    else:
        config = ToolServerConfig()

    if config_file:
        # Only keys present in the file override, so env values survive
        config = config.merge_with(_read_yaml_overrides(config_file))
        logger.info(f"Loaded configuration from {config_file}")

    if setup_logging:
        config.setup_logging()
    return config
