"""
Tests for the configuration system.
"""
import pytest
import yaml
from pydantic import ValidationError

from iogmcp.config import (
    DEFAULT_PRO_BASE_URL,
    DEFAULT_PUBLIC_BASE_URL,
    CacheConfig,
    LoggingConfig,
    PricingConfig,
    ToolServerConfig,
    find_config_file,
    get_config_info,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("COINGECKO_BASE_URL", "COINGECKO_API_KEY", "HOST", "PORT"):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_default_values(self):
        config = ToolServerConfig()

        assert config.cache.ttl_seconds == 60.0
        assert config.cache.stale_if_error_seconds == 0.0
        assert config.pricing.default_currency == "usd"
        assert config.server.port == 3002
        assert config.logging.level == "INFO"

    def test_base_url_resolution(self):
        assert PricingConfig().resolved_base_url() == DEFAULT_PUBLIC_BASE_URL
        assert PricingConfig(api_key="secret").resolved_base_url() == DEFAULT_PRO_BASE_URL
        assert PricingConfig(api_key="secret", base_url="http://mock").resolved_base_url() == "http://mock"


class TestValidation:

    @pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_entries": 0}, {"stale_if_error_seconds": -1}])
    def test_invalid_cache_settings(self, kwargs):
        with pytest.raises(ValidationError):
            CacheConfig(**kwargs)

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_log_level_is_normalised(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_currency_is_normalised(self):
        assert PricingConfig(default_currency=" EUR ").default_currency == "eur"

    def test_negative_retries(self):
        with pytest.raises(ValidationError):
            PricingConfig(max_retries=-1)


class TestLoading:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("IOGMCP_CACHE_TTL", "15")
        monkeypatch.setenv("IOGMCP_PORT", "8080")
        monkeypatch.setenv("IOGMCP_PRICING_API_KEY", "secret")

        config = ToolServerConfig.from_env()

        assert config.cache.ttl_seconds == 15.0
        assert config.server.port == 8080
        assert config.pricing.api_key == "secret"

    def test_from_env_ignores_unparseable(self, monkeypatch):
        monkeypatch.setenv("IOGMCP_CACHE_MAX_ENTRIES", "many")

        assert ToolServerConfig.from_env().cache.max_entries == 512

    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "iogmcp.yaml"
        ToolServerConfig(cache=CacheConfig(ttl_seconds=30)).to_yaml(path)

        assert ToolServerConfig.from_yaml(path).cache.ttl_seconds == 30.0

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ToolServerConfig.from_yaml(tmp_path / "missing.yaml")

    def test_file_overrides_env_only_for_present_keys(self, tmp_path, monkeypatch):
        monkeypatch.setenv("IOGMCP_CACHE_TTL", "15")
        monkeypatch.setenv("IOGMCP_PORT", "8080")
        path = tmp_path / "iogmcp.yaml"
        path.write_text(yaml.safe_dump({"cache": {"ttl_seconds": 90}}), encoding="utf-8")

        config = load_config(config_file=path)

        assert config.cache.ttl_seconds == 90.0
        assert config.server.port == 8080

    def test_merge_with_dict(self):
        config = ToolServerConfig().merge_with({"logging": {"level": "debug"}})

        assert config.logging.level == "DEBUG"
        assert config.logging.console_style == "clean"

    def test_find_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert find_config_file() is None

        (tmp_path / "iogmcp.yaml").write_text("{}", encoding="utf-8")
        assert find_config_file().name == "iogmcp.yaml"


def test_config_info_hides_api_key():
    info = get_config_info(ToolServerConfig(pricing=PricingConfig(api_key="secret")))

    assert info["pricing_api_key_configured"] is True
    assert "secret" not in str(info)


def test_setup_logging_writes_file(tmp_path):
    from loguru import logger

    log_file = tmp_path / "logs" / "iogmcp.log"
    config = ToolServerConfig().merge_with({
        "logging": {"enable_console": False, "enable_file": True, "file_path": str(log_file)},
    })

    config.setup_logging()
    logger.info("pricing ready")
    logger.complete()
    logger.remove()

    assert "pricing ready" in log_file.read_text(encoding="utf-8")
