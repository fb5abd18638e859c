"""
Shared fixtures for tool, server and client tests.
"""
import json

import pytest

from iogmcp.config import DataConfig, ToolServerConfig
from iogmcp.pricing import CryptoPricingService
from iogmcp.pricing.models import CoinSearchResult
from iogmcp.pricing.tests.conftest import StubProvider
from iogmcp.tools import DataLookup, build_tool_registry

PERSONAS = {
    "crypto zero": "Has never used cryptocurrency and needs plain-language explanations.",
    "crypto novice": "Owns a little crypto on an exchange but has not used a wallet.",
    "builder": "Engineers evaluating platforms to build on.",
}

PRODUCTS = {
    "realfi": "Blockchain financial services for real-world use cases.",
    "midnight": "A data-protection blockchain using zero-knowledge proofs.",
}

MIDNIGHT_DETAILS = "# Midnight\n\nMidnight keeps sensitive data private while remaining verifiable.\n"


@pytest.fixture
def data_dir(tmp_path):
    """Data directory with personas, products and one detail file."""
    (tmp_path / "personas.json").write_text(json.dumps(PERSONAS), encoding="utf-8")
    (tmp_path / "products.json").write_text(json.dumps(PRODUCTS), encoding="utf-8")
    (tmp_path / "products").mkdir()
    (tmp_path / "products" / "Midnight.md").write_text(MIDNIGHT_DETAILS, encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(data_dir):
    return ToolServerConfig(data=DataConfig(data_dir=str(data_dir)))


@pytest.fixture
def data_lookup(config):
    return DataLookup(config.data)


@pytest.fixture
def stub_provider():
    return StubProvider(
        prices={"cardano": {"usd": 0.45, "eur": 0.41}},
        catalog=[
            CoinSearchResult(id="adamant", symbol="adm", name="Adamant"),
            CoinSearchResult(id="cardano", symbol="ada", name="Cardano", market_cap_rank=10),
        ],
    )


@pytest.fixture
def pricing_service(config, stub_provider):
    return CryptoPricingService(config, provider=stub_provider)


@pytest.fixture
def registry(config, pricing_service):
    return build_tool_registry(config, pricing_service)
