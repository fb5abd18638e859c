"""
Tests for StakingCalculator: compounding, validation and price conversion.
"""
import math

import pytest

from iogmcp.exceptions import InvalidInputError, ProviderUnavailableError
from iogmcp.pricing.price_cache import PriceCache
from iogmcp.pricing.staking import MAX_SCHEDULE_YEARS, StakingCalculator, compound, yearly_schedule


@pytest.fixture
def calculator(stub_provider, clock):
    return StakingCalculator(PriceCache(stub_provider, clock=clock))


class TestCompounding:

    @pytest.mark.parametrize("principal,apy,years", [
        (1000, 5, 5),
        (1, 0, 10),
        (250.5, 12.5, 2.75),
        (0, 7, 3),
        (1000, 3, 0),
        (42, 200, 0.5),
    ])
    def test_compound_identity(self, principal, apy, years):
        expected = principal * (1 + apy / 100) ** years
        assert math.isclose(compound(principal, apy, years), expected, rel_tol=1e-9)

    @pytest.mark.parametrize("principal,apy,years", [
        (1000, 5, 5),
        (10, 0, 3),
        (0, 50, 2),
        (5, 0.01, 100),
    ])
    def test_final_amount_never_below_principal_for_non_negative_apy(self, principal, apy, years):
        assert compound(principal, apy, years) >= principal

    def test_total_loss_at_minus_100(self):
        assert compound(1000, -100, 1) == 0.0

    def test_overflow_is_invalid_input(self):
        with pytest.raises(InvalidInputError):
            compound(1e300, 1e6, 1e6)

    def test_zero_principal_never_overflows(self):
        assert compound(0, 5, 20000) == 0.0
        assert yearly_schedule(0, 5, 20000) == (0.0,) * MAX_SCHEDULE_YEARS

    def test_yearly_schedule_whole_years(self):
        schedule = yearly_schedule(1000, 10, 3.5)

        assert len(schedule) == 3
        assert math.isclose(schedule[0], 1100.0)
        assert math.isclose(schedule[2], 1331.0)

    def test_yearly_schedule_is_capped(self):
        assert len(yearly_schedule(1, 1, 1000)) == MAX_SCHEDULE_YEARS


class TestProjection:

    @pytest.mark.asyncio
    async def test_cardano_scenario(self, calculator):
        projection = await calculator.project(1000, 5, 5, "cardano", "usd")

        assert projection.final_amount == pytest.approx(1276.28, abs=0.01)
        assert projection.gain_amount == pytest.approx(276.28, abs=0.01)
        assert projection.converted["usd"] == pytest.approx(574.33, abs=0.01)
        assert projection.unit_prices == {"usd": 0.45}
        assert projection.conversion_available is True
        assert projection.conversion_error is None
        assert len(projection.yearly_balances) == 5

    @pytest.mark.asyncio
    async def test_zero_principal_long_horizon(self, calculator):
        projection = await calculator.project(0, 20000, 5, "cardano", "usd")

        assert projection.final_amount == 0.0
        assert projection.gain_amount == 0.0
        assert projection.converted == {"usd": 0.0}
        assert len(projection.yearly_balances) == MAX_SCHEDULE_YEARS

    @pytest.mark.asyncio
    async def test_gain_is_final_minus_principal(self, calculator):
        projection = await calculator.project(321.5, 2.5, 7.25, "cardano")

        assert projection.gain_amount == pytest.approx(projection.final_amount - projection.principal)
        assert projection.display_currency == "usd"

    @pytest.mark.asyncio
    async def test_multiple_display_currencies_keep_request_order(self, calculator):
        projection = await calculator.project(100, 1, 10, "cardano", ["EUR", "usd", "eur"])

        assert projection.display_currencies == ("eur", "usd")
        assert projection.display_currency == "eur"
        assert projection.converted["eur"] == pytest.approx(110 * 0.41)
        assert projection.converted["usd"] == pytest.approx(110 * 0.45)

    @pytest.mark.asyncio
    async def test_numeric_strings_are_accepted(self, calculator):
        projection = await calculator.project("1000", "5", "5", "cardano")

        assert projection.final_amount == pytest.approx(1276.28, abs=0.01)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("principal,years,apy,coin_id", [
        (-1, 1, 5, "cardano"),
        (100, -1, 5, "cardano"),
        (100, 1, -100.5, "cardano"),
        (float("nan"), 1, 5, "cardano"),
        (100, float("inf"), 5, "cardano"),
        (True, 1, 5, "cardano"),
        ("abc", 1, 5, "cardano"),
        (None, 1, 5, "cardano"),
        (100, 1, 5, ""),
        (100, 1, 5, None),
    ])
    async def test_invalid_input_makes_no_price_lookup(self, calculator, stub_provider, principal, years, apy, coin_id):
        with pytest.raises(InvalidInputError):
            await calculator.project(principal, years, apy, coin_id, "usd")

        assert stub_provider.price_calls == []

    @pytest.mark.asyncio
    async def test_price_failure_returns_unconverted_projection(self, calculator, stub_provider):
        stub_provider.failures.append(ProviderUnavailableError("down"))

        projection = await calculator.project(1000, 5, 5, "cardano", "usd")

        assert projection.final_amount == pytest.approx(1276.28, abs=0.01)
        assert projection.conversion_available is False
        assert projection.converted == {}
        assert projection.conversion_error == {"kind": "ProviderUnavailable", "message": "down"}

    @pytest.mark.asyncio
    async def test_unknown_coin_returns_unconverted_projection(self, calculator):
        projection = await calculator.project(10, 1, 5, "no-such-coin", "usd")

        assert projection.conversion_available is False
        assert projection.conversion_error["kind"] == "NotFound"

    @pytest.mark.asyncio
    async def test_unpriced_currency_reports_conversion_error(self, calculator):
        projection = await calculator.project(10, 1, 5, "cardano", "xyz")

        assert projection.conversion_available is False
        assert projection.conversion_error["kind"] == "NotFound"

    @pytest.mark.asyncio
    async def test_to_dict_shape(self, calculator):
        data = (await calculator.project(1000, 5, 5, "cardano", "usd")).to_dict()

        assert data["coinId"] == "cardano"
        assert data["displayCurrency"] == "usd"
        assert data["conversionAvailable"] is True
        assert set(data["converted"]) == {"usd"}
        assert "conversionError" not in data
        assert {"finalAmount", "gainAmount", "principal", "apy", "years", "yearlyBalances"} <= set(data)
