"""
Staking projections.

Annual compounding only:

    final_amount = principal * (1 + apy_percent / 100) ** years

``years`` may be fractional; the fractional part compounds at the same
annual rate. The projection is converted into display currencies through a
price source exposing ``get_or_fetch(coin_id, currencies)`` (normally the
PriceCache); a failed lookup downgrades the result instead of failing it.
"""

import math
from typing import Any, Iterable, List, Optional, Tuple, Union

from loguru import logger

from iogmcp.exceptions import InvalidInputError, PricingError
from iogmcp.pricing.models import StakingProjection

__all__ = ["StakingCalculator", "compound", "yearly_schedule"]

# Length cap for the per-year balance table
MAX_SCHEDULE_YEARS = 100


def _coerce_number(field: str, value: Any) -> float:
    """Accept real numbers and numeric strings; reject bools, NaN and infinities."""
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{field} must be a number", field=field, value=value)
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise InvalidInputError(f"{field} must be a number, got '{value}'", field=field, value=value)
    if not isinstance(value, (int, float)):
        raise InvalidInputError(f"{field} must be a number", field=field, value=value)

    value = float(value)
    if not math.isfinite(value):
        raise InvalidInputError(f"{field} must be finite", field=field, value=value)
    return value


def _display_currencies(currencies: Union[None, str, Iterable[str]], default: str) -> Tuple[str, ...]:
    """Lowercased, de-duplicated codes in request order; ``default`` when none given."""
    if currencies is None:
        currencies = []
    elif isinstance(currencies, str):
        currencies = currencies.split(",")

    ordered: List[str] = []
    for code in currencies:
        if code is None:
            continue
        code = str(code).strip().lower()
        if code and code not in ordered:
            ordered.append(code)
    return tuple(ordered) or (default,)


def compound(principal: float, apy_percent: float, years: float) -> float:
    """Balance after ``years`` of annual compounding."""
    if principal == 0:
        return 0.0
    try:
        final_amount = principal * (1 + apy_percent / 100) ** years
    except OverflowError:
        raise InvalidInputError("Projection is too large to represent")
    if not math.isfinite(final_amount):
        raise InvalidInputError("Projection is too large to represent")
    return final_amount


def yearly_schedule(principal: float, apy_percent: float, years: float) -> Tuple[float, ...]:
    """End-of-year balances for each whole year of the projection."""
    whole_years = min(int(math.floor(years)), MAX_SCHEDULE_YEARS)
    return tuple(compound(principal, apy_percent, year) for year in range(1, whole_years + 1))


class StakingCalculator:
    """Compound-growth projection with optional fiat conversion."""

    def __init__(self, price_source: Any, default_currency: str = "usd"):
        self.price_source = price_source
        self.default_currency = default_currency

    @staticmethod
    def validate(principal: Any, years: Any, apy_percent: Any, coin_id: Any) -> Tuple[float, float, float, str]:
        """Validate raw inputs and return them normalized. Raises InvalidInputError."""
        principal = _coerce_number("amount", principal)
        years = _coerce_number("years", years)
        apy_percent = _coerce_number("apy", apy_percent)

        if principal < 0:
            raise InvalidInputError("amount cannot be negative", field="amount", value=principal)
        if years < 0:
            raise InvalidInputError("years cannot be negative", field="years", value=years)
        if apy_percent < -100:
            raise InvalidInputError("apy cannot be below -100%", field="apy", value=apy_percent)
        if not isinstance(coin_id, str) or not coin_id.strip():
            raise InvalidInputError("coinId must be a non-empty string", field="coinId", value=coin_id)

        return principal, years, apy_percent, coin_id.strip()

    async def project(
        self,
        principal: Any,
        years: Any,
        apy_percent: Any,
        coin_id: str,
        display_currencies: Union[None, str, Iterable[str]] = None,
    ) -> StakingProjection:
        """
        Project a staked balance and convert it into the display currencies.

        Inputs are validated before any price lookup happens.

        Raises:
            InvalidInputError: for negative/non-finite inputs or a blank coin id
        """
        principal, years, apy_percent, coin_id = self.validate(principal, years, apy_percent, coin_id)
        currencies = _display_currencies(display_currencies, self.default_currency)

        final_amount = compound(principal, apy_percent, years)
        gain_amount = final_amount - principal
        schedule = yearly_schedule(principal, apy_percent, years)

        converted = {}
        unit_prices = {}
        conversion_error: Optional[dict] = None

        try:
            quote = await self.price_source.get_or_fetch(coin_id, currencies)
        except PricingError as e:
            logger.warning(f"Price lookup for {coin_id} failed, returning unconverted projection: {e.message}")
            conversion_error = e.to_dict()
        else:
            for currency in currencies:
                price = quote.price(currency)
                if price is not None:
                    unit_prices[currency] = price
                    converted[currency] = final_amount * price
            if not converted:
                conversion_error = {
                    "kind": "NotFound",
                    "message": f"No {coin_id} price available in {', '.join(currencies)}",
                }

        return StakingProjection(
            principal=principal,
            apy=apy_percent,
            years=years,
            coin_id=coin_id,
            display_currencies=currencies,
            final_amount=final_amount,
            gain_amount=gain_amount,
            yearly_balances=schedule,
            converted=converted,
            unit_prices=unit_prices,
            conversion_available=bool(converted),
            conversion_error=conversion_error,
        )
