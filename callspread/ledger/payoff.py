"""Capped call-spread payoff and its conversion into collateral units.

call_spread_payoff works entirely in the oracle's fixed-point integer scale
(strikes and prices share it). to_collateral_units is the one place where a
raw payoff becomes a collateral amount; it truncates, so the owner is never
paid a fraction of a token unit the seller did not escrow.
"""

from __future__ import annotations

from decimal import Decimal, localcontext

from callspread.core.money import SETTLEMENT_DECIMAL_CONTEXT, quantize_down


def call_spread_payoff(strike_low: int, strike_high: int, price: int) -> int:
    """Payoff of a long call spread at `price`.

    price <= strike_low               -> 0
    strike_low < price < strike_high  -> price - strike_low
    price >= strike_high              -> strike_high - strike_low
    """
    if price <= strike_low:
        return 0
    if price >= strike_high:
        return strike_high - strike_low
    return price - strike_low


def max_payoff(strike_low: int, strike_high: int) -> int:
    """Upper bound of call_spread_payoff for these strikes."""
    return strike_high - strike_low


def to_collateral_units(
    raw_payoff: int,
    price_decimals: int,
    quote_per_collateral_unit: Decimal,
    collateral_decimals: int,
) -> Decimal:
    """Convert a fixed-point payoff into collateral units, truncated.

    3000 USD at 8 price decimals (300_000_000_000) with 1000 USD per
    collateral unit -> Decimal("3").
    """
    with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
        quote_amount = Decimal(raw_payoff).scaleb(-price_decimals)
        units = quote_amount / quote_per_collateral_unit
    return quantize_down(units, collateral_decimals)
