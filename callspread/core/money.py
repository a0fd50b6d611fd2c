"""Decimal context and refined numeric/string types for collateral amounts.

Collateral amounts are Decimals in whole collateral units (e.g. Decimal("97")
stablecoins), quantized to the token's decimal places. All arithmetic on
them runs under SETTLEMENT_DECIMAL_CONTEXT: prec=60 (wide enough for 18-place
token amounts times 8-place prices), ROUND_HALF_EVEN, and traps for
InvalidOperation/DivisionByZero/Overflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN as _ROUND_DOWN
from decimal import ROUND_HALF_EVEN as _ROUND_HALF_EVEN
from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import final

from callspread.core.result import Err, Ok

SETTLEMENT_DECIMAL_CONTEXT = Context(
    prec=60,
    rounding=_ROUND_HALF_EVEN,
    Emin=-999999,
    Emax=999999,
    capitals=1,
    clamp=0,
    flags=[],
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


@final
@dataclass(frozen=True, slots=True)
class PositiveDecimal:
    """Decimal constrained to be > 0."""

    value: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal) or not (self.value > 0):
            raise TypeError(f"PositiveDecimal requires Decimal > 0, got {self.value!r}")

    @staticmethod
    def parse(raw: Decimal) -> Ok[PositiveDecimal] | Err[str]:
        if not isinstance(raw, Decimal):
            return Err(f"PositiveDecimal requires Decimal, got {type(raw).__name__}")
        if not raw.is_finite():
            return Err(f"PositiveDecimal requires finite Decimal, got {raw}")
        if raw <= 0:
            return Err(f"PositiveDecimal requires > 0, got {raw}")
        return Ok(PositiveDecimal(value=raw))


def unit_quantizer(decimals: int) -> Decimal:
    """Smallest representable amount of a token with `decimals` places."""
    return Decimal(1).scaleb(-decimals)


def quantize_down(amount: Decimal, decimals: int) -> Decimal:
    """Truncate amount to `decimals` places. Never rounds up a payout."""
    with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
        return amount.quantize(unit_quantizer(decimals), rounding=_ROUND_DOWN)


def is_representable(amount: Decimal, decimals: int) -> bool:
    """True if amount has no precision beyond the token's decimal places."""
    return quantize_down(amount, decimals) == amount
