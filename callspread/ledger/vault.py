"""Collateral custody, tracked per position.

The vault holds collateral under its own address on the collateral token and
keeps a per-position record of how much of that holding belongs to each
position. A release can never take more than the position still has.

Conservation: for every position, escrowed(id) + sum(releases for id)
equals the amount escrowed at creation.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal, localcontext
from typing import final

from callspread.core.errors import CallSpreadError, InsufficientEscrowError
from callspread.core.money import SETTLEMENT_DECIMAL_CONTEXT
from callspread.core.result import Err, Ok
from callspread.core.types import Address, UtcDatetime
from callspread.infra.protocols import CollateralToken


@final
class CollateralVault:
    """Per-position escrow of a single collateral token."""

    def __init__(self, token: CollateralToken, custodian: Address) -> None:
        self._token = token
        self._custodian = custodian
        self._escrowed: dict[int, Decimal] = defaultdict(Decimal)

    @property
    def custodian(self) -> Address:
        """Address that holds the vault's collateral and spends allowances."""
        return self._custodian

    @property
    def token(self) -> CollateralToken:
        return self._token

    def escrow(
        self, position_id: int, source: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]:
        """Pull `amount` from `source` (needs an allowance to the custodian)."""
        match self._token.transfer_from(self._custodian, source, self._custodian, amount):
            case Err() as e:
                return e
            case Ok():
                pass
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            self._escrowed[position_id] += amount
        return Ok(None)

    def can_release(self, position_id: int, amount: Decimal) -> bool:
        return self.escrowed(position_id) >= amount

    def release(
        self, position_id: int, recipient: Address, amount: Decimal, now: UtcDatetime,
    ) -> Ok[None] | Err[CallSpreadError]:
        """Pay `amount` of this position's escrow to `recipient`. Zero is a no-op.

        The escrow record is debited before the token transfer, so a callback
        from the token sees the reduced balance.
        """
        if amount == 0:
            return Ok(None)
        available = self.escrowed(position_id)
        if amount < 0 or available < amount:
            return Err(InsufficientEscrowError(
                message=f"Position {position_id} has {available} escrowed, release of {amount} refused",
                code="INSUFFICIENT_ESCROW",
                timestamp=now,
                source="ledger.vault.CollateralVault.release",
                position_id=position_id,
                required=str(amount),
                available=str(available),
            ))
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            self._escrowed[position_id] = available - amount
        match self._token.transfer(self._custodian, recipient, amount):
            case Err() as e:
                self._escrowed[position_id] = available
                return e
            case Ok():
                return Ok(None)

    def escrowed(self, position_id: int) -> Decimal:
        """Live escrowed balance of a position."""
        return self._escrowed.get(position_id, Decimal(0))

    def total_escrowed(self) -> Decimal:
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            return sum(self._escrowed.values(), Decimal(0))
