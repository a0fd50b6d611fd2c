"""Protocols for the external collaborators of the settlement engine.

Domain code depends on these abstractions; the in-memory adapters and any
chain- or exchange-backed implementations provide them.

Token calls that move funds return Ok[None] | Err[CallSpreadError] so that a
failed pull or payout is a visible value, never an invisible exception. The
price feed is deliberately thin: it mirrors a latest-answer aggregator and
may raise, which is why every read goes through PriceOracleAdapter.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from callspread.core.errors import CallSpreadError, PersistenceError
from callspread.core.result import Err, Ok
from callspread.core.types import Address, UtcDatetime


@runtime_checkable
class CollateralToken(Protocol):
    """Fungible collateral asset (balance / allowance / transfer semantics).

    Amounts are Decimals in whole token units with at most `decimals` places.
    The first argument of every mutating call is the account on whose behalf
    the call is made.
    """

    @property
    def symbol(self) -> str: ...

    @property
    def decimals(self) -> int: ...

    def balance_of(self, holder: Address) -> Decimal: ...

    def allowance(self, holder: Address, spender: Address) -> Decimal: ...

    def approve(
        self, holder: Address, spender: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]: ...

    def transfer_from(
        self, spender: Address, source: Address, recipient: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]: ...

    def transfer(
        self, sender: Address, recipient: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]: ...


@runtime_checkable
class PriceFeed(Protocol):
    """Latest-answer price aggregator with fixed decimal precision."""

    @property
    def description(self) -> str: ...

    def latest_answer(self) -> int: ...

    def decimals(self) -> int: ...


@runtime_checkable
class EventBus(Protocol):
    """Append-only event transport.

    Messages are keyed for deterministic partitioning. Values are opaque
    bytes — serialization is the caller's responsibility.
    """

    def publish(
        self, topic: str, key: str, value: bytes,
    ) -> Ok[None] | Err[PersistenceError]: ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time (block time, wall clock, or a test clock)."""

    def now(self) -> UtcDatetime: ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> UtcDatetime:
        return UtcDatetime.now()
