"""In-memory implementations of the external collaborator protocols.

Test doubles that let the whole suite run without a chain, an oracle
network, or a message broker: a mintable collateral token, a settable
price feed, an event bus, and a manually advanced clock.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta
from decimal import Decimal, localcontext
from typing import final

from callspread.core.errors import (
    CallSpreadError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    PersistenceError,
    ValidationError,
)
from callspread.core.money import SETTLEMENT_DECIMAL_CONTEXT, is_representable
from callspread.core.result import Err, Ok
from callspread.core.types import Address, UtcDatetime


def _amount_err(operation: str, amount: Decimal, decimals: int) -> Err[ValidationError]:
    return Err(ValidationError(
        message=f"{operation}: amount must be >= 0 with at most {decimals} places, got {amount}",
        code="INVALID_AMOUNT",
        timestamp=UtcDatetime.now(),
        source=f"memory_adapter.InMemoryCollateralToken.{operation}",
        fields=(),
    ))


@final
class InMemoryCollateralToken:
    """Mintable fungible token with balances and allowances."""

    def __init__(self, symbol: str = "USDT", decimals: int = 18) -> None:
        self._symbol = symbol
        self._decimals = decimals
        self._balances: dict[Address, Decimal] = defaultdict(Decimal)
        self._allowances: dict[tuple[Address, Address], Decimal] = defaultdict(Decimal)

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def decimals(self) -> int:
        return self._decimals

    def _valid(self, amount: Decimal) -> bool:
        return (
            isinstance(amount, Decimal)
            and amount.is_finite()
            and amount >= 0
            and is_representable(amount, self._decimals)
        )

    def mint(self, recipient: Address, amount: Decimal) -> Ok[None] | Err[CallSpreadError]:
        """Test-only helper."""
        if not self._valid(amount):
            return _amount_err("mint", amount, self._decimals)
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            self._balances[recipient] += amount
        return Ok(None)

    def balance_of(self, holder: Address) -> Decimal:
        return self._balances.get(holder, Decimal(0))

    def allowance(self, holder: Address, spender: Address) -> Decimal:
        return self._allowances.get((holder, spender), Decimal(0))

    def approve(
        self, holder: Address, spender: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]:
        if not self._valid(amount):
            return _amount_err("approve", amount, self._decimals)
        self._allowances[(holder, spender)] = amount
        return Ok(None)

    def transfer_from(
        self, spender: Address, source: Address, recipient: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]:
        if not self._valid(amount):
            return _amount_err("transfer_from", amount, self._decimals)
        allowed = self.allowance(source, spender)
        if allowed < amount:
            return Err(InsufficientAllowanceError(
                message=f"Allowance {allowed} < {amount} for {spender} on {source}",
                code="INSUFFICIENT_ALLOWANCE",
                timestamp=UtcDatetime.now(),
                source="memory_adapter.InMemoryCollateralToken.transfer_from",
                holder=source.value,
                spender=spender.value,
                required=str(amount),
                available=str(allowed),
            ))
        match self._move(source, recipient, amount, "transfer_from"):
            case Err() as e:
                return e
            case Ok():
                pass
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            self._allowances[(source, spender)] = allowed - amount
        return Ok(None)

    def transfer(
        self, sender: Address, recipient: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]:
        if not self._valid(amount):
            return _amount_err("transfer", amount, self._decimals)
        return self._move(sender, recipient, amount, "transfer")

    def _move(
        self, source: Address, recipient: Address, amount: Decimal, operation: str,
    ) -> Ok[None] | Err[CallSpreadError]:
        available = self.balance_of(source)
        if available < amount:
            return Err(InsufficientBalanceError(
                message=f"Balance {available} < {amount} for {source}",
                code="INSUFFICIENT_BALANCE",
                timestamp=UtcDatetime.now(),
                source=f"memory_adapter.InMemoryCollateralToken.{operation}",
                holder=source.value,
                required=str(amount),
                available=str(available),
            ))
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            self._balances[source] -= amount
            self._balances[recipient] += amount
        return Ok(None)

    def total_supply(self) -> Decimal:
        """Test-only helper."""
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            return sum(self._balances.values(), Decimal(0))


@final
class InMemoryPriceFeed:
    """Settable latest-answer feed, e.g. 8 decimals and 27,000.00000000 USD."""

    def __init__(
        self, decimals: int = 8, initial_answer: int = 0, description: str = "BTC / USD",
    ) -> None:
        self._decimals = decimals
        self._answer = initial_answer
        self._description = description
        self._unavailable_reason: str | None = None

    @property
    def description(self) -> str:
        return self._description

    def latest_answer(self) -> int:
        if self._unavailable_reason is not None:
            raise ConnectionError(self._unavailable_reason)
        return self._answer

    def decimals(self) -> int:
        return self._decimals

    def set_price(self, answer: int) -> None:
        """Publish a new answer and clear any outage."""
        self._answer = answer
        self._unavailable_reason = None

    update_answer = set_price

    def set_unavailable(self, reason: str = "feed unreachable") -> None:
        """Make every subsequent read fail until the next set_price."""
        self._unavailable_reason = reason


@final
class InMemoryEventBus:
    """In-memory event bus. Messages stored per-topic as (key, value) pairs."""

    def __init__(self) -> None:
        self._topics: dict[str, list[tuple[str, bytes]]] = {}

    def publish(
        self, topic: str, key: str, value: bytes,
    ) -> Ok[None] | Err[PersistenceError]:
        if topic not in self._topics:
            self._topics[topic] = []
        self._topics[topic].append((key, value))
        return Ok(None)

    def get_messages(self, topic: str) -> list[tuple[str, bytes]]:
        """Test-only helper."""
        return list(self._topics.get(topic, []))


@final
class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: UtcDatetime) -> None:
        self._now = start

    def now(self) -> UtcDatetime:
        return self._now

    def advance(self, delta: timedelta) -> UtcDatetime:
        self._now = UtcDatetime(value=self._now.value + delta)
        return self._now

    def set(self, when: UtcDatetime) -> None:
        self._now = when
