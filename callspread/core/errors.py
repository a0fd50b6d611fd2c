"""Error value hierarchy — settlement functions return these, never raise them.

Every error is a frozen dataclass value that can be pattern-matched,
serialized, and recorded (the keeper stores them in its upkeep report).
Base class CallSpreadError; all subclasses are @final.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import final

from callspread.core.types import UtcDatetime


@dataclass(frozen=True, slots=True)
class CallSpreadError:
    """Base error value. NOT @final — has subclasses."""

    message: str
    code: str
    timestamp: UtcDatetime
    source: str  # "module.function" that produced this error

    def with_context(self, context: str) -> CallSpreadError:
        """Return a copy with context prepended to message."""
        return replace(self, message=f"{context}: {self.message}")

    def to_dict(self) -> dict[str, object]:
        """Serialize to dict with stable keys."""
        return {
            "message": self.message,
            "code": self.code,
            "timestamp": self.timestamp.value.isoformat(),
            "source": self.source,
        }


@final
@dataclass(frozen=True, slots=True)
class FieldViolation:
    """Describes a single field validation failure."""

    path: str  # e.g. "create_call_spread.collateral"
    constraint: str  # e.g. "must be positive"
    actual_value: str  # e.g. "-100"


@final
@dataclass(frozen=True, slots=True)
class ValidationError(CallSpreadError):
    """One or more inputs failed validation."""

    fields: tuple[FieldViolation, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "fields": [
                {"path": f.path, "constraint": f.constraint, "actual_value": f.actual_value}
                for f in self.fields
            ],
        }


@final
@dataclass(frozen=True, slots=True)
class InvalidStrikesError(CallSpreadError):
    """strike_low >= strike_high, or a strike is not positive."""

    strike_low: int
    strike_high: int

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "strike_low": self.strike_low,
            "strike_high": self.strike_high,
        }


@final
@dataclass(frozen=True, slots=True)
class InvalidExpiryError(CallSpreadError):
    """Expiry is not strictly after the creation time."""

    expiry: str
    now: str

    def to_dict(self) -> dict[str, object]:
        return {**CallSpreadError.to_dict(self), "expiry": self.expiry, "now": self.now}


@final
@dataclass(frozen=True, slots=True)
class UnknownPositionError(CallSpreadError):
    """No position exists under this id."""

    position_id: int

    def to_dict(self) -> dict[str, object]:
        return {**CallSpreadError.to_dict(self), "position_id": self.position_id}


@final
@dataclass(frozen=True, slots=True)
class NotExpiredError(CallSpreadError):
    """Exercise attempted at or before expiry."""

    position_id: int
    expiry: str
    now: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "position_id": self.position_id,
            "expiry": self.expiry,
            "now": self.now,
        }


@final
@dataclass(frozen=True, slots=True)
class AlreadyExercisedError(CallSpreadError):
    """The position has already been settled."""

    position_id: int

    def to_dict(self) -> dict[str, object]:
        return {**CallSpreadError.to_dict(self), "position_id": self.position_id}


@final
@dataclass(frozen=True, slots=True)
class UnauthorizedError(CallSpreadError):
    """Caller lacks authority over the position."""

    position_id: int
    caller: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "position_id": self.position_id,
            "caller": self.caller,
        }


@final
@dataclass(frozen=True, slots=True)
class IllegalTransitionError(CallSpreadError):
    """Lifecycle transition is not allowed."""

    from_state: str
    to_state: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "from_state": self.from_state,
            "to_state": self.to_state,
        }


@final
@dataclass(frozen=True, slots=True)
class InsufficientAllowanceError(CallSpreadError):
    """Spender's allowance does not cover the requested pull."""

    holder: str
    spender: str
    required: str
    available: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "holder": self.holder,
            "spender": self.spender,
            "required": self.required,
            "available": self.available,
        }


@final
@dataclass(frozen=True, slots=True)
class InsufficientBalanceError(CallSpreadError):
    """Holder's balance does not cover the requested transfer."""

    holder: str
    required: str
    available: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "holder": self.holder,
            "required": self.required,
            "available": self.available,
        }


@final
@dataclass(frozen=True, slots=True)
class InsufficientEscrowError(CallSpreadError):
    """The vault holds less for this position than the requested release."""

    position_id: int
    required: str
    available: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "position_id": self.position_id,
            "required": self.required,
            "available": self.available,
        }


@final
@dataclass(frozen=True, slots=True)
class OracleUnavailableError(CallSpreadError):
    """The price feed could not produce a usable answer."""

    feed: str

    def to_dict(self) -> dict[str, object]:
        return {**CallSpreadError.to_dict(self), "feed": self.feed}


@final
@dataclass(frozen=True, slots=True)
class ConservationViolationError(CallSpreadError):
    """Payout + refund would not equal the escrowed collateral."""

    law_name: str
    expected: str
    actual: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CallSpreadError.to_dict(self),
            "law_name": self.law_name,
            "expected": self.expected,
            "actual": self.actual,
        }


@final
@dataclass(frozen=True, slots=True)
class PersistenceError(CallSpreadError):
    """Event transport or storage operation failed."""

    operation: str

    def to_dict(self) -> dict[str, object]:
        return {**CallSpreadError.to_dict(self), "operation": self.operation}
