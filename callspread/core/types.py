"""Core types: UtcDatetime, Address, LoggedEnvelope.

Timestamps are always timezone-aware UTC. Addresses identify the parties
(sellers, buyers, the engine itself, the vault) that hold collateral and
positions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import final

from callspread.core.result import Err, Ok


@final
@dataclass(frozen=True, slots=True)
class UtcDatetime:
    """Timezone-aware UTC datetime. Naive datetimes are rejected."""

    value: datetime

    def __post_init__(self) -> None:
        if self.value.tzinfo is None:
            raise TypeError("UtcDatetime requires timezone-aware datetime, got naive")

    @staticmethod
    def parse(raw: datetime) -> Ok[UtcDatetime] | Err[str]:
        """Parse a datetime, rejecting naive (no tzinfo) datetimes."""
        if raw.tzinfo is None:
            return Err("UtcDatetime requires timezone-aware datetime, got naive")
        return Ok(UtcDatetime(value=raw.astimezone(UTC)))

    @staticmethod
    def now() -> UtcDatetime:
        """Current UTC time."""
        return UtcDatetime(value=datetime.now(tz=UTC))

    @staticmethod
    def from_timestamp(seconds: int) -> UtcDatetime:
        """From a unix timestamp in seconds."""
        return UtcDatetime(value=datetime.fromtimestamp(seconds, tz=UTC))

    def timestamp(self) -> int:
        """Unix timestamp in whole seconds."""
        return int(self.value.timestamp())

    def __lt__(self, other: UtcDatetime) -> bool:
        return self.value < other.value

    def __le__(self, other: UtcDatetime) -> bool:
        return self.value <= other.value


@final
@dataclass(frozen=True, slots=True)
class Address:
    """Opaque, non-empty identifier of an account holding assets or positions.

    Case-insensitive hex addresses are normalised to lower case so that the
    same account never appears under two spellings.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise TypeError("Address requires non-empty string")

    @staticmethod
    def parse(raw: str) -> Ok[Address] | Err[str]:
        if not isinstance(raw, str) or not raw.strip():
            return Err("Address requires non-empty string")
        cleaned = raw.strip()
        if cleaned.startswith(("0x", "0X")):
            cleaned = "0x" + cleaned[2:].lower()
        return Ok(Address(value=cleaned))

    def __str__(self) -> str:
        return self.value


@final
@dataclass(frozen=True, slots=True)
class LoggedEnvelope[T]:
    """Wraps a payload with its position in an append-only log."""

    sequence: int
    payload: T
    logged_at: UtcDatetime
