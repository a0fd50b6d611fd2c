"""Settlement events and the append-only event log.

One event per state transition. The log assigns a gap-free sequence number
and, when an EventBus is attached, publishes each event as canonical JSON
keyed by position id.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import final

from callspread.core.errors import PersistenceError
from callspread.core.result import Err, Ok
from callspread.core.serialization import canonical_bytes
from callspread.core.types import Address, LoggedEnvelope, UtcDatetime
from callspread.infra.config import EVENTS_TOPIC
from callspread.infra.protocols import EventBus


@final
@dataclass(frozen=True, slots=True)
class CallSpreadCreated:
    position_id: int
    seller: Address
    strike_low: int
    strike_high: int
    expiry: UtcDatetime


@final
@dataclass(frozen=True, slots=True)
class CallSpreadPurchased:
    position_id: int
    buyer: Address


@final
@dataclass(frozen=True, slots=True)
class CallSpreadTransferred:
    position_id: int
    previous_owner: Address
    new_owner: Address


@final
@dataclass(frozen=True, slots=True)
class CallSpreadExercised:
    position_id: int
    payoff_amount: Decimal
    price_used: int


type CallSpreadEvent = (
    CallSpreadCreated | CallSpreadPurchased | CallSpreadTransferred | CallSpreadExercised
)


@final
class EventLog:
    """Append-only log of CallSpreadEvents."""

    def __init__(self, bus: EventBus | None = None, topic: str = EVENTS_TOPIC) -> None:
        self._entries: list[LoggedEnvelope[CallSpreadEvent]] = []
        self._bus = bus
        self._topic = topic

    def append(
        self, event: CallSpreadEvent, logged_at: UtcDatetime,
    ) -> Ok[LoggedEnvelope[CallSpreadEvent]] | Err[PersistenceError]:
        envelope = LoggedEnvelope(
            sequence=len(self._entries), payload=event, logged_at=logged_at,
        )
        self._entries.append(envelope)
        if self._bus is None:
            return Ok(envelope)
        match canonical_bytes(envelope):
            case Err(reason):
                return Err(PersistenceError(
                    message=reason,
                    code="SERIALIZATION_ERROR",
                    timestamp=logged_at,
                    source="ledger.events.EventLog.append",
                    operation="publish",
                ))
            case Ok(payload):
                pass
        match self._bus.publish(self._topic, str(event.position_id), payload):
            case Err() as e:
                return e
            case Ok():
                return Ok(envelope)

    def entries(self) -> tuple[LoggedEnvelope[CallSpreadEvent], ...]:
        return tuple(self._entries)

    def events(self) -> tuple[CallSpreadEvent, ...]:
        return tuple(e.payload for e in self._entries)

    def events_for(self, position_id: int) -> tuple[CallSpreadEvent, ...]:
        return tuple(e.payload for e in self._entries if e.payload.position_id == position_id)

    def __len__(self) -> int:
        return len(self._entries)
