"""Position ledger — the authoritative store of call-spread positions.

Positions live in an id-keyed arena. Ids are allocated from a counter that
only moves forward, so an id is never handed out twice, even when the
creation it was reserved for never completes. Every lifecycle change replaces the stored Position with
an updated frozen copy.

Ownership moves only through transfer_ownership, and only when authorized
by the current owner or a registered operator (the settlement engine, for
purchases).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import final

from callspread.core.errors import (
    AlreadyExercisedError,
    InvalidExpiryError,
    InvalidStrikesError,
    UnauthorizedError,
    UnknownPositionError,
)
from callspread.core.result import Err, Ok
from callspread.core.types import Address, UtcDatetime


@final
@dataclass(frozen=True, slots=True)
class Position:
    """One tokenized call spread."""

    position_id: int
    strike_low: int
    strike_high: int
    expiry: UtcDatetime
    collateral: Decimal
    seller: Address
    owner: Address
    metadata_uri: str
    created_at: UtcDatetime
    buyer: Address | None = None
    exercised: bool = False

    def __post_init__(self) -> None:
        if self.strike_low >= self.strike_high:
            raise TypeError(
                f"Position.strike_low ({self.strike_low}) must be < "
                f"strike_high ({self.strike_high})"
            )
        if self.position_id < 0:
            raise TypeError(f"Position.position_id must be >= 0, got {self.position_id}")

    @property
    def purchased(self) -> bool:
        return self.buyer is not None

    def is_expired(self, now: UtcDatetime) -> bool:
        """Exercisable from strictly after expiry."""
        return self.expiry < now


def validate_terms(
    strike_low: int,
    strike_high: int,
    expiry: UtcDatetime,
    now: UtcDatetime,
    source: str,
) -> Ok[None] | Err[InvalidStrikesError | InvalidExpiryError]:
    """Check creation terms without touching any state."""
    if strike_low <= 0 or strike_low >= strike_high:
        return Err(InvalidStrikesError(
            message=(
                f"strike_low ({strike_low}) must be positive and < "
                f"strike_high ({strike_high})"
            ),
            code="INVALID_STRIKES",
            timestamp=now,
            source=source,
            strike_low=strike_low,
            strike_high=strike_high,
        ))
    if expiry <= now:
        return Err(InvalidExpiryError(
            message=f"expiry ({expiry.value.isoformat()}) must be after now ({now.value.isoformat()})",
            code="INVALID_EXPIRY",
            timestamp=now,
            source=source,
            expiry=expiry.value.isoformat(),
            now=now.value.isoformat(),
        ))
    return Ok(None)


@final
class PositionLedger:
    """Arena of positions keyed by integer id.

    Not a dataclass — holds mutable internal state. Only the settlement
    engine is expected to call the mutating methods.
    """

    def __init__(self) -> None:
        self._positions: dict[int, Position] = {}
        self._next_id: int = 0
        self._operators: set[Address] = set()

    # -- Authorization --

    def approve_operator(self, operator: Address) -> None:
        """Allow `operator` to move ownership of any position."""
        self._operators.add(operator)

    def is_operator(self, address: Address) -> bool:
        return address in self._operators

    # -- Mutations --

    def reserve_id(self) -> int:
        """Hand out the next id without storing anything under it yet."""
        position_id = self._next_id
        self._next_id += 1
        return position_id

    def create(
        self,
        strike_low: int,
        strike_high: int,
        expiry: UtcDatetime,
        collateral: Decimal,
        metadata_uri: str,
        creator: Address,
        now: UtcDatetime,
        *,
        reserved_id: int | None = None,
    ) -> Ok[Position] | Err[InvalidStrikesError | InvalidExpiryError]:
        """Validate terms and store the position.

        The position takes `reserved_id` (from reserve_id) when given,
        otherwise the next id.
        """
        if reserved_id is not None and (
            reserved_id >= self._next_id or reserved_id in self._positions
        ):
            raise ValueError(f"Position id {reserved_id} was not reserved or is taken")
        match validate_terms(
            strike_low, strike_high, expiry, now, "ledger.positions.PositionLedger.create",
        ):
            case Err() as e:
                return e
            case Ok():
                pass
        position_id = self.reserve_id() if reserved_id is None else reserved_id
        position = Position(
            position_id=position_id,
            strike_low=strike_low,
            strike_high=strike_high,
            expiry=expiry,
            collateral=collateral,
            seller=creator,
            owner=creator,
            metadata_uri=metadata_uri,
            created_at=now,
        )
        self._positions[position_id] = position
        return Ok(position)

    def transfer_ownership(
        self,
        position_id: int,
        new_owner: Address,
        authorized_by: Address,
        now: UtcDatetime,
    ) -> Ok[Position] | Err[UnknownPositionError | UnauthorizedError]:
        match self.get(position_id, now):
            case Err() as e:
                return e
            case Ok(position):
                pass
        if authorized_by != position.owner and authorized_by not in self._operators:
            return Err(UnauthorizedError(
                message=f"{authorized_by} may not transfer position {position_id}",
                code="UNAUTHORIZED",
                timestamp=now,
                source="ledger.positions.PositionLedger.transfer_ownership",
                position_id=position_id,
                caller=authorized_by.value,
            ))
        updated = replace(position, owner=new_owner)
        self._positions[position_id] = updated
        return Ok(updated)

    def record_buyer(
        self, position_id: int, buyer: Address, now: UtcDatetime,
    ) -> Ok[Position] | Err[UnknownPositionError]:
        match self.get(position_id, now):
            case Err() as e:
                return e
            case Ok(position):
                pass
        updated = replace(position, buyer=buyer)
        self._positions[position_id] = updated
        return Ok(updated)

    def mark_exercised(
        self, position_id: int, now: UtcDatetime,
    ) -> Ok[Position] | Err[UnknownPositionError | AlreadyExercisedError]:
        """The single guard against settling a position twice."""
        match self.get(position_id, now):
            case Err() as e:
                return e
            case Ok(position):
                pass
        if position.exercised:
            return Err(AlreadyExercisedError(
                message=f"Position {position_id} already exercised",
                code="ALREADY_EXERCISED",
                timestamp=now,
                source="ledger.positions.PositionLedger.mark_exercised",
                position_id=position_id,
            ))
        updated = replace(position, exercised=True)
        self._positions[position_id] = updated
        return Ok(updated)

    def reinstate(self, position: Position) -> None:
        """Put back an earlier copy of a stored position, undoing later changes to it."""
        if position.position_id not in self._positions:
            raise ValueError(f"Position {position.position_id} is not stored")
        self._positions[position.position_id] = position

    # -- Queries --

    def get(
        self, position_id: int, now: UtcDatetime | None = None,
    ) -> Ok[Position] | Err[UnknownPositionError]:
        position = self._positions.get(position_id)
        if position is None:
            return Err(UnknownPositionError(
                message=f"Unknown position: {position_id}",
                code="UNKNOWN_POSITION",
                timestamp=now if now is not None else UtcDatetime.now(),
                source="ledger.positions.PositionLedger.get",
                position_id=position_id,
            ))
        return Ok(position)

    def owner_of(self, position_id: int) -> Ok[Address] | Err[UnknownPositionError]:
        return self.get(position_id).map(lambda p: p.owner)

    def ids(self, start: int = 0) -> Iterator[int]:
        """Known ids >= start in ascending order, read lazily."""
        for pid in range(max(start, 0), self._next_id):
            if pid in self._positions:
                yield pid

    @property
    def next_id(self) -> int:
        return self._next_id

    def count(self) -> int:
        return len(self._positions)
