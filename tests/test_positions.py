"""Tests for callspread.ledger.positions -- the position arena."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from conftest import EXPIRY, OTHER, SELLER, STRIKE_HIGH, STRIKE_LOW, T0

from callspread.core.errors import (
    AlreadyExercisedError,
    InvalidExpiryError,
    InvalidStrikesError,
    UnauthorizedError,
    UnknownPositionError,
)
from callspread.core.result import Err, Ok, unwrap
from callspread.core.types import Address, UtcDatetime
from callspread.ledger.positions import Position, PositionLedger, validate_terms

_ENGINE = Address(value="engine")


def _ledger_with(n: int = 1) -> PositionLedger:
    ledger = PositionLedger()
    for _ in range(n):
        unwrap(ledger.create(
            STRIKE_LOW, STRIKE_HIGH, EXPIRY, Decimal(100), "", SELLER, T0,
        ))
    return ledger


class TestValidateTerms:
    def test_valid(self) -> None:
        assert isinstance(validate_terms(1, 2, EXPIRY, T0, "t"), Ok)

    def test_equal_strikes(self) -> None:
        result = validate_terms(5, 5, EXPIRY, T0, "t")
        assert isinstance(result, Err)
        assert isinstance(result.error, InvalidStrikesError)

    def test_inverted_strikes(self) -> None:
        result = validate_terms(6, 5, EXPIRY, T0, "t")
        assert isinstance(result, Err)
        assert result.error.code == "INVALID_STRIKES"

    def test_zero_strike(self) -> None:
        assert isinstance(validate_terms(0, 5, EXPIRY, T0, "t"), Err)

    def test_expiry_equal_to_now(self) -> None:
        result = validate_terms(1, 2, T0, T0, "t")
        assert isinstance(result, Err)
        assert isinstance(result.error, InvalidExpiryError)

    def test_expiry_in_past(self) -> None:
        past = UtcDatetime(value=T0.value - timedelta(days=1))
        assert isinstance(validate_terms(1, 2, past, T0, "t"), Err)


class TestPosition:
    def test_rejects_inverted_strikes(self) -> None:
        with pytest.raises(TypeError):
            Position(
                position_id=0, strike_low=2, strike_high=1, expiry=EXPIRY,
                collateral=Decimal(1), seller=SELLER, owner=SELLER,
                metadata_uri="", created_at=T0,
            )

    def test_is_expired_strictly_after(self) -> None:
        p = unwrap(_ledger_with().get(0))
        assert not p.is_expired(EXPIRY)
        assert p.is_expired(UtcDatetime(value=EXPIRY.value + timedelta(seconds=1)))


class TestCreate:
    def test_ids_are_sequential(self) -> None:
        ledger = _ledger_with(3)
        assert list(ledger.ids()) == [0, 1, 2]
        assert ledger.count() == 3

    def test_new_position_owned_by_creator(self) -> None:
        p = unwrap(_ledger_with().get(0))
        assert p.owner == SELLER
        assert p.seller == SELLER
        assert p.buyer is None
        assert not p.exercised

    def test_invalid_terms_allocate_nothing(self) -> None:
        ledger = PositionLedger()
        result = ledger.create(5, 5, EXPIRY, Decimal(1), "", SELLER, T0)
        assert isinstance(result, Err)
        assert ledger.next_id == 0

    def test_reserved_id_is_invisible_until_created(self) -> None:
        ledger = PositionLedger()
        pid = ledger.reserve_id()
        assert isinstance(ledger.get(pid), Err)
        assert list(ledger.ids()) == []
        p = unwrap(ledger.create(
            1, 2, EXPIRY, Decimal(1), "", SELLER, T0, reserved_id=pid,
        ))
        assert p.position_id == pid
        assert list(ledger.ids()) == [pid]

    def test_abandoned_reservation_is_not_reused(self) -> None:
        ledger = PositionLedger()
        ledger.reserve_id()
        p = unwrap(ledger.create(1, 2, EXPIRY, Decimal(1), "", SELLER, T0))
        assert p.position_id == 1
        assert list(ledger.ids()) == [1]

    def test_unreserved_id_refused(self) -> None:
        ledger = _ledger_with(1)
        with pytest.raises(ValueError):
            ledger.create(1, 2, EXPIRY, Decimal(1), "", SELLER, T0, reserved_id=0)
        with pytest.raises(ValueError):
            ledger.create(1, 2, EXPIRY, Decimal(1), "", SELLER, T0, reserved_id=5)


class TestTransferOwnership:
    def test_owner_may_transfer(self) -> None:
        ledger = _ledger_with()
        unwrap(ledger.transfer_ownership(0, OTHER, SELLER, T0))
        assert unwrap(ledger.owner_of(0)) == OTHER

    def test_stranger_may_not(self) -> None:
        ledger = _ledger_with()
        result = ledger.transfer_ownership(0, OTHER, OTHER, T0)
        assert isinstance(result, Err)
        assert isinstance(result.error, UnauthorizedError)
        assert unwrap(ledger.owner_of(0)) == SELLER

    def test_operator_registry(self) -> None:
        ledger = PositionLedger()
        assert not ledger.is_operator(_ENGINE)
        ledger.approve_operator(_ENGINE)
        assert ledger.is_operator(_ENGINE)
        assert not ledger.is_operator(SELLER)

    def test_operator_may_transfer(self) -> None:
        ledger = _ledger_with()
        ledger.approve_operator(_ENGINE)
        unwrap(ledger.transfer_ownership(0, OTHER, _ENGINE, T0))
        assert unwrap(ledger.owner_of(0)) == OTHER

    def test_unknown_position(self) -> None:
        result = PositionLedger().transfer_ownership(7, OTHER, SELLER, T0)
        assert isinstance(result, Err)
        assert isinstance(result.error, UnknownPositionError)


class TestMarkExercised:
    def test_second_mark_fails(self) -> None:
        ledger = _ledger_with()
        unwrap(ledger.mark_exercised(0, T0))
        result = ledger.mark_exercised(0, T0)
        assert isinstance(result, Err)
        assert isinstance(result.error, AlreadyExercisedError)


class TestIds:
    def test_start_cursor(self) -> None:
        assert list(_ledger_with(5).ids(3)) == [3, 4]

    def test_start_beyond_end(self) -> None:
        assert list(_ledger_with(2).ids(10)) == []

    def test_is_lazy(self) -> None:
        ledger = _ledger_with(3)
        it = ledger.ids()
        assert next(it) == 0


class TestReinstate:
    def test_undoes_exercise_of_one_position(self) -> None:
        ledger = _ledger_with(1)
        before = unwrap(ledger.get(0))
        unwrap(ledger.mark_exercised(0, T0))
        unwrap(ledger.create(1, 2, EXPIRY, Decimal(1), "", SELLER, T0))
        ledger.reinstate(before)
        assert not unwrap(ledger.get(0)).exercised
        assert ledger.count() == 2
        assert ledger.next_id == 2

    def test_unknown_position_refused(self) -> None:
        before = unwrap(_ledger_with(1).get(0))
        with pytest.raises(ValueError):
            PositionLedger().reinstate(before)
