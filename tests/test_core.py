"""Tests for callspread.core -- Result, errors, types, money, serialization."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from conftest import T0
from hypothesis import given
from hypothesis import strategies as st

from callspread.core.errors import (
    AlreadyExercisedError,
    CallSpreadError,
    FieldViolation,
    InsufficientAllowanceError,
    ValidationError,
)
from callspread.core.money import (
    PositiveDecimal,
    is_representable,
    quantize_down,
    unit_quantizer,
)
from callspread.core.result import Err, Ok, map_result, unwrap
from callspread.core.serialization import canonical_bytes, content_hash
from callspread.core.types import Address, UtcDatetime


class TestResult:
    def test_map_and_bind(self) -> None:
        assert Ok(2).map(lambda x: x + 1) == Ok(3)
        assert Ok(2).bind(lambda x: Err(f"bad {x}")) == Err("bad 2")
        assert Err("e").map(lambda x: x + 1) == Err("e")

    def test_unwrap(self) -> None:
        assert unwrap(Ok(1)) == 1
        with pytest.raises(RuntimeError):
            unwrap(Err("boom"))

    def test_unwrap_or(self) -> None:
        assert Err("e").unwrap_or(5) == 5
        assert Ok(1).unwrap_or(5) == 1

    def test_and_then_and_map_err(self) -> None:
        assert Ok(2).and_then(lambda x: Ok(x * 2)) == Ok(4)
        assert Err("e").and_then(lambda x: Ok(x)) == Err("e")
        assert Err("e").map_err(str.upper) == Err("E")
        assert Ok(1).map_err(str.upper) == Ok(1)

    def test_map_result(self) -> None:
        assert map_result(Ok(3), str) == Ok("3")


class TestErrors:
    def test_to_dict_includes_subclass_fields(self) -> None:
        err = AlreadyExercisedError(
            message="done", code="ALREADY_EXERCISED", timestamp=T0,
            source="t", position_id=7,
        )
        d = err.to_dict()
        assert d["position_id"] == 7
        assert d["code"] == "ALREADY_EXERCISED"

    def test_validation_fields(self) -> None:
        err = ValidationError(
            message="m", code="C", timestamp=T0, source="s",
            fields=(FieldViolation("a", "b", "c"),),
        )
        assert err.to_dict()["fields"] == [
            {"path": "a", "constraint": "b", "actual_value": "c"},
        ]

    def test_with_context(self) -> None:
        err = InsufficientAllowanceError(
            message="low", code="INSUFFICIENT_ALLOWANCE", timestamp=T0, source="s",
            holder="a", spender="b", required="2", available="1",
        )
        wrapped = err.with_context("escrow")
        assert wrapped.message == "escrow: low"
        assert isinstance(wrapped, InsufficientAllowanceError)

    def test_subclasses_share_base(self) -> None:
        assert issubclass(AlreadyExercisedError, CallSpreadError)


class TestTypes:
    def test_naive_datetime_rejected(self) -> None:
        with pytest.raises(TypeError):
            UtcDatetime(value=datetime(2025, 1, 1))  # noqa: DTZ001
        assert isinstance(UtcDatetime.parse(datetime(2025, 1, 1)), Err)  # noqa: DTZ001

    def test_ordering(self) -> None:
        later = UtcDatetime(value=T0.value + timedelta(seconds=1))
        assert T0 < later
        assert T0 <= T0
        assert later > T0

    def test_timestamp_round_trip(self) -> None:
        assert UtcDatetime.from_timestamp(T0.timestamp()) == T0

    def test_address_normalises_hex(self) -> None:
        assert unwrap(Address.parse(" 0xAbC ")) == Address(value="0xabc")

    def test_address_rejects_empty(self) -> None:
        assert isinstance(Address.parse("  "), Err)
        with pytest.raises(TypeError):
            Address(value="")


class TestMoney:
    def test_positive_decimal(self) -> None:
        assert isinstance(PositiveDecimal.parse(Decimal(0)), Err)
        assert isinstance(PositiveDecimal.parse(Decimal("Infinity")), Err)
        assert unwrap(PositiveDecimal.parse(Decimal("0.1"))).value == Decimal("0.1")

    def test_quantize_down(self) -> None:
        assert quantize_down(Decimal("1.239"), 2) == Decimal("1.23")
        assert unit_quantizer(18) == Decimal("1e-18")

    def test_is_representable(self) -> None:
        assert is_representable(Decimal("1.5"), 1)
        assert not is_representable(Decimal("1.55"), 1)

    @given(st.decimals(min_value=0, max_value=10**9, places=20, allow_nan=False))
    def test_quantize_down_never_increases(self, amount: Decimal) -> None:
        assert quantize_down(amount, 18) <= amount


class TestSerialization:
    def test_key_order_is_canonical(self) -> None:
        assert unwrap(canonical_bytes({"b": 1, "a": 2})) == b'{"a":2,"b":1}'

    def test_decimal_normalised(self) -> None:
        assert unwrap(canonical_bytes(Decimal("3.000"))) == b'"3"'

    def test_naive_datetime_is_err(self) -> None:
        assert isinstance(canonical_bytes(datetime(2025, 1, 1)), Err)  # noqa: DTZ001

    def test_unsupported_type_is_err(self) -> None:
        assert isinstance(canonical_bytes(object()), Err)

    def test_content_hash_is_stable(self) -> None:
        a = unwrap(content_hash({"ids": [1, 2], "at": datetime(2025, 1, 1, tzinfo=UTC)}))
        b = unwrap(content_hash({"at": datetime(2025, 1, 1, tzinfo=UTC), "ids": [1, 2]}))
        assert a == b
        assert len(a) == 64
