"""Tests for callspread.ledger.vault -- per-position escrow."""

from __future__ import annotations

from decimal import Decimal

from conftest import BUYER, SELLER, T0

from callspread.core.errors import (
    CallSpreadError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InsufficientEscrowError,
)
from callspread.core.result import Err, Ok, unwrap
from callspread.core.types import Address
from callspread.infra.memory_adapter import InMemoryCollateralToken
from callspread.ledger.vault import CollateralVault

_VAULT = Address(value="vault")


def _vault(balance: Decimal = Decimal(1000)) -> tuple[CollateralVault, InMemoryCollateralToken]:
    token = InMemoryCollateralToken()
    unwrap(token.mint(SELLER, balance))
    unwrap(token.approve(SELLER, _VAULT, balance))
    return CollateralVault(token, _VAULT), token


class _RefusingToken:
    """Token whose outgoing transfers always fail."""

    def __init__(self, inner: InMemoryCollateralToken) -> None:
        self._inner = inner
        self.symbol = inner.symbol
        self.decimals = inner.decimals

    def balance_of(self, holder: Address) -> Decimal:
        return self._inner.balance_of(holder)

    def allowance(self, holder: Address, spender: Address) -> Decimal:
        return self._inner.allowance(holder, spender)

    def approve(self, holder: Address, spender: Address, amount: Decimal) -> Ok[None] | Err[CallSpreadError]:
        return self._inner.approve(holder, spender, amount)

    def transfer_from(
        self, spender: Address, source: Address, recipient: Address, amount: Decimal,
    ) -> Ok[None] | Err[CallSpreadError]:
        return self._inner.transfer_from(spender, source, recipient, amount)

    def transfer(self, sender: Address, recipient: Address, amount: Decimal) -> Ok[None] | Err[CallSpreadError]:
        return Err(CallSpreadError(
            message=f"transfer to {recipient} refused", code="REFUSED", timestamp=T0, source="test",
        ))


class TestEscrow:
    def test_moves_tokens_and_records(self) -> None:
        vault, token = _vault()
        unwrap(vault.escrow(0, SELLER, Decimal(100)))
        assert vault.escrowed(0) == Decimal(100)
        assert token.balance_of(_VAULT) == Decimal(100)
        assert token.balance_of(SELLER) == Decimal(900)

    def test_without_allowance(self) -> None:
        vault, token = _vault()
        unwrap(token.approve(SELLER, _VAULT, Decimal(0)))
        result = vault.escrow(0, SELLER, Decimal(100))
        assert isinstance(result, Err)
        assert isinstance(result.error, InsufficientAllowanceError)
        assert vault.escrowed(0) == 0

    def test_without_balance(self) -> None:
        vault, token = _vault(Decimal(50))
        unwrap(token.approve(SELLER, _VAULT, Decimal(100)))
        result = vault.escrow(0, SELLER, Decimal(100))
        assert isinstance(result, Err)
        assert isinstance(result.error, InsufficientBalanceError)
        assert token.balance_of(SELLER) == Decimal(50)


class TestRelease:
    def test_partial_release(self) -> None:
        vault, token = _vault()
        unwrap(vault.escrow(0, SELLER, Decimal(100)))
        unwrap(vault.release(0, BUYER, Decimal(3), T0))
        assert vault.escrowed(0) == Decimal(97)
        assert token.balance_of(BUYER) == Decimal(3)

    def test_zero_is_noop(self) -> None:
        vault, _ = _vault()
        assert isinstance(vault.release(0, BUYER, Decimal(0), T0), Ok)

    def test_cannot_exceed_position_escrow(self) -> None:
        vault, _ = _vault()
        unwrap(vault.escrow(0, SELLER, Decimal(100)))
        unwrap(vault.escrow(1, SELLER, Decimal(100)))
        result = vault.release(0, BUYER, Decimal(150), T0)
        assert isinstance(result, Err)
        assert isinstance(result.error, InsufficientEscrowError)
        assert vault.escrowed(0) == Decimal(100)

    def test_failed_transfer_restores_record(self) -> None:
        inner = InMemoryCollateralToken()
        unwrap(inner.mint(SELLER, Decimal(100)))
        unwrap(inner.approve(SELLER, _VAULT, Decimal(100)))
        vault = CollateralVault(_RefusingToken(inner), _VAULT)
        unwrap(vault.escrow(0, SELLER, Decimal(100)))
        assert isinstance(vault.release(0, BUYER, Decimal(10), T0), Err)
        assert vault.escrowed(0) == Decimal(100)

    def test_can_release(self) -> None:
        vault, _ = _vault()
        unwrap(vault.escrow(0, SELLER, Decimal(100)))
        assert vault.can_release(0, Decimal(100))
        assert not vault.can_release(0, Decimal("100.000000000000000001"))


class TestConservation:
    def test_total_matches_token_holding(self) -> None:
        vault, token = _vault()
        unwrap(vault.escrow(0, SELLER, Decimal(100)))
        unwrap(vault.escrow(1, SELLER, Decimal("12.5")))
        unwrap(vault.release(1, BUYER, Decimal("2.5"), T0))
        assert vault.total_escrowed() == token.balance_of(_VAULT) == Decimal(110)
