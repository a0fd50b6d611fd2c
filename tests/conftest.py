"""Hypothesis strategies and shared builders for the callspread test suite.

Strikes and prices are 8-decimal fixed-point integers, as an oracle reports
them (27,000 USD -> 2_700_000_000_000).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from hypothesis import HealthCheck, settings
from hypothesis import strategies as st
from hypothesis.strategies import SearchStrategy

from callspread.core.result import unwrap
from callspread.core.types import Address, UtcDatetime
from callspread.infra.config import KeeperConfig, SettlementConfig
from callspread.infra.memory_adapter import (
    InMemoryCollateralToken,
    InMemoryPriceFeed,
    ManualClock,
)
from callspread.ledger.engine import SettlementEngine
from callspread.oracle.price_feed import PriceOracleAdapter

# ---------------------------------------------------------------------------
# Hypothesis global settings
# ---------------------------------------------------------------------------

settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)
settings.register_profile(
    "dev",
    max_examples=50,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)
settings.load_profile("dev")


# ===================================================================
# SCENARIO CONSTANTS
# ===================================================================

E8 = 10**8
STRIKE_LOW = 25_000 * E8
STRIKE_HIGH = 30_000 * E8
COLLATERAL = Decimal(100)
INITIAL_BALANCE = Decimal(1000)

T0 = UtcDatetime(value=datetime(2025, 6, 15, 12, 0, tzinfo=UTC))
EXPIRY = UtcDatetime(value=T0.value + timedelta(days=30))

SELLER = Address(value="0xseller")
BUYER = Address(value="0xbuyer")
OTHER = Address(value="0xother")


# ===================================================================
# STRATEGIES
# ===================================================================


def prices(max_value: int = 200_000 * E8) -> SearchStrategy[int]:
    """Positive 8-decimal prices."""
    return st.integers(min_value=1, max_value=max_value)


@st.composite
def strike_pairs(draw: st.DrawFn, max_value: int = 100_000 * E8) -> tuple[int, int]:
    """(strike_low, strike_high) with 0 < low < high."""
    low = draw(st.integers(min_value=1, max_value=max_value - 1))
    high = draw(st.integers(min_value=low + 1, max_value=max_value))
    return low, high


# ===================================================================
# BUILDERS
# ===================================================================


class Market:
    """Engine wired to in-memory collaborators, with funded seller and buyer."""

    def __init__(
        self,
        price: int = 27_000 * E8,
        settlement: SettlementConfig | None = None,
        token: InMemoryCollateralToken | None = None,
    ) -> None:
        self.clock = ManualClock(T0)
        self.token = token if token is not None else InMemoryCollateralToken()
        self.feed = InMemoryPriceFeed(decimals=8, initial_answer=price)
        self.oracle = PriceOracleAdapter(self.feed, self.clock)
        self.engine = SettlementEngine(
            self.token, self.oracle, clock=self.clock, config=settlement,
        )
        for party in (SELLER, BUYER):
            unwrap(self.token.mint(party, INITIAL_BALANCE))

    def approve(self, holder: Address = SELLER, amount: Decimal = INITIAL_BALANCE) -> None:
        unwrap(self.token.approve(holder, self.engine.address, amount))

    def create(
        self,
        strike_low: int = STRIKE_LOW,
        strike_high: int = STRIKE_HIGH,
        collateral: Decimal = COLLATERAL,
        expiry: UtcDatetime = EXPIRY,
        seller: Address = SELLER,
    ) -> int:
        self.approve(seller)
        return unwrap(self.engine.create_call_spread(
            seller, strike_low, strike_high, expiry, collateral, "ipfs://meta",
        ))

    def expire(self) -> None:
        self.clock.set(UtcDatetime(value=EXPIRY.value + timedelta(seconds=1)))


def keeper_config(max_batch_size: int = 10, inspections: int = 100) -> KeeperConfig:
    return unwrap(KeeperConfig.create(
        max_batch_size=max_batch_size,
        check_cost_limit=inspections * 20_000,
        scan_cost_per_position=20_000,
    ))
