"""Readiness of the keeper worker's settlement dependencies.

A keeper is only useful while the oracle yields a price and the engine's
collateral holding covers everything it has escrowed. Each dependency
reports a HealthStatus; readiness_check folds them into one verdict that
run_worker logs before it starts polling.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, final

from callspread.core.types import Address, UtcDatetime
from callspread.infra.protocols import CollateralToken


@final
@dataclass(frozen=True, slots=True)
class HealthStatus:
    """Status of a single dependency."""

    healthy: bool
    component: str
    message: str
    checked_at: UtcDatetime


@final
@dataclass(frozen=True, slots=True)
class SystemHealth:
    overall_healthy: bool
    checks: tuple[HealthStatus, ...]

    @property
    def failing(self) -> tuple[str, ...]:
        return tuple(c.component for c in self.checks if not c.healthy)


class HealthCheckable(Protocol):
    def health_check(self) -> HealthStatus: ...


def collateral_health(
    token: CollateralToken,
    custodian: Address,
    escrowed_total: Decimal,
    now: UtcDatetime,
) -> HealthStatus:
    """Healthy when the custodian's token balance covers every escrow record."""
    held = token.balance_of(custodian)
    if held < escrowed_total:
        return HealthStatus(
            healthy=False, component=f"collateral:{token.symbol}",
            message=f"custodian {custodian} holds {held}, escrow records total {escrowed_total}",
            checked_at=now,
        )
    return HealthStatus(
        healthy=True, component=f"collateral:{token.symbol}",
        message=f"holds {held} against {escrowed_total} escrowed",
        checked_at=now,
    )


def readiness_check(dependencies: tuple[HealthCheckable, ...]) -> SystemHealth:
    checks = tuple(dep.health_check() for dep in dependencies)
    return SystemHealth(
        overall_healthy=all(c.healthy for c in checks),
        checks=checks,
    )
