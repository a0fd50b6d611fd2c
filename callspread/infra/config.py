"""Settlement, keeper and Temporal configuration.

Pure configuration data. Defaults reproduce the reference deployment:
an 18-decimal stablecoin as collateral, 1000 quote-currency units of payoff
per collateral unit, keeper batches of at most 10 exercises and a check
budget of 2,000,000 cost units.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import final

from callspread.core.errors import FieldViolation, ValidationError
from callspread.core.result import Err, Ok
from callspread.core.types import UtcDatetime

DEFAULT_ENGINE_ADDRESS: str = "callspread-engine"
DEFAULT_TASK_QUEUE: str = "callspread-keeper"
EVENTS_TOPIC: str = "callspread.events"


def _config_err(source: str, violations: list[FieldViolation]) -> Err[ValidationError]:
    return Err(ValidationError(
        message=f"Invalid configuration: {', '.join(v.path for v in violations)}",
        code="INVALID_CONFIG",
        timestamp=UtcDatetime.now(),
        source=source,
        fields=tuple(violations),
    ))


@final
@dataclass(frozen=True, slots=True)
class SettlementConfig:
    """How payoffs convert from oracle price units into collateral units.

    payoff_in_collateral = raw_payoff / 10**price_decimals / quote_per_collateral_unit
    """

    collateral_decimals: int = 18
    quote_per_collateral_unit: Decimal = Decimal(1000)
    engine_address: str = DEFAULT_ENGINE_ADDRESS

    @staticmethod
    def create(
        collateral_decimals: int = 18,
        quote_per_collateral_unit: Decimal = Decimal(1000),
        engine_address: str = DEFAULT_ENGINE_ADDRESS,
    ) -> Ok[SettlementConfig] | Err[ValidationError]:
        violations: list[FieldViolation] = []
        if not 0 <= collateral_decimals <= 36:
            violations.append(FieldViolation(
                "collateral_decimals", "must be in [0, 36]", str(collateral_decimals),
            ))
        if (
            not isinstance(quote_per_collateral_unit, Decimal)
            or not quote_per_collateral_unit.is_finite()
            or quote_per_collateral_unit <= 0
        ):
            violations.append(FieldViolation(
                "quote_per_collateral_unit", "must be positive finite Decimal",
                str(quote_per_collateral_unit),
            ))
        if not engine_address:
            violations.append(FieldViolation("engine_address", "must be non-empty", ""))
        if violations:
            return _config_err("infra.config.SettlementConfig.create", violations)
        return Ok(SettlementConfig(
            collateral_decimals=collateral_decimals,
            quote_per_collateral_unit=quote_per_collateral_unit,
            engine_address=engine_address,
        ))


@final
@dataclass(frozen=True, slots=True)
class KeeperConfig:
    """Per-invocation work bounds for the keeper.

    A scan inspects at most check_cost_limit // scan_cost_per_position
    positions; a run exercises at most max_batch_size of them.
    """

    max_batch_size: int = 10
    check_cost_limit: int = 2_000_000
    scan_cost_per_position: int = 20_000

    @property
    def max_inspections(self) -> int:
        return self.check_cost_limit // self.scan_cost_per_position

    @staticmethod
    def create(
        max_batch_size: int = 10,
        check_cost_limit: int = 2_000_000,
        scan_cost_per_position: int = 20_000,
    ) -> Ok[KeeperConfig] | Err[ValidationError]:
        violations: list[FieldViolation] = []
        if max_batch_size < 1:
            violations.append(FieldViolation(
                "max_batch_size", "must be >= 1", str(max_batch_size),
            ))
        if scan_cost_per_position < 1:
            violations.append(FieldViolation(
                "scan_cost_per_position", "must be >= 1", str(scan_cost_per_position),
            ))
        elif check_cost_limit < scan_cost_per_position:
            violations.append(FieldViolation(
                "check_cost_limit", "must cover at least one position",
                str(check_cost_limit),
            ))
        if violations:
            return _config_err("infra.config.KeeperConfig.create", violations)
        return Ok(KeeperConfig(
            max_batch_size=max_batch_size,
            check_cost_limit=check_cost_limit,
            scan_cost_per_position=scan_cost_per_position,
        ))


@final
@dataclass(frozen=True, slots=True)
class TemporalConfig:
    """Connection and scheduling settings for the keeper worker."""

    target_host: str = "localhost:7233"
    namespace: str = "default"
    task_queue: str = DEFAULT_TASK_QUEUE
    upkeep_interval: timedelta = timedelta(hours=1)
    max_rounds: int = 24

    @staticmethod
    def create(
        target_host: str = "localhost:7233",
        namespace: str = "default",
        task_queue: str = DEFAULT_TASK_QUEUE,
        upkeep_interval: timedelta = timedelta(hours=1),
        max_rounds: int = 24,
    ) -> Ok[TemporalConfig] | Err[ValidationError]:
        violations: list[FieldViolation] = []
        for path, value in (
            ("target_host", target_host), ("namespace", namespace), ("task_queue", task_queue),
        ):
            if not value:
                violations.append(FieldViolation(path, "must be non-empty", ""))
        if upkeep_interval <= timedelta(0):
            violations.append(FieldViolation(
                "upkeep_interval", "must be positive", str(upkeep_interval),
            ))
        if max_rounds < 1:
            violations.append(FieldViolation("max_rounds", "must be >= 1", str(max_rounds)))
        if violations:
            return _config_err("infra.config.TemporalConfig.create", violations)
        return Ok(TemporalConfig(
            target_host=target_host,
            namespace=namespace,
            task_queue=task_queue,
            upkeep_interval=upkeep_interval,
            max_rounds=max_rounds,
        ))
