"""Workflow data types for the keeper upkeep workflow.

Activity inputs/outputs and the workflow's own input/result.
All types: @final @dataclass(frozen=True, slots=True).
Activity outputs carry an optional error string instead of raising, so a
rejected payload is recorded in workflow history rather than retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import final


@final
@dataclass(frozen=True, slots=True)
class UpkeepCheckInput:
    cursor: int = 0


@final
@dataclass(frozen=True, slots=True)
class UpkeepCheckOutput:
    """Result of a read-only scan. perform_data is canonical {"ids": [...]}."""

    upkeep_needed: bool
    perform_data: bytes
    next_cursor: int | None = None


@final
@dataclass(frozen=True, slots=True)
class UpkeepPerformInput:
    perform_data: bytes


@final
@dataclass(frozen=True, slots=True)
class UpkeepFailure:
    position_id: int
    code: str
    message: str


@final
@dataclass(frozen=True, slots=True)
class UpkeepPerformOutput:
    succeeded: tuple[int, ...] = ()
    failed: tuple[UpkeepFailure, ...] = ()
    error: str | None = None


@final
@dataclass(frozen=True, slots=True)
class KeeperWorkflowInput:
    """Workflow entry point. One run performs at most max_rounds upkeeps."""

    max_rounds: int = 24
    upkeep_interval: timedelta = timedelta(hours=1)

    def __post_init__(self) -> None:
        if self.max_rounds < 1:
            raise TypeError(
                f"KeeperWorkflowInput.max_rounds must be >= 1, got {self.max_rounds}"
            )
        if self.upkeep_interval <= timedelta(0):
            raise TypeError("KeeperWorkflowInput.upkeep_interval must be positive")


@final
@dataclass(frozen=True, slots=True)
class KeeperRunResult:
    rounds_completed: int
    exercised: tuple[int, ...]
    failures: tuple[UpkeepFailure, ...]
    rejected_payloads: int = 0
