"""Durable keeper workflow: periodic check -> perform upkeep rounds.

Each round scans one bounded page from the current cursor, exercises what
it found, then sleeps for upkeep_interval. The cursor wraps to 0 once the id
space is exhausted. A run ends after max_rounds rounds; schedule a new run
(or continue-as-new from the caller) to keep the keeper going.

Determinism contract: this module contains NO I/O, NO randomness, NO system
clock access. All interaction with the engine goes through activities.
"""

from __future__ import annotations

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from callspread.workflow.activities import KeeperActivities
    from callspread.workflow.types import (
        KeeperRunResult,
        KeeperWorkflowInput,
        UpkeepCheckInput,
        UpkeepFailure,
        UpkeepPerformInput,
    )

CHECK_RETRY = RetryPolicy(
    initial_interval=timedelta(seconds=2),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=30),
    maximum_attempts=3,
)

PERFORM_RETRY = RetryPolicy(
    initial_interval=timedelta(seconds=5),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=60),
    maximum_attempts=3,
)


@workflow.defn(name="KeeperUpkeep")
class KeeperUpkeepWorkflow:
    """Bounded sequence of upkeep rounds.

    Invariants maintained:
    - At most max_rounds rounds per run (termination)
    - Every perform is preceded by a check in the same round
    - Per-id failures are accumulated, never abort the run
    """

    def __init__(self) -> None:
        self._status: str = "STARTING"
        self._rounds_completed: int = 0

    # -- Queries --

    @workflow.query
    def get_status(self) -> str:
        return self._status

    @workflow.query
    def get_rounds_completed(self) -> int:
        return self._rounds_completed

    # -- Main workflow --

    @workflow.run
    async def run(self, inp: KeeperWorkflowInput) -> KeeperRunResult:
        exercised: list[int] = []
        failures: list[UpkeepFailure] = []
        rejected = 0
        cursor = 0

        while self._rounds_completed < inp.max_rounds:
            self._status = "CHECKING"
            check = await workflow.execute_activity_method(
                KeeperActivities.check_upkeep,
                UpkeepCheckInput(cursor=cursor),
                start_to_close_timeout=timedelta(seconds=30),
                retry_policy=CHECK_RETRY,
            )
            if check.upkeep_needed:
                self._status = "PERFORMING"
                performed = await workflow.execute_activity_method(
                    KeeperActivities.perform_upkeep,
                    UpkeepPerformInput(perform_data=check.perform_data),
                    start_to_close_timeout=timedelta(minutes=2),
                    retry_policy=PERFORM_RETRY,
                )
                if performed.error is not None:
                    rejected += 1
                    workflow.logger.warning("Upkeep rejected: %s", performed.error)
                exercised.extend(performed.succeeded)
                failures.extend(performed.failed)
            cursor = check.next_cursor if check.next_cursor is not None else 0
            self._rounds_completed += 1

            if self._rounds_completed < inp.max_rounds:
                self._status = "SLEEPING"
                await workflow.sleep(inp.upkeep_interval)

        self._status = "COMPLETED"
        workflow.logger.info(
            "Keeper run finished after %d rounds: %d exercised, %d failures",
            self._rounds_completed, len(exercised), len(failures),
        )
        return KeeperRunResult(
            rounds_completed=self._rounds_completed,
            exercised=tuple(exercised),
            failures=tuple(failures),
            rejected_payloads=rejected,
        )
