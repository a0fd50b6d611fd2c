"""Activity implementations for the keeper upkeep workflow.

Activities are thin IO wrappers around a KeeperAutomation. All settlement
logic lives in the engine; the activity only translates between Temporal's
frozen-dataclass inputs/outputs and the automation's pull interface.

Each activity:
- Is decorated with @activity.defn
- Takes a single frozen-dataclass input
- Returns a frozen-dataclass output (with optional error field)
- Is safe to retry (exercise is idempotent per id)
"""

from __future__ import annotations

from temporalio import activity

from callspread.core.result import Err, Ok
from callspread.keeper.automation import KeeperAutomation, encode_perform_data
from callspread.workflow.types import (
    UpkeepCheckInput,
    UpkeepCheckOutput,
    UpkeepFailure,
    UpkeepPerformInput,
    UpkeepPerformOutput,
)


class KeeperActivities:
    """Activities bound to one KeeperAutomation instance.

    Register the bound methods with a worker:
    ``activities=[acts.check_upkeep, acts.perform_upkeep]``.
    """

    def __init__(self, automation: KeeperAutomation) -> None:
        self._automation = automation

    @property
    def automation(self) -> KeeperAutomation:
        return self._automation

    @activity.defn(name="check_upkeep")
    async def check_upkeep(self, inp: UpkeepCheckInput) -> UpkeepCheckOutput:
        """Scan one bounded page starting at inp.cursor.

        Timeout: 30s | Retries: 3
        Idempotent: yes (read-only)
        """
        page = self._automation.scan(self._automation.config.max_batch_size, inp.cursor)
        activity.logger.info(
            "Upkeep check from cursor %d: %d eligible of %d inspected",
            inp.cursor, len(page.ids), page.inspected,
        )
        return UpkeepCheckOutput(
            upkeep_needed=bool(page.ids),
            perform_data=encode_perform_data(page.ids),
            next_cursor=page.next_cursor,
        )

    @activity.defn(name="perform_upkeep")
    async def perform_upkeep(self, inp: UpkeepPerformInput) -> UpkeepPerformOutput:
        """Exercise the ids named in perform_data.

        Timeout: 2min | Retries: 3
        Idempotent: yes (a repeated id fails with ALREADY_EXERCISED)
        """
        match self._automation.perform_upkeep(inp.perform_data):
            case Err(error):
                activity.logger.warning("Upkeep payload rejected: %s", error.message)
                return UpkeepPerformOutput(error=error.message)
            case Ok(report):
                pass
        activity.logger.info(
            "Upkeep performed: %d exercised, %d failed",
            len(report.succeeded), len(report.failed),
        )
        return UpkeepPerformOutput(
            succeeded=report.succeeded,
            failed=tuple(
                UpkeepFailure(position_id=f.position_id, code=f.code, message=f.message)
                for f in report.failed
            ),
        )
