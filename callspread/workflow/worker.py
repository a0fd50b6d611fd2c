"""Worker configuration for the keeper upkeep workflow.

Starts a Temporal worker with the keeper workflow and the activities of
one KeeperAutomation registered on the configured task queue.

Usage::

    import asyncio
    from callspread.workflow.worker import run_worker

    asyncio.run(run_worker(KeeperActivities(automation)))
"""

from __future__ import annotations

import logging

from temporalio.client import Client, WorkflowHandle
from temporalio.worker import Worker

from callspread.infra.config import TemporalConfig
from callspread.workflow.activities import KeeperActivities
from callspread.workflow.converter import CALLSPREAD_DATA_CONVERTER
from callspread.workflow.keeper_workflow import KeeperUpkeepWorkflow
from callspread.workflow.types import KeeperRunResult, KeeperWorkflowInput

logger = logging.getLogger(__name__)


def build_worker(
    client: Client, activities: KeeperActivities, task_queue: str,
) -> Worker:
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[KeeperUpkeepWorkflow],
        activities=[activities.check_upkeep, activities.perform_upkeep],
    )


async def start_keeper_workflow(
    client: Client,
    config: TemporalConfig,
    workflow_id: str = "callspread-keeper",
) -> WorkflowHandle[KeeperUpkeepWorkflow, KeeperRunResult]:
    """Start one bounded keeper run using the configured schedule."""
    return await client.start_workflow(
        KeeperUpkeepWorkflow.run,
        KeeperWorkflowInput(
            max_rounds=config.max_rounds, upkeep_interval=config.upkeep_interval,
        ),
        id=workflow_id,
        task_queue=config.task_queue,
    )


async def run_worker(
    activities: KeeperActivities,
    config: TemporalConfig | None = None,
) -> None:
    """Connect to Temporal and run the worker until interrupted."""
    cfg = config if config is not None else TemporalConfig()
    health = activities.automation.readiness()
    for check in health.checks:
        if check.healthy:
            logger.info("%s ready: %s", check.component, check.message)
        else:
            logger.warning("%s not ready: %s", check.component, check.message)
    client = await Client.connect(
        cfg.target_host, namespace=cfg.namespace,
        data_converter=CALLSPREAD_DATA_CONVERTER,
    )
    await build_worker(client, activities, cfg.task_queue).run()
