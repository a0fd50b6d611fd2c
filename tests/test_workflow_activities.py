"""Tests for callspread.workflow.activities via Temporal's ActivityEnvironment."""

from __future__ import annotations

import json
from decimal import Decimal

import pytest
from conftest import E8, Market, keeper_config
from temporalio.testing import ActivityEnvironment

from callspread.keeper.automation import KeeperAutomation
from callspread.workflow.activities import KeeperActivities
from callspread.workflow.types import UpkeepCheckInput, UpkeepPerformInput


def _activities(n: int, inspections: int = 100) -> tuple[KeeperActivities, Market]:
    m = Market(price=28_000 * E8)
    for _ in range(n):
        m.create(collateral=Decimal(5))
    m.expire()
    keeper = KeeperAutomation(m.engine, keeper_config(max_batch_size=10, inspections=inspections))
    return KeeperActivities(keeper), m


@pytest.mark.asyncio
async def test_check_upkeep_reports_page() -> None:
    acts, _ = _activities(3, inspections=2)
    out = await ActivityEnvironment().run(acts.check_upkeep, UpkeepCheckInput(cursor=0))
    assert out.upkeep_needed
    assert json.loads(out.perform_data) == {"ids": [0, 1]}
    assert out.next_cursor == 2


@pytest.mark.asyncio
async def test_check_upkeep_without_work() -> None:
    acts, _ = _activities(0)
    out = await ActivityEnvironment().run(acts.check_upkeep, UpkeepCheckInput())
    assert not out.upkeep_needed
    assert out.next_cursor is None


@pytest.mark.asyncio
async def test_perform_upkeep_exercises() -> None:
    acts, m = _activities(2)
    env = ActivityEnvironment()
    check = await env.run(acts.check_upkeep, UpkeepCheckInput())
    out = await env.run(acts.perform_upkeep, UpkeepPerformInput(perform_data=check.perform_data))
    assert out.error is None
    assert out.succeeded == (0, 1)
    assert m.token.balance_of(m.engine.address) == 0


@pytest.mark.asyncio
async def test_perform_upkeep_retry_is_harmless() -> None:
    acts, _ = _activities(1)
    env = ActivityEnvironment()
    inp = UpkeepPerformInput(perform_data=b'{"ids":[0]}')
    await env.run(acts.perform_upkeep, inp)
    again = await env.run(acts.perform_upkeep, inp)
    assert again.succeeded == ()
    assert [f.code for f in again.failed] == ["ALREADY_EXERCISED"]


@pytest.mark.asyncio
async def test_perform_upkeep_malformed_payload() -> None:
    acts, _ = _activities(1)
    out = await ActivityEnvironment().run(
        acts.perform_upkeep, UpkeepPerformInput(perform_data=b"{oops"),
    )
    assert out.error is not None
    assert "Malformed" in out.error
