"""Tests for the asyncio scan plan service."""

from __future__ import annotations

import asyncio
import logging

import pytest

from tablewire.catalog import TableIdentifier
from tablewire.errors import InvalidResponseError, NoSuchPlanError, NoSuchPlanTaskError
from tablewire.planning import ScanPlanService
from tablewire.scan import (
    FetchPlanningResultResponse,
    PlanResult,
    PlanStatus,
    PlanTableScanRequest,
)

from tests.samples import EQUALITY_DELETES, FILE_SCAN_TASK, POSITION_DELETES
from tests.utils import ServiceFactory, retry_until

TABLE = TableIdentifier.parse("db.t")
REQUEST = PlanTableScanRequest(select=("id",))
RESULT = PlanResult(
    file_scan_tasks=(FILE_SCAN_TASK,),
    delete_files=(POSITION_DELETES, EQUALITY_DELETES),
)
INVALID_RESULT = PlanResult(delete_files=(POSITION_DELETES,))


class GatedPlanner:
    """Planner that blocks until released, then returns or raises."""

    def __init__(self, result: PlanResult = RESULT, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.release = asyncio.Event()
        self.calls: list[tuple[TableIdentifier, PlanTableScanRequest]] = []
        self.cancelled = False

    async def __call__(self, table: TableIdentifier, request: PlanTableScanRequest) -> PlanResult:
        self.calls.append((table, request))
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.result


async def instant_planner(table: TableIdentifier, request: PlanTableScanRequest) -> PlanResult:
    return RESULT


async def _settled(service: ScanPlanService, plan_id: str) -> FetchPlanningResultResponse:
    async def terminal() -> bool:
        return (await service.fetch(plan_id)).status is not PlanStatus.submitted

    await retry_until(terminal, message=f"plan {plan_id} never settled")
    return await service.fetch(plan_id)


# =============================================================================
# Fast path
# =============================================================================


class TestFastPath:
    async def test_completed_inline(self, make_service: ServiceFactory) -> None:
        service = make_service(instant_planner, sync_timeout=1.0)
        response = await service.plan(TABLE, REQUEST)
        assert response.status is PlanStatus.completed
        assert response.plan_id is None
        assert response.file_scan_tasks == RESULT.file_scan_tasks
        assert response.delete_files == RESULT.delete_files
        assert len(service) == 0

    async def test_failed_inline(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner(error=RuntimeError("metadata unavailable"))
        planner.release.set()
        service = make_service(planner, sync_timeout=1.0)
        response = await service.plan(TABLE, REQUEST)
        assert response.status is PlanStatus.failed
        assert response.error is not None
        assert response.error.type == "RuntimeError"
        assert response.error.message == "metadata unavailable"
        assert response.error.code == 500

    async def test_invalid_result_is_logged_and_raised(
        self, make_service: ServiceFactory, caplog: pytest.LogCaptureFixture
    ) -> None:
        async def planner(table: TableIdentifier, request: PlanTableScanRequest) -> PlanResult:
            return INVALID_RESULT

        service = make_service(planner, sync_timeout=1.0)
        with caplog.at_level(logging.ERROR, logger="tablewire.planning"):
            with pytest.raises(InvalidResponseError, match="deleteFiles"):
                await service.plan(TABLE, REQUEST)
        assert "invalid result" in caplog.text

    async def test_planner_receives_table_and_request(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        planner.release.set()
        service = make_service(planner, sync_timeout=1.0)
        await service.plan(TABLE, REQUEST)
        assert planner.calls == [(TABLE, REQUEST)]


# =============================================================================
# Deferred path
# =============================================================================


class TestDeferredPath:
    async def test_submitted_then_completed(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.status is PlanStatus.submitted
        assert response.plan_id is not None
        assert response.plan_id.startswith("plan-")
        assert response.plan_id in service

        assert (await service.fetch(response.plan_id)).status is PlanStatus.submitted

        planner.release.set()
        result = await _settled(service, response.plan_id)
        assert result.status is PlanStatus.completed
        assert result.file_scan_tasks == RESULT.file_scan_tasks

    async def test_zero_timeout_always_defers(self, make_service: ServiceFactory) -> None:
        service = make_service(instant_planner, sync_timeout=0)
        response = await service.plan(TABLE, REQUEST)
        assert response.status is PlanStatus.submitted
        assert response.plan_id is not None
        assert (await _settled(service, response.plan_id)).status is PlanStatus.completed

    async def test_plan_id_prefix(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01, plan_id_prefix="scan-")
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        assert response.plan_id.startswith("scan-")

    async def test_plan_ids_are_unique(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01)
        first = await service.plan(TABLE, REQUEST)
        second = await service.plan(TABLE, REQUEST)
        assert first.plan_id != second.plan_id
        assert len(service) == 2

    async def test_planner_failure(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner(error=ValueError("bad filter"))
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        planner.release.set()
        result = await _settled(service, response.plan_id)
        assert result.status is PlanStatus.failed
        assert result.error is not None
        assert result.error.type == "ValueError"

    async def test_invalid_result_fails_plan(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner(result=INVALID_RESULT)
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        plan_id = response.plan_id
        planner.release.set()

        async def settled() -> bool:
            try:
                return (await service.fetch(plan_id)).status is not PlanStatus.submitted
            except InvalidResponseError:
                return True

        await retry_until(settled)
        result = await service.fetch(plan_id)
        assert result.status is PlanStatus.failed
        assert result.error is not None
        assert result.error.type == "InvalidResponseError"

    async def test_unknown_plan(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01)
        with pytest.raises(NoSuchPlanError, match="plan-missing"):
            await service.fetch("plan-missing")
        with pytest.raises(NoSuchPlanError):
            await service.cancel("plan-missing")


# =============================================================================
# Idempotent polls and cancellation
# =============================================================================


class TestPollAndCancel:
    async def test_completed_poll_returns_identical_response(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        planner.release.set()
        first = await _settled(service, response.plan_id)
        second = await service.fetch(response.plan_id)
        assert first is second

    async def test_cancel_submitted_plan(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None

        assert await service.cancel(response.plan_id) is PlanStatus.cancelled
        await retry_until(lambda: planner.cancelled)

    async def test_cancelled_poll_is_idempotent(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        await service.cancel(response.plan_id)

        first = await service.fetch(response.plan_id)
        second = await service.fetch(response.plan_id)
        assert first.status is PlanStatus.cancelled
        assert first is second

    async def test_cancel_terminal_plan_is_noop(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        planner.release.set()
        completed = await _settled(service, response.plan_id)

        assert await service.cancel(response.plan_id) is PlanStatus.completed
        assert await service.fetch(response.plan_id) is completed

    async def test_cancel_twice(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        statuses = await asyncio.gather(
            service.cancel(response.plan_id), service.cancel(response.plan_id)
        )
        assert statuses == [PlanStatus.cancelled, PlanStatus.cancelled]

    async def test_cancel_racing_completion_keeps_first_terminal_status(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None

        # released but not yet run: the cancel takes the lock first
        planner.release.set()
        assert await service.cancel(response.plan_id) is PlanStatus.cancelled
        await asyncio.sleep(0.02)
        assert (await service.fetch(response.plan_id)).status is PlanStatus.cancelled

    async def test_cancelled_caller_cancels_planner(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        service = make_service(planner, sync_timeout=5.0)
        caller = asyncio.create_task(service.plan(TABLE, REQUEST))
        await retry_until(lambda: bool(planner.calls))

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await retry_until(lambda: planner.cancelled)
        assert len(service) == 0

    async def test_terminal_plan_rejects_further_transitions(
        self, make_service: ServiceFactory
    ) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        await service.cancel(response.plan_id)

        plan = service._plans[response.plan_id]
        with pytest.raises(InvalidResponseError, match="cannot move from cancelled"):
            service._finish(plan, FetchPlanningResultResponse(PlanStatus.failed))
        assert (await service.fetch(response.plan_id)).status is PlanStatus.cancelled

    async def test_plans_do_not_share_locks(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01)
        first = await service.plan(TABLE, REQUEST)
        second = await service.plan(TABLE, REQUEST)
        assert first.plan_id is not None
        assert second.plan_id is not None
        assert service._plans[first.plan_id].lock is not service._plans[second.plan_id].lock


# =============================================================================
# Retention and shutdown
# =============================================================================


class TestRetention:
    async def test_terminal_plans_are_purged(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01, retention_seconds=0)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        await service.cancel(response.plan_id)
        await asyncio.sleep(0.02)
        with pytest.raises(NoSuchPlanError):
            await service.fetch(response.plan_id)
        assert len(service) == 0

    async def test_submitted_plans_are_kept(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01, retention_seconds=0)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        await asyncio.sleep(0.02)
        assert (await service.fetch(response.plan_id)).status is PlanStatus.submitted

    async def test_terminal_plans_are_kept_within_retention(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01, retention_seconds=60)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        await service.cancel(response.plan_id)
        await asyncio.sleep(0.02)
        assert (await service.fetch(response.plan_id)).status is PlanStatus.cancelled


class TestClose:
    async def test_close_cancels_outstanding_planners(self, make_service: ServiceFactory) -> None:
        planner = GatedPlanner()
        service = make_service(planner, sync_timeout=0.01)
        response = await service.plan(TABLE, REQUEST)
        assert response.plan_id is not None
        await service.close()
        assert planner.cancelled
        assert len(service) == 0

    async def test_plan_after_close(self, make_service: ServiceFactory) -> None:
        service = make_service(GatedPlanner(), sync_timeout=0.01)
        await service.close()
        with pytest.raises(RuntimeError, match="closed"):
            await service.plan(TABLE, REQUEST)


# =============================================================================
# Fetch tasks
# =============================================================================


class TestFetchTasks:
    async def test_resolves_plan_task(self, make_service: ServiceFactory) -> None:
        tasks = {"task-1": RESULT}

        async def resolver(plan_task: str) -> PlanResult | None:
            return tasks.get(plan_task)

        service = make_service(instant_planner, task_resolver=resolver)
        response = await service.fetch_tasks("task-1")
        assert response.file_scan_tasks == RESULT.file_scan_tasks
        assert response.delete_files == RESULT.delete_files

    async def test_unknown_plan_task(self, make_service: ServiceFactory) -> None:
        async def resolver(plan_task: str) -> PlanResult | None:
            return None

        service = make_service(instant_planner, task_resolver=resolver)
        with pytest.raises(NoSuchPlanTaskError, match="task-9"):
            await service.fetch_tasks("task-9")

    async def test_no_resolver(self, make_service: ServiceFactory) -> None:
        service = make_service(instant_planner)
        with pytest.raises(NoSuchPlanTaskError):
            await service.fetch_tasks("task-1")

    async def test_invalid_resolved_result(self, make_service: ServiceFactory) -> None:
        async def resolver(plan_task: str) -> PlanResult | None:
            return PlanResult()

        service = make_service(instant_planner, task_resolver=resolver)
        with pytest.raises(InvalidResponseError, match="can not both be null"):
            await service.fetch_tasks("task-1")
