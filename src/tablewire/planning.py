"""Server-side scan plan service.

``ScanPlanService`` runs a planner coroutine per plan request and answers
the plan, poll and cancel calls of the scan-planning protocol. A planner
that finishes within ``sync_timeout`` is answered inline; a slower one is
parked behind an opaque plan id that clients poll.

Each plan has its own ``asyncio.Lock``. Whoever takes the lock first decides
the terminal status (completion, failure or cancellation), and every later
caller sees that status and nothing else.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from tablewire.catalog import TableIdentifier
from tablewire.config import PlanningConfig
from tablewire.errors import InvalidResponseError, NoSuchPlanError, NoSuchPlanTaskError
from tablewire.responses import ErrorResponse
from tablewire.scan import (
    FetchPlanningResultResponse,
    FetchScanTasksResponse,
    PlanResult,
    PlanStatus,
    PlanTableScanRequest,
    PlanTableScanResponse,
)

logger = logging.getLogger("tablewire.planning")

type Planner = Callable[[TableIdentifier, PlanTableScanRequest], Awaitable[PlanResult]]
type TaskResolver = Callable[[str], Awaitable[PlanResult | None]]


@dataclass
class _Plan:
    plan_id: str
    table: TableIdentifier
    task: asyncio.Task[PlanResult]
    status: PlanStatus = PlanStatus.submitted
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    response: FetchPlanningResultResponse | None = None
    finished_at: float | None = None


def _error_for(exc: BaseException) -> ErrorResponse:
    return ErrorResponse(
        message=str(exc) or type(exc).__name__,
        type=type(exc).__name__,
        code=500,
    )


class ScanPlanService:
    """Owns scan plans and answers the planning calls for them.

    Parameters
    ----------
    planner : Planner
        Coroutine function producing the ``PlanResult`` for a table and
        request. An exception it raises fails the plan.
    config : PlanningConfig | None
        Fast-path timeout, retention and plan id prefix.
    task_resolver : TaskResolver | None
        Coroutine function mapping a plan-task token to its ``PlanResult``,
        or ``None`` when the token is unknown.

    Examples
    --------
    >>> async def planner(table, request):
    ...     return PlanResult(plan_tasks=("task-1",))
    >>> service = ScanPlanService(planner, config=PlanningConfig(sync_timeout=1.0))
    >>> len(service)
    0
    """

    def __init__(
        self,
        planner: Planner,
        *,
        config: PlanningConfig | None = None,
        task_resolver: TaskResolver | None = None,
    ) -> None:
        self._planner = planner
        self._config = config or PlanningConfig()
        self._task_resolver = task_resolver
        self._plans: dict[str, _Plan] = {}
        self._watchers: set[asyncio.Task[None]] = set()
        self._closed = False

    def __len__(self) -> int:
        return len(self._plans)

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._plans

    async def plan(
        self, table: TableIdentifier, request: PlanTableScanRequest
    ) -> PlanTableScanResponse:
        """Start planning a scan of ``table``.

        Returns a ``completed`` or ``failed`` response when the planner
        finishes within ``sync_timeout``, otherwise a ``submitted`` response
        carrying a fresh plan id.

        Raises
        ------
        InvalidResponseError
            If the planner's result cannot form a valid response.
        """
        if self._closed:
            msg = "ScanPlanService is closed"
            raise RuntimeError(msg)
        self._purge_expired()
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._planner(table, request))
        done: set[asyncio.Task[PlanResult]] = set()
        if self._config.sync_timeout > 0:
            try:
                done, _ = await asyncio.wait({task}, timeout=self._config.sync_timeout)
            except asyncio.CancelledError:
                # the caller went away before a plan id was handed out
                task.cancel()
                raise
        if task in done:
            return self._plan_response(table, task)

        plan_id = f"{self._config.plan_id_prefix}{uuid.uuid4().hex}"
        plan = _Plan(plan_id=plan_id, table=table, task=task)
        self._plans[plan_id] = plan
        watcher = loop.create_task(self._watch(plan))
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)
        logger.debug("Deferred plan %s for %s", plan_id, table)
        return PlanTableScanResponse.submitted(plan_id)

    async def fetch(self, plan_id: str) -> FetchPlanningResultResponse:
        """Poll a submitted plan.

        Terminal answers are cached, so polling a finished plan repeatedly
        returns the same response object.

        Raises
        ------
        NoSuchPlanError
            If ``plan_id`` is unknown or was purged.
        InvalidResponseError
            If the planner's result cannot form a valid response. The plan is
            failed so that later polls answer ``failed``.
        """
        plan = self._get(plan_id)
        async with plan.lock:
            if plan.status is PlanStatus.submitted and plan.task.done():
                self._settle(plan)
            if plan.response is not None:
                return plan.response
            return FetchPlanningResultResponse(plan.status)

    async def cancel(self, plan_id: str) -> PlanStatus:
        """Cancel a submitted plan.

        On a plan that already reached a terminal status this is a no-op
        returning that status.

        Raises
        ------
        NoSuchPlanError
            If ``plan_id`` is unknown or was purged.
        """
        plan = self._get(plan_id)
        async with plan.lock:
            if plan.status.is_terminal:
                logger.debug("Ignoring cancel of %s plan %s", plan.status.value, plan_id)
                return plan.status
            plan.task.cancel()
            self._finish(plan, FetchPlanningResultResponse(PlanStatus.cancelled))
            logger.debug("Cancelled plan %s", plan_id)
            return plan.status

    async def fetch_tasks(self, plan_task: str) -> FetchScanTasksResponse:
        """Exchange a plan-task token for its file scan tasks.

        Raises
        ------
        NoSuchPlanTaskError
            If no resolver is configured or the token is unknown.
        InvalidResponseError
            If the resolved result cannot form a valid response.
        """
        if self._task_resolver is None:
            msg = f"Cannot resolve plan task {plan_task}: no task resolver configured"
            raise NoSuchPlanTaskError(msg)
        result = await self._task_resolver(plan_task)
        if result is None:
            msg = f"No such plan task: {plan_task}"
            raise NoSuchPlanTaskError(msg)
        try:
            return FetchScanTasksResponse(
                plan_tasks=result.plan_tasks,
                file_scan_tasks=result.file_scan_tasks,
                delete_files=result.delete_files,
            )
        except InvalidResponseError:
            logger.error("Task resolver returned an invalid result for %s", plan_task)
            raise

    async def close(self) -> None:
        """Cancel every outstanding planner task and forget all plans."""
        self._closed = True
        pending = [plan.task for plan in self._plans.values() if not plan.task.done()]
        for task in [*pending, *self._watchers]:
            task.cancel()
        await asyncio.gather(*pending, *self._watchers, return_exceptions=True)
        if pending:
            logger.debug("Cancelled %d outstanding plans on close", len(pending))
        self._plans.clear()

    # -- internals ----------------------------------------------------------

    def _get(self, plan_id: str) -> _Plan:
        self._purge_expired()
        plan = self._plans.get(plan_id)
        if plan is None:
            msg = f"No such plan: {plan_id}"
            raise NoSuchPlanError(msg)
        return plan

    def _plan_response(
        self, table: TableIdentifier, task: asyncio.Task[PlanResult]
    ) -> PlanTableScanResponse:
        exc = task.exception()
        if exc is not None:
            logger.warning("Planning %s failed: %s", table, exc)
            return PlanTableScanResponse.failed(_error_for(exc))
        result = task.result()
        try:
            return PlanTableScanResponse.completed(
                plan_tasks=result.plan_tasks,
                file_scan_tasks=result.file_scan_tasks,
                delete_files=result.delete_files,
            )
        except InvalidResponseError:
            logger.error("Planner returned an invalid result for %s", table)
            raise

    async def _watch(self, plan: _Plan) -> None:
        await asyncio.wait({plan.task})
        async with plan.lock:
            if plan.status is not PlanStatus.submitted:
                return
            try:
                self._settle(plan)
            except InvalidResponseError:
                # already logged; the plan is failed and the next poll says so
                return

    def _settle(self, plan: _Plan) -> None:
        """Move a plan whose planner finished to its terminal status.

        Must be called with ``plan.lock`` held.
        """
        if plan.task.cancelled():
            self._finish(plan, FetchPlanningResultResponse(PlanStatus.cancelled))
            return
        exc = plan.task.exception()
        if exc is not None:
            logger.warning("Plan %s for %s failed: %s", plan.plan_id, plan.table, exc)
            self._finish(plan, FetchPlanningResultResponse(PlanStatus.failed, error=_error_for(exc)))
            return
        result = plan.task.result()
        try:
            response = FetchPlanningResultResponse(
                PlanStatus.completed,
                plan_tasks=result.plan_tasks,
                file_scan_tasks=result.file_scan_tasks,
                delete_files=result.delete_files,
            )
        except InvalidResponseError as exc:
            logger.error("Planner returned an invalid result for plan %s: %s", plan.plan_id, exc)
            self._finish(plan, FetchPlanningResultResponse(PlanStatus.failed, error=_error_for(exc)))
            raise
        self._finish(plan, response)
        logger.debug("Plan %s completed", plan.plan_id)

    def _finish(self, plan: _Plan, response: FetchPlanningResultResponse) -> None:
        status = response.status
        if status is None or not plan.status.can_transition_to(status):
            target = status.value if status is not None else "no status"
            msg = f"Plan {plan.plan_id} cannot move from {plan.status.value} to {target}"
            raise InvalidResponseError(msg)
        plan.status = status
        plan.response = response
        plan.finished_at = asyncio.get_running_loop().time()

    def _purge_expired(self) -> None:
        now = asyncio.get_running_loop().time()
        retention = self._config.retention_seconds
        expired = [
            plan_id
            for plan_id, plan in self._plans.items()
            if plan.finished_at is not None and now - plan.finished_at > retention
        ]
        for plan_id in expired:
            del self._plans[plan_id]
        if expired:
            logger.debug("Purged %d expired plans", len(expired))
