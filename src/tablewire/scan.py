"""Scan-planning messages and the plan status state machine.

A client asks the catalog to plan a table scan. The server either answers
at once (``completed``) or hands back a ``plan-id`` (``submitted``) that the
client polls until the plan reaches a terminal status. Response values
validate themselves on construction, so a response that breaks the state
machine can neither be built nor decoded.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from tablewire._json import (
    JsonObject,
    get_bool_or_none,
    get_int,
    get_int_list_or_none,
    get_int_or_none,
    get_list_or_none,
    get_object,
    get_object_or_none,
    get_objects_or_none,
    get_string,
    get_string_list,
    get_string_list_or_none,
    get_string_map,
    get_string_or_none,
    malformed_on_value_error,
    put_if_present,
    require_object,
)
from tablewire.errors import InvalidRequestError, InvalidResponseError, MalformedMessageError
from tablewire.responses import ErrorResponse, error_model_from_json, error_model_to_json


class PlanStatus(enum.Enum):
    """Status of one scan plan.

    Examples
    --------
    >>> PlanStatus.submitted.can_transition_to(PlanStatus.completed)
    True
    >>> PlanStatus.completed.can_transition_to(PlanStatus.cancelled)
    False
    """

    submitted = "submitted"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not PlanStatus.submitted

    def can_transition_to(self, target: PlanStatus) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[PlanStatus, frozenset[PlanStatus]] = {
    PlanStatus.submitted: frozenset(
        {PlanStatus.completed, PlanStatus.failed, PlanStatus.cancelled}
    ),
    PlanStatus.completed: frozenset(),
    PlanStatus.failed: frozenset(),
    PlanStatus.cancelled: frozenset(),
}

# statuses a freshly created plan may start in
INITIAL_STATUSES = frozenset({PlanStatus.submitted, PlanStatus.completed, PlanStatus.failed})


# ---------------------------------------------------------------------------
# Files and tasks
# ---------------------------------------------------------------------------


class FileContent(enum.Enum):
    data = "data"
    position_deletes = "position-deletes"
    equality_deletes = "equality-deletes"


FILE_FORMATS = frozenset({"avro", "orc", "parquet", "puffin"})


@dataclass(frozen=True)
class ContentFile:
    """A data file or delete file referenced by a scan.

    ``equality_ids`` is set exactly when ``content`` is equality deletes.
    """

    file_path: str
    file_format: str
    file_size_in_bytes: int
    record_count: int
    content: FileContent = FileContent.data
    spec_id: int = 0
    partition: tuple[Any, ...] = ()
    equality_ids: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        if self.file_format.lower() not in FILE_FORMATS:
            msg = f"Unsupported file format: {self.file_format}"
            raise ValueError(msg)
        object.__setattr__(self, "file_format", self.file_format.lower())
        is_equality = self.content is FileContent.equality_deletes
        if is_equality != (self.equality_ids is not None):
            msg = "Invalid content file: equality-ids are required for, and only for, equality deletes"
            raise ValueError(msg)

    @property
    def is_delete(self) -> bool:
        return self.content is not FileContent.data


@dataclass(frozen=True)
class FileScanTask:
    """A data file to read, with its applicable deletes and residual filter.

    ``delete_file_references`` index into the ``delete_files`` of the
    response carrying this task.
    """

    data_file: ContentFile
    delete_file_references: tuple[int, ...] = ()
    residual_filter: Any = None

    def __post_init__(self) -> None:
        if self.data_file.is_delete:
            msg = f"Invalid file scan task: {self.data_file.file_path} is not a data file"
            raise ValueError(msg)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateScanRequest:
    """Minimal scan request: projected columns, filter and scan options.

    ``select`` and ``options`` are copied into a tuple and a read-only
    mapping, so later changes to the caller's containers do not reach the
    request. ``options`` is left out of the hash.

    Examples
    --------
    >>> CreateScanRequest(select=["id"], filter="true", options={"split-size": "128"}).select
    ('id',)
    >>> CreateScanRequest(select=(), filter="true", options={"a": "b"})
    Traceback (most recent call last):
    ...
    tablewire.errors.InvalidRequestError: Invalid select: should not be null or empty
    """

    select: tuple[str, ...]
    filter: str
    options: Mapping[str, str] = field(hash=False)

    def __post_init__(self) -> None:
        self.validate()
        object.__setattr__(self, "select", tuple(self.select))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    def validate(self) -> None:
        if not self.select:
            msg = "Invalid select: should not be null or empty"
            raise InvalidRequestError(msg, field="select")
        if self.filter is None:
            msg = "Invalid filter: null"
            raise InvalidRequestError(msg, field="filter")
        if not self.options:
            msg = "Invalid options: should not be null or empty"
            raise InvalidRequestError(msg, field="options")


@dataclass(frozen=True)
class PlanTableScanRequest:
    """Full plan request.

    Either a point-in-time scan (``snapshot_id``, defaulting to the current
    snapshot) or an incremental scan between ``start_snapshot_id`` and
    ``end_snapshot_id``. ``filter`` is an opaque expression document.
    """

    snapshot_id: int | None = None
    select: tuple[str, ...] | None = None
    filter: Any = None
    case_sensitive: bool = True
    use_snapshot_schema: bool = False
    start_snapshot_id: int | None = None
    end_snapshot_id: int | None = None
    stats_fields: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        incremental = self.start_snapshot_id is not None or self.end_snapshot_id is not None
        if incremental and self.snapshot_id is not None:
            msg = "Invalid scan: cannot provide both snapshotId and startSnapshotId/endSnapshotId"
            raise InvalidRequestError(msg, field="snapshot-id")
        if incremental and (self.start_snapshot_id is None or self.end_snapshot_id is None):
            msg = "Invalid incremental scan: startSnapshotId and endSnapshotId is required"
            raise InvalidRequestError(msg, field="start-snapshot-id")

    @property
    def is_incremental(self) -> bool:
        return self.start_snapshot_id is not None


@dataclass(frozen=True)
class FetchScanTasksRequest:
    plan_task: str

    def __post_init__(self) -> None:
        if not self.plan_task:
            msg = "Invalid plan task: null or empty"
            raise InvalidRequestError(msg, field="plan-task")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


def _check(condition: bool, msg: str) -> None:
    if not condition:
        raise InvalidResponseError(msg)


def _check_delete_files(
    file_scan_tasks: tuple[FileScanTask, ...] | None,
    delete_files: tuple[ContentFile, ...] | None,
) -> None:
    _check(
        delete_files is None or file_scan_tasks is not None,
        "Invalid response: deleteFiles should only be returned with fileScanTasks that reference them",
    )
    count = len(delete_files or ())
    for f in delete_files or ():
        _check(f.is_delete, f"Invalid response: {f.file_path} in deleteFiles is a data file")
    for task in file_scan_tasks or ():
        for ref in task.delete_file_references:
            _check(
                0 <= ref < count,
                f"Invalid response: delete file reference {ref} out of range (deleteFiles={count})",
            )


def _check_planning_result(
    status: PlanStatus | None,
    plan_tasks: tuple[str, ...] | None,
    file_scan_tasks: tuple[FileScanTask, ...] | None,
    delete_files: tuple[ContentFile, ...] | None,
    error: ErrorResponse | None,
) -> None:
    _check(status is not None, "invalid response, status can not be null")
    _check(
        status is PlanStatus.completed or (plan_tasks is None and file_scan_tasks is None),
        "Invalid response: tasks can only be returned in a 'completed' status",
    )
    _check_delete_files(file_scan_tasks, delete_files)
    _check(
        error is None or status is PlanStatus.failed,
        "Invalid response: error can only be returned in a 'failed' status",
    )


@dataclass(frozen=True)
class PlanTableScanResponse:
    """Answer to a fresh plan request.

    ``submitted`` defers the result behind ``plan_id``; ``completed`` carries
    the result; ``failed`` may carry an ``error``. ``cancelled`` is never a
    valid answer to a fresh request.

    Examples
    --------
    >>> PlanTableScanResponse.submitted("plan-1").plan_id
    'plan-1'
    >>> PlanTableScanResponse(PlanStatus.submitted)
    Traceback (most recent call last):
    ...
    tablewire.errors.InvalidResponseError: Invalid response: planId to be non-null when status is 'submitted'
    """

    status: PlanStatus | None
    plan_id: str | None = None
    plan_tasks: tuple[str, ...] | None = None
    file_scan_tasks: tuple[FileScanTask, ...] | None = None
    delete_files: tuple[ContentFile, ...] | None = None
    error: ErrorResponse | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        _check(self.status is not None, "invalid response, status can not be null")
        _check(
            self.status is not PlanStatus.submitted or self.plan_id is not None,
            "Invalid response: planId to be non-null when status is 'submitted'",
        )
        _check(
            self.plan_id is None or self.status is PlanStatus.submitted,
            "Invalid response: planId can only be returned in a 'submitted' status",
        )
        _check(
            self.status is not PlanStatus.cancelled,
            "Invalid response: 'cancelled' is not a valid status for planTableScan",
        )
        _check_planning_result(
            self.status, self.plan_tasks, self.file_scan_tasks, self.delete_files, self.error
        )

    @classmethod
    def submitted(cls, plan_id: str) -> PlanTableScanResponse:
        return cls(PlanStatus.submitted, plan_id=plan_id)

    @classmethod
    def completed(
        cls,
        *,
        plan_tasks: tuple[str, ...] | None = None,
        file_scan_tasks: tuple[FileScanTask, ...] | None = None,
        delete_files: tuple[ContentFile, ...] | None = None,
    ) -> PlanTableScanResponse:
        return cls(
            PlanStatus.completed,
            plan_tasks=plan_tasks,
            file_scan_tasks=file_scan_tasks,
            delete_files=delete_files,
        )

    @classmethod
    def failed(cls, error: ErrorResponse | None = None) -> PlanTableScanResponse:
        return cls(PlanStatus.failed, error=error)


@dataclass(frozen=True)
class FetchPlanningResultResponse:
    """Answer to a poll on a submitted plan.

    Same field rules as ``PlanTableScanResponse`` except that ``cancelled``
    is legal and there is no ``plan_id``.
    """

    status: PlanStatus | None
    plan_tasks: tuple[str, ...] | None = None
    file_scan_tasks: tuple[FileScanTask, ...] | None = None
    delete_files: tuple[ContentFile, ...] | None = None
    error: ErrorResponse | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        _check_planning_result(
            self.status, self.plan_tasks, self.file_scan_tasks, self.delete_files, self.error
        )


@dataclass(frozen=True)
class FetchScanTasksResponse:
    """File scan tasks (and possibly further plan tasks) for one plan task."""

    plan_tasks: tuple[str, ...] | None = None
    file_scan_tasks: tuple[FileScanTask, ...] | None = None
    delete_files: tuple[ContentFile, ...] | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        _check(
            self.plan_tasks is not None or self.file_scan_tasks is not None,
            "Invalid response: planTasks and fileScanTasks can not both be null",
        )
        _check_delete_files(self.file_scan_tasks, self.delete_files)


@dataclass(frozen=True)
class PlanResult:
    """What a planner produces once it finishes; shared by every response shape."""

    plan_tasks: tuple[str, ...] | None = None
    file_scan_tasks: tuple[FileScanTask, ...] | None = None
    delete_files: tuple[ContentFile, ...] | None = None


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


def content_file_to_json(f: ContentFile) -> JsonObject:
    node: JsonObject = {
        "content": f.content.value,
        "file-path": f.file_path,
        "file-format": f.file_format,
        "spec-id": f.spec_id,
        "partition": list(f.partition),
        "file-size-in-bytes": f.file_size_in_bytes,
        "record-count": f.record_count,
    }
    if f.equality_ids is not None:
        node["equality-ids"] = list(f.equality_ids)
    return node


def content_file_from_json(node: Any) -> ContentFile:
    obj = require_object(node, "content file")
    raw_content = get_string(obj, "content")
    try:
        content = FileContent(raw_content.lower())
    except ValueError as exc:
        msg = f"Invalid file content: {raw_content}"
        raise MalformedMessageError(msg, field="content") from exc
    with malformed_on_value_error("content file"):
        return ContentFile(
            content=content,
            file_path=get_string(obj, "file-path"),
            file_format=get_string(obj, "file-format"),
            spec_id=get_int(obj, "spec-id"),
            partition=tuple(get_list_or_none(obj, "partition") or ()),
            file_size_in_bytes=get_int(obj, "file-size-in-bytes"),
            record_count=get_int(obj, "record-count"),
            equality_ids=get_int_list_or_none(obj, "equality-ids"),
        )


def file_scan_task_to_json(task: FileScanTask) -> JsonObject:
    node: JsonObject = {"data-file": content_file_to_json(task.data_file)}
    if task.delete_file_references:
        node["delete-file-references"] = list(task.delete_file_references)
    put_if_present(node, "residual-filter", task.residual_filter)
    return node


def file_scan_task_from_json(node: Any) -> FileScanTask:
    obj = require_object(node, "file scan task")
    data_file = content_file_from_json(get_object(obj, "data-file"))
    with malformed_on_value_error("file scan task"):
        return FileScanTask(
            data_file=data_file,
            delete_file_references=get_int_list_or_none(obj, "delete-file-references") or (),
            residual_filter=obj.get("residual-filter"),
        )


def create_scan_request_to_json(request: CreateScanRequest) -> JsonObject:
    return {
        "select": list(request.select),
        "filter": request.filter,
        "options": dict(request.options),
    }


def create_scan_request_from_json(node: Any) -> CreateScanRequest:
    obj = require_object(node, "create scan request")
    return CreateScanRequest(
        select=get_string_list(obj, "select"),
        filter=get_string_or_none(obj, "filter"),  # type: ignore[arg-type]
        options=get_string_map(obj, "options"),
    )


def plan_table_scan_request_to_json(request: PlanTableScanRequest) -> JsonObject:
    node: JsonObject = {}
    put_if_present(node, "snapshot-id", request.snapshot_id)
    if request.select is not None:
        node["select"] = list(request.select)
    put_if_present(node, "filter", request.filter)
    node["case-sensitive"] = request.case_sensitive
    node["use-snapshot-schema"] = request.use_snapshot_schema
    put_if_present(node, "start-snapshot-id", request.start_snapshot_id)
    put_if_present(node, "end-snapshot-id", request.end_snapshot_id)
    if request.stats_fields is not None:
        node["stats-fields"] = list(request.stats_fields)
    return node


def plan_table_scan_request_from_json(node: Any) -> PlanTableScanRequest:
    obj = require_object(node, "plan table scan request")
    case_sensitive = get_bool_or_none(obj, "case-sensitive")
    use_snapshot_schema = get_bool_or_none(obj, "use-snapshot-schema")
    return PlanTableScanRequest(
        snapshot_id=get_int_or_none(obj, "snapshot-id"),
        select=get_string_list_or_none(obj, "select"),
        filter=obj.get("filter"),
        case_sensitive=True if case_sensitive is None else case_sensitive,
        use_snapshot_schema=False if use_snapshot_schema is None else use_snapshot_schema,
        start_snapshot_id=get_int_or_none(obj, "start-snapshot-id"),
        end_snapshot_id=get_int_or_none(obj, "end-snapshot-id"),
        stats_fields=get_string_list_or_none(obj, "stats-fields"),
    )


def fetch_scan_tasks_request_to_json(request: FetchScanTasksRequest) -> JsonObject:
    return {"plan-task": request.plan_task}


def fetch_scan_tasks_request_from_json(node: Any) -> FetchScanTasksRequest:
    obj = require_object(node, "fetch scan tasks request")
    return FetchScanTasksRequest(get_string(obj, "plan-task"))


@contextmanager
def _malformed_on_invalid_response(what: str) -> Iterator[None]:
    """Report a decoded response that breaks the state machine as malformed."""
    try:
        yield
    except InvalidResponseError as exc:
        msg = f"Invalid {what}: {exc}"
        raise MalformedMessageError(msg) from exc


def _status_from_json(obj: JsonObject) -> PlanStatus:
    raw = get_string_or_none(obj, "status")
    if raw is None:
        msg = "Invalid response: status can not be null"
        raise MalformedMessageError(msg, field="status")
    try:
        return PlanStatus(raw.lower())
    except ValueError as exc:
        msg = f"Invalid status: {raw}"
        raise MalformedMessageError(msg, field="status") from exc


def _put_tasks(
    node: JsonObject,
    plan_tasks: tuple[str, ...] | None,
    file_scan_tasks: tuple[FileScanTask, ...] | None,
    delete_files: tuple[ContentFile, ...] | None,
) -> None:
    if plan_tasks is not None:
        node["plan-tasks"] = list(plan_tasks)
    if delete_files is not None:
        node["delete-files"] = [content_file_to_json(f) for f in delete_files]
    if file_scan_tasks is not None:
        node["file-scan-tasks"] = [file_scan_task_to_json(t) for t in file_scan_tasks]


def _tasks_from_json(
    obj: JsonObject,
) -> tuple[tuple[str, ...] | None, tuple[FileScanTask, ...] | None, tuple[ContentFile, ...] | None]:
    return (
        get_string_list_or_none(obj, "plan-tasks"),
        get_objects_or_none(obj, "file-scan-tasks", file_scan_task_from_json),
        get_objects_or_none(obj, "delete-files", content_file_from_json),
    )


def _error_from_json(obj: JsonObject) -> ErrorResponse | None:
    error = get_object_or_none(obj, "error")
    return error_model_from_json(error) if error is not None else None


def _status_to_json(status: PlanStatus | None) -> str:
    if status is None:
        msg = "invalid response, status can not be null"
        raise InvalidResponseError(msg)
    return status.value


def plan_table_scan_response_to_json(response: PlanTableScanResponse) -> JsonObject:
    node: JsonObject = {"status": _status_to_json(response.status)}
    put_if_present(node, "plan-id", response.plan_id)
    _put_tasks(node, response.plan_tasks, response.file_scan_tasks, response.delete_files)
    if response.error is not None:
        node["error"] = error_model_to_json(response.error)
    return node


def plan_table_scan_response_from_json(node: Any) -> PlanTableScanResponse:
    obj = require_object(node, "plan table scan response")
    plan_tasks, file_scan_tasks, delete_files = _tasks_from_json(obj)
    status = _status_from_json(obj)
    with _malformed_on_invalid_response("plan table scan response"):
        return PlanTableScanResponse(
            status=status,
            plan_id=get_string_or_none(obj, "plan-id"),
            plan_tasks=plan_tasks,
            file_scan_tasks=file_scan_tasks,
            delete_files=delete_files,
            error=_error_from_json(obj),
        )


def fetch_planning_result_response_to_json(response: FetchPlanningResultResponse) -> JsonObject:
    node: JsonObject = {"status": _status_to_json(response.status)}
    _put_tasks(node, response.plan_tasks, response.file_scan_tasks, response.delete_files)
    if response.error is not None:
        node["error"] = error_model_to_json(response.error)
    return node


def fetch_planning_result_response_from_json(node: Any) -> FetchPlanningResultResponse:
    obj = require_object(node, "fetch planning result response")
    plan_tasks, file_scan_tasks, delete_files = _tasks_from_json(obj)
    status = _status_from_json(obj)
    with _malformed_on_invalid_response("fetch planning result response"):
        return FetchPlanningResultResponse(
            status=status,
            plan_tasks=plan_tasks,
            file_scan_tasks=file_scan_tasks,
            delete_files=delete_files,
            error=_error_from_json(obj),
        )


def fetch_scan_tasks_response_to_json(response: FetchScanTasksResponse) -> JsonObject:
    node: JsonObject = {}
    _put_tasks(node, response.plan_tasks, response.file_scan_tasks, response.delete_files)
    return node


def fetch_scan_tasks_response_from_json(node: Any) -> FetchScanTasksResponse:
    obj = require_object(node, "fetch scan tasks response")
    plan_tasks, file_scan_tasks, delete_files = _tasks_from_json(obj)
    with _malformed_on_invalid_response("fetch scan tasks response"):
        return FetchScanTasksResponse(
            plan_tasks=plan_tasks,
            file_scan_tasks=file_scan_tasks,
            delete_files=delete_files,
        )
