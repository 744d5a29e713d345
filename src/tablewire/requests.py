"""Catalog request messages: commits, registrations, views and metrics reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tablewire._json import (
    JsonObject,
    get_int,
    get_int_list,
    get_object,
    get_object_or_none,
    get_objects,
    get_string,
    get_string_list,
    get_string_map_or_empty,
    get_string_or_none,
    put_if_present,
    require_object,
)
from tablewire.catalog import (
    TableIdentifier,
    table_identifier_from_json,
    table_identifier_to_json,
)
from tablewire.errors import InvalidRequestError, MalformedMessageError
from tablewire.schema import Schema, schema_from_json, schema_to_json
from tablewire.updates import (
    MetadataUpdate,
    UpdateRequirement,
    metadata_update_from_json,
    metadata_update_to_json,
    update_requirement_from_json,
    update_requirement_to_json,
)
from tablewire.views import ViewVersion, view_version_from_json, view_version_to_json


@dataclass(frozen=True)
class UpdateTableRequest:
    """A set of metadata changes guarded by requirements.

    ``identifier`` is optional when the table is named by the request path
    and mandatory inside a ``CommitTransactionRequest``.
    """

    requirements: tuple[UpdateRequirement, ...] = ()
    updates: tuple[MetadataUpdate, ...] = ()
    identifier: TableIdentifier | None = None


@dataclass(frozen=True)
class CommitTransactionRequest:
    """Atomic commit of changes to several tables.

    Examples
    --------
    >>> CommitTransactionRequest(())
    Traceback (most recent call last):
    ...
    tablewire.errors.InvalidRequestError: Invalid request: table changes should not be empty
    """

    table_changes: tuple[UpdateTableRequest, ...]

    def __post_init__(self) -> None:
        if not self.table_changes:
            msg = "Invalid request: table changes should not be empty"
            raise InvalidRequestError(msg, field="table-changes")
        for change in self.table_changes:
            if change.identifier is None:
                msg = "Invalid table changes: table identifier is required"
                raise InvalidRequestError(msg, field="identifier")


@dataclass(frozen=True)
class RegisterTableRequest:
    name: str
    metadata_location: str

    def __post_init__(self) -> None:
        if not self.name:
            msg = "Invalid table name: null or empty"
            raise InvalidRequestError(msg, field="name")
        if not self.metadata_location:
            msg = "Invalid metadata location: null or empty"
            raise InvalidRequestError(msg, field="metadata-location")


@dataclass(frozen=True)
class CreateViewRequest:
    name: str
    schema: Schema
    view_version: ViewVersion
    location: str | None = None
    properties: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            msg = "Invalid view name: null or empty"
            raise InvalidRequestError(msg, field="name")


@dataclass(frozen=True)
class ScanReport:
    table_name: str
    snapshot_id: int
    filter: Any
    schema_id: int
    projected_field_ids: tuple[int, ...]
    projected_field_names: tuple[str, ...]
    metrics: dict[str, JsonObject] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)

    report_type = "scan-report"


@dataclass(frozen=True)
class CommitReport:
    table_name: str
    snapshot_id: int
    sequence_number: int
    operation: str
    metrics: dict[str, JsonObject] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)

    report_type = "commit-report"


type MetricsReport = ScanReport | CommitReport


@dataclass(frozen=True)
class ReportMetricsRequest:
    """A client-side metrics report, tagged on the wire by ``report-type``."""

    report: MetricsReport

    @property
    def report_type(self) -> str:
        return self.report.report_type


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


def update_table_request_to_json(request: UpdateTableRequest) -> JsonObject:
    node: JsonObject = {}
    if request.identifier is not None:
        node["identifier"] = table_identifier_to_json(request.identifier)
    node["requirements"] = [update_requirement_to_json(r) for r in request.requirements]
    node["updates"] = [metadata_update_to_json(u) for u in request.updates]
    return node


def update_table_request_from_json(node: Any) -> UpdateTableRequest:
    obj = require_object(node, "update table request")
    identifier_node = get_object_or_none(obj, "identifier")
    return UpdateTableRequest(
        identifier=(
            table_identifier_from_json(identifier_node) if identifier_node is not None else None
        ),
        requirements=get_objects(obj, "requirements", update_requirement_from_json),
        updates=get_objects(obj, "updates", metadata_update_from_json),
    )


def commit_transaction_request_to_json(request: CommitTransactionRequest) -> JsonObject:
    return {"table-changes": [update_table_request_to_json(c) for c in request.table_changes]}


def commit_transaction_request_from_json(node: Any) -> CommitTransactionRequest:
    obj = require_object(node, "commit transaction request")
    return CommitTransactionRequest(
        get_objects(obj, "table-changes", update_table_request_from_json)
    )


def register_table_request_to_json(request: RegisterTableRequest) -> JsonObject:
    return {"name": request.name, "metadata-location": request.metadata_location}


def register_table_request_from_json(node: Any) -> RegisterTableRequest:
    obj = require_object(node, "register table request")
    return RegisterTableRequest(get_string(obj, "name"), get_string(obj, "metadata-location"))


def create_view_request_to_json(request: CreateViewRequest) -> JsonObject:
    node: JsonObject = {"name": request.name}
    put_if_present(node, "location", request.location)
    node["view-version"] = view_version_to_json(request.view_version)
    node["schema"] = schema_to_json(request.schema)
    node["properties"] = dict(request.properties)
    return node


def create_view_request_from_json(node: Any) -> CreateViewRequest:
    obj = require_object(node, "create view request")
    return CreateViewRequest(
        name=get_string(obj, "name"),
        location=get_string_or_none(obj, "location"),
        view_version=view_version_from_json(get_object(obj, "view-version")),
        schema=schema_from_json(get_object(obj, "schema")),
        properties=get_string_map_or_empty(obj, "properties"),
    )


def _metrics_to_json(metrics: dict[str, JsonObject]) -> JsonObject:
    return {name: dict(value) for name, value in metrics.items()}


def _metrics_from_json(obj: JsonObject) -> dict[str, JsonObject]:
    metrics = get_object_or_none(obj, "metrics") or {}
    return {name: get_object(metrics, name) for name in metrics}


def report_metrics_request_to_json(request: ReportMetricsRequest) -> JsonObject:
    node: JsonObject = {"report-type": request.report_type}
    match request.report:
        case ScanReport() as report:
            node["table-name"] = report.table_name
            node["snapshot-id"] = report.snapshot_id
            node["filter"] = report.filter
            node["schema-id"] = report.schema_id
            node["projected-field-ids"] = list(report.projected_field_ids)
            node["projected-field-names"] = list(report.projected_field_names)
        case CommitReport() as report:
            node["table-name"] = report.table_name
            node["snapshot-id"] = report.snapshot_id
            node["sequence-number"] = report.sequence_number
            node["operation"] = report.operation
    node["metrics"] = _metrics_to_json(request.report.metrics)
    if request.report.metadata:
        node["metadata"] = dict(request.report.metadata)
    return node


def report_metrics_request_from_json(node: Any) -> ReportMetricsRequest:
    obj = require_object(node, "report metrics request")
    report_type = get_string(obj, "report-type")
    report: MetricsReport
    match report_type.lower():
        case ScanReport.report_type:
            if "filter" not in obj:
                msg = "Cannot parse missing field: filter"
                raise MalformedMessageError(msg, field="filter")
            report = ScanReport(
                table_name=get_string(obj, "table-name"),
                snapshot_id=get_int(obj, "snapshot-id"),
                filter=obj["filter"],
                schema_id=get_int(obj, "schema-id"),
                projected_field_ids=get_int_list(obj, "projected-field-ids"),
                projected_field_names=get_string_list(obj, "projected-field-names"),
                metrics=_metrics_from_json(obj),
                metadata=get_string_map_or_empty(obj, "metadata"),
            )
        case CommitReport.report_type:
            report = CommitReport(
                table_name=get_string(obj, "table-name"),
                snapshot_id=get_int(obj, "snapshot-id"),
                sequence_number=get_int(obj, "sequence-number"),
                operation=get_string(obj, "operation"),
                metrics=_metrics_from_json(obj),
                metadata=get_string_map_or_empty(obj, "metadata"),
            )
        case _:
            msg = f"Cannot parse report-type: {report_type}"
            raise MalformedMessageError(msg, field="report-type")
    return ReportMetricsRequest(report)
