"""Table metadata, snapshots and snapshot references."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from tablewire._json import (
    JsonObject,
    get_int,
    get_int_or_none,
    get_object_or_none,
    get_objects,
    get_objects_or_none,
    get_string,
    get_string_map,
    get_string_map_or_empty,
    malformed_on_value_error,
    put_if_present,
    require_object,
)
from tablewire.errors import MalformedMessageError
from tablewire.partitioning import (
    UnboundPartitionSpec,
    UnboundSortOrder,
    partition_spec_from_json,
    partition_spec_to_json,
    sort_order_from_json,
    sort_order_to_json,
)
from tablewire.schema import Schema, schema_from_json, schema_to_json

SUPPORTED_FORMAT_VERSIONS = (1, 2, 3)
MAIN_BRANCH = "main"


@dataclass(frozen=True)
class Snapshot:
    """One committed state of a table.

    ``summary`` always carries the ``operation`` that produced the snapshot.
    """

    snapshot_id: int
    timestamp_ms: int
    manifest_list: str
    summary: dict[str, str]
    sequence_number: int = 0
    parent_snapshot_id: int | None = None
    schema_id: int | None = None

    def __post_init__(self) -> None:
        if "operation" not in self.summary:
            msg = "Invalid snapshot summary: missing operation"
            raise ValueError(msg)

    @property
    def operation(self) -> str:
        return self.summary["operation"]


class SnapshotRefType(enum.Enum):
    branch = "branch"
    tag = "tag"


@dataclass(frozen=True)
class SnapshotRef:
    snapshot_id: int
    type: SnapshotRefType = SnapshotRefType.branch
    min_snapshots_to_keep: int | None = None
    max_snapshot_age_ms: int | None = None
    max_ref_age_ms: int | None = None

    def __post_init__(self) -> None:
        if self.type is SnapshotRefType.tag and (
            self.min_snapshots_to_keep is not None or self.max_snapshot_age_ms is not None
        ):
            msg = "Tags do not support setting snapshot retention"
            raise ValueError(msg)


@dataclass(frozen=True)
class TableMetadata:
    """The full metadata tree of one table.

    Parameters
    ----------
    format_version : int
        Table format version, one of ``SUPPORTED_FORMAT_VERSIONS``.
    table_uuid : str
        Table identity that survives renames.
    location : str
        Base location of the table's files.
    last_updated_ms : int
        Timestamp of the last metadata change.
    last_column_id : int
        Highest assigned column id.
    schemas : tuple[Schema, ...]
        Every known schema, each with a ``schema_id``.
    current_schema_id : int
        Id of the schema used for writes.
    partition_specs : tuple[UnboundPartitionSpec, ...]
        Every known partition spec, each with a ``spec_id``.
    default_spec_id : int
        Id of the spec used for writes.
    last_partition_id : int
        Highest assigned partition field id.
    sort_orders : tuple[UnboundSortOrder, ...]
        Every known sort order.
    default_sort_order_id : int
        Id of the sort order used for writes.
    properties : dict[str, str]
        Table properties.
    current_snapshot_id : int | None
        Id of the current snapshot, ``None`` for an empty table.
    snapshots : tuple[Snapshot, ...]
        Valid snapshots.
    refs : dict[str, SnapshotRef]
        Named branches and tags.
    last_sequence_number : int
        Highest assigned data sequence number.
    """

    format_version: int
    table_uuid: str
    location: str
    last_updated_ms: int
    last_column_id: int
    schemas: tuple[Schema, ...]
    current_schema_id: int
    partition_specs: tuple[UnboundPartitionSpec, ...]
    default_spec_id: int
    last_partition_id: int
    sort_orders: tuple[UnboundSortOrder, ...] = (UnboundSortOrder(),)
    default_sort_order_id: int = 0
    properties: dict[str, str] = field(default_factory=dict)
    current_snapshot_id: int | None = None
    snapshots: tuple[Snapshot, ...] = ()
    refs: dict[str, SnapshotRef] = field(default_factory=dict)
    last_sequence_number: int = 0

    def __post_init__(self) -> None:
        if self.format_version not in SUPPORTED_FORMAT_VERSIONS:
            msg = f"Unsupported format version: v{self.format_version}"
            raise ValueError(msg)
        if any(s.schema_id is None for s in self.schemas):
            msg = "Invalid table metadata: schema without schema-id"
            raise ValueError(msg)
        if any(s.spec_id is None for s in self.partition_specs):
            msg = "Invalid table metadata: partition spec without spec-id"
            raise ValueError(msg)
        if self.schema() is None:
            msg = f"Invalid table metadata: unknown current schema id {self.current_schema_id}"
            raise ValueError(msg)
        if self.spec() is None:
            msg = f"Invalid table metadata: unknown default spec id {self.default_spec_id}"
            raise ValueError(msg)
        if self.sort_order() is None:
            msg = (
                "Invalid table metadata: unknown default sort order id "
                f"{self.default_sort_order_id}"
            )
            raise ValueError(msg)
        if self.current_snapshot_id is not None and self.current_snapshot() is None:
            msg = f"Invalid table metadata: unknown current snapshot {self.current_snapshot_id}"
            raise ValueError(msg)

    def schema(self) -> Schema | None:
        return next((s for s in self.schemas if s.schema_id == self.current_schema_id), None)

    def spec(self) -> UnboundPartitionSpec | None:
        return next(
            (s for s in self.partition_specs if s.spec_id == self.default_spec_id), None
        )

    def sort_order(self) -> UnboundSortOrder | None:
        return next(
            (o for o in self.sort_orders if o.order_id == self.default_sort_order_id), None
        )

    def snapshot(self, snapshot_id: int) -> Snapshot | None:
        return next((s for s in self.snapshots if s.snapshot_id == snapshot_id), None)

    def current_snapshot(self) -> Snapshot | None:
        if self.current_snapshot_id is None:
            return None
        return self.snapshot(self.current_snapshot_id)


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


def snapshot_to_json(snapshot: Snapshot) -> JsonObject:
    node: JsonObject = {"snapshot-id": snapshot.snapshot_id}
    put_if_present(node, "parent-snapshot-id", snapshot.parent_snapshot_id)
    node["sequence-number"] = snapshot.sequence_number
    node["timestamp-ms"] = snapshot.timestamp_ms
    node["manifest-list"] = snapshot.manifest_list
    node["summary"] = dict(snapshot.summary)
    put_if_present(node, "schema-id", snapshot.schema_id)
    return node


def snapshot_from_json(node: Any) -> Snapshot:
    obj = require_object(node, "snapshot")
    with malformed_on_value_error("snapshot"):
        return Snapshot(
            snapshot_id=get_int(obj, "snapshot-id"),
            parent_snapshot_id=get_int_or_none(obj, "parent-snapshot-id"),
            sequence_number=get_int_or_none(obj, "sequence-number") or 0,
            timestamp_ms=get_int(obj, "timestamp-ms"),
            manifest_list=get_string(obj, "manifest-list"),
            summary=get_string_map(obj, "summary"),
            schema_id=get_int_or_none(obj, "schema-id"),
        )


def snapshot_ref_to_json(ref: SnapshotRef) -> JsonObject:
    node: JsonObject = {"snapshot-id": ref.snapshot_id, "type": ref.type.value}
    put_if_present(node, "min-snapshots-to-keep", ref.min_snapshots_to_keep)
    put_if_present(node, "max-snapshot-age-ms", ref.max_snapshot_age_ms)
    put_if_present(node, "max-ref-age-ms", ref.max_ref_age_ms)
    return node


def snapshot_ref_from_json(node: Any) -> SnapshotRef:
    obj = require_object(node, "snapshot ref")
    raw_type = get_string(obj, "type")
    try:
        ref_type = SnapshotRefType(raw_type.lower())
    except ValueError as exc:
        msg = f"Invalid snapshot ref type: {raw_type}"
        raise MalformedMessageError(msg, field="type") from exc
    with malformed_on_value_error("snapshot ref"):
        return SnapshotRef(
            snapshot_id=get_int(obj, "snapshot-id"),
            type=ref_type,
            min_snapshots_to_keep=get_int_or_none(obj, "min-snapshots-to-keep"),
            max_snapshot_age_ms=get_int_or_none(obj, "max-snapshot-age-ms"),
            max_ref_age_ms=get_int_or_none(obj, "max-ref-age-ms"),
        )


def table_metadata_to_json(metadata: TableMetadata) -> JsonObject:
    node: JsonObject = {
        "format-version": metadata.format_version,
        "table-uuid": metadata.table_uuid,
        "location": metadata.location,
        "last-sequence-number": metadata.last_sequence_number,
        "last-updated-ms": metadata.last_updated_ms,
        "last-column-id": metadata.last_column_id,
        "current-schema-id": metadata.current_schema_id,
        "schemas": [schema_to_json(s) for s in metadata.schemas],
        "default-spec-id": metadata.default_spec_id,
        "partition-specs": [partition_spec_to_json(s) for s in metadata.partition_specs],
        "last-partition-id": metadata.last_partition_id,
        "default-sort-order-id": metadata.default_sort_order_id,
        "sort-orders": [sort_order_to_json(o) for o in metadata.sort_orders],
        "properties": dict(metadata.properties),
        "current-snapshot-id": (
            metadata.current_snapshot_id if metadata.current_snapshot_id is not None else -1
        ),
        "refs": {name: snapshot_ref_to_json(ref) for name, ref in metadata.refs.items()},
        "snapshots": [snapshot_to_json(s) for s in metadata.snapshots],
    }
    return node


def table_metadata_from_json(node: Any) -> TableMetadata:
    obj = require_object(node, "table metadata")
    current_snapshot_id = get_int_or_none(obj, "current-snapshot-id")
    if current_snapshot_id == -1:
        current_snapshot_id = None

    refs_node = get_object_or_none(obj, "refs") or {}
    refs = {name: snapshot_ref_from_json(ref) for name, ref in refs_node.items()}

    with malformed_on_value_error("table metadata"):
        return TableMetadata(
            format_version=get_int(obj, "format-version"),
            table_uuid=get_string(obj, "table-uuid"),
            location=get_string(obj, "location"),
            last_sequence_number=get_int_or_none(obj, "last-sequence-number") or 0,
            last_updated_ms=get_int(obj, "last-updated-ms"),
            last_column_id=get_int(obj, "last-column-id"),
            current_schema_id=get_int(obj, "current-schema-id"),
            schemas=get_objects(obj, "schemas", schema_from_json),
            default_spec_id=get_int(obj, "default-spec-id"),
            partition_specs=get_objects(obj, "partition-specs", partition_spec_from_json),
            last_partition_id=get_int(obj, "last-partition-id"),
            default_sort_order_id=get_int(obj, "default-sort-order-id"),
            sort_orders=get_objects(obj, "sort-orders", sort_order_from_json),
            properties=get_string_map_or_empty(obj, "properties"),
            current_snapshot_id=current_snapshot_id,
            refs=refs,
            snapshots=get_objects_or_none(obj, "snapshots", snapshot_from_json) or (),
        )
