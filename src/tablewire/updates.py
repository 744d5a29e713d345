"""Metadata updates and update requirements.

Both are message families with many concrete shapes. On the wire each
shape is tagged: updates by ``"action"``, requirements by ``"type"``.
Decoding branches on that tag, never on the caller's type token.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from tablewire._json import (
    JsonObject,
    get_int,
    get_int_list,
    get_int_or_none,
    get_object,
    get_string,
    get_string_list,
    get_string_map,
    malformed_on_value_error,
    put_if_present,
    require_object,
)
from tablewire.errors import MalformedMessageError
from tablewire.metadata import (
    Snapshot,
    SnapshotRef,
    SnapshotRefType,
    snapshot_from_json,
    snapshot_to_json,
)
from tablewire.partitioning import (
    UnboundPartitionSpec,
    UnboundSortOrder,
    partition_spec_from_json,
    partition_spec_to_json,
    sort_order_from_json,
    sort_order_to_json,
)
from tablewire.schema import Schema, schema_from_json, schema_to_json
from tablewire.views import ViewVersion, view_version_from_json, view_version_to_json

# Id placeholder meaning "the schema/spec/order added earlier in this change set"
LAST_ADDED = -1


# ---------------------------------------------------------------------------
# Metadata updates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetadataUpdate:
    """Base class of every metadata change."""

    action: ClassVar[str]


@dataclass(frozen=True)
class AssignUUID(MetadataUpdate):
    action: ClassVar[str] = "assign-uuid"
    uuid: str


@dataclass(frozen=True)
class UpgradeFormatVersion(MetadataUpdate):
    action: ClassVar[str] = "upgrade-format-version"
    format_version: int


@dataclass(frozen=True)
class AddSchema(MetadataUpdate):
    action: ClassVar[str] = "add-schema"
    schema: Schema
    last_column_id: int | None = None


@dataclass(frozen=True)
class SetCurrentSchema(MetadataUpdate):
    action: ClassVar[str] = "set-current-schema"
    schema_id: int = LAST_ADDED


@dataclass(frozen=True)
class AddPartitionSpec(MetadataUpdate):
    action: ClassVar[str] = "add-spec"
    spec: UnboundPartitionSpec


@dataclass(frozen=True)
class SetDefaultPartitionSpec(MetadataUpdate):
    action: ClassVar[str] = "set-default-spec"
    spec_id: int = LAST_ADDED


@dataclass(frozen=True)
class AddSortOrder(MetadataUpdate):
    action: ClassVar[str] = "add-sort-order"
    sort_order: UnboundSortOrder


@dataclass(frozen=True)
class SetDefaultSortOrder(MetadataUpdate):
    action: ClassVar[str] = "set-default-sort-order"
    sort_order_id: int = LAST_ADDED


@dataclass(frozen=True)
class AddSnapshot(MetadataUpdate):
    action: ClassVar[str] = "add-snapshot"
    snapshot: Snapshot


@dataclass(frozen=True)
class RemoveSnapshots(MetadataUpdate):
    action: ClassVar[str] = "remove-snapshots"
    snapshot_ids: tuple[int, ...]


@dataclass(frozen=True)
class SetSnapshotRef(MetadataUpdate):
    action: ClassVar[str] = "set-snapshot-ref"
    ref_name: str
    ref: SnapshotRef


@dataclass(frozen=True)
class RemoveSnapshotRef(MetadataUpdate):
    action: ClassVar[str] = "remove-snapshot-ref"
    ref_name: str


@dataclass(frozen=True)
class SetProperties(MetadataUpdate):
    action: ClassVar[str] = "set-properties"
    updates: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoveProperties(MetadataUpdate):
    action: ClassVar[str] = "remove-properties"
    removals: tuple[str, ...] = ()


@dataclass(frozen=True)
class SetLocation(MetadataUpdate):
    action: ClassVar[str] = "set-location"
    location: str


@dataclass(frozen=True)
class AddViewVersion(MetadataUpdate):
    action: ClassVar[str] = "add-view-version"
    view_version: ViewVersion


@dataclass(frozen=True)
class SetCurrentViewVersion(MetadataUpdate):
    action: ClassVar[str] = "set-current-view-version"
    view_version_id: int = LAST_ADDED


def metadata_update_to_json(update: MetadataUpdate) -> JsonObject:
    node: JsonObject = {"action": update.action}
    match update:
        case AssignUUID(uuid=uuid):
            node["uuid"] = uuid
        case UpgradeFormatVersion(format_version=version):
            node["format-version"] = version
        case AddSchema(schema=schema, last_column_id=last_column_id):
            node["schema"] = schema_to_json(schema)
            put_if_present(node, "last-column-id", last_column_id)
        case SetCurrentSchema(schema_id=schema_id):
            node["schema-id"] = schema_id
        case AddPartitionSpec(spec=spec):
            node["spec"] = partition_spec_to_json(spec)
        case SetDefaultPartitionSpec(spec_id=spec_id):
            node["spec-id"] = spec_id
        case AddSortOrder(sort_order=order):
            node["sort-order"] = sort_order_to_json(order)
        case SetDefaultSortOrder(sort_order_id=order_id):
            node["sort-order-id"] = order_id
        case AddSnapshot(snapshot=snapshot):
            node["snapshot"] = snapshot_to_json(snapshot)
        case RemoveSnapshots(snapshot_ids=ids):
            node["snapshot-ids"] = list(ids)
        case SetSnapshotRef(ref_name=name, ref=ref):
            node["ref-name"] = name
            node["snapshot-id"] = ref.snapshot_id
            node["type"] = ref.type.value
            put_if_present(node, "min-snapshots-to-keep", ref.min_snapshots_to_keep)
            put_if_present(node, "max-snapshot-age-ms", ref.max_snapshot_age_ms)
            put_if_present(node, "max-ref-age-ms", ref.max_ref_age_ms)
        case RemoveSnapshotRef(ref_name=name):
            node["ref-name"] = name
        case SetProperties(updates=updates):
            node["updates"] = dict(updates)
        case RemoveProperties(removals=removals):
            node["removals"] = list(removals)
        case SetLocation(location=location):
            node["location"] = location
        case AddViewVersion(view_version=version):
            node["view-version"] = view_version_to_json(version)
        case SetCurrentViewVersion(view_version_id=version_id):
            node["view-version-id"] = version_id
        case _:
            msg = f"Cannot convert metadata update to json: {type(update).__name__}"
            raise TypeError(msg)
    return node


def _ref_type(obj: JsonObject) -> SnapshotRefType:
    raw = get_string(obj, "type")
    try:
        return SnapshotRefType(raw.lower())
    except ValueError as exc:
        msg = f"Invalid snapshot ref type: {raw}"
        raise MalformedMessageError(msg, field="type") from exc


def metadata_update_from_json(node: Any) -> MetadataUpdate:
    obj = require_object(node, "metadata update")
    action = get_string(obj, "action").lower()
    with malformed_on_value_error(f"metadata update {action!r}"):
        match action:
            case AssignUUID.action:
                return AssignUUID(get_string(obj, "uuid"))
            case UpgradeFormatVersion.action:
                return UpgradeFormatVersion(get_int(obj, "format-version"))
            case AddSchema.action:
                return AddSchema(
                    schema_from_json(get_object(obj, "schema")),
                    get_int_or_none(obj, "last-column-id"),
                )
            case SetCurrentSchema.action:
                return SetCurrentSchema(get_int(obj, "schema-id"))
            case AddPartitionSpec.action:
                return AddPartitionSpec(partition_spec_from_json(get_object(obj, "spec")))
            case SetDefaultPartitionSpec.action:
                return SetDefaultPartitionSpec(get_int(obj, "spec-id"))
            case AddSortOrder.action:
                return AddSortOrder(sort_order_from_json(get_object(obj, "sort-order")))
            case SetDefaultSortOrder.action:
                return SetDefaultSortOrder(get_int(obj, "sort-order-id"))
            case AddSnapshot.action:
                return AddSnapshot(snapshot_from_json(get_object(obj, "snapshot")))
            case RemoveSnapshots.action:
                return RemoveSnapshots(get_int_list(obj, "snapshot-ids"))
            case SetSnapshotRef.action:
                ref = SnapshotRef(
                    snapshot_id=get_int(obj, "snapshot-id"),
                    type=_ref_type(obj),
                    min_snapshots_to_keep=get_int_or_none(obj, "min-snapshots-to-keep"),
                    max_snapshot_age_ms=get_int_or_none(obj, "max-snapshot-age-ms"),
                    max_ref_age_ms=get_int_or_none(obj, "max-ref-age-ms"),
                )
                return SetSnapshotRef(get_string(obj, "ref-name"), ref)
            case RemoveSnapshotRef.action:
                return RemoveSnapshotRef(get_string(obj, "ref-name"))
            case SetProperties.action:
                return SetProperties(get_string_map(obj, "updates"))
            case RemoveProperties.action:
                return RemoveProperties(get_string_list(obj, "removals"))
            case SetLocation.action:
                return SetLocation(get_string(obj, "location"))
            case AddViewVersion.action:
                return AddViewVersion(view_version_from_json(get_object(obj, "view-version")))
            case SetCurrentViewVersion.action:
                return SetCurrentViewVersion(get_int(obj, "view-version-id"))
            case _:
                msg = f"Cannot convert metadata update action to json: {action}"
                raise MalformedMessageError(msg, field="action")


# ---------------------------------------------------------------------------
# Update requirements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpdateRequirement:
    """Base class of every commit precondition."""

    type: ClassVar[str]


@dataclass(frozen=True)
class AssertTableDoesNotExist(UpdateRequirement):
    type: ClassVar[str] = "assert-create"


@dataclass(frozen=True)
class AssertTableUUID(UpdateRequirement):
    type: ClassVar[str] = "assert-table-uuid"
    uuid: str


@dataclass(frozen=True)
class AssertViewUUID(UpdateRequirement):
    type: ClassVar[str] = "assert-view-uuid"
    uuid: str


@dataclass(frozen=True)
class AssertRefSnapshotID(UpdateRequirement):
    """The named ref points at ``snapshot_id``; ``None`` asserts it does not exist."""

    type: ClassVar[str] = "assert-ref-snapshot-id"
    ref: str
    snapshot_id: int | None


@dataclass(frozen=True)
class AssertLastAssignedFieldId(UpdateRequirement):
    type: ClassVar[str] = "assert-last-assigned-field-id"
    last_assigned_field_id: int


@dataclass(frozen=True)
class AssertCurrentSchemaID(UpdateRequirement):
    type: ClassVar[str] = "assert-current-schema-id"
    schema_id: int


@dataclass(frozen=True)
class AssertLastAssignedPartitionId(UpdateRequirement):
    type: ClassVar[str] = "assert-last-assigned-partition-id"
    last_assigned_partition_id: int


@dataclass(frozen=True)
class AssertDefaultSpecID(UpdateRequirement):
    type: ClassVar[str] = "assert-default-spec-id"
    spec_id: int


@dataclass(frozen=True)
class AssertDefaultSortOrderID(UpdateRequirement):
    type: ClassVar[str] = "assert-default-sort-order-id"
    sort_order_id: int


def update_requirement_to_json(requirement: UpdateRequirement) -> JsonObject:
    node: JsonObject = {"type": requirement.type}
    match requirement:
        case AssertTableDoesNotExist():
            pass
        case AssertTableUUID(uuid=uuid) | AssertViewUUID(uuid=uuid):
            node["uuid"] = uuid
        case AssertRefSnapshotID(ref=ref, snapshot_id=snapshot_id):
            node["ref"] = ref
            node["snapshot-id"] = snapshot_id
        case AssertLastAssignedFieldId(last_assigned_field_id=field_id):
            node["last-assigned-field-id"] = field_id
        case AssertCurrentSchemaID(schema_id=schema_id):
            node["current-schema-id"] = schema_id
        case AssertLastAssignedPartitionId(last_assigned_partition_id=partition_id):
            node["last-assigned-partition-id"] = partition_id
        case AssertDefaultSpecID(spec_id=spec_id):
            node["default-spec-id"] = spec_id
        case AssertDefaultSortOrderID(sort_order_id=order_id):
            node["default-sort-order-id"] = order_id
        case _:
            msg = f"Cannot convert update requirement to json: {type(requirement).__name__}"
            raise TypeError(msg)
    return node


def update_requirement_from_json(node: Any) -> UpdateRequirement:
    obj = require_object(node, "update requirement")
    kind = get_string(obj, "type").lower()
    match kind:
        case AssertTableDoesNotExist.type:
            return AssertTableDoesNotExist()
        case AssertTableUUID.type:
            return AssertTableUUID(get_string(obj, "uuid"))
        case AssertViewUUID.type:
            return AssertViewUUID(get_string(obj, "uuid"))
        case AssertRefSnapshotID.type:
            # snapshot-id must be present even when null
            if "snapshot-id" not in obj:
                msg = "Cannot parse missing field: snapshot-id"
                raise MalformedMessageError(msg, field="snapshot-id")
            return AssertRefSnapshotID(get_string(obj, "ref"), get_int_or_none(obj, "snapshot-id"))
        case AssertLastAssignedFieldId.type:
            return AssertLastAssignedFieldId(get_int(obj, "last-assigned-field-id"))
        case AssertCurrentSchemaID.type:
            return AssertCurrentSchemaID(get_int(obj, "current-schema-id"))
        case AssertLastAssignedPartitionId.type:
            return AssertLastAssignedPartitionId(get_int(obj, "last-assigned-partition-id"))
        case AssertDefaultSpecID.type:
            return AssertDefaultSpecID(get_int(obj, "default-spec-id"))
        case AssertDefaultSortOrderID.type:
            return AssertDefaultSortOrderID(get_int(obj, "default-sort-order-id"))
        case _:
            msg = f"Cannot parse update requirement. Invalid type: {kind}"
            raise MalformedMessageError(msg, field="type")
