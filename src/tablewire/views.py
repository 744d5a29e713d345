"""View versions and view metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tablewire._json import (
    JsonObject,
    get_int,
    get_objects,
    get_string,
    get_string_list,
    get_string_map,
    get_string_map_or_empty,
    get_string_or_none,
    malformed_on_value_error,
    put_if_present,
    require_object,
)
from tablewire.catalog import Namespace
from tablewire.errors import MalformedMessageError
from tablewire.schema import Schema, schema_from_json, schema_to_json

VIEW_FORMAT_VERSION = 1


@dataclass(frozen=True)
class SQLViewRepresentation:
    sql: str
    dialect: str

    def __post_init__(self) -> None:
        if not self.dialect:
            msg = "Invalid view representation: dialect can not be empty"
            raise ValueError(msg)


@dataclass(frozen=True)
class ViewVersion:
    """One immutable version of a view's definition.

    A version may carry at most one representation per SQL dialect.
    """

    version_id: int
    timestamp_ms: int
    schema_id: int
    summary: dict[str, str]
    representations: tuple[SQLViewRepresentation, ...]
    default_namespace: Namespace
    default_catalog: str | None = None

    def __post_init__(self) -> None:
        if not self.representations:
            msg = "Invalid view version: must have at least one representation"
            raise ValueError(msg)
        dialects = [r.dialect.lower() for r in self.representations]
        if len(dialects) != len(set(dialects)):
            msg = f"Invalid view version: duplicate dialects in {dialects}"
            raise ValueError(msg)


@dataclass(frozen=True)
class ViewHistoryEntry:
    version_id: int
    timestamp_ms: int


@dataclass(frozen=True)
class ViewMetadata:
    view_uuid: str
    location: str
    current_version_id: int
    versions: tuple[ViewVersion, ...]
    schemas: tuple[Schema, ...]
    version_log: tuple[ViewHistoryEntry, ...] = ()
    properties: dict[str, str] = field(default_factory=dict)
    format_version: int = VIEW_FORMAT_VERSION

    def __post_init__(self) -> None:
        if self.format_version != VIEW_FORMAT_VERSION:
            msg = f"Unsupported view format version: {self.format_version}"
            raise ValueError(msg)
        if self.current_version() is None:
            msg = f"Cannot find current version {self.current_version_id} in view versions"
            raise ValueError(msg)

    def current_version(self) -> ViewVersion | None:
        return next(
            (v for v in self.versions if v.version_id == self.current_version_id), None
        )


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


def view_version_to_json(version: ViewVersion) -> JsonObject:
    node: JsonObject = {
        "version-id": version.version_id,
        "timestamp-ms": version.timestamp_ms,
        "schema-id": version.schema_id,
        "summary": dict(version.summary),
        "default-namespace": list(version.default_namespace.levels),
    }
    put_if_present(node, "default-catalog", version.default_catalog)
    node["representations"] = [
        {"type": "sql", "sql": r.sql, "dialect": r.dialect} for r in version.representations
    ]
    return node


def _representation_from_json(node: Any) -> SQLViewRepresentation:
    obj = require_object(node, "view representation")
    kind = get_string(obj, "type")
    if kind.lower() != "sql":
        msg = f"Cannot deserialize unknown view representation type: {kind}"
        raise MalformedMessageError(msg, field="type")
    return SQLViewRepresentation(sql=get_string(obj, "sql"), dialect=get_string(obj, "dialect"))


def view_version_from_json(node: Any) -> ViewVersion:
    obj = require_object(node, "view version")
    with malformed_on_value_error("view version"):
        return ViewVersion(
            version_id=get_int(obj, "version-id"),
            timestamp_ms=get_int(obj, "timestamp-ms"),
            schema_id=get_int(obj, "schema-id"),
            summary=get_string_map(obj, "summary"),
            representations=get_objects(obj, "representations", _representation_from_json),
            default_namespace=Namespace(get_string_list(obj, "default-namespace")),
            default_catalog=get_string_or_none(obj, "default-catalog"),
        )


def view_metadata_to_json(metadata: ViewMetadata) -> JsonObject:
    return {
        "view-uuid": metadata.view_uuid,
        "format-version": metadata.format_version,
        "location": metadata.location,
        "properties": dict(metadata.properties),
        "schemas": [schema_to_json(s) for s in metadata.schemas],
        "current-version-id": metadata.current_version_id,
        "versions": [view_version_to_json(v) for v in metadata.versions],
        "version-log": [
            {"version-id": e.version_id, "timestamp-ms": e.timestamp_ms}
            for e in metadata.version_log
        ],
    }


def _history_entry_from_json(node: Any) -> ViewHistoryEntry:
    obj = require_object(node, "view history entry")
    return ViewHistoryEntry(
        version_id=get_int(obj, "version-id"), timestamp_ms=get_int(obj, "timestamp-ms")
    )


def view_metadata_from_json(node: Any) -> ViewMetadata:
    obj = require_object(node, "view metadata")
    with malformed_on_value_error("view metadata"):
        return ViewMetadata(
            view_uuid=get_string(obj, "view-uuid"),
            format_version=get_int(obj, "format-version"),
            location=get_string(obj, "location"),
            properties=get_string_map_or_empty(obj, "properties"),
            schemas=get_objects(obj, "schemas", schema_from_json),
            current_version_id=get_int(obj, "current-version-id"),
            versions=get_objects(obj, "versions", view_version_from_json),
            version_log=get_objects(obj, "version-log", _history_entry_from_json),
        )
