"""Table schemas and their JSON codec.

Primitive types travel as strings (``"long"``, ``"decimal(9,2)"``,
``"fixed[16]"``); nested types as objects tagged with ``"type"``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from tablewire._json import (
    JsonObject,
    get_bool,
    get_int,
    get_int_list_or_none,
    get_int_or_none,
    get_list,
    get_string,
    get_string_or_none,
    malformed_on_value_error,
    require_object,
)
from tablewire.errors import MalformedMessageError

PRIMITIVE_TYPES = frozenset({
    "boolean",
    "int",
    "long",
    "float",
    "double",
    "date",
    "time",
    "timestamp",
    "timestamptz",
    "timestamp_ns",
    "timestamptz_ns",
    "string",
    "uuid",
    "binary",
    "unknown",
})

_DECIMAL = re.compile(r"decimal\(\s*(\d+)\s*,\s*(\d+)\s*\)")
_FIXED = re.compile(r"fixed\[\s*(\d+)\s*\]")


@dataclass(frozen=True)
class PrimitiveType:
    """A leaf type, identified by its wire name.

    Examples
    --------
    >>> PrimitiveType("decimal(9, 2)").name
    'decimal(9,2)'
    """

    name: str

    def __post_init__(self) -> None:
        name = self.name.strip().lower()
        if (m := _DECIMAL.fullmatch(name)) is not None:
            name = f"decimal({int(m.group(1))},{int(m.group(2))})"
        elif (m := _FIXED.fullmatch(name)) is not None:
            name = f"fixed[{int(m.group(1))}]"
        elif name not in PRIMITIVE_TYPES:
            msg = f"Cannot parse type string to primitive: {self.name}"
            raise ValueError(msg)
        object.__setattr__(self, "name", name)


@dataclass(frozen=True)
class NestedField:
    field_id: int
    name: str
    type: FieldType
    required: bool = False
    doc: str | None = None


@dataclass(frozen=True)
class StructType:
    fields: tuple[NestedField, ...] = ()


@dataclass(frozen=True)
class ListType:
    element_id: int
    element: FieldType
    element_required: bool = False


@dataclass(frozen=True)
class MapType:
    key_id: int
    key: FieldType
    value_id: int
    value: FieldType
    value_required: bool = False


type FieldType = PrimitiveType | StructType | ListType | MapType


@dataclass(frozen=True)
class Schema:
    """A table schema: a top-level struct plus identity metadata.

    Parameters
    ----------
    fields : tuple[NestedField, ...]
        Top-level columns in order.
    schema_id : int | None
        Id assigned by the table metadata, ``None`` for unbound schemas.
    identifier_field_ids : tuple[int, ...]
        Field ids forming the row identifier.

    Examples
    --------
    >>> schema = Schema((NestedField(1, "id", PrimitiveType("long"), required=True),))
    >>> schema.highest_field_id
    1
    """

    fields: tuple[NestedField, ...]
    schema_id: int | None = None
    identifier_field_ids: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        ids = [field_id for field_id, _ in _walk_ids(StructType(self.fields))]
        if len(ids) != len(set(ids)):
            msg = f"Invalid schema: duplicate field ids in {sorted(ids)}"
            raise ValueError(msg)
        known = set(ids)
        for field_id in self.identifier_field_ids:
            if field_id not in known:
                msg = f"Cannot find identifier field id {field_id} in schema"
                raise ValueError(msg)

    @property
    def highest_field_id(self) -> int:
        return max((field_id for field_id, _ in _walk_ids(StructType(self.fields))), default=0)

    def find_field(self, name: str) -> NestedField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


def _walk_ids(field_type: FieldType) -> list[tuple[int, FieldType]]:
    match field_type:
        case StructType(fields=fields):
            out: list[tuple[int, FieldType]] = []
            for f in fields:
                out.append((f.field_id, f.type))
                out.extend(_walk_ids(f.type))
            return out
        case ListType(element_id=element_id, element=element):
            return [(element_id, element), *_walk_ids(element)]
        case MapType(key_id=key_id, key=key, value_id=value_id, value=value):
            return [(key_id, key), *_walk_ids(key), (value_id, value), *_walk_ids(value)]
        case _:
            return []


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def type_to_json(field_type: FieldType) -> str | JsonObject:
    match field_type:
        case PrimitiveType(name=name):
            return name
        case StructType(fields=fields):
            return {"type": "struct", "fields": [_field_to_json(f) for f in fields]}
        case ListType():
            return {
                "type": "list",
                "element-id": field_type.element_id,
                "element": type_to_json(field_type.element),
                "element-required": field_type.element_required,
            }
        case MapType():
            return {
                "type": "map",
                "key-id": field_type.key_id,
                "key": type_to_json(field_type.key),
                "value-id": field_type.value_id,
                "value": type_to_json(field_type.value),
                "value-required": field_type.value_required,
            }


def _field_to_json(f: NestedField) -> JsonObject:
    node: JsonObject = {
        "id": f.field_id,
        "name": f.name,
        "required": f.required,
        "type": type_to_json(f.type),
    }
    if f.doc is not None:
        node["doc"] = f.doc
    return node


def type_from_json(node: Any) -> FieldType:
    if isinstance(node, str):
        with malformed_on_value_error("type"):
            return PrimitiveType(node)

    obj = require_object(node, "type")
    match get_string(obj, "type"):
        case "struct":
            return StructType(_fields_from_json(obj))
        case "list":
            return ListType(
                element_id=get_int(obj, "element-id"),
                element=type_from_json(obj.get("element")),
                element_required=get_bool(obj, "element-required"),
            )
        case "map":
            return MapType(
                key_id=get_int(obj, "key-id"),
                key=type_from_json(obj.get("key")),
                value_id=get_int(obj, "value-id"),
                value=type_from_json(obj.get("value")),
                value_required=get_bool(obj, "value-required"),
            )
        case other:
            msg = f"Cannot parse type from json: unknown type {other!r}"
            raise MalformedMessageError(msg, field="type")


def _fields_from_json(obj: JsonObject) -> tuple[NestedField, ...]:
    fields: list[NestedField] = []
    for item in get_list(obj, "fields"):
        f = require_object(item, "field")
        fields.append(
            NestedField(
                field_id=get_int(f, "id"),
                name=get_string(f, "name"),
                type=type_from_json(f.get("type")),
                required=get_bool(f, "required"),
                doc=get_string_or_none(f, "doc"),
            )
        )
    return tuple(fields)


def schema_to_json(schema: Schema) -> JsonObject:
    node: JsonObject = {"type": "struct"}
    if schema.schema_id is not None:
        node["schema-id"] = schema.schema_id
    if schema.identifier_field_ids:
        node["identifier-field-ids"] = list(schema.identifier_field_ids)
    node["fields"] = [_field_to_json(f) for f in schema.fields]
    return node


def schema_from_json(node: Any) -> Schema:
    obj = require_object(node, "schema")
    if get_string(obj, "type") != "struct":
        msg = f"Cannot parse schema from non-struct type: {obj['type']!r}"
        raise MalformedMessageError(msg, field="type")
    with malformed_on_value_error("schema"):
        return Schema(
            fields=_fields_from_json(obj),
            schema_id=get_int_or_none(obj, "schema-id"),
            identifier_field_ids=get_int_list_or_none(obj, "identifier-field-ids") or (),
        )
