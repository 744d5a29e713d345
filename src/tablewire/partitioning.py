"""Partition specs and sort orders, in their unbound (wire) form."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any

from tablewire._json import (
    JsonObject,
    get_int,
    get_int_or_none,
    get_list,
    get_string,
    malformed_on_value_error,
    put_if_present,
    require_object,
)
from tablewire.errors import MalformedMessageError

_TRANSFORM = re.compile(r"identity|year|month|day|hour|void|(bucket|truncate)\[(\d+)\]")


def check_transform(transform: str) -> str:
    if (m := _TRANSFORM.fullmatch(transform)) is None:
        msg = f"Unknown transform: {transform}"
        raise ValueError(msg)
    if m.group(2) is not None and int(m.group(2)) <= 0:
        msg = f"Invalid transform parameter, must be positive: {transform}"
        raise ValueError(msg)
    return transform


@dataclass(frozen=True)
class UnboundPartitionField:
    source_id: int
    transform: str
    name: str
    field_id: int | None = None

    def __post_init__(self) -> None:
        check_transform(self.transform)


@dataclass(frozen=True)
class UnboundPartitionSpec:
    """A partition spec not yet bound to a schema.

    Examples
    --------
    >>> spec = UnboundPartitionSpec((UnboundPartitionField(1, "day", "ts_day"),))
    >>> spec.is_unpartitioned
    False
    """

    fields: tuple[UnboundPartitionField, ...] = ()
    spec_id: int | None = None

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            msg = f"Cannot use partition names more than once: {names}"
            raise ValueError(msg)

    @property
    def is_unpartitioned(self) -> bool:
        return all(f.transform == "void" for f in self.fields)


class SortDirection(enum.Enum):
    asc = "asc"
    desc = "desc"


class NullOrder(enum.Enum):
    nulls_first = "nulls-first"
    nulls_last = "nulls-last"


@dataclass(frozen=True)
class SortField:
    source_id: int
    transform: str = "identity"
    direction: SortDirection = SortDirection.asc
    null_order: NullOrder = NullOrder.nulls_first

    def __post_init__(self) -> None:
        check_transform(self.transform)


UNSORTED_ORDER_ID = 0


@dataclass(frozen=True)
class UnboundSortOrder:
    """A sort order not yet bound to a schema.

    Order id 0 is reserved for the unsorted order, which has no fields.
    """

    order_id: int = UNSORTED_ORDER_ID
    fields: tuple[SortField, ...] = ()

    def __post_init__(self) -> None:
        if self.fields and self.order_id == UNSORTED_ORDER_ID:
            msg = f"Sort order ID {UNSORTED_ORDER_ID} is reserved for unsorted order"
            raise ValueError(msg)
        if not self.fields and self.order_id != UNSORTED_ORDER_ID:
            msg = f"Unsorted order ID must be {UNSORTED_ORDER_ID}"
            raise ValueError(msg)

    @property
    def is_unsorted(self) -> bool:
        return not self.fields


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


def partition_spec_to_json(spec: UnboundPartitionSpec) -> JsonObject:
    node: JsonObject = {}
    put_if_present(node, "spec-id", spec.spec_id)
    fields: list[JsonObject] = []
    for f in spec.fields:
        field_node: JsonObject = {
            "name": f.name,
            "transform": f.transform,
            "source-id": f.source_id,
        }
        put_if_present(field_node, "field-id", f.field_id)
        fields.append(field_node)
    node["fields"] = fields
    return node


def partition_spec_from_json(node: Any) -> UnboundPartitionSpec:
    obj = require_object(node, "partition spec")
    fields: list[UnboundPartitionField] = []
    with malformed_on_value_error("partition spec"):
        for item in get_list(obj, "fields"):
            f = require_object(item, "partition field")
            fields.append(
                UnboundPartitionField(
                    source_id=get_int(f, "source-id"),
                    transform=get_string(f, "transform"),
                    name=get_string(f, "name"),
                    field_id=get_int_or_none(f, "field-id"),
                )
            )
        return UnboundPartitionSpec(tuple(fields), get_int_or_none(obj, "spec-id"))


def sort_order_to_json(order: UnboundSortOrder) -> JsonObject:
    return {
        "order-id": order.order_id,
        "fields": [
            {
                "transform": f.transform,
                "source-id": f.source_id,
                "direction": f.direction.value,
                "null-order": f.null_order.value,
            }
            for f in order.fields
        ],
    }


def _enum_value[E: enum.Enum](enum_cls: type[E], obj: JsonObject, field: str) -> E:
    raw = get_string(obj, field)
    try:
        return enum_cls(raw.lower())
    except ValueError as exc:
        msg = f"Invalid {field}: {raw}"
        raise MalformedMessageError(msg, field=field) from exc


def sort_order_from_json(node: Any) -> UnboundSortOrder:
    obj = require_object(node, "sort order")
    fields: list[SortField] = []
    with malformed_on_value_error("sort order"):
        for item in get_list(obj, "fields"):
            f = require_object(item, "sort field")
            fields.append(
                SortField(
                    source_id=get_int(f, "source-id"),
                    transform=get_string(f, "transform"),
                    direction=_enum_value(SortDirection, f, "direction"),
                    null_order=_enum_value(NullOrder, f, "null-order"),
                )
            )
        return UnboundSortOrder(get_int(obj, "order-id"), tuple(fields))
