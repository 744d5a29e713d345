"""Field accessors for decoded JSON documents. Not part of the public API.

Every accessor raises ``MalformedMessageError`` naming the field when the
value is absent or has the wrong shape.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, cast

from tablewire.errors import MalformedMessageError

type JsonObject = dict[str, Any]


@contextmanager
def malformed_on_value_error(what: str) -> Iterator[None]:
    """Turn constructor ``ValueError``s into ``MalformedMessageError``."""
    try:
        yield
    except MalformedMessageError:
        raise
    except ValueError as exc:
        msg = f"Invalid {what}: {exc}"
        raise MalformedMessageError(msg) from exc


def require_object(node: object, what: str) -> JsonObject:
    if not isinstance(node, dict):
        msg = f"Cannot parse {what} from non-object: {node!r}"
        raise MalformedMessageError(msg)
    return cast(JsonObject, node)


def _missing(kind: str, field: str) -> MalformedMessageError:
    return MalformedMessageError(f"Cannot parse missing {kind}: {field}", field=field)


def _wrong(kind: str, field: str, value: object) -> MalformedMessageError:
    return MalformedMessageError(
        f"Cannot parse {field} to a {kind}value: {value!r}", field=field
    )


def get_string(node: Mapping[str, Any], field: str) -> str:
    if node.get(field) is None:
        raise _missing("string", field)
    return get_string_or_none(node, field)  # type: ignore[return-value]


def get_string_or_none(node: Mapping[str, Any], field: str) -> str | None:
    value = node.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _wrong("string ", field, value)
    return value


def get_int(node: Mapping[str, Any], field: str) -> int:
    if node.get(field) is None:
        raise _missing("int", field)
    return get_int_or_none(node, field)  # type: ignore[return-value]


def get_int_or_none(node: Mapping[str, Any], field: str) -> int | None:
    value = node.get(field)
    if value is None:
        return None
    # bool is an int subclass; a JSON true is never a number
    if isinstance(value, bool) or not isinstance(value, int):
        raise _wrong("integer ", field, value)
    return value


def get_bool(node: Mapping[str, Any], field: str) -> bool:
    if node.get(field) is None:
        raise _missing("boolean", field)
    return get_bool_or_none(node, field)  # type: ignore[return-value]


def get_bool_or_none(node: Mapping[str, Any], field: str) -> bool | None:
    value = node.get(field)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _wrong("boolean ", field, value)
    return value


def get_object(node: Mapping[str, Any], field: str) -> JsonObject:
    value = node.get(field)
    if value is None:
        raise _missing("object", field)
    if not isinstance(value, dict):
        raise _wrong("object ", field, value)
    return cast(JsonObject, value)


def get_object_or_none(node: Mapping[str, Any], field: str) -> JsonObject | None:
    if node.get(field) is None:
        return None
    return get_object(node, field)


def get_list(node: Mapping[str, Any], field: str) -> list[Any]:
    value = node.get(field)
    if value is None:
        raise _missing("list", field)
    if not isinstance(value, list):
        raise _wrong("list ", field, value)
    return cast(list[Any], value)


def get_list_or_none(node: Mapping[str, Any], field: str) -> list[Any] | None:
    if node.get(field) is None:
        return None
    return get_list(node, field)


def get_string_list(node: Mapping[str, Any], field: str) -> tuple[str, ...]:
    items = get_list(node, field)
    for item in items:
        if not isinstance(item, str):
            raise _wrong("string list ", field, items)
    return tuple(items)


def get_string_list_or_none(
    node: Mapping[str, Any], field: str
) -> tuple[str, ...] | None:
    if node.get(field) is None:
        return None
    return get_string_list(node, field)


def get_int_list(node: Mapping[str, Any], field: str) -> tuple[int, ...]:
    items = get_list(node, field)
    for item in items:
        if isinstance(item, bool) or not isinstance(item, int):
            raise _wrong("integer list ", field, items)
    return tuple(items)


def get_int_list_or_none(node: Mapping[str, Any], field: str) -> tuple[int, ...] | None:
    if node.get(field) is None:
        return None
    return get_int_list(node, field)


def get_string_map(node: Mapping[str, Any], field: str) -> dict[str, str]:
    value = get_object(node, field)
    for key, item in value.items():
        if not isinstance(item, str):
            msg = f"Cannot parse {field} to a string map: {key}={item!r}"
            raise MalformedMessageError(msg, field=field)
    return dict(value)


def get_string_map_or_empty(node: Mapping[str, Any], field: str) -> dict[str, str]:
    if node.get(field) is None:
        return {}
    return get_string_map(node, field)


def get_objects[T](
    node: Mapping[str, Any],
    field: str,
    parse: Callable[[Any], T],
) -> tuple[T, ...]:
    return tuple(parse(item) for item in get_list(node, field))


def get_objects_or_none[T](
    node: Mapping[str, Any],
    field: str,
    parse: Callable[[Any], T],
) -> tuple[T, ...] | None:
    if node.get(field) is None:
        return None
    return get_objects(node, field, parse)


def put_if_present(node: JsonObject, field: str, value: object) -> None:
    if value is not None:
        node[field] = value
