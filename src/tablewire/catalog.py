"""Catalog object identities: namespaces and table identifiers.

A namespace travels as a bare JSON array of levels; a table identifier as
``{"namespace": [...], "name": "..."}``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tablewire._json import (
    JsonObject,
    get_string,
    get_string_list,
    malformed_on_value_error,
    require_object,
)
from tablewire.errors import MalformedMessageError


@dataclass(frozen=True)
class Namespace:
    """A multi-level catalog namespace.

    Examples
    --------
    >>> Namespace.of("prod", "sales")
    Namespace(levels=('prod', 'sales'))
    >>> str(Namespace.of("prod", "sales"))
    'prod.sales'
    """

    levels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for level in self.levels:
            if "\x00" in level:
                msg = f"Cannot create namespace with null-byte character: {level!r}"
                raise ValueError(msg)

    @classmethod
    def of(cls, *levels: str) -> Namespace:
        return cls(tuple(levels))

    @property
    def is_empty(self) -> bool:
        return not self.levels

    def __str__(self) -> str:
        return ".".join(self.levels)


@dataclass(frozen=True)
class TableIdentifier:
    """A table name qualified by its namespace.

    Examples
    --------
    >>> TableIdentifier.parse("prod.sales.orders")
    TableIdentifier(namespace=Namespace(levels=('prod', 'sales')), name='orders')
    """

    namespace: Namespace
    name: str

    def __post_init__(self) -> None:
        if not self.name:
            msg = "Invalid table name: null or empty"
            raise ValueError(msg)

    @classmethod
    def of(cls, *parts: str) -> TableIdentifier:
        if not parts:
            msg = "Cannot create table identifier without a table name"
            raise ValueError(msg)
        return cls(Namespace(tuple(parts[:-1])), parts[-1])

    @classmethod
    def parse(cls, identifier: str) -> TableIdentifier:
        return cls.of(*identifier.split("."))

    def __str__(self) -> str:
        if self.namespace.is_empty:
            return self.name
        return f"{self.namespace}.{self.name}"


def namespace_to_json(namespace: Namespace) -> list[str]:
    return list(namespace.levels)


def namespace_from_json(node: Any) -> Namespace:
    if not isinstance(node, list) or not all(isinstance(x, str) for x in node):
        msg = f"Cannot parse namespace from non-array of strings: {node!r}"
        raise MalformedMessageError(msg)
    with malformed_on_value_error("namespace"):
        return Namespace(tuple(node))


def table_identifier_to_json(identifier: TableIdentifier) -> JsonObject:
    return {
        "namespace": list(identifier.namespace.levels),
        "name": identifier.name,
    }


def table_identifier_from_json(node: Any) -> TableIdentifier:
    obj = require_object(node, "table identifier")
    levels = get_string_list(obj, "namespace")
    name = get_string(obj, "name")
    if not name:
        msg = "Cannot parse table identifier with empty name"
        raise MalformedMessageError(msg, field="name")
    with malformed_on_value_error("table identifier"):
        return TableIdentifier(Namespace(levels), name)
