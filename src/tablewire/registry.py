"""Codec registry: one encoder/decoder pair per catalog message type.

A ``RegistryBuilder`` collects ``Codec`` entries at startup and freezes them
into a ``CodecRegistry``. The registry is read-only after ``build()`` and can
be shared by any number of concurrent request handlers without locking.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from tablewire import wire
from tablewire.errors import ConfigurationError, MalformedMessageError, UnsupportedTypeError
from tablewire.wire import BodyFormat

logger = logging.getLogger("tablewire.registry")


class MessageType(enum.Enum):
    """Identity of every message the catalog protocol carries."""

    error_response = "error-response"
    table_identifier = "table-identifier"
    namespace = "namespace"
    schema = "schema"
    partition_spec = "partition-spec"
    sort_order = "sort-order"
    metadata_update = "metadata-update"
    update_requirement = "update-requirement"
    table_metadata = "table-metadata"
    oauth_token_response = "oauth-token-response"
    report_metrics_request = "report-metrics-request"
    commit_transaction_request = "commit-transaction-request"
    update_table_request = "update-table-request"
    register_table_request = "register-table-request"
    create_view_request = "create-view-request"
    load_view_response = "load-view-response"
    config_response = "config-response"
    load_table_response = "load-table-response"
    create_scan_request = "create-scan-request"
    plan_table_scan_request = "plan-table-scan-request"
    fetch_scan_tasks_request = "fetch-scan-tasks-request"
    plan_table_scan_response = "plan-table-scan-response"
    fetch_planning_result_response = "fetch-planning-result-response"
    fetch_scan_tasks_response = "fetch-scan-tasks-response"


@dataclass(frozen=True)
class Codec[T]:
    """An encoder/decoder pair for one message type.

    ``family`` is the Python class (or base class) of the values the codec
    handles. Every subclass of ``family`` routes to this codec.
    """

    message_type: MessageType
    family: type[T]
    encoder: Callable[[T], Any]
    decoder: Callable[[Any], T]


def _message_type(message_type: MessageType | str) -> MessageType:
    if isinstance(message_type, MessageType):
        return message_type
    try:
        return MessageType(message_type)
    except ValueError as exc:
        msg = f"Unknown message type: {message_type!r}"
        raise UnsupportedTypeError(msg) from exc


class RegistryBuilder:
    """Collects codecs and freezes them into a ``CodecRegistry``.

    Examples
    --------
    >>> from tablewire.catalog import TableIdentifier, table_identifier_from_json
    >>> from tablewire.catalog import table_identifier_to_json
    >>> registry = (
    ...     RegistryBuilder()
    ...     .register(
    ...         MessageType.table_identifier,
    ...         TableIdentifier,
    ...         table_identifier_to_json,
    ...         table_identifier_from_json,
    ...     )
    ...     .build()
    ... )
    >>> registry.encode(MessageType.table_identifier, TableIdentifier.parse("db.t"))
    {'namespace': ['db'], 'name': 't'}
    """

    def __init__(self) -> None:
        self._codecs: dict[MessageType, Codec[Any]] = {}
        self._families: dict[type, MessageType] = {}
        self._built = False

    def register[T](
        self,
        message_type: MessageType,
        family: type[T],
        encoder: Callable[[T], Any],
        decoder: Callable[[Any], T],
    ) -> RegistryBuilder:
        """Add the codec for ``message_type``.

        Raises
        ------
        ConfigurationError
            If the type or family already has a codec, or the registry was
            already built.
        """
        if self._built:
            msg = f"Cannot register {message_type.value}: registry already built"
            raise ConfigurationError(msg)
        if message_type in self._codecs:
            msg = f"Duplicate codec for message type {message_type.value}"
            raise ConfigurationError(msg)
        if family in self._families:
            msg = (
                f"Duplicate codec for family {family.__qualname__} "
                f"(already registered as {self._families[family].value})"
            )
            raise ConfigurationError(msg)
        self._codecs[message_type] = Codec(message_type, family, encoder, decoder)
        self._families[family] = message_type
        return self

    def build(
        self,
        *,
        require: Iterable[MessageType] = (),
        body_format: BodyFormat = "json",
    ) -> CodecRegistry:
        """Freeze the collected codecs.

        Parameters
        ----------
        require : Iterable[MessageType]
            Message types that must have a codec.
        body_format : BodyFormat
            Byte encoding used by ``serialize`` and ``deserialize``.

        Raises
        ------
        ConfigurationError
            If a required message type has no codec.
        """
        missing = [t.value for t in require if t not in self._codecs]
        if missing:
            msg = f"Missing codec registrations: {', '.join(sorted(missing))}"
            raise ConfigurationError(msg)
        wire.check_body_format(body_format)
        self._built = True
        logger.debug("Built codec registry with %d message types", len(self._codecs))
        return CodecRegistry(self._codecs, body_format=body_format)


class CodecRegistry:
    """Immutable mapping from message type to codec.

    Parameters
    ----------
    codecs : dict[MessageType, Codec]
        Codecs by message type. Copied; later changes to the argument do
        not leak in.
    body_format : BodyFormat
        Byte encoding used by ``serialize`` and ``deserialize``.
    """

    def __init__(
        self,
        codecs: dict[MessageType, Codec[Any]],
        *,
        body_format: BodyFormat = "json",
    ) -> None:
        self._codecs = MappingProxyType(dict(codecs))
        self._families = MappingProxyType(
            {codec.family: codec.message_type for codec in codecs.values()}
        )
        self.body_format = body_format

    def codec(self, message_type: MessageType | str) -> Codec[Any]:
        resolved = _message_type(message_type)
        codec = self._codecs.get(resolved)
        if codec is None:
            msg = f"No codec registered for message type {resolved.value}"
            raise UnsupportedTypeError(msg)
        return codec

    def message_type_of(self, value: object) -> MessageType:
        """Find the message type for ``value`` by walking its class hierarchy."""
        for cls in type(value).__mro__:
            message_type = self._families.get(cls)
            if message_type is not None:
                return message_type
        msg = f"No codec registered for values of type {type(value).__qualname__}"
        raise UnsupportedTypeError(msg)

    def encode(self, message_type: MessageType | str, value: Any) -> Any:
        """Encode ``value`` as the JSON document of ``message_type``.

        Raises
        ------
        UnsupportedTypeError
            If ``message_type`` has no codec.
        TypeError
            If ``value`` is None or not an instance of the codec's family.
        """
        codec = self.codec(message_type)
        if value is None:
            msg = f"Cannot encode null {codec.message_type.value}"
            raise TypeError(msg)
        if not isinstance(value, codec.family):
            msg = (
                f"Cannot encode {type(value).__qualname__} as "
                f"{codec.message_type.value} (expected {codec.family.__qualname__})"
            )
            raise TypeError(msg)
        return codec.encoder(value)

    def decode(self, message_type: MessageType | str, document: Any) -> Any:
        """Decode a JSON document as ``message_type``.

        Raises
        ------
        UnsupportedTypeError
            If ``message_type`` has no codec.
        MalformedMessageError
            If the document is missing fields or has fields of the wrong shape.
        """
        codec = self.codec(message_type)
        if document is None:
            msg = f"Cannot parse {codec.message_type.value} from null"
            raise MalformedMessageError(msg)
        return codec.decoder(document)

    def encode_value(self, value: Any) -> Any:
        """Encode ``value`` with the codec of its family."""
        return self.encode(self.message_type_of(value), value)

    def to_json(self, message_type: MessageType | str, value: Any) -> str:
        return wire.dumps(self.encode(message_type, value), "json").decode("utf-8")

    def from_json(self, message_type: MessageType | str, text: str | bytes) -> Any:
        codec = self.codec(message_type)
        return self.decode(codec.message_type, wire.loads(text, "json"))

    def serialize(self, message_type: MessageType | str, value: Any) -> bytes:
        return wire.dumps(self.encode(message_type, value), self.body_format)

    def deserialize(self, message_type: MessageType | str, data: bytes) -> Any:
        codec = self.codec(message_type)
        return self.decode(codec.message_type, wire.loads(data, self.body_format))

    def __iter__(self) -> Iterator[Codec[Any]]:
        return iter(self._codecs.values())

    def __contains__(self, message_type: object) -> bool:
        return message_type in self._codecs

    def __len__(self) -> int:
        return len(self._codecs)

    def __repr__(self) -> str:
        return f"CodecRegistry({len(self._codecs)} types, body_format={self.body_format!r})"
