"""Body formats: turning JSON documents into bytes and back.

JSON is the protocol format. msgpack carries the same documents more
compactly between servers that both speak it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

import msgpack

from tablewire.errors import ConfigurationError, MalformedMessageError

logger = logging.getLogger("tablewire.wire")

type BodyFormat = Literal["json", "msgpack"]

BODY_FORMATS: tuple[BodyFormat, ...] = ("json", "msgpack")

CONTENT_TYPES: dict[BodyFormat, str] = {
    "json": "application/json",
    "msgpack": "application/msgpack",
}


def check_body_format(fmt: str) -> BodyFormat:
    if fmt not in BODY_FORMATS:
        msg = f"Unknown body format {fmt!r}, expected one of {BODY_FORMATS}"
        raise ConfigurationError(msg)
    return fmt  # type: ignore[return-value]


def dumps(document: Any, fmt: BodyFormat = "json") -> bytes:
    """Encode a JSON document in the given body format.

    Parameters
    ----------
    document : Any
        A JSON-compatible value (dicts, lists, strings, numbers, booleans, None).
    fmt : BodyFormat
        ``"json"`` or ``"msgpack"``.

    Returns
    -------
    bytes

    Examples
    --------
    >>> dumps({"status": "completed"})
    b'{"status":"completed"}'
    """
    match check_body_format(fmt):
        case "json":
            return json.dumps(document, separators=(",", ":")).encode("utf-8")
        case "msgpack":
            return msgpack.packb(document, use_bin_type=True)


def loads(data: bytes | str, fmt: BodyFormat = "json") -> Any:
    """Decode a body produced by ``dumps``.

    Raises
    ------
    MalformedMessageError
        If ``data`` is not a well-formed document in ``fmt``.
    """
    match check_body_format(fmt):
        case "json":
            try:
                return json.loads(data)
            except ValueError as exc:
                msg = f"Cannot parse JSON body: {exc}"
                raise MalformedMessageError(msg) from exc
        case "msgpack":
            if isinstance(data, str):
                msg = "Cannot parse msgpack body from text"
                raise MalformedMessageError(msg)
            try:
                return msgpack.unpackb(data, raw=False)
            except (ValueError, msgpack.UnpackException) as exc:
                logger.debug("Rejected msgpack body of %d bytes: %s", len(data), exc)
                msg = f"Cannot parse msgpack body: {exc}"
                raise MalformedMessageError(msg) from exc
