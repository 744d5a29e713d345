"""Tests for the json and msgpack body formats."""

from __future__ import annotations

import pytest

from tablewire.errors import ConfigurationError, MalformedMessageError
from tablewire.wire import BODY_FORMATS, CONTENT_TYPES, check_body_format, dumps, loads


class TestDumps:
    def test_json_is_compact_utf8(self) -> None:
        assert dumps({"status": "completed", "plan-tasks": ["a"]}) == (
            b'{"status":"completed","plan-tasks":["a"]}'
        )

    def test_json_non_ascii(self) -> None:
        data = dumps({"comment": "café"})
        assert loads(data) == {"comment": "café"}

    def test_msgpack_is_smaller_than_json(self) -> None:
        document = {"select": ["id", "data"], "filter": "id > 5", "options": {"k": "v"}}
        assert len(dumps(document, "msgpack")) < len(dumps(document, "json"))

    def test_unknown_format(self) -> None:
        with pytest.raises(ConfigurationError):
            dumps({}, "xml")  # type: ignore[arg-type]


class TestLoads:
    @pytest.mark.parametrize("fmt", BODY_FORMATS)
    def test_round_trip(self, fmt: str) -> None:
        document = {
            "status": "failed",
            "error": {"message": "boom", "type": "RuntimeException", "code": 500},
            "ids": [1, 2, 3],
            "nothing": None,
            "flag": True,
        }
        assert loads(dumps(document, fmt), fmt) == document  # type: ignore[arg-type]

    def test_json_accepts_text(self) -> None:
        assert loads('{"a": 1}') == {"a": 1}

    def test_json_garbage(self) -> None:
        with pytest.raises(MalformedMessageError, match="Cannot parse JSON body"):
            loads(b"{not json}")

    def test_json_invalid_utf8(self) -> None:
        with pytest.raises(MalformedMessageError):
            loads(b"\xff\xfe\xfa")

    def test_msgpack_truncated(self) -> None:
        data = dumps({"select": ["id"]}, "msgpack")
        with pytest.raises(MalformedMessageError, match="Cannot parse msgpack body"):
            loads(data[:-2], "msgpack")

    def test_msgpack_trailing_bytes(self) -> None:
        data = dumps([1], "msgpack") + b"\x01"
        with pytest.raises(MalformedMessageError):
            loads(data, "msgpack")

    def test_msgpack_rejects_text(self) -> None:
        with pytest.raises(MalformedMessageError, match="from text"):
            loads("[]", "msgpack")


class TestBodyFormats:
    def test_check_known(self) -> None:
        for fmt in BODY_FORMATS:
            assert check_body_format(fmt) == fmt

    def test_content_types(self) -> None:
        assert set(CONTENT_TYPES) == set(BODY_FORMATS)
        assert CONTENT_TYPES["json"] == "application/json"
