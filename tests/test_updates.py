"""Tests for metadata updates and update requirements."""

from __future__ import annotations

from typing import Any

import pytest

from tablewire.codecs import default_registry
from tablewire.errors import MalformedMessageError
from tablewire.metadata import SnapshotRef, SnapshotRefType
from tablewire.registry import MessageType
from tablewire.updates import (
    LAST_ADDED,
    AddSchema,
    AssertRefSnapshotID,
    AssertTableDoesNotExist,
    MetadataUpdate,
    RemoveProperties,
    SetCurrentSchema,
    SetSnapshotRef,
    UpdateRequirement,
    metadata_update_to_json,
    update_requirement_to_json,
)

from tests.samples import METADATA_UPDATES, SCHEMA, UPDATE_REQUIREMENTS


def _decode(message_type: MessageType, document: Any) -> Any:
    return default_registry().decode(message_type, document)


class TestMetadataUpdates:
    def test_every_action_is_covered(self) -> None:
        actions = {type(u).action for u in METADATA_UPDATES}
        concrete = {
            cls.action
            for cls in MetadataUpdate.__subclasses__()
            if cls.__module__ == "tablewire.updates"
        }
        assert actions == concrete

    @pytest.mark.parametrize("update", METADATA_UPDATES, ids=lambda u: type(u).__name__)
    def test_discriminator_branches_to_concrete_class(self, update: MetadataUpdate) -> None:
        document = metadata_update_to_json(update)
        assert document["action"] == update.action
        decoded = _decode(MessageType.metadata_update, document)
        assert type(decoded) is type(update)
        assert decoded == update

    def test_action_is_case_insensitive(self) -> None:
        decoded = _decode(MessageType.metadata_update, {"action": "SET-CURRENT-SCHEMA", "schema-id": 3})
        assert decoded == SetCurrentSchema(3)

    def test_last_added_default(self) -> None:
        assert SetCurrentSchema().schema_id == LAST_ADDED

    def test_add_schema_without_last_column_id(self) -> None:
        document = metadata_update_to_json(AddSchema(SCHEMA))
        assert "last-column-id" not in document

    def test_set_snapshot_ref_is_flat_on_wire(self) -> None:
        document = metadata_update_to_json(
            SetSnapshotRef("v1", SnapshotRef(7, SnapshotRefType.tag, max_ref_age_ms=10))
        )
        assert document == {
            "action": "set-snapshot-ref",
            "ref-name": "v1",
            "snapshot-id": 7,
            "type": "tag",
            "max-ref-age-ms": 10,
        }

    def test_unknown_action(self) -> None:
        with pytest.raises(MalformedMessageError, match="drop-table") as exc_info:
            _decode(MessageType.metadata_update, {"action": "drop-table"})
        assert exc_info.value.field == "action"

    def test_missing_action(self) -> None:
        with pytest.raises(MalformedMessageError) as exc_info:
            _decode(MessageType.metadata_update, {"location": "s3://b"})
        assert exc_info.value.field == "action"

    def test_missing_payload_field(self) -> None:
        with pytest.raises(MalformedMessageError) as exc_info:
            _decode(MessageType.metadata_update, {"action": "remove-properties"})
        assert exc_info.value.field == "removals"

    def test_invalid_nested_value_is_malformed(self) -> None:
        document = {
            "action": "set-snapshot-ref",
            "ref-name": "v1",
            "snapshot-id": 7,
            "type": "tag",
            "min-snapshots-to-keep": 2,
        }
        with pytest.raises(MalformedMessageError, match="Tags do not support"):
            _decode(MessageType.metadata_update, document)

    def test_unknown_subclass_cannot_encode(self) -> None:
        class Custom(MetadataUpdate):
            action = "custom"

        with pytest.raises(TypeError, match="Custom"):
            metadata_update_to_json(Custom())

    def test_removals_wire_shape(self) -> None:
        assert metadata_update_to_json(RemoveProperties(("a", "b"))) == {
            "action": "remove-properties",
            "removals": ["a", "b"],
        }


class TestUpdateRequirements:
    def test_every_type_is_covered(self) -> None:
        kinds = {type(r).type for r in UPDATE_REQUIREMENTS}
        concrete = {
            cls.type
            for cls in UpdateRequirement.__subclasses__()
            if cls.__module__ == "tablewire.updates"
        }
        assert kinds == concrete

    @pytest.mark.parametrize("requirement", UPDATE_REQUIREMENTS, ids=lambda r: type(r).__name__)
    def test_discriminator_branches_to_concrete_class(self, requirement: UpdateRequirement) -> None:
        document = update_requirement_to_json(requirement)
        assert document["type"] == requirement.type
        decoded = _decode(MessageType.update_requirement, document)
        assert type(decoded) is type(requirement)
        assert decoded == requirement

    def test_assert_create_has_no_payload(self) -> None:
        assert update_requirement_to_json(AssertTableDoesNotExist()) == {"type": "assert-create"}

    def test_ref_snapshot_id_null_is_written(self) -> None:
        document = update_requirement_to_json(AssertRefSnapshotID("main", None))
        assert document == {"type": "assert-ref-snapshot-id", "ref": "main", "snapshot-id": None}

    def test_ref_snapshot_id_must_be_present(self) -> None:
        with pytest.raises(MalformedMessageError) as exc_info:
            _decode(MessageType.update_requirement, {"type": "assert-ref-snapshot-id", "ref": "main"})
        assert exc_info.value.field == "snapshot-id"

    def test_unknown_type(self) -> None:
        with pytest.raises(MalformedMessageError, match="assert-nothing"):
            _decode(MessageType.update_requirement, {"type": "assert-nothing"})

    def test_wrong_payload_type(self) -> None:
        with pytest.raises(MalformedMessageError, match="current-schema-id"):
            _decode(
                MessageType.update_requirement,
                {"type": "assert-current-schema-id", "current-schema-id": "0"},
            )
