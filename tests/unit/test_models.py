"""
Unit tests for the call record domain model and its item conversion.

These tests verify the model without touching external services
(no AWS calls, no file system).

Testing philosophy:
- Test behavior, not implementation
- Each test should have a clear "given/when/then" structure
- Use descriptive names that explain what we're testing
"""

import pytest

from src.core.calls.models import CallRecord, generate_call_id
from src.infrastructure.dynamodb.client import (
    StorageError,
    call_record_from_item,
    call_record_to_item,
)


@pytest.fixture
def record() -> CallRecord:
    return CallRecord(
        group_id="g1",
        call_id="c1",
        backend_host="10.0.0.1",
        backend_region="us1",
        creator="u1",
    )


# ---------------------------------------------------------------------------
# CallRecord Tests
# ---------------------------------------------------------------------------

class TestCallRecord:
    """Tests for the CallRecord value object."""

    def test_records_with_same_fields_are_equal(self, record):
        """Records are values: equal fields mean the same call."""
        copy = CallRecord(
            group_id="g1",
            call_id="c1",
            backend_host="10.0.0.1",
            backend_region="us1",
            creator="u1",
        )
        assert copy == record

    def test_record_is_immutable(self, record):
        """Records are replaced, never updated in place."""
        with pytest.raises(AttributeError):
            record.call_id = "c2"

    @pytest.mark.parametrize(
        "field_name",
        ["group_id", "call_id", "backend_host", "backend_region", "creator"],
    )
    def test_record_rejects_empty_fields(self, field_name):
        """Every field identifies something; none may be blank."""
        values = {
            "group_id": "g1",
            "call_id": "c1",
            "backend_host": "10.0.0.1",
            "backend_region": "us1",
            "creator": "u1",
        }
        values[field_name] = ""

        with pytest.raises(ValueError, match="non-empty string"):
            CallRecord(**values)

    def test_new_generates_fresh_call_id(self):
        """Each new call instance of a group gets its own era id."""
        first = CallRecord.new("g1", "10.0.0.1", "us1", "u1")
        second = CallRecord.new("g1", "10.0.0.1", "us1", "u1")

        assert first.group_id == second.group_id == "g1"
        assert first.call_id != second.call_id

    def test_generate_call_id_is_hex(self):
        call_id = generate_call_id()
        assert len(call_id) == 32
        int(call_id, 16)


# ---------------------------------------------------------------------------
# Item Conversion Tests
# ---------------------------------------------------------------------------

class TestItemConversion:
    """Tests for translating records to and from DynamoDB items."""

    def test_to_item_uses_table_attribute_names(self, record):
        """The table schema is shared with other services; names are fixed."""
        assert call_record_to_item(record) == {
            "groupConferenceId": {"S": "g1"},
            "jvbConferenceId": {"S": "c1"},
            "jvbHost": {"S": "10.0.0.1"},
            "region": {"S": "us1"},
            "creator": {"S": "u1"},
        }

    def test_from_item_restores_every_field(self, record):
        assert call_record_from_item(call_record_to_item(record)) == record

    def test_from_item_ignores_unknown_attributes(self, record):
        """Extra attributes written by other tools don't break decoding."""
        item = call_record_to_item(record)
        item["ttl"] = {"N": "1700000000"}

        assert call_record_from_item(item) == record

    def test_from_item_rejects_missing_attribute(self, record):
        """Malformed data is an error, not silently dropped."""
        item = call_record_to_item(record)
        del item["jvbHost"]

        with pytest.raises(StorageError, match="convert item"):
            call_record_from_item(item)

    def test_from_item_rejects_non_string_attribute(self, record):
        item = call_record_to_item(record)
        item["creator"] = {"N": "42"}

        with pytest.raises(StorageError, match="convert item"):
            call_record_from_item(item)
