"""
Unit tests for lodge record identifiers.

Tests the GUID codec used by every model and the lookups that resolve GUIDs
from URLs back to records.
"""

import uuid

import pytest

from backend.src.models import Event, Member, SessionRecord
from backend.src.services.exceptions import NotFoundError
from backend.src.services.guid import (
    BODY_LENGTH,
    EntityPrefix,
    encode_guid,
    new_uuid,
    parse_guid,
)


class TestEncodeGuid:
    """Tests for encode_guid."""

    def test_every_record_prefix(self):
        value = new_uuid()

        for prefix in EntityPrefix:
            guid = encode_guid(value, prefix)
            assert guid.startswith(f"{prefix.value}_")
            assert len(guid) == len(prefix.value) + 1 + BODY_LENGTH
            assert guid == guid.lower()

    def test_small_uuid_is_zero_padded(self):
        assert encode_guid(uuid.UUID(int=1), "ses") == "ses_" + "0" * 25 + "1"

    def test_accepts_raw_bytes(self):
        value = new_uuid()

        assert encode_guid(value.bytes, "mbr") == encode_guid(value, "mbr")

    def test_unknown_prefix_rejected(self):
        with pytest.raises(ValueError):
            encode_guid(new_uuid(), "col")


class TestParseGuid:
    """Tests for parse_guid."""

    def test_decodes_own_encoding(self):
        value = new_uuid()

        assert parse_guid(encode_guid(value, EntityPrefix.EVENT), "evt") == value

    def test_case_insensitive(self):
        value = new_uuid()

        assert parse_guid(encode_guid(value, "evt").upper(), "evt") == value

    def test_other_record_type_rejected(self):
        guid = encode_guid(new_uuid(), "evt")

        with pytest.raises(ValueError) as exc_info:
            parse_guid(guid, "mbr")

        assert "Expected a mbr_ GUID" in str(exc_info.value)

    @pytest.mark.parametrize("guid", [
        "",
        None,
        "evt_123",
        "evt_" + "a" * 27,
        "evt-" + "a" * 26,
        "evt_" + "i" * 26,
        "evt_" + "z" * 26,
    ])
    def test_malformed_rejected(self, guid):
        with pytest.raises(ValueError):
            parse_guid(guid, "evt")


class TestModelGuids:
    """Tests for GUIDs exposed by lodge models."""

    def test_model_guid_uses_entity_prefix(self, sample_member, sample_event):
        member = sample_member()
        event = sample_event()

        assert member.guid.startswith("mbr_")
        assert event.guid.startswith("evt_")
        assert member.uuid.version == 7
        assert Member.parse_guid(member.guid) == member.uuid

    def test_model_parse_guid_checks_prefix(self, sample_event):
        event = sample_event()

        with pytest.raises(ValueError):
            SessionRecord.parse_guid(event.guid)

        assert Event.parse_guid(event.guid) == event.uuid

    def test_store_lookup_by_guid(self, lodge_store, sample_event, sample_member):
        event = sample_event()
        member = sample_member()

        assert lodge_store.get_event(event.guid).id == event.id
        with pytest.raises(NotFoundError):
            lodge_store.get_event(member.guid)
