"""
Lodge record identifiers.

Records keep an integer primary key internally and a UUIDv7 that clients see
as "{prefix}_{crockford base32}", for example
"evt_01hgw2bbg00000000000000000". The prefix names the kind of record, so a
member GUID pasted into an event URL is rejected instead of looked up.
"""

import enum
import re
import uuid
from typing import Union

import base32_crockford
from uuid_extensions import uuid7


class EntityPrefix(str, enum.Enum):
    """GUID prefix of each lodge record type."""
    MEMBER = "mbr"
    EVENT = "evt"
    SESSION_RECORD = "ses"
    ATTENDANCE = "att"
    VISITOR = "vis"
    ACCOUNT = "acc"
    TRANSACTION = "txn"


BODY_LENGTH = 26

# Crockford alphabet, lowercase; I, L, O and U are never emitted
_BODY_RE = re.compile(r"^[0-9a-hjkmnp-tv-z]{26}$")

_UUID_LIMIT = 1 << 128


def new_uuid() -> uuid.UUID:
    """Time-ordered UUIDv7 for a new record."""
    return uuid7()


def encode_guid(value: Union[uuid.UUID, bytes], prefix: Union[EntityPrefix, str]) -> str:
    """
    Encode a record UUID as a GUID.

    Raises:
        ValueError: If the prefix is not a lodge record prefix
    """
    prefix = EntityPrefix(prefix)
    raw = value if isinstance(value, bytes) else value.bytes
    body = base32_crockford.encode(int.from_bytes(raw, "big")).zfill(BODY_LENGTH)
    return f"{prefix.value}_{body.lower()}"


def parse_guid(guid: str, expected_prefix: Union[EntityPrefix, str]) -> uuid.UUID:
    """
    Decode a GUID of the expected record type back to its UUID.

    Prefix and body are matched case-insensitively.

    Raises:
        ValueError: If the GUID is malformed or belongs to another record type
    """
    expected = EntityPrefix(expected_prefix)
    prefix, separator, body = (guid or "").partition("_")

    if not separator or prefix.lower() != expected.value:
        raise ValueError(f"Expected a {expected.value}_ GUID, got {guid!r}")

    body = body.lower()
    if not _BODY_RE.match(body):
        raise ValueError(f"Malformed GUID body in {guid!r}")

    value = base32_crockford.decode(body.upper())
    if value >= _UUID_LIMIT:
        raise ValueError(f"GUID {guid!r} does not encode a 128-bit UUID")
    return uuid.UUID(int=value)
