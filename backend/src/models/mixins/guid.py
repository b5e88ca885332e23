"""
GUID mixin for SQLAlchemy models.

Lodge entities are addressed externally by a prefixed, Crockford Base32
encoded UUIDv7 rather than by their integer primary key.

GUID Format: {prefix}_{base32_uuid}
Examples:
    - mbr_01hgw2bbg00000000000000000 (Member)
    - evt_01hgw2bbg00000000000000001 (Event)
    - ses_01hgw2bbg00000000000000002 (SessionRecord)
"""

import uuid as uuid_module
from typing import ClassVar, Optional

from sqlalchemy import Column, TypeDecorator, LargeBinary
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from backend.src.services import guid as lodge_guid


class UUIDType(TypeDecorator):
    """
    Platform-independent UUID type.

    Native UUID on PostgreSQL, 16-byte LargeBinary on SQLite.
    Always presents as a Python UUID object.
    """

    impl = LargeBinary
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(LargeBinary(16))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid_module.UUID):
            value = uuid_module.UUID(bytes=value) if isinstance(value, bytes) else uuid_module.UUID(str(value))
        if dialect.name == 'postgresql':
            return value
        return value.bytes

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid_module.UUID):
            return value
        if isinstance(value, bytes):
            return uuid_module.UUID(bytes=value)
        return uuid_module.UUID(str(value))


class GuidMixin:
    """
    Mixin providing GUID support for lodge entities.

    Adds:
    - uuid: UUIDv7 column, generated on insert
    - guid: Property returning the prefixed Base32 string
    - parse_guid: Class method decoding a GUID of this entity type

    Usage:
        class Member(Base, GuidMixin):
            GUID_PREFIX = "mbr"
    """

    # Subclasses define their 3-character prefix
    GUID_PREFIX: ClassVar[str]

    uuid = Column(
        UUIDType(),
        nullable=False,
        unique=True,
        index=True,
        default=lodge_guid.new_uuid,
    )

    @property
    def guid(self) -> Optional[str]:
        """GUID in format {prefix}_{base32_uuid}, None before the first flush."""
        if self.uuid is None:
            return None
        return lodge_guid.encode_guid(self.uuid, self.GUID_PREFIX)

    @classmethod
    def parse_guid(cls, guid: str) -> uuid_module.UUID:
        """
        Parse a GUID of this entity type to a UUID.

        Raises:
            ValueError: If the GUID is malformed or has another prefix
        """
        return lodge_guid.parse_guid(guid, cls.GUID_PREFIX)
