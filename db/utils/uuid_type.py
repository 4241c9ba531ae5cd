"""Primary-key UUID column portable between PostgreSQL and SQLite."""
import uuid as uuid_module

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import TypeDecorator, TypeEngine


class UUIDType(TypeDecorator):
    """
    Native UUID on PostgreSQL, 36-char string everywhere else.

    Values always come back as ``uuid.UUID`` so repositories can compare ids
    without caring about the backend.
    """
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect) -> TypeEngine:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid_module.UUID) else uuid_module.UUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid_module.UUID):
            return value
        return uuid_module.UUID(str(value))
