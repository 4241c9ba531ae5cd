"""JSON column that maps to JSONB on PostgreSQL and plain JSON elsewhere."""
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator, TypeEngine


class JSONType(TypeDecorator):
    """
    Conversation history and pending-action drafts are stored as JSON documents.

    PostgreSQL gets JSONB so the rows can be indexed and queried; SQLite (tests,
    local development) falls back to the generic JSON type.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect) -> TypeEngine:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB(none_as_null=True))
        return dialect.type_descriptor(JSON(none_as_null=True))
