"""Base class for all database models."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, declared_attr


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""

    @declared_attr
    def __tablename__(cls) -> str:
        """Generate table name automatically."""
        return cls.__name__.lower() + "s"

    # Common columns for all tables
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def enum_type(enum_cls):
    """String-backed enum column type (no native PG enum, values stored as-is)."""
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda x: [e.value for e in x],
        length=40,
    )
