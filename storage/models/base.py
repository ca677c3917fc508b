"""
Base ORM Model and shared column types.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- JSONType: JSON everywhere, JSONB on PostgreSQL

SQLite is the default store; PostgreSQL works unchanged through the
type variants declared here.

============================================================
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models. Datetimes are timezone-aware."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }
