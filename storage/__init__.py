"""
Storage Package.

Persistence for the ingestion pipeline.

Modules:
- database: engine, sessions, schema creation
- models: ORM models (import_sessions, raw_data, transactions)
- repositories/: data access layer
"""

from storage.database import (
    create_database_engine,
    create_session_factory,
    get_database_url,
    initialize_database,
    transaction_scope,
)

__all__ = [
    "create_database_engine",
    "create_session_factory",
    "get_database_url",
    "initialize_database",
    "transaction_scope",
]
