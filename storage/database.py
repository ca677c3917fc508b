"""
Storage - Database engine and sessions.

============================================================
RESPONSIBILITY
============================================================
- Resolve the database URL (DATABASE_URL, .env supported)
- Create the SQLAlchemy engine and session factory
- Create or reset the schema
- Provide a transaction scope that commits or rolls back

SQLite is the default (a file under data/); any SQLAlchemy URL works.

============================================================
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storage.models import Base


logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///data/transactions.db"


def get_database_url() -> str:
    """Get database URL from environment, falling back to the local SQLite file."""
    load_dotenv()
    url = os.getenv("DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.info(f"DATABASE_URL not set, using default: {url}")
    return url


def create_database_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create SQLAlchemy engine.

    Args:
        url: Database URL, defaults to get_database_url()
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = url or get_database_url()
    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    if database_url.startswith("sqlite"):
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory DB
            engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            db_path = database_url.replace("sqlite:///", "", 1)
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(database_url, echo=echo)

        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_recycle=1800,
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def initialize_database(engine: Engine, clear: bool = False) -> None:
    """
    Create all tables.

    Args:
        engine: Target engine
        clear: Drop existing tables first
    """
    if clear:
        logger.warning("Dropping all ingestion tables")
        Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.info("Database schema ready")


@contextmanager
def transaction_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs. Rolls back on ANY exception.

    Usage:
        with transaction_scope(factory) as session:
            session.add(record)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error, rolling back: {e}")
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
