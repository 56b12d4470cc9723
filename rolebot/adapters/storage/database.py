"""SQLite engine construction.

pysqlite's own transaction handling is switched off so that SQLAlchemy emits
BEGIN itself. Engines derived with ``execution_options(sqlite_begin="IMMEDIATE")``
take the database write lock when the transaction starts instead of at the
first write, which serializes read-check-write units of work across
connections. The driver ``timeout`` bounds how long a connection waits for
that lock.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.pool import StaticPool

from rolebot.adapters.storage.models import Base

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def _on_connect(dbapi_connection, connection_record) -> None:
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()


def _on_begin(conn) -> None:
    mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
    conn.exec_driver_sql(f"BEGIN {mode}")


def create_sqlite_engine(path: str, *, timeout_seconds: float = 5.0) -> Engine:
    """Create an engine for the SQLite database at ``path``.

    Args:
        path: Database file path, or ":memory:" for a private in-memory database
            (one shared connection that callers must not use concurrently).
        timeout_seconds: How long a statement waits for a locked database.

    Returns:
        Engine: Configured engine with foreign keys enforced on every connection.
    """
    connect_args = {"timeout": timeout_seconds, "check_same_thread": False}

    if path == MEMORY_PATH:
        engine = create_engine("sqlite://", connect_args=connect_args, poolclass=StaticPool)
    else:
        engine = create_engine(f"sqlite:///{path}", connect_args=connect_args)

    event.listen(engine, "connect", _on_connect)
    event.listen(engine, "begin", _on_begin)

    logger.debug("storage.engine_created", extra={"db_path": path, "timeout_s": timeout_seconds})
    return engine


def init_schema(engine: Engine) -> None:
    """Create the roles, users and role_users tables if they do not exist."""
    Base.metadata.create_all(engine)
