"""
Database session management for the Library Lending MCP Server.

This module provides connection management and session handling for SQLAlchemy.
Both lending workflows are check-then-act sequences, so session handling has to
give them a real transactional boundary:

1. Transaction Management: every workflow commits or rolls back as one unit
2. Write Serialization: SQLite transactions start with ``BEGIN IMMEDIATE`` so
   two writers on the same book never interleave
3. Error Recovery: failed queries and commits roll back and raise
   ``DatabaseOperationError`` with context

Sessions should be short-lived (one per MCP request) and used through
``session_scope()``.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .exceptions import DatabaseOperationError
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_memory_url(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


class DatabaseManager:
    """
    Manages database connections and sessions for the MCP server.

    This class provides:
    - Engine creation tuned per backend (SQLite file, SQLite memory, others)
    - Session factory with explicit transactions
    - Database initialization for development and tests
    """

    def __init__(self, database_url: str | None = None, busy_timeout: float | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured SQLite file.
            busy_timeout: Seconds a SQLite writer waits for the lock. If None, uses config.
        """
        if database_url is None or busy_timeout is None:
            config = get_config()
            busy_timeout = busy_timeout if busy_timeout is not None else config.sqlite_busy_timeout

        if database_url is None:
            db_path = config.database_path

            if not db_path.is_absolute():
                db_path = Path.cwd() / db_path

            db_path.parent.mkdir(exist_ok=True, parents=True)

            database_url = f"sqlite:///{db_path}"
            logger.info("Using SQLite database at: %s", db_path)

        self.database_url = database_url
        self.busy_timeout = busy_timeout
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        For SQLite the engine:
        - Uses StaticPool only for in-memory databases (one shared connection)
        - Enables foreign key constraints on every connection
        - Takes the write lock at BEGIN so concurrent workflows serialize
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                if _is_memory_url(self.database_url):
                    self._engine = create_engine(
                        self.database_url,
                        poolclass=StaticPool,
                        connect_args={"check_same_thread": False},
                        echo=False,
                    )
                else:
                    self._engine = create_engine(
                        self.database_url,
                        connect_args={
                            "check_same_thread": False,
                            "timeout": self.busy_timeout,
                        },
                        echo=False,
                    )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    # Hand transaction control to SQLAlchemy's "begin" event below
                    dbapi_connection.isolation_level = None
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()

                @event.listens_for(self._engine, "begin")
                def begin_immediate(conn):
                    conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                # Keep returned objects usable after commit
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """
        Create a new database session.

        Sessions should be used with context managers or properly closed
        to release the SQLite write lock.
        """
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        ```python
        with db_manager.session_scope() as session:
            result = LendingRepository(session).issue_book(request)
        # Session is automatically committed or rolled back
        ```
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except Exception:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Verify the database connection is working (used for health checks)."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except Exception:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Dispose of the engine and forget the session factory."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


# Global database manager instance
_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    Args:
        database_url: Database URL (only used on first call)
    """
    global _db_manager  # noqa: PLW0603 - Singleton pattern for database manager

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def reset_db_manager() -> None:
    """Dispose of the global database manager (useful for testing)."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Convenience context manager for database sessions.

    Example:
        ```python
        with session_scope() as session:
            books = BookRepository(session).get_all()
        ```
    """
    with get_db_manager().session_scope() as session:
        yield session


def mcp_safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, rolling back and raising on failure.

    Raises:
        DatabaseOperationError: If the commit fails
    """
    try:
        session.commit()
    except Exception as e:
        session.rollback()
        raise DatabaseOperationError(f"Database operation '{operation}' failed: {e!s}") from e


def mcp_safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, wrapping database failures with a caller-facing message.

    Raises:
        DatabaseOperationError: If the query fails
    """
    try:
        return query_func(session)
    except Exception as e:
        logger.exception("Query failed")
        raise DatabaseOperationError(f"{error_msg}: Database query failed") from e
