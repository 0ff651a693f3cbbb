"""
SQLite Database Adapter

This module implements the DatabaseAdapter interface for SQLite.
All SQLite-specific configuration and behavior is encapsulated here.

SQLite is a file-based database that's perfect for:
- Local development
- Testing
- Single-instance deployments

Key characteristics:
- File-based (single .db file)
- No server required
- Single writer at a time (file locking)
"""

from typing import Any, Optional, Sequence

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import Executable

from shelfqr.core.setting import settings
from shelfqr.db.interface import DatabaseAdapter
from shelfqr.db.postgres_adapter import PostgreSQLAdapter


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter implementation.

    This adapter handles all SQLite-specific configuration and operations.
    """

    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create SQLite async engine with appropriate configuration.

        SQLite-specific configuration:
        - NullPool: Single connection (file-based, no pooling needed)
        - check_same_thread=False: Required for async SQLite operations

        Args:
            database_url: SQLite connection string (sqlite+aiosqlite:///...)
            **kwargs: Additional engine options (merged with SQLite defaults)

        Returns:
            Configured AsyncEngine for SQLite
        """
        engine_kwargs = self.get_engine_kwargs()
        engine_kwargs.update(kwargs)

        return create_async_engine(
            database_url,
            poolclass=self.get_pool_class(),
            connect_args=self.get_connect_args(),
            **engine_kwargs
        )

    def get_pool_class(self) -> type[NullPool]:
        return NullPool

    def get_connect_args(self) -> dict[str, Any]:
        return {
            "check_same_thread": False
        }

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False  # Set to True only for SQL debugging in development
        }

    def build_upsert(
        self,
        model: type,
        values: dict[str, Any],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> Executable:
        """
        Upsert using SQLite's ON CONFLICT clause (SQLite >= 3.24).

        The conflict target must match a unique constraint on the table.
        """
        statement = sqlite_insert(model.__table__).values(**values)
        return statement.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={column: statement.excluded[column] for column in update_columns},
        )

    def get_dialect_name(self) -> str:
        return "sqlite"


def get_database_adapter(database_url: Optional[str] = None) -> DatabaseAdapter:
    """
    Factory function to get the database adapter for a connection string.

    Returns PostgreSQLAdapter for postgresql URLs and SQLiteAdapter otherwise.
    Defaults to settings.DATABASE_URL.
    """
    database_url = database_url or settings.DATABASE_URL
    if database_url.startswith("postgresql"):
        return PostgreSQLAdapter()
    return SQLiteAdapter()


def get_session_adapter(session: AsyncSession) -> DatabaseAdapter:
    """
    Adapter for the engine a session is actually bound to.

    Dialect-specific statements (upserts) must follow the session's engine,
    which is not always the one settings.DATABASE_URL describes.
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return PostgreSQLAdapter()
    return SQLiteAdapter()
