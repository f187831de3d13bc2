"""
Database engine and session management
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import DisconnectionError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool

from campus_events.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class Base(DeclarativeBase):
    pass


class DatabaseManager:
    """Owns the async engine and session factory for one database URL"""

    def __init__(self, database_url: Optional[str] = None) -> None:
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._setup_engine(database_url or self._prepare_database_url())

    @property
    def is_sqlite(self) -> bool:
        return self.engine is not None and self.engine.dialect.name == "sqlite"

    def _setup_engine(self, db_url: str) -> None:
        engine_kwargs = self._get_engine_kwargs(db_url)
        self.engine = create_async_engine(db_url, **engine_kwargs)

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        self._setup_event_listeners()

        logger.info(f"Database engine initialized with URL: {self._mask_url(db_url)}")

    def _prepare_database_url(self) -> str:
        raw_url = settings.database.database_url

        if settings.TESTING:
            return "sqlite+aiosqlite:///:memory:"

        if raw_url.startswith("postgresql://"):
            return raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if raw_url.startswith("sqlite:///"):
            return raw_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

        return raw_url

    def _get_engine_kwargs(self, db_url: str) -> Dict[str, Any]:
        base_kwargs: Dict[str, Any] = {"echo": settings.database.ECHO}

        if "sqlite" in db_url:
            sqlite_connect_args: Dict[str, Any] = {
                "check_same_thread": False,
                "timeout": settings.database.BUSY_TIMEOUT,
            }
            # An in-memory database only exists on its one connection
            poolclass = StaticPool if ":memory:" in db_url else NullPool
            base_kwargs.update(
                {"poolclass": poolclass, "connect_args": sqlite_connect_args}
            )
        else:
            postgres_connect_args: Dict[str, Any] = {
                "command_timeout": settings.database.COMMAND_TIMEOUT,
                "server_settings": {
                    "application_name": "campus_events",
                    "statement_timeout": settings.database.STATEMENT_TIMEOUT,
                    "lock_timeout": settings.database.LOCK_TIMEOUT,
                },
            }
            base_kwargs.update(
                {
                    "pool_size": settings.database.POOL_SIZE,
                    "max_overflow": settings.database.MAX_OVERFLOW,
                    "pool_timeout": settings.database.POOL_TIMEOUT,
                    "pool_recycle": settings.database.POOL_RECYCLE,
                    "pool_pre_ping": settings.database.POOL_PRE_PING,
                    "connect_args": postgres_connect_args,
                }
            )

        return base_kwargs

    def _setup_event_listeners(self) -> None:
        if not self.engine:
            return

        if self.is_sqlite:
            # SQLite has no row locks. Take the write lock when the
            # transaction opens so check-then-write sequences are serialized.
            @event.listens_for(self.engine.sync_engine, "connect")  # type: ignore
            def disable_pysqlite_transactions(
                dbapi_connection: Any, connection_record: Any
            ) -> None:
                dbapi_connection.isolation_level = None
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            @event.listens_for(self.engine.sync_engine, "begin")  # type: ignore
            def begin_immediate(conn: Any) -> None:
                conn.exec_driver_sql("BEGIN IMMEDIATE")

        @event.listens_for(self.engine.sync_engine, "invalidate")  # type: ignore
        def receive_invalidate(
            dbapi_connection: Any, connection_record: Any, exception: Any
        ) -> None:
            logger.warning(f"Database connection invalidated: {exception}")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session with proper error handling"""
        if not self.session_factory:
            raise RuntimeError("Database not initialized")

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """Create tables for every mapped model (development and tests)"""
        if not self.engine:
            raise RuntimeError("Database not initialized")
        import campus_events.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        if not self.engine:
            raise RuntimeError("Database not initialized")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def health_check(self) -> dict[str, Any]:
        """Database connectivity check"""
        if not self.engine:
            return {"status": "error", "message": "Database engine not initialized"}

        try:
            start_time = time.time()

            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1 as health_check"))
                if result.scalar() != 1:
                    return {"status": "error", "message": "Health check query failed"}

            response_time = (time.time() - start_time) * 1000

            return {
                "status": "healthy",
                "response_time_ms": round(response_time, 2),
                "database_url": self._mask_url(str(self.engine.url)),
            }

        except DisconnectionError as e:
            logger.error(f"Database disconnection error: {e}")
            return {"status": "error", "message": "Database disconnected"}
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "error", "message": str(e)}

    async def close(self) -> None:
        """Close database engine and all connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database engine closed")

    def _mask_url(self, url: str) -> str:
        """Mask sensitive information in database URL"""
        if "@" in url:
            parts = url.split("@")
            if len(parts) == 2:
                auth_part = parts[0]
                if ":" in auth_part:
                    protocol_user = auth_part.rsplit(":", 1)[0]
                    return f"{protocol_user}:***@{parts[1]}"
        return url


# Global database manager instance
db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions"""
    if db_manager.session_factory is None:
        raise RuntimeError("Database session factory is not initialized")
    async with db_manager.session_factory() as session:
        yield session
