from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager
import urllib.parse
import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from pkg.db_util.types import PostgresConfig


class PostgresConnection:
    """Owns one async engine + sessionmaker for a Postgres database."""

    def __init__(self, db_config: PostgresConfig, logger: logging.Logger):
        self.logger = logger
        self.db_config = db_config
        self._db_url: Optional[str] = None
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None
        self._engine_lock = asyncio.Lock()

    def get_db_url(self) -> str:
        if self._db_url is None:
            cfg = self.db_config
            if not cfg.host:
                raise ValueError("Database host configuration is missing.")
            encoded_password = urllib.parse.quote_plus(cfg.password) if cfg.password else ""
            self._db_url = (
                f"postgresql+asyncpg://{cfg.username}:{encoded_password}@{cfg.host}:{cfg.port}/{cfg.database}"
            )
        return self._db_url

    async def get_engine(self, max_retries: int = 3, initial_delay: float = 2.0) -> AsyncEngine:
        """Create the engine on first use, retrying the first connection with exponential backoff."""
        if self._engine is not None:
            return self._engine

        async with self._engine_lock:
            if self._engine is not None:
                return self._engine

            pool_opts = {
                "pool_size": self.db_config.pool_size,
                "max_overflow": self.db_config.max_overflow,
                "pool_timeout": self.db_config.pool_timeout,
                "pool_recycle": self.db_config.pool_recycle,
                "pool_pre_ping": True,
            }
            self.logger.info(f"Creating async engine with pool options: {pool_opts}")

            last_error = None
            for attempt in range(max_retries):
                engine = create_async_engine(
                    self.get_db_url(),
                    echo=False,
                    connect_args={
                        "timeout": 15,
                        "command_timeout": 15,
                        "server_settings": {"application_name": self.db_config.application_name},
                    },
                    **pool_opts,
                )
                try:
                    self.logger.info(f"Testing database connection (attempt {attempt + 1}/{max_retries})...")
                    async with engine.connect() as conn:
                        await conn.execute(text("SELECT 1"))
                except (SQLAlchemyError, OSError, ConnectionError) as e:
                    last_error = e
                    await engine.dispose()
                    if attempt < max_retries - 1:
                        delay = initial_delay * (2 ** attempt)
                        self.logger.warning(
                            f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}. "
                            f"Retrying in {delay:.1f}s..."
                        )
                        await asyncio.sleep(delay)
                        continue
                    self.logger.error(f"Failed to create database engine after {max_retries} attempts: {e}")
                    break

                self._engine = engine
                self._sessionmaker = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )
                self.logger.info("Async engine and sessionmaker created successfully.")
                return engine

        raise ConnectionError(f"Could not create database engine after {max_retries} attempts: {last_error}") from last_error

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session; commits on success, rolls back on error, always closes."""
        await self.get_engine()
        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            if session.in_transaction():
                await session.commit()
        except Exception as e:
            self.logger.error(f"Error in database session: {e}. Rolling back.")
            if session.in_transaction():
                await session.rollback()
            raise
        finally:
            await session.close()

    async def ping(self) -> bool:
        engine = await self.get_engine(max_retries=1)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def create_all(self, metadata) -> None:
        engine = await self.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        self.logger.info("Database tables ensured.")

    async def close_engine(self) -> None:
        if self._engine is not None:
            self.logger.info("Closing database engine and connection pool...")
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
        else:
            self.logger.info("Database engine was not initialized, no need to close.")
