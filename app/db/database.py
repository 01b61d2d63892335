import logging
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, echo=echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        # Connection pool settings for production stability
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
        # Disable statement caching for pgbouncer compatibility (Supabase uses pgbouncer)
        connect_args={"statement_cache_size": 0},
    )


engine = create_engine_for_url(settings.database_url, echo=settings.debug)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db(target: AsyncEngine | None = None):
    """Initialize database tables."""
    # Import models to ensure they're registered with Base
    from app.db import models  # noqa: F401

    target = target or engine

    async with target.begin() as conn:
        if conn.dialect.name == "postgresql" and models.USE_PGVECTOR:
            try:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                logger.info("pgvector extension enabled")
            except Exception as e:
                logger.warning(f"Could not enable pgvector extension: {e}")
                logger.warning("Vector search features may not work")
                raise

        await conn.run_sync(Base.metadata.create_all)
        logger.info("All tables created successfully")
