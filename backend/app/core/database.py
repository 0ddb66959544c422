from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import Optional

from app.core.config import settings

# Create base class for models (can be defined before engine)
Base = declarative_base()

# Lazy engine initialization - create on first use to avoid import-time issues
_engine: Optional[AsyncEngine] = None


def get_database_url(url: Optional[str] = None) -> str:
    """Get properly formatted database URL"""
    db_url = url or settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://")
    return db_url


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """
    Build an async engine for the given URL.

    - SQLite: NullPool (required for thread safety)
    - PostgreSQL Development: NullPool (simpler debugging)
    - PostgreSQL Production: pooled with pre-ping
    """
    db_url = get_database_url(url)

    if "sqlite" in db_url:
        return create_async_engine(
            db_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
    if settings.is_dev_mode():
        return create_async_engine(db_url, echo=echo, poolclass=NullPool)
    return create_async_engine(
        db_url,
        echo=echo,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=1800,  # 30 minutes
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the database engine (lazy initialization)"""
    global _engine
    if _engine is None:
        _engine = create_engine_for(settings.DATABASE_URL, echo=settings.DB_ECHO)
    return _engine



def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def init_db(engine: Optional[AsyncEngine] = None):
    """Create the document table if it does not exist"""
    # Import models so they register on Base.metadata
    from app.models import document  # noqa: F401

    eng = engine or get_engine()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


