"""
Database configuration (async SQLAlchemy).
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from carousel_studio.config import get_settings

logger = logging.getLogger(__name__)

_engine = None
_session_maker = None
_initialized = False
_database_url: Optional[str] = None


class Base(DeclarativeBase):
    pass


def configure(database_url: Optional[str] = None):
    """Point the module at a database URL, dropping any existing engine."""
    global _engine, _session_maker, _initialized, _database_url
    _engine = None
    _session_maker = None
    _initialized = False
    _database_url = database_url


def get_engine():
    global _engine
    url = _database_url or get_settings().database_url
    if _engine is None and url:
        _engine = create_async_engine(url, echo=False, pool_pre_ping=True)
        logger.info(f"Database engine created for: {url[:50]}...")
    return _engine


def get_session_maker():
    global _session_maker
    if _session_maker is None:
        engine = get_engine()
        if engine:
            _session_maker = async_sessionmaker(
                engine,
                class_=AsyncSession,
                expire_on_commit=False
            )
    return _session_maker


async def init_db():
    """Create tables."""
    global _initialized
    if _initialized:
        return True

    engine = get_engine()
    if not engine:
        logger.error("No database engine available")
        return False

    # Register tables on Base.metadata
    from carousel_studio import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    _initialized = True
    logger.info("Database tables created")
    return True


async def dispose_db():
    if _engine is not None:
        await _engine.dispose()


async def get_db():
    """Dependency for getting database session."""
    if not _initialized:
        await init_db()

    session_maker = get_session_maker()
    if session_maker is None:
        raise RuntimeError("Database not configured")

    async with session_maker() as session:
        yield session
