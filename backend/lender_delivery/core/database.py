"""
Database layer — async PostgreSQL via SQLAlchemy 2.0 + asyncpg.

Provides:
    • Lazily created async engine and session factory
    • Session context for callers outside a web framework
    • Base model for ORM entities

The lender configuration table lives in the relational store; this
subsystem only reads it (see submissions/store.py).

Usage:
    from backend.lender_delivery.core.database import session_scope
    from backend.lender_delivery.submissions.store import SqlLenderConfigStore

    async with session_scope() as session:
        profile = await resolve_submission_profile(lender_id, SqlLenderConfigStore(session))
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from backend.lender_delivery.core.config import get_settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Engine ──
def get_engine() -> AsyncEngine:
    """Create the engine on first use so importing models needs no driver."""
    global _engine
    if _engine is None:
        config = get_settings()
        _engine = create_async_engine(
            config.DATABASE_URL,
            pool_size=config.DATABASE_POOL_SIZE,
            max_overflow=config.DATABASE_MAX_OVERFLOW,
            echo=config.DATABASE_ECHO,
        )
    return _engine


# ── Session Factory ──
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a read-mostly session; rolls back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Lifecycle ──
async def close_db() -> None:
    """Dispose engine connections."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None
