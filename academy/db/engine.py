"""Async SQLAlchemy engine.

When DATABASE_URL is configured, provides:
- async engine for PostgreSQL via asyncpg
- a connectivity check used by /health and /ready
- FastAPI lifespan hook for startup/shutdown

``create_engine_for`` is also used by academy.repos.pg_store, which
runs its own engine on a private event loop.  When DATABASE_URL is
None the engine is None and the service runs on the in-memory store
alone.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Literal

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from academy.core.config import SETTINGS

logger = logging.getLogger(__name__)

DatabaseStatus = Literal["ok", "degraded", "not_configured"]


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


def create_engine_for(database_url: str) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


engine = create_engine_for(SETTINGS.database_url) if SETTINGS.database_url else None


async def check_database() -> DatabaseStatus:
    """Run ``SELECT 1`` against the configured database."""
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database check failed: %s", e)
        return "degraded"
    return "ok"


@asynccontextmanager
async def lifespan_db() -> AsyncIterator[None]:
    """Startup/shutdown hook for the database engine.

    Call from FastAPI's lifespan context manager.
    """
    if engine is None:
        logger.info("No DATABASE_URL configured, serving from the in-memory store")
        yield
        return

    logger.info("Database engine created: %s", engine.url.render_as_string())
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
