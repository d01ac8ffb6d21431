"""
aurora.database.engine — Database Connection & Async Helper
============================================================

Discord bots run on an ``asyncio`` event loop, while SQLAlchemy + psycopg2
is **synchronous**.  Calling the DB directly from a coroutine would freeze
every other handler until the query returns.

The bridge is :func:`run_db`: a cog calls ``await run_db(func, *args)`` and
the synchronous service function runs on the default thread pool via
``asyncio.to_thread()``.  Services stay plain functions that take an
``engine`` and open their own session.

The backing store is chosen by ``DATABASE_URL``: a PostgreSQL URL for a
durable deployment, or ``sqlite://`` for a throwaway in-memory bot.

Usage::

    from aurora.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async Cog method:
    settings = await run_db(get_settings, engine, guild.id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from aurora.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    PostgreSQL gets a small pool sized for a single community bot.  SQLite
    URLs get a :class:`StaticPool` so every worker thread shares the same
    connection (required for ``sqlite://`` in-memory databases).

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a PostgreSQL URL (or sqlite:// for in-memory)."
        )

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,   # Reconnect stale connections automatically
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine created → %s", engine.url.host or engine.url.drivername)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`aurora.database.models`.

    Safe to call on every startup.  In production the schema is managed by
    Alembic (``alembic upgrade head``); ``create_all`` covers dev and
    in-memory runs where Alembic never ran.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that commits on success and rolls back on
    exception.

    ``expire_on_commit`` is off so rows returned from a service stay readable
    after the session closes.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Every DB call in a cog or an async service goes through this wrapper::

        bug = await run_db(get_bug, bot.engine, guild.id, 3)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
