"""
invitetrail.database.engine — Engine, Sessions and the Thread Bridge
=====================================================================

The bot and the API share one schema but not one process.  Each builds
its own :class:`Engine` from ``DATABASE_URL``; the bot additionally
funnels every query through :func:`run_db` so a slow INSERT during a
join burst never stalls the gateway heartbeat.

Usage::

    engine = create_db_engine()
    init_db(engine)
    total = await run_db(record_join, engine, entry, invite)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invitetrail.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# A join raid fans out into one fetch + one write per member; the
# overflow absorbs the burst while the steady state needs only a few.
POOL_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 10,
    "pool_recycle": 3600,
    "pool_pre_ping": True,
}


def create_db_engine(url: str | None = None) -> Engine:
    """Engine for *url*, or for ``DATABASE_URL`` when *url* is omitted.

    Raises ``RuntimeError`` when neither is available.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at the invite tracking database."
        )
    engine = create_engine(url, **POOL_OPTIONS)
    logger.info("Database engine created → %s/%s", engine.url.host, engine.url.database)
    return engine


def init_db(engine: Engine) -> None:
    """Create the invite tables if missing.

    Alembic owns the schema in production; this only covers a fresh
    dev database.
    """
    Base.metadata.create_all(engine)
    logger.info("Invite tables verified: %s", ", ".join(sorted(Base.metadata.tables)))


def database_available(engine: Engine) -> bool:
    """Round-trip ``SELECT 1``; False (logged) when the DB can't be reached."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return False
    return True


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Unit of work: commit when the block exits cleanly, roll back otherwise."""
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a synchronous service function on the default thread pool."""
    return await asyncio.to_thread(func, *args, **kwargs)
