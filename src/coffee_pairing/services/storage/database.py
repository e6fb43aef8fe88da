"""Engine setup and the async session base shared by repositories."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Generic, TypeVar

import structlog
from sqlalchemy import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, create_engine

from coffee_pairing import models  # noqa: F401  (registers tables)

logger = structlog.get_logger()

T = TypeVar("T")

_DUCKDB_PREFIX = "duckdb:///"


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url`` and make sure all tables exist.

    File-backed DuckDB URLs get their parent directory created first.
    """
    if database_url.startswith(_DUCKDB_PREFIX) and not database_url.endswith(":memory:"):
        Path(database_url[len(_DUCKDB_PREFIX) :]).parent.mkdir(parents=True, exist_ok=True)

    # NullPool releases the DuckDB file lock between sessions
    engine = create_engine(database_url, poolclass=NullPool)
    SQLModel.metadata.create_all(engine)
    logger.info("db_init", url=database_url)
    return engine


class AsyncRepository(Generic[T]):
    """Base for repositories: sync SQLModel work run off the event loop."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    async def _run_session(self, fn: Callable[[Session], T]) -> T:
        """Run ``fn`` in its own Session on a worker thread.

        Objects returned by ``fn`` stay readable after the session closes.
        """

        def _run() -> T:
            with Session(self._engine, expire_on_commit=False) as session:
                return fn(session)

        return await asyncio.to_thread(_run)
