"""Engine construction and schema installation.

One ``AsyncEngine`` is opened per process.  Every connection it hands
out runs in WAL mode (many readers, one writer) with foreign keys
enforced, so scope and file deletes cascade.

The content index is an FTS5 virtual table keyed by file id.  An
``AFTER DELETE`` trigger on the file table keeps it in step with
record deletion, including deletes cascaded from a scope.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import Column, Integer, MetaData, Table, Text, event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import tagscope.models  # noqa: F401  (registers tables on SQLModel.metadata)

from .dialect import require_sqlite

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

logger = logging.getLogger(__name__)

CONTENT_TABLE = "tagscope_file_content"
"""Name of the FTS5 table holding extracted file text."""

content_index = Table(
    CONTENT_TABLE,
    MetaData(),
    Column("rowid", Integer, primary_key=True),
    Column("content", Text),
)
"""Expression-language view of the FTS5 table (created by raw DDL, not ``create_all``)."""

BUSY_TIMEOUT_MS = 30_000

DEFAULT_DATA_DIR = Path.home() / ".tagscope"

DATABASE_URL_ENV = "TAGSCOPE_DATABASE_URL"

_FTS_STATEMENTS = (
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {CONTENT_TABLE} USING fts5(
        content,
        tokenize='porter'
    )
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS tagscope_files_ad AFTER DELETE ON tagscope_files BEGIN
        DELETE FROM {CONTENT_TABLE} WHERE rowid = old.id;
    END
    """,
)


def resolve_database_url(database_url: str | None = None, data_dir: str | Path | None = None) -> str:
    """Pick the database URL: explicit argument, then environment, then *data_dir*.

    The data directory is created when the file-based default is used.
    """
    if database_url:
        return database_url
    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        return env_url
    directory = Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR
    directory.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{directory / 'tagscope.db'}"


def _configure_connection(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def create_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create the shared async engine with per-connection pragmas installed."""
    engine = create_async_engine(database_url, echo=echo)
    require_sqlite(engine)
    event.listen(engine.sync_engine, "connect", _configure_connection)
    return engine


async def install_schema(conn: AsyncConnection) -> None:
    """Create all ORM tables plus the FTS5 content table and its delete trigger."""
    await conn.run_sync(SQLModel.metadata.create_all)
    for statement in _FTS_STATEMENTS:
        await conn.execute(text(statement))


async def open_store(
    database_url: str, *, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create the engine, install the schema and return ``(engine, session_factory)``."""
    engine = create_engine(database_url, echo=echo)
    async with engine.begin() as conn:
        await install_schema(conn)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    logger.info("Store opened at %s", engine.url.render_as_string(hide_password=True))
    return engine, factory
