"""Dialect-aware SQL helpers: upsert and insert-or-ignore."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.dialects import sqlite as sqlite_dialect

from .exceptions import StorageError

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return the dialect name of *engine* (``'sqlite'`` for the supported backend)."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    return sync_engine.dialect.name


def require_sqlite(engine: Engine | AsyncEngine) -> None:
    """Raise ``StorageError`` unless *engine* talks to SQLite.

    The content index is an FTS5 virtual table, which only SQLite provides.
    """
    dialect = get_dialect(engine)
    if dialect != "sqlite":
        raise StorageError(f"Unsupported dialect {dialect!r}: tagscope requires SQLite with FTS5")


async def upsert_returning_id(
    session: AsyncSession,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str],
) -> int:
    """``INSERT ... ON CONFLICT DO UPDATE ... RETURNING id``.

    Only *update_keys* are overwritten when the row already exists, so
    the existing primary key is kept and returned.
    """
    stmt = sqlite_dialect.insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_keys,
        set_={k: stmt.excluded[k] for k in update_keys},
    ).returning(model.id)  # type: ignore[attr-defined]
    result = await session.execute(stmt)
    return result.scalar_one()


async def insert_or_ignore(
    session: AsyncSession,
    model: type,
    values: dict[str, Any] | list[dict[str, Any]],
    conflict_keys: list[str] | None = None,
) -> int:
    """``INSERT ... ON CONFLICT DO NOTHING``. Returns the number of inserted rows.

    *values* may be a single row or a list of rows.
    """
    if isinstance(values, list):
        if not values:
            return 0
        stmt = sqlite_dialect.insert(model).values(values)
    else:
        stmt = sqlite_dialect.insert(model).values(**values)
    stmt = stmt.on_conflict_do_nothing(index_elements=conflict_keys)
    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]
