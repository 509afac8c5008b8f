from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import ColumnElement, Table
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncConnection


def dialect_insert(dialect_name: str, table: Table) -> Any:
    """INSERT construct supporting ON CONFLICT for the connected dialect."""
    if dialect_name == "postgresql":
        return pg_insert(table)
    if dialect_name == "sqlite":
        return sqlite_insert(table)
    raise ValueError(f"Unsupported database dialect for upserts: {dialect_name!r}")


async def upsert_rows(
    conn: AsyncConnection,
    table: Table,
    rows: Sequence[dict[str, Any]],
    *,
    conflict_columns: Sequence[str],
    update_columns: Iterable[str] = (),
    where: Callable[[Any], ColumnElement[bool]] | None = None,
) -> None:
    """
    INSERT ... ON CONFLICT (conflict_columns) DO UPDATE SET col = EXCLUDED.col.

    With no update_columns the conflict is ignored (DO NOTHING). `where`
    receives the EXCLUDED pseudo-row and makes the overwrite conditional.
    """
    if not rows:
        return

    stmt = dialect_insert(conn.dialect.name, table)
    update_columns = list(update_columns)
    if update_columns:
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={col: stmt.excluded[col] for col in update_columns},
            where=where(stmt.excluded) if where is not None else None,
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))

    await conn.execute(stmt, list(rows))
