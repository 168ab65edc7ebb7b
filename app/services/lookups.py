"""Batch lookups used to resolve foreign references without joins."""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import Column, Table, select
from sqlalchemy.ext.asyncio import AsyncSession


async def load_by_ids(
    db: AsyncSession,
    table: Table,
    ids: Iterable[int | None],
    *columns: Column[Any],
) -> dict[int, dict[str, Any]]:
    """
    Fetch the rows of ``table`` whose id is in ``ids`` with a single query.

    Args:
        db: Database session
        table: Table to read
        ids: Foreign ids to resolve (duplicates and None are ignored)
        columns: Optional column subset; ``id`` is always included

    Returns:
        Mapping of id to row
    """
    wanted = sorted({i for i in ids if i is not None})
    if not wanted:
        return {}

    selected = [table.c.id, *(c for c in columns if c.name != "id")] if columns else [table]
    stmt = select(*selected).where(table.c.id.in_(wanted))
    result = await db.execute(stmt)

    return {row["id"]: dict(row) for row in result.mappings().all()}
