"""Dialect-specific INSERT constructs for conflict-aware writes."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(session: AsyncSession, model):
    """
    Return an INSERT supporting ON CONFLICT for the session's backend.

    PostgreSQL and SQLite share the on_conflict_do_nothing /
    on_conflict_do_update API.
    """
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Conflict-aware insert not supported for {dialect}")
