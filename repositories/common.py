"""
Shared helpers for repositories.
"""

import logging
from typing import Dict, Sequence, Type

from sqlmodel import Session, SQLModel, select

logger = logging.getLogger(__name__)


def upsert(
    session: Session,
    model: Type[SQLModel],
    values: Dict,
    conflict_columns: Sequence[str],
    update_columns: Sequence[str]
) -> None:
    """
    Insert a row or overwrite the given columns when the unique key already exists.

    SQLite and PostgreSQL use native INSERT ... ON CONFLICT DO UPDATE, so two
    writers racing on the same key converge on the last write instead of
    failing. Other dialects fall back to select-then-update.
    Does not commit.
    """
    dialect = session.get_bind().dialect.name

    if dialect in ("sqlite", "postgresql"):
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            from sqlalchemy.dialects.postgresql import insert

        statement = insert(model).values(**values)
        statement = statement.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={column: statement.excluded[column] for column in update_columns}
        )
        session.connection().execute(statement)
        return

    conditions = [getattr(model, column) == values[column] for column in conflict_columns]
    existing = session.exec(select(model).where(*conditions)).first()
    if existing:
        for column in update_columns:
            setattr(existing, column, values[column])
        session.add(existing)
    else:
        session.add(model(**values))
