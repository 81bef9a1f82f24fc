# Overview: Row locking and atomic counter updates for multi-row writes.

from __future__ import annotations

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def increment_column(model, row_id: int, **deltas) -> int:
    """
    Add deltas to numeric columns in the database (col = col + delta).

    The arithmetic happens in SQL, so two transactions adjusting the same row
    never overwrite each other's change. Returns the number of rows matched.
    """
    values = {getattr(model, name): getattr(model, name) + delta for name, delta in deltas.items()}
    result = db.session.query(model).filter(model.id == row_id).update(
        values, synchronize_session="fetch"
    )
    return result
