"""
Atomic store primitives.

Like sets, follow edges, saved lists and denormalized counters are changed
through single conditional statements so that concurrent requests cannot
lose an update:

- set insertion is an ``INSERT ... ON CONFLICT DO NOTHING`` against a unique
  constraint; the affected row count tells whether the member was new,
- set removal is a ``DELETE ... WHERE``; zero rows means it was absent,
- counters move with ``UPDATE ... SET n = n + delta``, decrements guarded
  by ``n > 0``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from sqlalchemy import delete, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .errors import Unavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INSERT_BUILDERS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_if_absent(db: Session, model: Any, **values: Any) -> bool:
    """
    Insert a row unless it collides with a unique constraint.

    Returns:
        True if the row was inserted, False if an equal row already existed
    """
    dialect = db.get_bind().dialect.name
    builder = _INSERT_BUILDERS.get(dialect)
    if builder is None:
        raise RuntimeError(f"Conditional insert is not supported on dialect '{dialect}'")

    stmt = builder(model.__table__).values(**values).on_conflict_do_nothing()
    result = db.execute(stmt)
    return result.rowcount == 1


def delete_where(db: Session, model: Any, *criteria: Any) -> int:
    """Delete matching rows and return how many were removed."""
    stmt = (
        delete(model)
        .where(*criteria)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount


def bump_counter(
    db: Session,
    model: Any,
    column: Any,
    criteria: list[Any],
    delta: int,
) -> int:
    """
    Apply ``column += delta`` to matching rows in one statement.

    Negative deltas never push the value below zero: rows already at zero
    are left untouched.

    Returns:
        Number of rows changed
    """
    if delta == 0:
        return 0

    stmt = update(model).where(*criteria)
    if delta < 0:
        stmt = stmt.where(column >= -delta)
    stmt = stmt.values({column.key: column + delta}).execution_options(
        synchronize_session=False
    )
    return db.execute(stmt).rowcount


def run_with_retry(db: Session, operation: Callable[[], T], *, attempts: int, label: str) -> T:
    """
    Run a multi-statement write and commit it, retrying transient store errors.

    The operation must be safe to re-run after a rollback. When every attempt
    fails the error surfaces as Unavailable so the caller can retry later.
    """
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except OperationalError as e:
            db.rollback()
            if attempt >= attempts:
                logger.error(f"{label}: giving up after {attempt} attempt(s): {e}", exc_info=True)
                raise Unavailable(f"Could not complete {label}, please retry") from e
            logger.warning(f"{label}: transient store error on attempt {attempt}, retrying: {e}")
        except Exception:
            db.rollback()
            raise

    # attempts is always >= 1
    raise Unavailable(f"Could not complete {label}, please retry")
