# Overview: Transaction boundary and row-locking helpers shared by services.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    One atomic unit of work per mutating operation.

    Commits when the block exits normally. Any exception rolls back every
    change made inside the block and propagates; nothing is retried.
    Uniqueness violations reported by the store surface as ConflictError.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Unit of work rolled back on integrity error: %s", exc.orig)
        raise ConflictError("Conflicting record already exists") from exc
    except Exception:
        db.session.rollback()
        raise
