# Overview: Service-layer operations for concurrency; units of work, conditional writes and bounded retry.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PosError, StorageError
from ..extensions import db

logger = logging.getLogger(__name__)


def conditional_update(model, where: list, values: dict) -> int:
    """
    Single-statement UPDATE ... WHERE <conditions>; returns the matched row count.

    The guard conditions are evaluated by the database in the same statement
    as the write, so a concurrent writer cannot slip in between a read and
    the update. Callers treat 0 as "guard failed" and raise.

    Pending changes are autoflushed before the statement runs; loaded
    instances are expired afterwards so they reload the written values.
    """
    stmt = (
        update(model)
        .where(*where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.expire_all()
    return result.rowcount


def retry_with_backoff(func, *, attempts: int = 5, backoff_base: float = 0.05, retry_on=(LookupError,)):
    """
    Call func until it stops raising one of `retry_on`, sleeping
    backoff_base * 2**attempt between tries.

    The last exception propagates once `attempts` is exhausted; there is
    no unbounded wait.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.debug("Retry %s/%s after %s: sleeping %.3fs", attempt + 1, attempts, exc, delay)
            time.sleep(delay)


@contextmanager
def atomic(action: str):
    """
    One unit of work: commit on success, roll back on any failure.

    PosError propagates unchanged; SQLAlchemyError is wrapped as an
    opaque StorageError.

    Usage:
        with atomic("record payment"):
            ...
    """
    try:
        yield
        db.session.commit()
    except PosError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Storage failure during %s: %s", action, exc)
        raise StorageError(f"Failed to {action}") from exc
