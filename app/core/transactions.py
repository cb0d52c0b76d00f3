import logging
from contextlib import contextmanager
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def atomic(db: Session):
    """
    One unit of work: commit on success, roll back on any exception.

    A unique-constraint violation means another request got there first
    and is raised as ConflictError. Anything else (including timeouts and
    cancellations) rolls back and propagates unchanged, so no terminal
    state is ever half-written.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ConflictError.public_message) from exc
    except BaseException:
        db.rollback()
        raise


def with_conflict_retry(db: Session, operation: Callable[[], T]) -> T:
    """
    Run operation; on ConflictError retry once against the latest state.

    A second conflict is surfaced to the caller.
    """
    try:
        return operation()
    except ConflictError:
        logger.info("write conflict, retrying once with fresh state")
        db.rollback()
        db.expire_all()
        return operation()
