"""Moderation overrides. Writes land in the same tables the read path uses."""

import logging

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.core.people import get_person
from app.core.preferences import clear_preference, set_preference
from app.core.transactions import atomic, with_conflict_retry
from app.core.visibility import BLURRED, PENDING, VISIBILITY_STATES
from app.models.event_reference import EventReference
from app.models.person import Person

logger = logging.getLogger(__name__)


def _check_state(visibility: str):
    if visibility not in VISIBILITY_STATES:
        raise ValueError(f"Invalid visibility: {visibility}")


def admin_set_reference_visibility(db: Session, reference_id: str, visibility: str) -> EventReference:
    """
    Force one reference's stored visibility.

    An active preference of the person still outranks it, except that
    removed always wins.
    """
    _check_state(visibility)

    with atomic(db):
        reference = db.query(EventReference).filter(EventReference.id == reference_id).first()
        if not reference:
            raise NotFoundError("Reference not found")
        reference.visibility = visibility

    logger.info("admin override: reference %s -> %s", reference.id, visibility)
    return reference


def _set_person_once(db: Session, person_id: str, visibility: str, initials_only: bool) -> Person:
    with atomic(db):
        person = get_person(db, person_id)
        person.visibility = visibility
        person.initials_only = bool(initials_only) and visibility == BLURRED

        if visibility == PENDING:
            # back to "no decision": drop the global preference as well
            clear_preference(db, person.id)
        else:
            set_preference(
                db,
                person.id,
                visibility,
                initials_only=initials_only,
                source="admin",
            )

    return person


def admin_set_person_visibility(
    db: Session,
    person_id: str,
    visibility: str,
    initials_only: bool = False,
) -> Person:
    _check_state(visibility)

    person = with_conflict_retry(
        db,
        lambda: _set_person_once(db, person_id, visibility, initials_only),
    )

    logger.info("admin override: person %s -> %s", person.id, visibility)
    return person
