import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.visibility import PREFERENCE_STATES
from app.models.visibility_preference import VisibilityPreference
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def next_version(db: Session, person_id: str) -> int:
    current = (
        db.query(func.max(VisibilityPreference.version))
        .filter(VisibilityPreference.person_id == person_id)
        .scalar()
    )
    return (current or 0) + 1


def active_preference(
    db: Session,
    person_id: str,
    contributor_id: Optional[str] = None,
) -> Optional[VisibilityPreference]:
    query = db.query(VisibilityPreference).filter(
        VisibilityPreference.person_id == person_id,
        VisibilityPreference.is_active == True,  # noqa: E712
    )
    if contributor_id is None:
        query = query.filter(VisibilityPreference.contributor_id.is_(None))
    else:
        query = query.filter(VisibilityPreference.contributor_id == contributor_id)

    return query.order_by(VisibilityPreference.version.desc()).first()


def set_preference(
    db: Session,
    person_id: str,
    visibility: str,
    *,
    contributor_id: Optional[str] = None,
    initials_only: bool = False,
    source: str = "settings",
) -> VisibilityPreference:
    """
    Record a new preference for one scope (global or one contributor).

    Does not commit; callers run it inside their own unit of work. Two
    writers racing for the same version hit the (person_id, version)
    unique index and one of them gets ConflictError at flush.
    """
    if visibility not in PREFERENCE_STATES:
        raise ValueError(f"Invalid preference visibility: {visibility}")

    now = utcnow()

    scope = db.query(VisibilityPreference).filter(
        VisibilityPreference.person_id == person_id,
        VisibilityPreference.is_active == True,  # noqa: E712
    )
    if contributor_id is None:
        scope = scope.filter(VisibilityPreference.contributor_id.is_(None))
    else:
        scope = scope.filter(VisibilityPreference.contributor_id == contributor_id)

    for previous in scope.all():
        previous.is_active = False
        previous.updated_at = now

    pref = VisibilityPreference(
        person_id=person_id,
        contributor_id=contributor_id,
        visibility=visibility,
        initials_only=bool(initials_only) and visibility == "blurred",
        version=next_version(db, person_id),
        is_active=True,
        source=source,
        created_at=now,
        updated_at=now,
    )
    db.add(pref)
    db.flush()

    logger.info(
        "person %s preference v%d set (%s, scope=%s)",
        person_id,
        pref.version,
        source,
        "global" if contributor_id is None else "contributor",
    )
    return pref


def clear_preference(
    db: Session,
    person_id: str,
    contributor_id: Optional[str] = None,
) -> int:
    """Deactivate the active preference for one scope; rows are kept for history."""
    query = db.query(VisibilityPreference).filter(
        VisibilityPreference.person_id == person_id,
        VisibilityPreference.is_active == True,  # noqa: E712
    )
    if contributor_id is None:
        query = query.filter(VisibilityPreference.contributor_id.is_(None))
    else:
        query = query.filter(VisibilityPreference.contributor_id == contributor_id)

    now = utcnow()
    rows = query.all()
    for row in rows:
        row.is_active = False
        row.updated_at = now

    db.flush()
    return len(rows)


def list_active_preferences(db: Session, person_id: str) -> list[VisibilityPreference]:
    return (
        db.query(VisibilityPreference)
        .filter(
            VisibilityPreference.person_id == person_id,
            VisibilityPreference.is_active == True,  # noqa: E712
        )
        .order_by(VisibilityPreference.version.desc())
        .all()
    )
