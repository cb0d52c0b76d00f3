import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.core.preferences import active_preference, list_active_preferences, set_preference
from app.core.transactions import atomic, with_conflict_retry
from app.core.visibility import normalize_visibility
from app.models.contributor import Contributor
from app.models.person import Person
from app.schemas.identity_schema import IdentitySettingsUpdate

logger = logging.getLogger(__name__)


def get_claimed_person(db: Session, contributor_id: str) -> Optional[Person]:
    return (
        db.query(Person)
        .filter(Person.contributor_id == contributor_id, Person.claimed == True)  # noqa: E712
        .order_by(Person.created_at.asc())
        .first()
    )


def read_identity_settings(db: Session, contributor_id: str) -> dict:
    person = get_claimed_person(db, contributor_id)
    if not person:
        return {
            "person_id": None,
            "canonical_name": None,
            "default_visibility": "pending",
            "default_source": "unknown",
            "initials_only": False,
            "author_preferences": [],
        }

    prefs = list_active_preferences(db, person.id)
    global_pref = next((p for p in prefs if p.contributor_id is None), None)

    if global_pref:
        default_visibility = normalize_visibility(global_pref.visibility)
        default_source = "preference"
        initials_only = bool(global_pref.initials_only)
    else:
        default_visibility = normalize_visibility(person.visibility)
        default_source = "person"
        initials_only = bool(person.initials_only)

    scoped = [p for p in prefs if p.contributor_id is not None]
    names = {}
    if scoped:
        names = {
            c.id: c.name
            for c in db.query(Contributor)
            .filter(Contributor.id.in_([p.contributor_id for p in scoped]))
            .all()
        }

    # prefs come newest first; keep the newest per author
    author_preferences = {}
    for pref in scoped:
        if pref.contributor_id in author_preferences:
            continue
        author_preferences[pref.contributor_id] = {
            "contributor_id": pref.contributor_id,
            "contributor_name": names.get(pref.contributor_id),
            "visibility": normalize_visibility(pref.visibility),
            "initials_only": bool(pref.initials_only),
        }

    return {
        "person_id": person.id,
        "canonical_name": person.canonical_name,
        "default_visibility": default_visibility,
        "default_source": default_source,
        "initials_only": initials_only,
        "author_preferences": list(author_preferences.values()),
    }


def _update_once(db: Session, contributor_id: str, update: IdentitySettingsUpdate) -> None:
    with atomic(db):
        person = get_claimed_person(db, contributor_id)
        if not person:
            raise NotFoundError("No claimed identity for this account")

        if update.contributor_id is not None:
            author = db.query(Contributor).filter(Contributor.id == update.contributor_id).first()
            if not author:
                raise NotFoundError("Contributor not found")

        set_preference(
            db,
            person.id,
            update.visibility,
            contributor_id=update.contributor_id,
            initials_only=update.initials_only,
            source="settings",
        )

        if update.contributor_id is None:
            person.visibility = update.visibility
            person.initials_only = update.initials_only and update.visibility == "blurred"


def update_identity_settings(db: Session, contributor_id: str, update: IdentitySettingsUpdate) -> dict:
    with_conflict_retry(db, lambda: _update_once(db, contributor_id, update))

    person = get_claimed_person(db, contributor_id)
    pref = active_preference(db, person.id, update.contributor_id)
    logger.info(
        "person %s updated own identity settings (v%s)",
        person.id,
        pref.version if pref else "-",
    )
    return read_identity_settings(db, contributor_id)
