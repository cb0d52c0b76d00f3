import logging
from collections import defaultdict
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from app.core.errors import NotFoundError
from app.core.invites import build_invite_data, validate_person_reference
from app.core.people import resolve_person_for_name
from app.core.transactions import atomic
from app.core.visibility import is_more_private_or_equal, normalize_visibility
from app.models.event_reference import EventReference
from app.models.invite import Invite
from app.models.timeline_event import TimelineEvent
from app.models.visibility_preference import VisibilityPreference
from app.schemas.reference_schema import (
    PersonReferenceIn,
    RawPerson,
    RawPreference,
    RawReference,
)

logger = logging.getLogger(__name__)


# ============================================================
# LOADING (one batch per note)
# ============================================================

def get_note(db: Session, event_id: str) -> TimelineEvent:
    note = db.query(TimelineEvent).filter(TimelineEvent.id == event_id).first()
    if not note:
        raise NotFoundError("Note not found")
    return note


def load_preferences(db: Session, person_ids: list[str]) -> dict[str, list[RawPreference]]:
    if not person_ids:
        return {}

    rows = (
        db.query(VisibilityPreference)
        .filter(
            VisibilityPreference.person_id.in_(person_ids),
            VisibilityPreference.is_active == True,  # noqa: E712
        )
        .all()
    )

    grouped: dict[str, list[RawPreference]] = defaultdict(list)
    for row in rows:
        grouped[row.person_id].append(RawPreference.model_validate(row))
    return grouped


def to_raw_reference(row: EventReference, preferences: list[RawPreference]) -> RawReference:
    person = RawPerson.model_validate(row.person) if row.person is not None else None

    return RawReference(
        id=row.id,
        event_id=row.event_id,
        type=row.type,
        person_id=row.person_id,
        display_name=row.display_name,
        url=row.url,
        role=row.role,
        note=row.note,
        relationship_to_subject=row.relationship_to_subject,
        visibility=row.visibility,
        person=person,
        preferences=tuple(preferences),
    )


def load_raw_references(db: Session, event_id: str) -> list[RawReference]:
    """
    All references of a note with their people and active preferences.

    Two queries regardless of how many people the note names.
    """
    rows = (
        db.query(EventReference)
        .options(joinedload(EventReference.person))
        .filter(EventReference.event_id == event_id)
        .order_by(EventReference.created_at.asc(), EventReference.id.asc())
        .all()
    )

    person_ids = sorted({row.person_id for row in rows if row.person_id})
    preferences = load_preferences(db, person_ids)

    return [to_raw_reference(row, preferences.get(row.person_id, [])) for row in rows]


# ============================================================
# AUTHORING
# ============================================================

def validate_reference_inputs(inputs: list[PersonReferenceIn]) -> list[str]:
    errors = []
    for index, ref in enumerate(inputs):
        for message in validate_person_reference(ref):
            errors.append(f"references[{index}]: {message}")
    return errors


def author_visibility(requested: Optional[str], person_visibility: Optional[str]) -> str:
    """
    Visibility for a new reference.

    An author may hide a person further on their own note but never reveal
    more than the person has agreed to.
    """
    base = normalize_visibility(person_visibility)
    if requested and is_more_private_or_equal(requested, base):
        return normalize_visibility(requested)
    return base


def _add_one_reference(
    db: Session,
    note: TimelineEvent,
    ref: PersonReferenceIn,
    contributor_id: str,
    sender_name: str,
) -> dict:
    person, _created = resolve_person_for_name(
        db,
        ref.name,
        contributor_id,
        person_id=ref.person_id,
    )

    reference = (
        db.query(EventReference)
        .filter(
            EventReference.event_id == note.id,
            EventReference.person_id == person.id,
        )
        .first()
    )

    if reference is None:
        reference = EventReference(
            event_id=note.id,
            type="person",
            person_id=person.id,
            display_name=ref.name.strip(),
            role=ref.role,
            note=ref.note,
            relationship_to_subject=ref.relationship,
            visibility=author_visibility(ref.visibility, person.visibility),
            added_by=contributor_id,
        )
        db.add(reference)
        db.flush()

    invite_id: Optional[str] = None
    invite_data = build_invite_data(ref, sender_name)
    if invite_data:
        invite = Invite(
            event_id=note.id,
            sender_id=contributor_id,
            **invite_data,
        )
        db.add(invite)
        db.flush()
        invite_id = invite.id

    return {
        "reference_id": reference.id,
        "person_id": person.id,
        "invite_id": invite_id,
    }


def add_person_references(
    db: Session,
    note: TimelineEvent,
    inputs: list[PersonReferenceIn],
    contributor_id: str,
    sender_name: str,
) -> list[dict]:
    """Create references (and invites for anyone with a contact) in one unit."""
    with atomic(db):
        created = [
            _add_one_reference(db, note, ref, contributor_id, sender_name)
            for ref in inputs
        ]

    logger.info("note %s: %d person references added", note.id, len(created))
    return created
