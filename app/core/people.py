import logging
import re
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import AmbiguousPersonError, NotFoundError
from app.models.event_reference import EventReference
from app.models.person import Person, PersonAlias

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    return re.sub(r"\s+", " ", name or "").strip().lower()


def escape_like(value: str) -> str:
    """Stop user input containing % or _ from acting as wildcards."""
    return re.sub(r"([%_\\])", r"\\\1", value)


def get_person(db: Session, person_id: str) -> Person:
    person = db.query(Person).filter(Person.id == person_id).first()
    if not person:
        raise NotFoundError("Person not found")
    return person


def can_use_person(db: Session, person: Person, contributor_id: Optional[str]) -> bool:
    """
    Whether a contributor may link a note to an existing person.

    - removed people are never linkable
    - approved people always are
    - otherwise only the creator, or someone who already referenced them
    """
    if person.visibility == "removed":
        return False

    if person.visibility == "approved":
        return True

    if not contributor_id:
        return False

    if person.created_by == contributor_id:
        return True

    referenced = (
        db.query(EventReference.id)
        .filter(
            EventReference.person_id == person.id,
            EventReference.added_by == contributor_id,
        )
        .first()
    )
    return referenced is not None


def find_person_candidates(
    db: Session,
    name: str,
    contributor_id: Optional[str],
) -> list[Person]:
    """Existing people this contributor may link for a typed name (aliases first)."""
    cleaned = re.sub(r"\s+", " ", name or "").strip()
    if not cleaned:
        return []

    pattern = escape_like(cleaned)

    alias_person_ids = [
        row.person_id
        for row in db.query(PersonAlias.person_id)
        .filter(PersonAlias.alias.ilike(pattern, escape="\\"))
        .limit(10)
        .all()
    ]

    by_alias = (
        db.query(Person).filter(Person.id.in_(alias_person_ids)).all()
        if alias_person_ids
        else []
    )
    by_name = (
        db.query(Person)
        .filter(Person.canonical_name.ilike(pattern, escape="\\"))
        .limit(10)
        .all()
    )

    seen = set()
    candidates = []
    for person in [*by_alias, *by_name]:
        if person.id in seen:
            continue
        seen.add(person.id)
        if can_use_person(db, person, contributor_id):
            candidates.append(person)

    return candidates


def create_person(
    db: Session,
    name: str,
    *,
    created_by: Optional[str] = None,
    visibility: str = "pending",
    source_mention_id: Optional[str] = None,
    alias_kind: str = "entered",
) -> Person:
    cleaned = re.sub(r"\s+", " ", name).strip()

    person = Person(
        canonical_name=cleaned,
        visibility=visibility,
        created_by=created_by,
        source_mention_id=source_mention_id,
    )
    db.add(person)
    db.flush()

    db.add(
        PersonAlias(
            person_id=person.id,
            alias=cleaned,
            kind=alias_kind,
            created_by=created_by,
        )
    )
    db.flush()

    logger.info("person %s created", person.id)
    return person


def resolve_person_for_name(
    db: Session,
    name: str,
    contributor_id: Optional[str],
    *,
    person_id: Optional[str] = None,
    create_new: bool = False,
    source_mention_id: Optional[str] = None,
    alias_kind: str = "entered",
) -> tuple[Person, bool]:
    """
    Returns (person, created).

    An explicit person_id links to that person. Otherwise any existing
    match is handed back to the user as a choice (AmbiguousPersonError)
    unless they asked for a new person; two people can share a name and
    a silent merge would attach one person's notes to the other.
    """
    if person_id:
        person = get_person(db, person_id)
        if not can_use_person(db, person, contributor_id):
            raise NotFoundError("Person not found")
        return person, False

    if not create_new:
        candidates = find_person_candidates(db, name, contributor_id)
        if candidates:
            raise AmbiguousPersonError(
                name,
                [{"id": p.id, "canonical_name": p.canonical_name} for p in candidates],
            )

    person = create_person(
        db,
        name,
        created_by=contributor_id,
        source_mention_id=source_mention_id,
        alias_kind=alias_kind,
    )
    return person, True
