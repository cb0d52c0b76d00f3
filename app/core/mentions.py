"""
Mention workflow: names found in a note body waiting for the author.

    pending --keep as context--> context   (label only, still open)
    pending/context --promote--> promoted  (Person + reference)
    pending/context --ignore---> ignored

Nothing here runs without an explicit user action; detection only ever
records pending rows.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.errors import MentionStateError, NotFoundError
from app.core.people import normalize_name, resolve_person_for_name
from app.core.transactions import atomic, with_conflict_retry
from app.models.event_reference import EventReference
from app.models.note_mention import NoteMention

logger = logging.getLogger(__name__)

MAX_MENTIONS_PER_DETECTION = 20

# Names that turn up in family stories but never belong to a real person
FICTIONAL_CHARACTERS = frozenset({
    # holidays
    "santa", "santa claus", "father christmas", "st nick", "saint nick",
    "easter bunny", "tooth fairy", "jack frost", "cupid",
    # religious
    "god", "jesus", "jesus christ", "christ", "devil", "satan",
    # fairy tales
    "cinderella", "snow white", "sleeping beauty", "rapunzel",
    "peter pan", "tinkerbell", "pinocchio",
    # other
    "boogeyman", "sandman", "mother nature",
})

TERMINAL_STATUSES = ("promoted", "ignored")


@dataclass(frozen=True)
class PromotionResult:
    mention_id: str
    person_id: str
    reference_id: str
    created_person: bool


# ============================================================
# READ
# ============================================================

def get_mention(db: Session, mention_id: str, for_update: bool = False) -> NoteMention:
    query = db.query(NoteMention).filter(NoteMention.id == mention_id)
    if for_update:
        query = query.with_for_update()

    mention = query.first()
    if not mention:
        raise NotFoundError("Mention not found")
    return mention


def list_mentions(db: Session, event_id: str) -> list[NoteMention]:
    return (
        db.query(NoteMention)
        .filter(NoteMention.event_id == event_id)
        .order_by(NoteMention.created_at.asc(), NoteMention.id.asc())
        .all()
    )


# ============================================================
# DETECTION
# ============================================================

def record_detected_mentions(
    db: Session,
    event_id: str,
    names: Iterable[str],
    *,
    contributor_id: Optional[str] = None,
    skip_names: Iterable[str] = (),
    subject_variants: Iterable[str] = (),
) -> list[NoteMention]:
    """
    Store detected names as pending mentions.

    Skips fictional characters, names in skip_names (public figures and
    names the detector itself flagged as fictional), the archive
    subject's own names, and anything already recorded for this note.
    """
    excluded = {normalize_name(n) for n in skip_names}
    excluded |= {normalize_name(n) for n in subject_variants}
    excluded |= FICTIONAL_CHARACTERS

    existing = {
        row.normalized_text
        for row in db.query(NoteMention.normalized_text)
        .filter(NoteMention.event_id == event_id, NoteMention.source == "llm")
        .all()
    }

    created = []
    with atomic(db):
        for name in names:
            if len(created) >= MAX_MENTIONS_PER_DETECTION:
                break

            text = " ".join((name or "").split())
            normalized = normalize_name(text)
            if not normalized or normalized in excluded or normalized in existing:
                continue

            mention = NoteMention(
                event_id=event_id,
                mention_text=text,
                normalized_text=normalized,
                status="pending",
                source="llm",
                created_by=contributor_id,
            )
            db.add(mention)
            existing.add(normalized)
            created.append(mention)

    logger.info("note %s: %d mentions recorded", event_id, len(created))
    return created


# ============================================================
# TRANSITIONS
# ============================================================

def keep_as_context(db: Session, mention_id: str, display_label: Optional[str] = None) -> NoteMention:
    with atomic(db):
        mention = get_mention(db, mention_id, for_update=True)
        if mention.status in TERMINAL_STATUSES:
            raise MentionStateError(mention.id, mention.status, "context")

        label = (display_label or "").strip()
        mention.display_label = label or mention.mention_text
        mention.status = "context"

    return mention


def ignore(db: Session, mention_id: str) -> NoteMention:
    with atomic(db):
        mention = get_mention(db, mention_id, for_update=True)
        if mention.status == "ignored":
            return mention
        if mention.status == "promoted":
            raise MentionStateError(mention.id, mention.status, "ignore")

        mention.status = "ignored"

    logger.info("mention %s ignored", mention.id)
    return mention


def _existing_promotion(mention: NoteMention) -> PromotionResult:
    return PromotionResult(
        mention_id=mention.id,
        person_id=mention.promoted_person_id,
        reference_id=mention.promoted_reference_id,
        created_person=False,
    )


def _promote_once(
    db: Session,
    mention_id: str,
    person_id: Optional[str],
    create_new: bool,
    contributor_id: Optional[str],
) -> PromotionResult:
    with atomic(db):
        mention = get_mention(db, mention_id, for_update=True)

        if mention.status == "promoted":
            return _existing_promotion(mention)

        if mention.status == "ignored":
            raise MentionStateError(mention.id, mention.status, "promote")

        person, created = resolve_person_for_name(
            db,
            mention.mention_text,
            contributor_id,
            person_id=person_id,
            create_new=create_new,
            source_mention_id=mention.id,
            alias_kind="mention",
        )

        reference = (
            db.query(EventReference)
            .filter(
                EventReference.event_id == mention.event_id,
                EventReference.person_id == person.id,
            )
            .first()
        )
        if reference is None:
            reference = EventReference(
                event_id=mention.event_id,
                type="person",
                person_id=person.id,
                display_name=mention.display_label or mention.mention_text,
                role="related",
                visibility=person.visibility or "pending",
                added_by=contributor_id,
            )
            db.add(reference)
            db.flush()

        mention.status = "promoted"
        mention.promoted_person_id = person.id
        mention.promoted_reference_id = reference.id

        result = PromotionResult(
            mention_id=mention.id,
            person_id=person.id,
            reference_id=reference.id,
            created_person=created,
        )

    logger.info(
        "mention %s promoted to person %s (reference %s)",
        result.mention_id,
        result.person_id,
        result.reference_id,
    )
    return result


def promote(
    db: Session,
    mention_id: str,
    *,
    person_id: Optional[str] = None,
    create_new: bool = False,
    contributor_id: Optional[str] = None,
) -> PromotionResult:
    """
    Turn a mention into a person reference on its note.

    Calling it again on a promoted mention returns the same linkage. A
    concurrent promotion that loses the race on people.source_mention_id
    retries once and then sees the winner's result.
    """
    return with_conflict_retry(
        db,
        lambda: _promote_once(db, mention_id, person_id, create_new, contributor_id),
    )
