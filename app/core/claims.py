"""
Claim tokens: how a person named in a note takes control of their name.

    issued --consume--> consumed   (used_at set, preference applied)
    issued --time-----> expired    (expires_at passed)

Consumption is one unit of work: the conditional UPDATE that marks the
token used, the preference write and the visibility updates commit
together or not at all.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.config import Settings
from app.core.errors import TokenInvalidError
from app.core.invites import build_claim_sms_message
from app.core.people import create_person, normalize_name
from app.core.preferences import set_preference
from app.core.transactions import atomic, with_conflict_retry
from app.models.claim_token import ClaimToken
from app.models.contributor import Contributor
from app.models.event_reference import EventReference
from app.models.invite import Invite
from app.models.timeline_event import TimelineEvent
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


# choice -> (visibility, initials_only)
CLAIM_CHOICES = {
    "full_name": ("approved", False),
    "initials": ("blurred", True),
    "hidden": ("blurred", False),
    "remove": ("removed", False),
}

CLAIM_SCOPES = ("all_notes", "by_author")


# ============================================================
# TOKENS
# ============================================================

def generate_claim_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def issue_claim_token(
    db: Session,
    invite: Invite,
    *,
    ttl_days: int,
    person_id: Optional[str] = None,
    reference_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[ClaimToken, str]:
    """
    Mint a token bound to one invite/note/recipient.

    Returns (row, raw_token). The raw token exists only in the return
    value and the link sent to the recipient. Does not commit.
    """
    now = now or utcnow()
    raw_token = generate_claim_token()

    claim = ClaimToken(
        token_hash=hash_token(raw_token),
        invite_id=invite.id,
        event_id=invite.event_id,
        person_id=person_id,
        reference_id=reference_id,
        recipient_name=invite.recipient_name,
        recipient_phone=invite.recipient_contact,
        expires_at=now + timedelta(days=ttl_days),
        created_at=now,
    )
    db.add(claim)
    db.flush()
    return claim, raw_token


def _live_claim(db: Session, raw_token: str, now: datetime) -> ClaimToken:
    claim = (
        db.query(ClaimToken)
        .filter(
            ClaimToken.token_hash == hash_token(raw_token or ""),
            ClaimToken.used_at.is_(None),
            ClaimToken.expires_at > now,
        )
        .first()
    )
    if not claim:
        raise TokenInvalidError()
    return claim


# ============================================================
# REFERENCE MATCHING
# ============================================================

def match_reference_by_name(
    references: list[EventReference],
    recipient_name: str,
) -> Optional[EventReference]:
    """
    Find the reference an invite was about when the token carries no binding.

    Exact name, then one name containing the other, then the note's only
    person reference.
    """
    wanted = normalize_name(recipient_name)

    def candidate(ref: EventReference) -> str:
        if ref.person is not None and ref.person.canonical_name:
            return normalize_name(ref.person.canonical_name)
        return normalize_name(ref.display_name or "")

    for ref in references:
        if wanted and candidate(ref) == wanted:
            return ref

    for ref in references:
        name = candidate(ref)
        if wanted and name and (wanted in name or name in wanted):
            return ref

    if len(references) == 1:
        return references[0]

    return None


def resolve_claim_reference(db: Session, claim: ClaimToken) -> EventReference:
    if claim.reference_id:
        ref = db.query(EventReference).filter(EventReference.id == claim.reference_id).first()
        if ref:
            return ref

    refs = (
        db.query(EventReference)
        .filter(
            EventReference.event_id == claim.event_id,
            EventReference.type == "person",
        )
        .all()
    )

    if claim.person_id:
        for ref in refs:
            if ref.person_id == claim.person_id:
                return ref

    ref = match_reference_by_name(refs, claim.recipient_name)
    if ref is None:
        # nothing to apply a choice to; answer like any other dead link
        logger.info("claim token %s matches no reference", claim.id)
        raise TokenInvalidError()
    return ref


# ============================================================
# PREVIEW (claim page)
# ============================================================

def preview_claim(db: Session, raw_token: str, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    claim = _live_claim(db, raw_token, now)

    note = db.query(TimelineEvent).filter(TimelineEvent.id == claim.event_id).first()
    if not note:
        # the note went away; the link is as good as expired
        raise TokenInvalidError()

    resolve_claim_reference(db, claim)

    contributor = (
        db.query(Contributor).filter(Contributor.id == note.contributor_id).first()
    )

    return {
        "recipient_name": claim.recipient_name,
        "event_id": note.id,
        "event_title": note.title,
        "event_year": note.year,
        "contributor_name": contributor.name if contributor else "Someone",
    }


# ============================================================
# CONSUME
# ============================================================

def _consume_once(
    db: Session,
    raw_token: str,
    choice: str,
    scope: str,
    now: datetime,
    claimant_contributor_id: Optional[str],
) -> dict:
    visibility, initials_only = CLAIM_CHOICES[choice]
    token_hash = hash_token(raw_token or "")

    with atomic(db):
        # Single conditional write: exactly one concurrent caller can match
        updated = (
            db.query(ClaimToken)
            .filter(
                ClaimToken.token_hash == token_hash,
                ClaimToken.used_at.is_(None),
                ClaimToken.expires_at > now,
            )
            .update({ClaimToken.used_at: now}, synchronize_session=False)
        )
        if updated != 1:
            logger.info("claim token rejected")
            raise TokenInvalidError()

        claim = db.query(ClaimToken).filter(ClaimToken.token_hash == token_hash).one()
        reference = resolve_claim_reference(db, claim)

        person = reference.person
        if person is None:
            person = create_person(
                db,
                claim.recipient_name,
                visibility="pending",
                alias_kind="claim",
            )
            reference.person_id = person.id
            reference.person = person

        scoped_contributor_id = None
        if scope == "by_author":
            note = db.query(TimelineEvent).filter(TimelineEvent.id == claim.event_id).one()
            scoped_contributor_id = note.contributor_id

        set_preference(
            db,
            person.id,
            visibility,
            contributor_id=scoped_contributor_id,
            initials_only=initials_only,
            source="claim",
        )

        reference.visibility = visibility
        if scope == "all_notes":
            person.visibility = visibility
            person.initials_only = initials_only

        person.claimed = True
        if claimant_contributor_id and not person.contributor_id:
            person.contributor_id = claimant_contributor_id

        claim.person_id = person.id
        claim.reference_id = reference.id

    logger.info(
        "claim %s consumed: person %s -> %s (%s)",
        claim.id,
        person.id,
        visibility,
        scope,
    )
    return {"ok": True, "visibility_applied": visibility}


def consume_claim_token(
    db: Session,
    raw_token: str,
    choice: str,
    scope: str = "all_notes",
    *,
    now: Optional[datetime] = None,
    claimant_contributor_id: Optional[str] = None,
) -> dict:
    """
    Spend a claim token and apply the claimant's choice.

    Raises TokenInvalidError for unknown, used and expired tokens alike.
    On any failure the token stays issued.
    """
    if choice not in CLAIM_CHOICES:
        raise ValueError(f"Invalid claim choice: {choice}")
    if scope not in CLAIM_SCOPES:
        raise ValueError(f"Invalid claim scope: {scope}")

    now = now or utcnow()
    return with_conflict_retry(
        db,
        lambda: _consume_once(db, raw_token, choice, scope, now, claimant_contributor_id),
    )


# ============================================================
# SEND (mint + SMS)
# ============================================================

def send_claim_invites(
    db: Session,
    invite_ids: list[str],
    sender,
    config: Settings,
    *,
    sender_id: Optional[str] = None,
) -> dict:
    """
    Mint a claim token per SMS invite and text the link.

    With sender_id set, invites sent by anyone else are reported as invalid.
    """
    results = []

    for invite_id in invite_ids:
        invite = db.query(Invite).filter(Invite.id == invite_id).first()

        if not invite or (sender_id and invite.sender_id != sender_id):
            results.append({"invite_id": invite_id, "success": False, "error": "Invalid invite"})
            continue

        if invite.method != "sms":
            results.append({"invite_id": invite_id, "success": False, "error": "Not an SMS invite"})
            continue

        refs = (
            db.query(EventReference)
            .filter(
                EventReference.event_id == invite.event_id,
                EventReference.type == "person",
            )
            .all()
        )
        reference = match_reference_by_name(refs, invite.recipient_name)

        with atomic(db):
            claim, raw_token = issue_claim_token(
                db,
                invite,
                ttl_days=config.CLAIM_TOKEN_TTL_DAYS,
                person_id=reference.person_id if reference else None,
                reference_id=reference.id if reference else None,
            )

        message = build_claim_sms_message(invite.recipient_name, raw_token, config.BASE_URL)
        sms = sender.send(invite.recipient_contact, message)

        with atomic(db):
            claim.sms_status = "sent" if sms.success else "failed"
            claim.sms_sent_at = utcnow() if sms.success else None
            claim.sms_sid = sms.sid
            if sms.success:
                invite.status = "sent"

        results.append({"invite_id": invite_id, "success": sms.success, "error": sms.error})

    sent = sum(1 for r in results if r["success"])
    logger.info("claim send: %d sent, %d failed", sent, len(results) - sent)

    return {"sent": sent, "failed": len(results) - sent, "results": results}
