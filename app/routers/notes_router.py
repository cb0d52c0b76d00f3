from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth.supabase_auth import get_current_user, get_optional_user, require_admin
from app.config import Settings, get_settings
from app.core import name_detection
from app.core.contributor_access import find_contributor, get_current_contributor
from app.core.mentions import list_mentions, record_detected_mentions
from app.core.redaction import (
    compare_projections,
    project_references,
    redact_note_body,
    viewer_for_note,
)
from app.core.references import (
    add_person_references,
    get_note,
    load_raw_references,
    validate_reference_inputs,
)
from app.database import get_db
from app.models.timeline_event import TimelineEvent
from app.schemas.mention_schema import MentionDetectOut, MentionOut
from app.schemas.reference_schema import (
    CreatedReferenceOut,
    DevCompareOut,
    NoteOut,
    PersonReferencesCreate,
    RedactedReference,
)


router = APIRouter(prefix="/notes", tags=["Notes"])


# =====================================================================
# Helper: the note must belong to the caller
# =====================================================================
def require_note_owner(note: TimelineEvent, db: Session, current_user: dict):
    contributor = get_current_contributor(db, current_user["sub"])
    if note.contributor_id != contributor.id:
        raise HTTPException(status_code=403, detail="Not your note")
    return contributor


def _viewer_id(db: Session, current_user: Optional[dict]) -> Optional[str]:
    contributor = find_contributor(db, current_user)
    return contributor.id if contributor else None


# =====================================================================
# READ (redacted for everyone but the author)
# =====================================================================
@router.get("/{event_id}/references", response_model=List[RedactedReference])
def get_note_references(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[dict] = Depends(get_optional_user),
    config: Settings = Depends(get_settings),
):
    note = get_note(db, event_id)
    viewer = viewer_for_note(note, _viewer_id(db, current_user))

    return project_references(
        load_raw_references(db, note.id),
        viewer,
        config.PENDING_PLACEHOLDER,
    )


@router.get("/{event_id}", response_model=NoteOut)
def get_note_view(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[dict] = Depends(get_optional_user),
    config: Settings = Depends(get_settings),
):
    note = get_note(db, event_id)
    viewer = viewer_for_note(note, _viewer_id(db, current_user))
    raw = load_raw_references(db, note.id)

    return NoteOut(
        id=note.id,
        title=note.title,
        year=note.year,
        type=note.type,
        body=redact_note_body(note.full_entry, raw, viewer, config.PENDING_PLACEHOLDER),
        is_owner=viewer.is_owner,
        references=project_references(raw, viewer, config.PENDING_PLACEHOLDER),
    )


# =====================================================================
# DEV COMPARE (owner + public side by side, admin QA only)
# =====================================================================
@router.get("/{event_id}/references/compare", response_model=DevCompareOut)
def compare_note_references(
    event_id: str,
    db: Session = Depends(get_db),
    admin_user: dict = Depends(require_admin),
    config: Settings = Depends(get_settings),
):
    if not config.DEV_COMPARE_ENABLED:
        raise HTTPException(status_code=404, detail="Not found")

    note = get_note(db, event_id)
    return compare_projections(
        load_raw_references(db, note.id),
        note.contributor_id,
        config.PENDING_PLACEHOLDER,
    )


# =====================================================================
# ADD PERSON REFERENCES (+ invites)
# =====================================================================
@router.post("/{event_id}/references", response_model=List[CreatedReferenceOut])
def create_note_references(
    event_id: str,
    payload: PersonReferencesCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    note = get_note(db, event_id)
    contributor = require_note_owner(note, db, current_user)

    if not payload.references:
        raise HTTPException(status_code=400, detail="No references given")

    errors = validate_reference_inputs(payload.references)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))

    return add_person_references(
        db,
        note,
        payload.references,
        contributor.id,
        contributor.name,
    )


# =====================================================================
# MENTIONS
# =====================================================================
@router.get("/{event_id}/mentions", response_model=List[MentionOut])
def get_note_mentions(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    note = get_note(db, event_id)
    require_note_owner(note, db, current_user)

    return list_mentions(db, note.id)


@router.post("/{event_id}/mentions/detect", response_model=MentionDetectOut)
def detect_note_mentions(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    config: Settings = Depends(get_settings),
):
    note = get_note(db, event_id)
    contributor = require_note_owner(note, db, current_user)

    detected = name_detection.detect_names(note.full_entry or "", config)

    created = record_detected_mentions(
        db,
        note.id,
        detected.names,
        contributor_id=contributor.id,
        skip_names=[*detected.public_names, *detected.fictional_names],
        subject_variants=config.SUBJECT_NAME_VARIANTS,
    )
    return {"created": created}
