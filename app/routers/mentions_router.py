from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth.supabase_auth import get_current_user
from app.core.contributor_access import get_current_contributor
from app.core.mentions import get_mention, ignore, keep_as_context, promote
from app.core.references import get_note
from app.database import get_db
from app.schemas.mention_schema import MentionActionIn, MentionActionOut


router = APIRouter(prefix="/mentions", tags=["Mentions"])


# --------------------------------------------------
# ACT ON A MENTION (context / ignore / promote)
# --------------------------------------------------
@router.post("/{mention_id}", response_model=MentionActionOut)
def act_on_mention(
    mention_id: str,
    payload: MentionActionIn,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    contributor = get_current_contributor(db, current_user["sub"])

    mention = get_mention(db, mention_id)
    note = get_note(db, mention.event_id)
    if note.contributor_id != contributor.id:
        raise HTTPException(403, "Not your note")

    promotion = None

    if payload.action == "context":
        mention = keep_as_context(db, mention_id, payload.display_label)

    elif payload.action == "ignore":
        mention = ignore(db, mention_id)

    else:
        result = promote(
            db,
            mention_id,
            person_id=payload.person_id,
            create_new=payload.create_new,
            contributor_id=contributor.id,
        )
        promotion = {
            "mention_id": result.mention_id,
            "person_id": result.person_id,
            "reference_id": result.reference_id,
            "created_person": result.created_person,
        }
        mention = get_mention(db, mention_id)

    return {"mention": mention, "promotion": promotion}
