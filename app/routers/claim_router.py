from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth.supabase_auth import get_current_user, get_optional_user
from app.config import Settings, get_settings
from app.core.claims import consume_claim_token, preview_claim, send_claim_invites
from app.core.contributor_access import find_contributor, get_current_contributor
from app.core.sms import TwilioSmsSender
from app.database import get_db
from app.schemas.claim_schema import (
    ClaimConsume,
    ClaimConsumeOut,
    ClaimPreviewOut,
    ClaimSend,
    ClaimSendOut,
)


router = APIRouter(prefix="/claim", tags=["Claim"])


# --------------------------------------------------
# SMS dependency
# --------------------------------------------------
def get_sms_sender(config: Settings = Depends(get_settings)) -> TwilioSmsSender:
    sender = TwilioSmsSender.from_settings(config)
    if sender is None:
        raise HTTPException(status_code=503, detail="SMS not configured")
    return sender


# --------------------------------------------------
# PREVIEW (claim page)
# --------------------------------------------------
@router.get("/verify", response_model=ClaimPreviewOut)
def verify_claim(token: str, db: Session = Depends(get_db)):
    return preview_claim(db, token)


# --------------------------------------------------
# CONSUME
# --------------------------------------------------
@router.post("/verify", response_model=ClaimConsumeOut)
def consume_claim(
    payload: ClaimConsume,
    db: Session = Depends(get_db),
    current_user: Optional[dict] = Depends(get_optional_user),
):
    # A signed-in claimant gets the person linked to their account
    contributor = find_contributor(db, current_user)

    return consume_claim_token(
        db,
        payload.token,
        payload.choice,
        payload.scope,
        claimant_contributor_id=contributor.id if contributor else None,
    )


# --------------------------------------------------
# SEND (mint tokens + SMS)
# --------------------------------------------------
@router.post("/send", response_model=ClaimSendOut)
def send_claims(
    payload: ClaimSend,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    sender: TwilioSmsSender = Depends(get_sms_sender),
    config: Settings = Depends(get_settings),
):
    if not payload.invite_ids:
        raise HTTPException(status_code=400, detail="Missing invite_ids")

    contributor = get_current_contributor(db, current_user["sub"])

    return send_claim_invites(
        db,
        payload.invite_ids,
        sender,
        config,
        sender_id=contributor.id,
    )
