from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.supabase_auth import get_current_user
from app.core.contributor_access import get_current_contributor
from app.core.identity_settings import read_identity_settings, update_identity_settings
from app.database import get_db
from app.schemas.identity_schema import IdentitySettingsOut, IdentitySettingsUpdate


router = APIRouter(prefix="/settings", tags=["Identity Settings"])


@router.get("/identity", response_model=IdentitySettingsOut)
def get_identity_settings(
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    contributor = get_current_contributor(db, current_user["sub"])
    return read_identity_settings(db, contributor.id)


@router.put("/identity", response_model=IdentitySettingsOut)
def put_identity_settings(
    payload: IdentitySettingsUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    contributor = get_current_contributor(db, current_user["sub"])
    return update_identity_settings(db, contributor.id, payload)
