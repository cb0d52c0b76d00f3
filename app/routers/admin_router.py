from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.supabase_auth import require_admin
from app.core.admin import admin_set_person_visibility, admin_set_reference_visibility
from app.database import get_db
from app.schemas.identity_schema import AdminVisibilityOut, AdminVisibilityUpdate


router = APIRouter(prefix="/admin", tags=["Admin"])


# --------------------------------------------------
# MODERATION OVERRIDES
# --------------------------------------------------
@router.post("/references/{reference_id}/visibility", response_model=AdminVisibilityOut)
def set_reference_visibility(
    reference_id: str,
    payload: AdminVisibilityUpdate,
    db: Session = Depends(get_db),
    admin_user: dict = Depends(require_admin),
):
    reference = admin_set_reference_visibility(db, reference_id, payload.visibility)
    return {"id": reference.id, "visibility": reference.visibility}


@router.post("/people/{person_id}/visibility", response_model=AdminVisibilityOut)
def set_person_visibility(
    person_id: str,
    payload: AdminVisibilityUpdate,
    db: Session = Depends(get_db),
    admin_user: dict = Depends(require_admin),
):
    person = admin_set_person_visibility(
        db,
        person_id,
        payload.visibility,
        payload.initials_only,
    )
    return {"id": person.id, "visibility": person.visibility}
