from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.contributor import Contributor


def find_contributor(db: Session, user: Optional[dict]) -> Optional[Contributor]:
    if not user:
        return None
    return db.query(Contributor).filter(Contributor.user_id == user["sub"]).first()


def get_current_contributor(db: Session, user_id: str) -> Contributor:
    """One contributor row per auth user."""
    contributor = db.query(Contributor).filter(Contributor.user_id == user_id).first()
    if not contributor:
        raise HTTPException(status_code=400, detail="User has no contributor profile")
    return contributor
