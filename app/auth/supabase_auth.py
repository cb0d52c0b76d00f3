from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from app.config import Settings, get_settings


def _decode(authorization: str, config: Settings) -> dict:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid auth header")

    token = authorization.replace("Bearer ", "", 1)

    if not config.SUPABASE_JWT_SECRET:
        raise HTTPException(status_code=401, detail="Auth is not configured")

    try:
        payload = jwt.decode(
            token,
            config.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience="authenticated",
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload  # contains sub + email


def get_current_user(
    authorization: Optional[str] = Header(None),
    config: Settings = Depends(get_settings),
) -> dict:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing auth header")

    return _decode(authorization, config)


def get_optional_user(
    authorization: Optional[str] = Header(None),
    config: Settings = Depends(get_settings),
) -> Optional[dict]:
    """Public reads: no header means anonymous, a bad header is still a 401."""
    if not authorization:
        return None

    return _decode(authorization, config)


def require_admin(
    current_user: dict = Depends(get_current_user),
    config: Settings = Depends(get_settings),
) -> dict:
    if not config.is_admin_email(current_user.get("email")):
        raise HTTPException(status_code=403, detail="Admin only")

    return current_user
