from pydantic import BaseModel
from typing import Optional, Literal, List


PreferenceVisibility = Literal["approved", "blurred", "removed"]


# --------------------------------------------------
# SETTINGS (a claimed person managing themselves)
# --------------------------------------------------
class AuthorPreferenceOut(BaseModel):
    contributor_id: str
    contributor_name: Optional[str] = None
    visibility: str
    initials_only: bool = False


class IdentitySettingsOut(BaseModel):
    person_id: Optional[str] = None
    canonical_name: Optional[str] = None
    default_visibility: str = "pending"
    default_source: Literal["preference", "person", "unknown"] = "unknown"
    initials_only: bool = False
    author_preferences: List[AuthorPreferenceOut] = []


class IdentitySettingsUpdate(BaseModel):
    visibility: PreferenceVisibility
    initials_only: bool = False
    # None = global default
    contributor_id: Optional[str] = None


# --------------------------------------------------
# ADMIN OVERRIDE
# --------------------------------------------------
class AdminVisibilityUpdate(BaseModel):
    visibility: Literal["pending", "approved", "blurred", "removed"]
    initials_only: bool = False


class AdminVisibilityOut(BaseModel):
    id: str
    visibility: str
