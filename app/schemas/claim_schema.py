from pydantic import BaseModel
from typing import Optional, Literal, List


ClaimChoice = Literal["full_name", "initials", "hidden", "remove"]
ClaimScope = Literal["all_notes", "by_author"]


class ClaimConsume(BaseModel):
    token: str
    choice: ClaimChoice
    scope: ClaimScope = "all_notes"


class ClaimConsumeOut(BaseModel):
    ok: bool = True
    visibility_applied: str


class ClaimPreviewOut(BaseModel):
    recipient_name: str
    event_id: str
    event_title: str
    event_year: Optional[int] = None
    contributor_name: str


class ClaimSend(BaseModel):
    invite_ids: List[str]


class ClaimSendResult(BaseModel):
    invite_id: str
    success: bool
    error: Optional[str] = None


class ClaimSendOut(BaseModel):
    sent: int
    failed: int
    results: List[ClaimSendResult]
