from pydantic import BaseModel, Field
from typing import Optional, Literal, List


MentionAction = Literal["context", "ignore", "promote"]


class MentionOut(BaseModel):
    id: str
    event_id: str
    mention_text: str
    status: str
    display_label: Optional[str] = None
    source: str
    promoted_person_id: Optional[str] = None
    promoted_reference_id: Optional[str] = None

    model_config = {"from_attributes": True}


class MentionActionIn(BaseModel):
    action: MentionAction
    display_label: Optional[str] = None

    # promote only
    person_id: Optional[str] = None
    create_new: bool = False


class PromotionOut(BaseModel):
    mention_id: str
    person_id: str
    reference_id: str
    created_person: bool


class MentionActionOut(BaseModel):
    mention: MentionOut
    promotion: Optional[PromotionOut] = None


class MentionDetectOut(BaseModel):
    created: List[MentionOut] = Field(default_factory=list)
