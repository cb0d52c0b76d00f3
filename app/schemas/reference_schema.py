from pydantic import BaseModel, Field
from typing import Optional, Literal, Tuple, List


Visibility = Literal["pending", "approved", "blurred", "removed"]
ReferenceType = Literal["person", "link"]
ReferenceRole = Literal["witness", "heard_from", "source", "related"]


# ---------------------------------------------------------
# RAW (server-side only, never serialised to a client)
# ---------------------------------------------------------
class RawPerson(BaseModel):
    id: str
    canonical_name: str
    visibility: Optional[str] = None
    initials_only: bool = False
    claimed: bool = False

    model_config = {"from_attributes": True, "frozen": True}


class RawPreference(BaseModel):
    id: str
    person_id: str
    contributor_id: Optional[str] = None
    visibility: str
    initials_only: bool = False
    version: int
    is_active: bool = True

    model_config = {"from_attributes": True, "frozen": True}


class RawReference(BaseModel):
    """
    A reference row exactly as stored, plus the person and that person's
    preferences. Only app.core.redaction turns this into something a
    client may see.
    """
    kind: Literal["raw"] = "raw"

    id: str
    event_id: str
    type: ReferenceType = "person"
    person_id: Optional[str] = None
    display_name: Optional[str] = None
    url: Optional[str] = None
    role: Optional[str] = None
    note: Optional[str] = None
    relationship_to_subject: Optional[str] = None
    visibility: Optional[str] = None

    person: Optional[RawPerson] = None
    preferences: Tuple[RawPreference, ...] = ()

    model_config = {"frozen": True}

    @property
    def author_label(self) -> str:
        """The name as the note's author entered it."""
        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        if self.person and self.person.canonical_name:
            return self.person.canonical_name
        return ""


# ---------------------------------------------------------
# VIEWER
# ---------------------------------------------------------
class ViewerContext(BaseModel):
    is_owner: bool = False
    contributor_id: Optional[str] = None
    # author of the note being viewed; keys per-author preferences
    author_id: Optional[str] = None

    model_config = {"frozen": True}


# ---------------------------------------------------------
# REDACTED (the only shape that leaves the boundary)
# ---------------------------------------------------------
class AuthorPayload(BaseModel):
    author_label: str
    identity_state: Visibility

    model_config = {"frozen": True}


class RedactedReference(BaseModel):
    kind: Literal["redacted"] = "redacted"

    id: str
    type: ReferenceType
    visibility: Visibility
    identity_state: Visibility
    render_label: str
    relationship_to_subject: Optional[str] = None
    note: Optional[str] = None
    role: Optional[str] = None
    url: Optional[str] = None

    # Owner only
    author_payload: Optional[AuthorPayload] = None

    model_config = {"frozen": True}


class DevCompareOut(BaseModel):
    owner: List[RedactedReference]
    public: List[RedactedReference]


# ---------------------------------------------------------
# AUTHORING INPUT
# ---------------------------------------------------------
class PersonReferenceIn(BaseModel):
    name: str
    relationship: Optional[str] = None
    role: ReferenceRole = "witness"
    phone: Optional[str] = None
    person_id: Optional[str] = None
    visibility: Optional[Visibility] = None
    note: Optional[str] = None


class PersonReferencesCreate(BaseModel):
    references: List[PersonReferenceIn] = Field(default_factory=list)


class CreatedReferenceOut(BaseModel):
    reference_id: str
    person_id: str
    invite_id: Optional[str] = None


# ---------------------------------------------------------
# NOTE OUTPUT
# ---------------------------------------------------------
class NoteOut(BaseModel):
    id: str
    title: str
    year: Optional[int] = None
    type: str
    body: Optional[str] = None
    is_owner: bool
    references: List[RedactedReference]
