from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.utils.clock import utcnow
from app.database import Base
import uuid


class EventReference(Base):
    """
    Directed edge note -> person (or note -> external link).

    display_name is the label the note's author typed. It is the
    un-redacted value and only ever leaves the server inside the
    owner's author_payload.
    """
    __tablename__ = "event_references"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(
        String,
        ForeignKey("timeline_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # person | link
    type = Column(String, nullable=False, default="person")

    person_id = Column(String, ForeignKey("people.id", ondelete="SET NULL"), nullable=True, index=True)

    url = Column(String, nullable=True)
    display_name = Column(String, nullable=True)

    # witness / heard_from / source / related
    role = Column(String, nullable=True)
    note = Column(String, nullable=True)

    # "cousin", "neighbor" ... only rendered when the identity is approved
    relationship_to_subject = Column(String, nullable=True)

    # pending / approved / blurred / removed (null = follow the person)
    visibility = Column(String, nullable=True, default="pending")

    added_by = Column(String, ForeignKey("contributors.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    event = relationship("TimelineEvent", back_populates="references")
    person = relationship("Person")

    __table_args__ = (
        CheckConstraint("type IN ('person', 'link')", name="ck_event_references_type"),
        CheckConstraint(
            "role IS NULL OR role IN ('witness', 'heard_from', 'source', 'related')",
            name="ck_event_references_role",
        ),
        CheckConstraint(
            "visibility IS NULL OR visibility IN ('pending', 'approved', 'blurred', 'removed')",
            name="ck_event_references_visibility",
        ),
        # A person is referenced at most once per note
        UniqueConstraint("event_id", "person_id", name="uq_event_references_event_person"),
    )
