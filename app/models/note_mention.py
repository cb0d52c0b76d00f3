from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
)
from app.utils.clock import utcnow
from app.database import Base
import uuid


class NoteMention(Base):
    """
    A name candidate found in a note body, awaiting a human decision.

    pending  -> context (label kept, still open)
    pending  -> promoted (person + reference linked)   terminal
    pending  -> ignored                                 terminal
    """
    __tablename__ = "note_mentions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(
        String,
        ForeignKey("timeline_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    mention_text = Column(String, nullable=False)
    normalized_text = Column(String, nullable=False)

    # pending / context / promoted / ignored
    status = Column(String, nullable=False, default="pending", index=True)
    display_label = Column(String, nullable=True)

    # llm / user
    source = Column(String, nullable=False, default="llm")

    created_by = Column(String, ForeignKey("contributors.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    promoted_person_id = Column(String, ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    promoted_reference_id = Column(
        String,
        ForeignKey("event_references.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'context', 'promoted', 'ignored')",
            name="ck_note_mentions_status",
        ),
        CheckConstraint("source IN ('llm', 'user')", name="ck_note_mentions_source"),
        UniqueConstraint(
            "event_id",
            "normalized_text",
            "source",
            name="uq_note_mentions_event_norm_source",
        ),
    )
