from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.utils.clock import utcnow
import uuid

from app.database import Base


class TimelineEvent(Base):
    """
    A note in the archive (memory, milestone or synchronicity).
    contributor_id is the note's owner.
    """
    __tablename__ = "timeline_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    contributor_id = Column(
        String,
        ForeignKey("contributors.id"),
        nullable=False,
        index=True,
    )

    # memory | milestone | origin
    type = Column(String, nullable=False, default="memory")

    title = Column(String, nullable=False)

    # ----------------------------------------------------------
    # Rich-text body (HTML as stored by the editor)
    # ----------------------------------------------------------
    full_entry = Column(Text, nullable=True)

    year = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    # ----------------------------------------------------------
    # RELATIONSHIPS
    # ----------------------------------------------------------
    contributor = relationship("Contributor")

    references = relationship(
        "EventReference",
        back_populates="event",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('memory', 'milestone', 'origin')",
            name="ck_timeline_events_type",
        ),
    )
