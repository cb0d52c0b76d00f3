from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    Index,
)
from app.utils.clock import utcnow
from app.database import Base
import uuid


class VisibilityPreference(Base):
    """
    A person's own instruction for how they appear.

    contributor_id = NULL  -> global default for everyone
    contributor_id = X     -> applies when contributor X is the viewer

    Rows are append-only per scope: a new write deactivates the previous
    active row and takes version = max(version) + 1 for the person.
    Readers pick the highest active version, so the tie-break never
    depends on clock precision.
    """
    __tablename__ = "visibility_preferences"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    person_id = Column(String, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True)
    contributor_id = Column(String, ForeignKey("contributors.id", ondelete="CASCADE"), nullable=True)

    # approved / blurred / removed
    visibility = Column(String, nullable=False)
    initials_only = Column(Boolean, nullable=False, default=False)

    version = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # claim / settings / admin
    source = Column(String, nullable=False, default="settings")

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "visibility IN ('approved', 'blurred', 'removed')",
            name="ck_visibility_preferences_visibility",
        ),
        UniqueConstraint("person_id", "version", name="uq_visibility_preferences_person_version"),
        Index("ix_visibility_preferences_person_active", "person_id", "is_active"),
    )
