from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.utils.clock import utcnow
from app.database import Base
import uuid


class Person(Base):
    """
    A real individual named in notes.
    Can exist without an account (unclaimed). Never hard-deleted:
    visibility = removed is the only way to take someone out.
    """
    __tablename__ = "people"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    canonical_name = Column(String, nullable=False, index=True)

    # pending / approved / blurred / removed
    visibility = Column(String, nullable=False, default="pending")
    initials_only = Column(Boolean, nullable=False, default=False)

    # Set once the person asserts their identity (claim link or account)
    claimed = Column(Boolean, nullable=False, default=False)
    contributor_id = Column(String, ForeignKey("contributors.id"), nullable=True, index=True)

    created_by = Column(String, ForeignKey("contributors.id"), nullable=True)

    # One Person per promoted mention; the unique index makes a
    # double promotion fail in the database instead of duplicating people.
    source_mention_id = Column(String, nullable=True, unique=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    aliases = relationship(
        "PersonAlias",
        back_populates="person",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "visibility IN ('pending', 'approved', 'blurred', 'removed')",
            name="ck_people_visibility",
        ),
    )


class PersonAlias(Base):
    """Name variants used for matching mentions and references to people."""
    __tablename__ = "person_aliases"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    person_id = Column(String, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True)

    alias = Column(String, nullable=False, index=True)
    kind = Column(String, nullable=True)  # nickname / maiden / mention

    created_by = Column(String, ForeignKey("contributors.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    person = relationship("Person", back_populates="aliases")
