from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.utils.clock import utcnow
from app.database import Base
import uuid


class Invite(Base):
    __tablename__ = "invites"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(
        String,
        ForeignKey("timeline_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    recipient_name = Column(String, nullable=False)
    recipient_contact = Column(String, nullable=False)
    method = Column(String, nullable=False)  # sms / email / link
    message = Column(String, nullable=True)

    sender_id = Column(String, ForeignKey("contributors.id"), nullable=True)

    status = Column(String, default="pending")  # pending / sent / opened / contributed
    created_at = Column(DateTime, default=utcnow)

    event = relationship("TimelineEvent")
    sender = relationship("Contributor", foreign_keys=[sender_id])
