from sqlalchemy import Column, String, DateTime, ForeignKey, CheckConstraint
from app.utils.clock import utcnow
from app.database import Base
import uuid


class ClaimToken(Base):
    """
    Single-use, time-boxed credential sent with an invite.

    Only the sha256 of the raw token is stored. issued -> consumed
    (used_at set) or issued -> expired (expires_at passed); both final.
    """
    __tablename__ = "claim_tokens"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    token_hash = Column(String, nullable=False, unique=True, index=True)

    invite_id = Column(String, ForeignKey("invites.id", ondelete="CASCADE"), nullable=True, index=True)
    event_id = Column(
        String,
        ForeignKey("timeline_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    person_id = Column(String, ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    reference_id = Column(
        String,
        ForeignKey("event_references.id", ondelete="SET NULL"),
        nullable=True,
    )

    recipient_name = Column(String, nullable=False)
    recipient_phone = Column(String, nullable=False)

    # Absolute UTC instants
    expires_at = Column(DateTime, nullable=False, index=True)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # SMS delivery tracking
    sms_status = Column(String, nullable=False, default="pending")
    sms_sent_at = Column(DateTime, nullable=True)
    sms_sid = Column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "sms_status IN ('pending', 'sent', 'failed')",
            name="ck_claim_tokens_sms_status",
        ),
    )
