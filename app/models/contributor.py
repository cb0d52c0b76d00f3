from sqlalchemy import Column, String, DateTime
from app.utils.clock import utcnow
from app.database import Base
import uuid


class Contributor(Base):
    """
    Someone who shares notes in the archive.
    user_id links the row to a Supabase auth account (JWT "sub").
    """
    __tablename__ = "contributors"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, unique=True, index=True, nullable=True)

    name = Column(String, nullable=False)
    relation = Column(String, nullable=True)  # "sister", "cousin", "friend"
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow)
