from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime, timezone
from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """
    User profile record. ``id`` is the identity provider's user id.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    # "metadata" is reserved on declarative classes
    user_metadata = Column("metadata", JSON, nullable=True)
