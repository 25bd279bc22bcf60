import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from .base import Base


class AffiliateLinkORM(Base):
    """Directed edge from a user to their direct sponsor."""

    __tablename__ = "affiliate_links"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # one sponsor per user keeps the referral graph a forest
    user_id = Column(String, nullable=False, unique=True, index=True)
    sponsor_id = Column(String, nullable=True, index=True)
    level = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
