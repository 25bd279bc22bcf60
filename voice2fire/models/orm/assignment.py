import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class AssignmentORM(Base):
    __tablename__ = "notification_test_assignments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    test_id = Column(
        String, ForeignKey("notification_ab_tests.id"), nullable=False, index=True
    )
    user_id = Column(String, nullable=False, index=True)
    variant_id = Column(
        String, ForeignKey("notification_test_variants.id"), nullable=False
    )

    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # At most one assignment per (test, user); concurrent inserts race on this
    __table_args__ = (
        UniqueConstraint("test_id", "user_id", name="uq_assignment_test_user"),
    )

    variant = relationship("NotificationTestVariantORM", lazy="joined")

    test = relationship("NotificationTestORM")
