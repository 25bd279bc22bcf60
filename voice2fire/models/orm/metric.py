import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)

from .base import Base


class NotificationTestMetricORM(Base):
    __tablename__ = "notification_test_metrics"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    test_id = Column(
        String, ForeignKey("notification_ab_tests.id"), nullable=False, index=True
    )
    variant_id = Column(
        String, ForeignKey("notification_test_variants.id"), nullable=False, index=True
    )
    user_id = Column(String, nullable=False, index=True)

    notification_sent_at = Column(DateTime, nullable=True)

    # Each flag only ever goes from False to True
    notification_viewed = Column(Boolean, default=False, nullable=False)
    viewed_at = Column(DateTime, nullable=True)
    notification_clicked = Column(Boolean, default=False, nullable=False)
    clicked_at = Column(DateTime, nullable=True)
    conversion_event = Column(Boolean, default=False, nullable=False)
    converted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "test_id", "variant_id", "user_id", name="uq_metric_test_variant_user"
        ),
    )
