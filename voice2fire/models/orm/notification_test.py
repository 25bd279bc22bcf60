import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base, enum_values


class NotificationTestStatus(enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


# --- Notification A/B Test Model ---
class NotificationTestORM(Base):
    __tablename__ = "notification_ab_tests"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    description = Column(Text)
    notification_type = Column(String, nullable=False, default="push")

    status = Column(
        Enum(NotificationTestStatus, values_callable=enum_values),
        default=NotificationTestStatus.DRAFT,
        nullable=False,
    )

    # Audience filter as configured in the admin dialog, not evaluated here
    target_audience = Column(JSON, nullable=True)

    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # One Test has Many Variants
    variants = relationship(
        "NotificationTestVariantORM",
        back_populates="test",
        order_by="NotificationTestVariantORM.variant_name",
    )


# --- Variant Model ---
class NotificationTestVariantORM(Base):
    __tablename__ = "notification_test_variants"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    test_id = Column(
        String, ForeignKey("notification_ab_tests.id"), nullable=False, index=True
    )
    variant_name = Column(String, nullable=False)

    # Notification content shown to users assigned to this variant
    message_title = Column(String, nullable=False)
    message_body = Column(Text, nullable=False)
    cta_text = Column(String, nullable=True)
    cta_link = Column(String, nullable=True)

    # Relative weight; the test's total need not be 100
    traffic_allocation = Column(Float, nullable=False, default=50.0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("test_id", "variant_name", name="uq_variant_test_name"),
    )

    test = relationship("NotificationTestORM", back_populates="variants")
