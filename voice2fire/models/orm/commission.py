import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    UniqueConstraint,
)

from .base import Base, enum_values


class CommissionSourceType(enum.Enum):
    AD = "ad"
    ORDER = "order"


class CommissionStatus(enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class CommissionORM(Base):
    __tablename__ = "commissions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    source_type = Column(
        Enum(CommissionSourceType, values_callable=enum_values), nullable=False
    )
    source_id = Column(String, nullable=False, index=True)
    # The user whose spend generated the revenue
    beneficiary_id = Column(String, nullable=False)

    affiliate_id = Column(String, nullable=False, index=True)
    level = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    commission_rate = Column(Float, nullable=False)

    status = Column(
        Enum(CommissionStatus, values_callable=enum_values),
        default=CommissionStatus.PENDING,
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "source_type",
            "source_id",
            "level",
            name="uq_commission_source_level",
        ),
    )


class CommissionDistributionORM(Base):
    """Written once every level of a source event has been paid."""

    __tablename__ = "commission_distributions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    source_type = Column(
        Enum(CommissionSourceType, values_callable=enum_values), nullable=False
    )
    source_id = Column(String, nullable=False)
    total_paid = Column(Integer, nullable=False, default=0)
    commission_count = Column(Integer, nullable=False, default=0)

    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uq_distribution_source"),
    )
