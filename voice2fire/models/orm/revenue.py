import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, String

from .base import Base


# Revenue sources are written by the ads and store subsystems; commissions only read them.
class AdvertisementORM(Base):
    __tablename__ = "advertisements"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    advertiser_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False, default="")
    amount_spent = Column(Float, nullable=False, default=0)
    status = Column(String, nullable=False, default="active")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class OrderORM(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(String, nullable=False, index=True)
    store_id = Column(String, nullable=True, index=True)
    affiliate_id = Column(String, nullable=True)
    total_amount = Column(Float, nullable=False, default=0)
    status = Column(String, nullable=False, default="pending")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
