import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from .base import Base


class WalletORM(Base):
    __tablename__ = "wallets"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, unique=True, index=True)
    # Coin balance; only ever changed through WalletRepository.increment_balance
    balance = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
