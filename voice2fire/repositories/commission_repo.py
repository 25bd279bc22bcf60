import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from voice2fire.models.orm.commission import (
    CommissionDistributionORM,
    CommissionORM,
    CommissionSourceType,
    CommissionStatus,
)

logger = logging.getLogger(__name__)


class CommissionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_distribution(
        self, source_type: CommissionSourceType, source_id: str
    ) -> Optional[CommissionDistributionORM]:
        stmt = select(CommissionDistributionORM).where(
            CommissionDistributionORM.source_type == source_type,
            CommissionDistributionORM.source_id == source_id,
        )
        return self.db.scalars(stmt).one_or_none()

    def get_commissions_for_source(
        self, source_type: CommissionSourceType, source_id: str
    ) -> list[CommissionORM]:
        stmt = (
            select(CommissionORM)
            .where(
                CommissionORM.source_type == source_type,
                CommissionORM.source_id == source_id,
            )
            .order_by(CommissionORM.level)
        )
        return list(self.db.scalars(stmt).all())

    def get_commission_for_level(
        self, source_type: CommissionSourceType, source_id: str, level: int
    ) -> Optional[CommissionORM]:
        stmt = select(CommissionORM).where(
            CommissionORM.source_type == source_type,
            CommissionORM.source_id == source_id,
            CommissionORM.level == level,
        )
        return self.db.scalars(stmt).one_or_none()

    def add_pending_commission(
        self,
        source_type: CommissionSourceType,
        source_id: str,
        beneficiary_id: str,
        affiliate_id: str,
        level: int,
        amount: int,
        rate: float,
    ) -> CommissionORM:
        """Stages a pending commission. Does not commit."""
        db_commission = CommissionORM(
            source_type=source_type,
            source_id=source_id,
            beneficiary_id=beneficiary_id,
            affiliate_id=affiliate_id,
            level=level,
            amount=amount,
            commission_rate=rate,
            status=CommissionStatus.PENDING,
        )
        self.db.add(db_commission)
        self.db.flush()
        return db_commission

    def mark_paid(self, db_commission: CommissionORM) -> None:
        """Does not commit."""
        db_commission.status = CommissionStatus.PAID
        db_commission.paid_at = datetime.utcnow()
        self.db.flush()

    def record_distribution(
        self,
        source_type: CommissionSourceType,
        source_id: str,
        total_paid: int,
        commission_count: int,
    ) -> CommissionDistributionORM:
        """Writes the completion marker for a source event, once."""
        db_marker = CommissionDistributionORM(
            source_type=source_type,
            source_id=source_id,
            total_paid=total_paid,
            commission_count=commission_count,
        )
        try:
            self.db.add(db_marker)
            self.db.commit()
            self.db.refresh(db_marker)
            return db_marker
        except IntegrityError:
            self.db.rollback()
            logger.info(
                "Distribution for %s %s was already recorded", source_type.value, source_id
            )
            return self.get_distribution(source_type, source_id)
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def get_paid_totals_by_level(self, affiliate_id: str) -> dict[int, int]:
        stmt = (
            select(CommissionORM.level, func.sum(CommissionORM.amount))
            .where(
                CommissionORM.affiliate_id == affiliate_id,
                CommissionORM.status == CommissionStatus.PAID,
            )
            .group_by(CommissionORM.level)
            .order_by(CommissionORM.level)
        )
        return {level: int(total or 0) for level, total in self.db.execute(stmt)}
