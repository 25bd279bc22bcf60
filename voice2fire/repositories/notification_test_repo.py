import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from voice2fire.core.errors import ValidationError
from voice2fire.models.orm.notification_test import (
    NotificationTestORM,
    NotificationTestStatus,
    NotificationTestVariantORM,
)
from voice2fire.models.schemas.notification_test import NotificationTestCreateModel

logger = logging.getLogger(__name__)


class NotificationTestRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def create_test(self, test_data: NotificationTestCreateModel) -> NotificationTestORM:
        """
        Creates a draft test together with its variants in one transaction.

        Variant names must be unique within the test; the database constraint
        backs the check made here.
        """
        names = [v.variant_name for v in test_data.variants]
        if len(names) != len(set(names)):
            raise ValidationError("Variant names must be unique within a test")

        test_dict = test_data.model_dump(exclude={"variants"}, exclude_unset=True)
        db_test = NotificationTestORM(**test_dict, status=NotificationTestStatus.DRAFT)

        try:
            self.db.add(db_test)
            self.db.flush()

            for variant_data in test_data.variants:
                self.db.add(
                    NotificationTestVariantORM(
                        test_id=db_test.id, **variant_data.model_dump()
                    )
                )

            self.db.commit()
            self.db.refresh(db_test)

            return db_test

        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError(f"Database integrity error: {e.orig}")

        except SQLAlchemyError:
            self.db.rollback()
            raise

    def get_test(self, test_id: str) -> NotificationTestORM | None:
        return self.db.get(NotificationTestORM, test_id)

    def get_test_with_variants(self, test_id: str) -> NotificationTestORM | None:
        """
        Fetches a single test and eagerly loads its variants in one query.
        """
        stmt = (
            select(NotificationTestORM)
            .where(NotificationTestORM.id == test_id)
            .options(joinedload(NotificationTestORM.variants))
        )

        return self.db.scalars(stmt).unique().one_or_none()

    def get_variants(self, test_id: str) -> list[NotificationTestVariantORM]:
        """Variants of a test in name order, the order weighted selection walks."""
        stmt = (
            select(NotificationTestVariantORM)
            .where(NotificationTestVariantORM.test_id == test_id)
            .order_by(NotificationTestVariantORM.variant_name)
        )
        return list(self.db.scalars(stmt).all())

    def update_status(
        self, db_test: NotificationTestORM, status: NotificationTestStatus
    ) -> NotificationTestORM:
        db_test.status = status
        if status == NotificationTestStatus.ACTIVE and db_test.start_date is None:
            db_test.start_date = datetime.utcnow()
        if status == NotificationTestStatus.COMPLETED:
            db_test.end_date = datetime.utcnow()

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(db_test)
        return db_test
