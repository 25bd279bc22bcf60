# repositories/assignment_repo.py
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from voice2fire.models.orm.assignment import AssignmentORM

logger = logging.getLogger(__name__)


class AssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_assignment(self, test_id: str, user_id: str) -> Optional[AssignmentORM]:
        """Retrieves a persistent assignment for a user in a specific test."""
        return (
            self.db.query(AssignmentORM)
            .filter(
                AssignmentORM.test_id == test_id,
                AssignmentORM.user_id == user_id,
            )
            .one_or_none()
        )

    def count_assignments_for_test(self, test_id: str) -> int:
        stmt = select(func.count(AssignmentORM.id)).where(
            AssignmentORM.test_id == test_id
        )
        return self.db.scalar(stmt) or 0

    def create_assignment(
        self, test_id: str, user_id: str, variant_id: str
    ) -> Optional[AssignmentORM]:
        """
        Creates a new assignment record.

        Returns None when the (test, user) pair was inserted by a concurrent
        request first; the caller re-reads the winning row.
        """
        db_assignment = AssignmentORM(
            test_id=test_id,
            user_id=user_id,
            variant_id=variant_id,
            assigned_at=datetime.utcnow(),
        )
        try:
            self.db.add(db_assignment)
            self.db.commit()
            self.db.refresh(db_assignment)

            return db_assignment

        except IntegrityError:
            self.db.rollback()
            logger.info(
                "Assignment for test %s and user %s already exists, keeping the stored one",
                test_id,
                user_id,
            )
            return None
