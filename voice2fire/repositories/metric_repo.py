import logging
from datetime import datetime

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from voice2fire.models.orm.metric import NotificationTestMetricORM

logger = logging.getLogger(__name__)

M = NotificationTestMetricORM

# event type -> (flag column, timestamp column)
EVENT_FIELDS = {
    "viewed": (M.notification_viewed, M.viewed_at),
    "clicked": (M.notification_clicked, M.clicked_at),
    "converted": (M.conversion_event, M.converted_at),
}


class MetricRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def create_initial_metric(
        self, test_id: str, variant_id: str, user_id: str
    ) -> NotificationTestMetricORM:
        """Creates the metric row that accompanies a new assignment."""
        db_metric = M(
            test_id=test_id,
            variant_id=variant_id,
            user_id=user_id,
            notification_sent_at=datetime.utcnow(),
        )
        try:
            self.db.add(db_metric)
            self.db.commit()
            self.db.refresh(db_metric)
        except SQLAlchemyError:
            self.db.rollback()
            raise

        return db_metric

    def mark_event(
        self, test_id: str, variant_id: str, user_id: str, event_type: str
    ) -> None:
        """
        Sets the flag for one event type on the (test, variant, user) metric row.

        Only the tracked flag and its timestamp are written, so other flags are
        never cleared. A repeated event keeps its first timestamp. The row is
        created if the assignment never got one.
        """
        now = datetime.utcnow()

        try:
            if not self._apply_event(test_id, variant_id, user_id, event_type, now):
                logger.warning(
                    "No metrics row for test %s user %s, creating one", test_id, user_id
                )
                self._insert_with_event(test_id, variant_id, user_id, event_type, now)
            self.db.commit()
        except IntegrityError:
            # The row appeared between the update and the insert
            logger.info(
                "Metrics row for test %s user %s created concurrently", test_id, user_id
            )
            self.db.rollback()
            self._apply_event(test_id, variant_id, user_id, event_type, now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _apply_event(self, test_id, variant_id, user_id, event_type, now) -> bool:
        flag_column, at_column = EVENT_FIELDS[event_type]
        stmt = (
            update(M)
            .where(
                M.test_id == test_id,
                M.variant_id == variant_id,
                M.user_id == user_id,
            )
            .values({flag_column: True, at_column: func.coalesce(at_column, now)})
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount > 0

    def _insert_with_event(self, test_id, variant_id, user_id, event_type, now):
        flag_column, at_column = EVENT_FIELDS[event_type]
        db_metric = M(test_id=test_id, variant_id=variant_id, user_id=user_id)
        setattr(db_metric, flag_column.key, True)
        setattr(db_metric, at_column.key, now)
        self.db.add(db_metric)
        self.db.flush()

    def get_variant_totals(self, test_id: str) -> dict[str, dict[str, int]]:
        """Counts sent/viewed/clicked/converted metric rows per variant."""
        stmt = (
            select(
                M.variant_id,
                func.count(M.id).label("total_sent"),
                func.sum(case((M.notification_viewed, 1), else_=0)).label("total_viewed"),
                func.sum(case((M.notification_clicked, 1), else_=0)).label("total_clicked"),
                func.sum(case((M.conversion_event, 1), else_=0)).label("total_converted"),
            )
            .where(M.test_id == test_id)
            .group_by(M.variant_id)
        )

        totals = {}
        for row in self.db.execute(stmt):
            totals[row.variant_id] = {
                "total_sent": row.total_sent or 0,
                "total_viewed": row.total_viewed or 0,
                "total_clicked": row.total_clicked or 0,
                "total_converted": row.total_converted or 0,
            }
        return totals
