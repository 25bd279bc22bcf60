# services/notification_test_service.py

import logging
import random
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from voice2fire.core.errors import ConfigurationError, NotFoundError, ValidationError
from voice2fire.models.orm.assignment import AssignmentORM
from voice2fire.models.orm.notification_test import (
    NotificationTestORM,
    NotificationTestStatus,
    NotificationTestVariantORM,
)
from voice2fire.models.schemas.assignment import (
    AssignedVariantContentModel,
    AssignmentModel,
    AssignVariantResponseModel,
)
from voice2fire.models.schemas.notification_test import (
    NotificationTestCreateModel,
    NotificationTestResponseModel,
    NotificationTestResultsModel,
    VariantResponseModel,
    VariantResultModel,
)
from voice2fire.repositories.assignment_repo import AssignmentRepository
from voice2fire.repositories.metric_repo import MetricRepository
from voice2fire.repositories.notification_test_repo import NotificationTestRepository

logger = logging.getLogger(__name__)

NO_ACTIVE_TEST_MESSAGE = "No active test"

# Status changes an admin may make; variants are fixed from creation on
ALLOWED_STATUS_TRANSITIONS = {
    NotificationTestStatus.DRAFT: {NotificationTestStatus.ACTIVE},
    NotificationTestStatus.ACTIVE: {NotificationTestStatus.COMPLETED},
    NotificationTestStatus.COMPLETED: set(),
}


def select_weighted_variant(
    variants: Sequence[NotificationTestVariantORM], rng: random.Random
) -> NotificationTestVariantORM:
    """
    Picks a variant with probability proportional to its traffic_allocation.

    Weights are relative: they are summed rather than assumed to total 100.
    `variants` must already be in name order so the walk is reproducible for
    a given draw. When nothing is selected (every weight is zero) the first
    variant is returned.
    """
    total_weight = sum(v.traffic_allocation or 0 for v in variants)

    # r is uniform in [0, total_weight)
    r = rng.random() * total_weight

    cumulative_weight = 0.0
    for variant in variants:
        cumulative_weight += variant.traffic_allocation or 0
        if r < cumulative_weight:
            return variant

    logger.warning(
        "Weighted selection picked no variant (total weight %s), falling back to %s",
        total_weight,
        variants[0].variant_name,
    )
    return variants[0]


class NotificationTestService:
    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.test_repo = NotificationTestRepository(db)
        self.assignment_repo = AssignmentRepository(db)
        self.metric_repo = MetricRepository(db)
        self.rng = rng or random.Random()
        self.db = db

    def create_test(
        self, test_data: NotificationTestCreateModel
    ) -> NotificationTestResponseModel:
        """Creates a draft test with its variants."""
        db_test = self.test_repo.create_test(test_data)
        logger.info("Created notification test %s (%s)", db_test.id, db_test.name)
        return self._to_test_response(db_test)

    def update_status(self, test_id: str, status: str) -> NotificationTestResponseModel:
        db_test = self.test_repo.get_test(test_id)
        if not db_test:
            raise NotFoundError(f"Notification test {test_id} not found.")

        new_status = NotificationTestStatus(status)
        if new_status not in ALLOWED_STATUS_TRANSITIONS[db_test.status]:
            raise ValidationError(
                f"Cannot change test status from {db_test.status.value} to {new_status.value}"
            )

        db_test = self.test_repo.update_status(db_test, new_status)
        logger.info("Notification test %s is now %s", test_id, new_status.value)
        return self._to_test_response(db_test)

    def assign_variant(
        self, test_id: Optional[str], user_id: Optional[str]
    ) -> AssignVariantResponseModel:
        """
        Gets a user's variant assignment, ensuring idempotency.

        1. Only active tests assign; anything else is an empty result.
        2. An existing assignment is returned unchanged.
        3. Otherwise a variant is drawn by weight and persisted, together with
           the user's initial metrics row.
        """
        if not test_id or not user_id:
            raise ValidationError("testId and userId are required")

        db_test = self.test_repo.get_test(test_id)
        if not db_test or db_test.status != NotificationTestStatus.ACTIVE:
            logger.info("No active test %s for user %s", test_id, user_id)
            return AssignVariantResponseModel(
                success=True,
                assignment=None,
                is_new_assignment=False,
                message=NO_ACTIVE_TEST_MESSAGE,
            )

        existing_assignment = self.assignment_repo.get_assignment(test_id, user_id)
        if existing_assignment:
            logger.debug(
                "User %s already assigned to variant %s",
                user_id,
                existing_assignment.variant_id,
            )
            return self._to_assignment_response(existing_assignment, is_new=False)

        variants = self.test_repo.get_variants(test_id)
        if not variants:
            raise ConfigurationError("No variants found for this test")

        assigned_variant = select_weighted_variant(variants, self.rng)
        logger.info(
            "Assigning user %s to variant %s of test %s",
            user_id,
            assigned_variant.variant_name,
            test_id,
        )

        new_assignment = self.assignment_repo.create_assignment(
            test_id=test_id,
            user_id=user_id,
            variant_id=assigned_variant.id,
        )
        if new_assignment is None:
            # Another request won the insert; its assignment is authoritative
            winner = self.assignment_repo.get_assignment(test_id, user_id)
            return self._to_assignment_response(winner, is_new=False)

        try:
            self.metric_repo.create_initial_metric(
                test_id=test_id, variant_id=assigned_variant.id, user_id=user_id
            )
        except SQLAlchemyError:
            logger.exception(
                "Error creating metrics record for test %s user %s", test_id, user_id
            )

        return self._to_assignment_response(new_assignment, is_new=True)

    def get_test_results(self, test_id: str) -> NotificationTestResultsModel:
        """
        Per-variant sent/viewed/clicked/converted counts and rates.

        Rates are percentages of sent notifications, rounded to two decimals.
        """
        db_test = self.test_repo.get_test_with_variants(test_id)
        if not db_test:
            raise NotFoundError(f"Notification test {test_id} not found.")

        totals = self.metric_repo.get_variant_totals(test_id)

        variant_results = []
        for variant in db_test.variants:
            counts = totals.get(
                variant.id,
                {"total_sent": 0, "total_viewed": 0, "total_clicked": 0, "total_converted": 0},
            )
            sent = counts["total_sent"]
            variant_results.append(
                VariantResultModel(
                    variant_id=variant.id,
                    variant_name=variant.variant_name,
                    **counts,
                    view_rate=_percent(counts["total_viewed"], sent),
                    click_rate=_percent(counts["total_clicked"], sent),
                    conversion_rate=_percent(counts["total_converted"], sent),
                )
            )

        best_variant = None
        if any(r.total_sent for r in variant_results):
            best_variant = max(variant_results, key=lambda r: r.conversion_rate).variant_name

        return NotificationTestResultsModel(
            test_id=db_test.id,
            name=db_test.name,
            status=db_test.status.value,
            total_assigned_users=self.assignment_repo.count_assignments_for_test(test_id),
            best_variant=best_variant,
            variants=variant_results,
        )

    def _to_assignment_response(
        self, assignment: AssignmentORM, is_new: bool
    ) -> AssignVariantResponseModel:
        return AssignVariantResponseModel(
            success=True,
            assignment=AssignmentModel(
                id=assignment.id,
                test_id=assignment.test_id,
                user_id=assignment.user_id,
                variant_id=assignment.variant_id,
                assigned_at=assignment.assigned_at,
                notification_test_variants=AssignedVariantContentModel.model_validate(
                    assignment.variant
                ),
            ),
            is_new_assignment=is_new,
        )

    def _to_test_response(self, db_test: NotificationTestORM) -> NotificationTestResponseModel:
        return NotificationTestResponseModel(
            id=db_test.id,
            name=db_test.name,
            description=db_test.description,
            notification_type=db_test.notification_type,
            status=db_test.status.value,
            target_audience=db_test.target_audience,
            start_date=db_test.start_date,
            end_date=db_test.end_date,
            created_at=db_test.created_at,
            variants=[VariantResponseModel.model_validate(v) for v in db_test.variants],
        )


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0
