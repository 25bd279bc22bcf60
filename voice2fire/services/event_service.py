# services/event_service.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from voice2fire.core.errors import NotFoundError, ValidationError
from voice2fire.models.schemas.event import TRACKABLE_EVENT_TYPES, TrackEventResponseModel
from voice2fire.repositories.assignment_repo import AssignmentRepository
from voice2fire.repositories.metric_repo import MetricRepository

logger = logging.getLogger(__name__)


class EventService:
    def __init__(self, db: Session):
        """Initializes the service with repositories it needs."""
        self.metric_repo = MetricRepository(db)
        # The assignment supplies the variant the event is recorded against
        self.assignment_repo = AssignmentRepository(db)

    def track_event(
        self,
        test_id: Optional[str],
        user_id: Optional[str],
        event_type: Optional[str],
    ) -> TrackEventResponseModel:
        """
        Records a viewed/clicked/converted event on the user's metrics row.

        1. Finds the user's assignment for the test.
        2. Sets the event's flag for the assigned variant only.
        """
        if not test_id or not user_id or not event_type:
            raise ValidationError("testId, userId, and eventType are required")

        if event_type not in TRACKABLE_EVENT_TYPES:
            raise ValidationError(
                "Invalid eventType. Must be: viewed, clicked, or converted"
            )

        assignment = self.assignment_repo.get_assignment(test_id, user_id)
        if not assignment:
            raise NotFoundError("No assignment found for this user and test")

        self.metric_repo.mark_event(
            test_id=test_id,
            variant_id=assignment.variant_id,
            user_id=user_id,
            event_type=event_type,
        )
        logger.info("Tracked %s event for test %s, user %s", event_type, test_id, user_id)

        return TrackEventResponseModel(
            success=True, message=f"{event_type} event tracked successfully"
        )
