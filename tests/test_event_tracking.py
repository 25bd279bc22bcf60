"""Tests for viewed/clicked/converted event tracking."""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from voice2fire.core.errors import NotFoundError, ValidationError
from voice2fire.models.orm.metric import NotificationTestMetricORM
from voice2fire.services.event_service import EventService
from voice2fire.services.notification_test_service import NotificationTestService


@pytest.fixture
def assigned(db, make_test):
    """Test T1 with U1 already assigned."""
    test_id = make_test([("A", 50, "Sale!"), ("B", 50, "Discount!")])
    result = NotificationTestService(db).assign_variant(test_id, "U1")
    return test_id, result.assignment.variant_id


def _metric(db, test_id, user_id="U1"):
    db.expire_all()
    return db.query(NotificationTestMetricORM).filter_by(test_id=test_id, user_id=user_id).one()


def test_viewed_then_clicked(db, assigned):
    test_id, _ = assigned
    service = EventService(db)

    service.track_event(test_id, "U1", "viewed")
    assert _metric(db, test_id).notification_viewed is True

    response = service.track_event(test_id, "U1", "clicked")

    metric = _metric(db, test_id)
    assert response.message == "clicked event tracked successfully"
    assert metric.notification_clicked is True
    assert metric.notification_viewed is True


def test_flags_are_monotonic(db, assigned):
    test_id, _ = assigned
    service = EventService(db)

    service.track_event(test_id, "U1", "viewed")
    first_viewed_at = _metric(db, test_id).viewed_at
    service.track_event(test_id, "U1", "clicked")
    service.track_event(test_id, "U1", "converted")
    service.track_event(test_id, "U1", "viewed")

    metric = _metric(db, test_id)
    assert metric.notification_viewed is True
    assert metric.notification_clicked is True
    assert metric.conversion_event is True
    assert metric.viewed_at == first_viewed_at


def test_event_uses_assigned_variant(db, assigned):
    test_id, variant_id = assigned

    EventService(db).track_event(test_id, "U1", "converted")

    assert _metric(db, test_id).variant_id == variant_id


def test_unknown_event_type(db, assigned):
    test_id, _ = assigned

    with pytest.raises(ValidationError, match="Invalid eventType"):
        EventService(db).track_event(test_id, "U1", "shared")


def test_missing_fields(db):
    with pytest.raises(ValidationError, match="required"):
        EventService(db).track_event("T1", "U1", None)


def test_no_assignment(db, make_test):
    test_id = make_test([("A", 50, "Sale!")])

    with pytest.raises(NotFoundError, match="No assignment found"):
        EventService(db).track_event(test_id, "nobody", "viewed")


def test_missing_metrics_row_is_created(db, make_test):
    test_id = make_test([("A", 100, "Sale!")])
    assigner = NotificationTestService(db)

    def fail(**kwargs):
        raise SQLAlchemyError("metrics table unavailable")

    assigner.metric_repo.create_initial_metric = fail
    assigner.assign_variant(test_id, "U1")

    EventService(db).track_event(test_id, "U1", "clicked")

    metric = _metric(db, test_id)
    assert metric.notification_clicked is True
    assert metric.clicked_at is not None
    assert metric.notification_viewed is False


def test_metrics_row_created_concurrently_still_gets_the_event(db, assigned):
    """An insert that collides with an existing row retries the update."""
    test_id, _ = assigned
    service = EventService(db)
    real_apply = service.metric_repo._apply_event
    calls = []

    def apply_missing_once(*args):
        calls.append(args)
        return False if len(calls) == 1 else real_apply(*args)

    service.metric_repo._apply_event = apply_missing_once

    response = service.track_event(test_id, "U1", "viewed")

    metric = _metric(db, test_id)
    assert response.success is True
    assert len(calls) == 2
    assert metric.notification_viewed is True
    assert metric.viewed_at is not None
    assert db.query(NotificationTestMetricORM).filter_by(test_id=test_id).count() == 1


def test_results_aggregate_tracked_events(db, make_test):
    test_id = make_test([("A", 100, "Sale!"), ("B", 0, "Discount!")])
    assigner = NotificationTestService(db)
    tracker = EventService(db)

    for i in range(4):
        assigner.assign_variant(test_id, f"user_{i}")
    tracker.track_event(test_id, "user_0", "viewed")
    tracker.track_event(test_id, "user_1", "viewed")
    tracker.track_event(test_id, "user_1", "clicked")
    tracker.track_event(test_id, "user_1", "converted")

    results = assigner.get_test_results(test_id)

    by_name = {v.variant_name: v for v in results.variants}
    assert results.total_assigned_users == 4
    assert by_name["A"].total_sent == 4
    assert by_name["A"].total_viewed == 2
    assert by_name["A"].view_rate == 50.0
    assert by_name["A"].click_rate == 25.0
    assert by_name["A"].conversion_rate == 25.0
    assert by_name["B"].total_sent == 0
    assert by_name["B"].conversion_rate == 0.0
    assert results.best_variant == "A"
