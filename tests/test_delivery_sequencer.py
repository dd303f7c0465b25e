"""Tests for trip delivery ordering."""
import pytest
from sqlalchemy import text

from exceptions import DatabaseError
from models import LoadStatus
from services.guards import GuardPolicy
from services.delivery_sequencer import DeliverySequencer


@pytest.fixture
def ordered_trip(make_load, make_trip):
    """Two loaded stops, the first for a named customer, the second by city."""
    first = make_load(load_status=LoadStatus.LOADED, delivery_order=1, customer_name="Jane Smith")
    second = make_load(
        load_status=LoadStatus.LOADED,
        delivery_order=2,
        delivery_city="Boulder",
        delivery_state="CO",
    )
    trip = make_trip([first, second])
    return trip, first, second


def test_deliveries_follow_trip_order(workflow, driver, ordered_trip, db_session):
    trip, first, second = ordered_trip

    blocked = workflow.start_delivery(driver.auth_user_id, second.id)
    assert not blocked.success
    assert blocked.error_type == "OrderViolationError"
    assert blocked.error == "Complete delivery #1 (Jane Smith) first"
    assert blocked.blocking_load["id"] == first.id
    assert blocked.blocking_load["delivery_order"] == 1

    assert workflow.start_delivery(driver.auth_user_id, first.id).success
    completed = workflow.complete_delivery(driver.auth_user_id, first.id)
    assert completed.success
    assert completed.data["delivery_index_advanced"] is True

    db_session.refresh(trip)
    assert trip.current_delivery_index == 2

    assert workflow.start_delivery(driver.auth_user_id, second.id).success
    db_session.refresh(second)
    assert second.load_status == LoadStatus.IN_TRANSIT


def test_blocked_start_changes_nothing(workflow, driver, ordered_trip, db_session, notifier):
    trip, _, second = ordered_trip

    workflow.start_delivery(driver.auth_user_id, second.id)

    db_session.refresh(second)
    db_session.refresh(trip)
    assert second.load_status == LoadStatus.LOADED
    assert trip.version == 0
    assert notifier.sent == []


def test_check_reports_blocker(workflow, driver, ordered_trip):
    trip, first, second = ordered_trip

    check = workflow.check_delivery_order(driver.auth_user_id, second.id)

    assert not check.allowed
    assert check.blocking_load["customer_name"] == "Jane Smith"
    assert check.current_delivery_index == 1
    assert check.delivery_order == 2
    assert check.trip_id == trip.id


def test_display_falls_back_to_city_then_slot(db_session, make_load, make_trip, driver):
    by_city = make_load(load_status=LoadStatus.LOADED, delivery_order=1, delivery_city="Denver", delivery_state="CO")
    anonymous = make_load(load_status=LoadStatus.LOADED, delivery_order=2)
    last = make_load(load_status=LoadStatus.LOADED, delivery_order=3)
    make_trip([by_city, anonymous, last])
    sequencer = DeliverySequencer(db_session)

    assert sequencer.evaluate(anonymous).reason == "Complete delivery #1 (Denver, CO) first"

    by_city.load_status = LoadStatus.DELIVERED
    db_session.commit()
    assert sequencer.evaluate(last).reason == "Complete delivery #2 (Delivery #2) first"


def test_unordered_and_tripless_loads_are_always_allowed(db_session, make_load, make_trip, driver):
    first = make_load(load_status=LoadStatus.LOADED, delivery_order=1)
    unordered = make_load(load_status=LoadStatus.LOADED)
    make_trip([first, unordered])
    tripless = make_load(load_status=LoadStatus.LOADED, delivery_order=5)
    sequencer = DeliverySequencer(db_session)

    assert sequencer.evaluate(unordered).allowed
    assert sequencer.evaluate(tripless).allowed


def test_pointer_left_behind_heals_itself(db_session, make_load, make_trip, driver):
    """A failed advance never strands the next stop."""
    first = make_load(load_status=LoadStatus.DELIVERED, delivery_order=1)
    second = make_load(load_status=LoadStatus.LOADED, delivery_order=2)
    make_trip([first, second], current_delivery_index=1)

    check = DeliverySequencer(db_session).evaluate(second)

    assert check.allowed


def test_storage_completed_sibling_does_not_block(db_session, make_load, make_trip, driver):
    first = make_load(load_status=LoadStatus.STORAGE_COMPLETED, delivery_order=1)
    second = make_load(load_status=LoadStatus.LOADED, delivery_order=2)
    make_trip([first, second])

    assert DeliverySequencer(db_session).evaluate(second).allowed


def test_advance_is_idempotent(db_session, make_load, make_trip, driver):
    first = make_load(load_status=LoadStatus.DELIVERED, delivery_order=1)
    second = make_load(load_status=LoadStatus.LOADED, delivery_order=2)
    trip = make_trip([first, second])
    sequencer = DeliverySequencer(db_session)

    assert sequencer.advance_delivery_index(first) is True
    assert sequencer.advance_delivery_index(first) is False

    db_session.refresh(trip)
    assert trip.current_delivery_index == 2


def test_advance_never_moves_backward(db_session, make_load, make_trip, driver):
    first = make_load(load_status=LoadStatus.DELIVERED, delivery_order=1)
    trip = make_trip([first], current_delivery_index=3)

    assert DeliverySequencer(db_session).advance_delivery_index(first) is False

    db_session.refresh(trip)
    assert trip.current_delivery_index == 3


def test_advance_ignores_unordered_load(db_session, make_load, make_trip, driver):
    load = make_load(load_status=LoadStatus.DELIVERED)
    make_trip([load])

    assert DeliverySequencer(db_session).advance_delivery_index(load) is False


def test_advance_swallows_store_failures(db_session, make_load, make_trip, driver, monkeypatch):
    load = make_load(load_status=LoadStatus.DELIVERED, delivery_order=1)
    make_trip([load])
    sequencer = DeliverySequencer(db_session)

    def boom(*args, **kwargs):
        raise DatabaseError("connection lost")

    monkeypatch.setattr(sequencer.trips, "advance_delivery_index", boom)

    assert sequencer.advance_delivery_index(load) is False


def test_order_check_fails_open(workflow, driver, ordered_trip, monkeypatch):
    _, _, second = ordered_trip

    def boom(*args, **kwargs):
        raise DatabaseError("connection lost")

    monkeypatch.setattr(workflow.sequencer.trips, "get_trip_for_load", boom)

    check = workflow.check_delivery_order(driver.auth_user_id, second.id)

    assert check.allowed
    assert check.fallback
    assert DeliverySequencer.check_delivery_order.guard_policy == GuardPolicy.FAIL_OPEN


def test_start_delivery_retries_lost_trip_race(workflow, driver, ordered_trip, db_session, monkeypatch):
    """Losing the trip version once re-runs the check and then succeeds."""
    trip, first, _ = ordered_trip
    real_claim = workflow.trips.claim_version
    calls = []

    def flaky_claim(trip_id, owner_id, expected_version):
        calls.append(expected_version)
        if len(calls) == 1:
            return False
        return real_claim(trip_id, owner_id, expected_version)

    monkeypatch.setattr(workflow.trips, "claim_version", flaky_claim)

    result = workflow.start_delivery(driver.auth_user_id, first.id)

    assert result.success
    assert len(calls) == 2
    db_session.refresh(trip)
    assert trip.version == 1


def test_start_delivery_conflict_is_retryable(workflow, driver, ordered_trip, db_session, monkeypatch):
    _, first, _ = ordered_trip
    monkeypatch.setattr(workflow.trips, "claim_version", lambda *args: False)

    result = workflow.start_delivery(driver.auth_user_id, first.id)

    assert not result.success
    assert result.error_type == "ConcurrencyConflictError"
    assert result.retryable
    db_session.refresh(first)
    assert first.load_status == LoadStatus.LOADED


def test_delivery_start_bumps_trip_version(workflow, driver, ordered_trip, db_session):
    trip, first, _ = ordered_trip

    assert workflow.start_delivery(driver.auth_user_id, first.id).success

    db_session.refresh(trip)
    assert trip.version == 1


def test_order_check_refuses_another_tenants_load(workflow, driver, make_load):
    foreign = make_load(owner_id=driver.owner_id + 1, load_status=LoadStatus.LOADED, delivery_order=2)

    check = workflow.check_delivery_order(driver.auth_user_id, foreign.id)

    assert not check.allowed
    assert not check.fallback
    assert check.error_type == "AccessDeniedError"


def test_order_check_refuses_unknown_load(workflow, driver):
    check = workflow.check_delivery_order(driver.auth_user_id, 99999)

    assert not check.allowed
    assert check.error_type == "LoadNotFoundError"
    assert check.reason == "Load 99999 not found"


def test_order_check_refuses_missing_caller(workflow, ordered_trip):
    _, _, second = ordered_trip

    check = workflow.check_delivery_order(None, second.id)

    assert not check.allowed
    assert check.error_type == "NotAuthenticatedError"


def test_order_check_only_falls_open_on_store_errors(db_session, ordered_trip, monkeypatch):
    _, _, second = ordered_trip
    sequencer = DeliverySequencer(db_session)

    def broken(*args, **kwargs):
        raise KeyError("delivery_order")

    monkeypatch.setattr(sequencer.trips, "get_trip_for_load", broken)

    with pytest.raises(KeyError):
        sequencer.check_load(second)


def test_failed_order_query_does_not_spoil_delivery_start(workflow, driver, ordered_trip, db_session, monkeypatch):
    """A statement that fails during the order check is rolled back to a savepoint."""
    _, _, second = ordered_trip
    savepoints = []
    begin_nested = db_session.begin_nested

    def recording_begin_nested():
        savepoints.append(True)
        return begin_nested()

    def failing_query(*args, **kwargs):
        return db_session.execute(text("SELECT * FROM missing_table")).all()

    monkeypatch.setattr(db_session, "begin_nested", recording_begin_nested)
    monkeypatch.setattr(workflow.sequencer.trips, "list_loads", failing_query)

    result = workflow.start_delivery(driver.auth_user_id, second.id)

    assert result.success, result.error
    assert savepoints
    db_session.refresh(second)
    assert second.load_status == LoadStatus.IN_TRANSIT
