"""API tests for the load workflow routes."""
from constants import AUTH_USER_HEADER
from models import LoadSource, LoadStatus, PostingType


def _headers(driver):
    return {AUTH_USER_HEADER: driver.auth_user_id}


def test_accept_load(client, driver, make_load, db_session, notifier):
    load = make_load()

    response = client.post(f"/api/loads/{load.id}/accept", headers=_headers(driver))

    assert response.status_code == 200
    assert response.json() == {"success": True, "retryable": False, "data": {"load_status": "accepted"}}
    db_session.refresh(load)
    assert load.load_status == LoadStatus.ACCEPTED
    assert notifier.events == ["load_accepted"]


def test_missing_identity_is_reported_in_body(client, driver, make_load):
    load = make_load()

    response = client.post(f"/api/loads/{load.id}/accept")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["error_type"] == "NotAuthenticatedError"


def test_loading_round_trip(client, driver, make_load):
    load = make_load(load_status=LoadStatus.ACCEPTED)
    headers = _headers(driver)

    started = client.post(f"/api/loads/{load.id}/start-loading", json={"starting_cuft": 500}, headers=headers)
    finished = client.post(f"/api/loads/{load.id}/finish-loading", json={"ending_cuft": 1200}, headers=headers)

    assert started.json()["success"] is True
    assert finished.json()["data"]["actual_cuft_loaded"] == 700


def test_blocked_delivery_names_blocker(client, driver, make_load, make_trip):
    first = make_load(load_status=LoadStatus.LOADED, delivery_order=1, customer_name="Jane Smith")
    second = make_load(load_status=LoadStatus.LOADED, delivery_order=2)
    make_trip([first, second])
    headers = _headers(driver)

    check = client.get(f"/api/loads/{second.id}/delivery-order", headers=headers).json()
    started = client.post(f"/api/loads/{second.id}/start-delivery", headers=headers).json()

    assert check["allowed"] is False
    assert started["success"] is False
    assert started["error"] == "Complete delivery #1 (Jane Smith) first"
    assert started["blocking_load"]["id"] == first.id


def test_start_delivery_with_payment(client, driver, make_load, db_session):
    load = make_load(load_status=LoadStatus.LOADED)

    response = client.post(
        f"/api/loads/{load.id}/start-delivery",
        json={"payment_method": "cash", "amount_collected": 0, "authorization_name": "Jane Smith"},
        headers=_headers(driver),
    )

    assert response.json()["success"] is True
    db_session.refresh(load)
    assert load.payment_notes == "$0 balance authorized by: Jane Smith"


def test_contract_details_gate(client, driver, make_load):
    load = make_load(load_source=LoadSource.PARTNER, load_status=LoadStatus.LOADED, actual_cuft_loaded=100)
    headers = _headers(driver)

    before = client.get(f"/api/loads/{load.id}/requires-contract-details", headers=headers).json()
    saved = client.post(
        f"/api/loads/{load.id}/contract-details",
        json={"balance_due": 450, "rate_per_cuft": 4.5, "accessorials": {"stairs": 25}},
        headers=headers,
    ).json()
    after = client.get(f"/api/loads/{load.id}/requires-contract-details", headers=headers).json()

    assert before == {"required": True, "load_source": "partner"}
    assert saved["data"]["contract_linehaul_total"] == 450
    assert saved["data"]["contract_accessorials_total"] == 25
    assert after["required"] is False


def test_pickup_gate(client, driver, make_load):
    load = make_load(load_status=LoadStatus.LOADING, posting_type=PostingType.PICKUP)
    headers = _headers(driver)

    assert client.get(f"/api/loads/{load.id}/requires-pickup-completion", headers=headers).json()["required"] is True

    completed = client.post(
        f"/api/loads/{load.id}/complete-pickup",
        json={"actual_cuft": 200, "rate_per_cuft": 5, "balance_due": 1000, "amount_collected_at_pickup": 400},
        headers=headers,
    ).json()

    assert completed["success"] is True
    assert completed["data"]["balance_due_on_delivery"] == 600


def test_photo_requirement(client, driver, company, make_load, make_trip):
    load = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    trip = make_trip([load])

    body = client.get(
        f"/api/loads/{load.id}/photo-requirement", params={"trip_id": trip.id}, headers=_headers(driver)
    ).json()

    assert body == {"required": True, "siblings_still_loading": 0, "company_name": "Acme Van Lines"}


def test_damage_routes(client, driver, make_load, scheduled_removals):
    load = make_load()
    headers = _headers(driver)
    item = {"sticker_number": "7", "item_description": "Sofa", "damage_description": "Torn arm"}

    added = client.post(f"/api/loads/{load.id}/damages", json=item, headers=headers).json()
    item_id = added["data"]["item"]["id"]

    patched = client.patch(
        f"/api/loads/{load.id}/damages/{item_id}", json={"damage_description": "Torn left arm"}, headers=headers
    ).json()
    assert patched["data"]["item"]["damage_description"] == "Torn left arm"
    assert patched["data"]["item"]["item_description"] == "Sofa"

    removed = client.delete(f"/api/loads/{load.id}/damages/{item_id}", headers=headers).json()
    assert removed["success"] is True
    assert len(scheduled_removals) == 1
    assert client.get(f"/api/loads/{load.id}/damages", headers=headers).json()["data"]["damages"] == []

    undone = client.post(f"/api/loads/{load.id}/damages/{item_id}/undo", headers=headers).json()
    assert undone["success"] is True
    listed = client.get(f"/api/loads/{load.id}/damages", headers=headers).json()["data"]["damages"]
    assert [entry["id"] for entry in listed] == [item_id]


def test_damage_validation_is_a_result(client, driver, make_load):
    load = make_load()

    body = client.post(
        f"/api/loads/{load.id}/damages", json={"sticker_number": "7"}, headers=_headers(driver)
    ).json()

    assert body["success"] is False
    assert body["error_type"] == "ValidationError"


def test_health_reports_components(client, monkeypatch):
    from health_checks import HealthCheckService, ComponentHealth, HealthStatus

    monkeypatch.setattr(
        HealthCheckService, "check_redis", lambda self: ComponentHealth(status=HealthStatus.HEALTHY)
    )

    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "healthy"
