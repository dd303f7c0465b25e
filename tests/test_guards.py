"""Tests for the pre-delivery gates and their failure policies."""
from exceptions import DatabaseError
from models import Company, LoadSource, LoadStatus, PostingType
from services.guards import GuardPolicy, guarded
from services.load_workflow import LoadWorkflowService
from services.photo_requirement import PhotoRequirementService
from services.results import ContractDetails, PickupCompletion


def _boom(*args, **kwargs):
    raise DatabaseError("connection lost")


def test_own_customer_never_needs_contract_details(workflow, driver, make_load):
    load = make_load(load_source=LoadSource.OWN_CUSTOMER, load_status=LoadStatus.LOADED)

    check = workflow.requires_contract_details(driver.auth_user_id, load.id)

    assert check.required is False
    assert check.load_source == "own_customer"


def test_partner_load_needs_contract_details_until_saved(workflow, driver, make_load):
    load = make_load(
        load_source=LoadSource.PARTNER,
        posting_type=PostingType.LOAD,
        load_status=LoadStatus.LOADED,
        actual_cuft_loaded=400,
    )

    assert workflow.requires_contract_details(driver.auth_user_id, load.id).required is True

    saved = workflow.save_contract_details(
        driver.auth_user_id, load.id, ContractDetails(balance_due=1200, rate_per_cuft=3)
    )
    assert saved.success

    assert workflow.requires_contract_details(driver.auth_user_id, load.id).required is False


def test_partner_pickup_goes_through_pickup_completion(workflow, driver, make_load):
    load = make_load(
        load_source=LoadSource.PARTNER,
        posting_type=PostingType.PICKUP,
        load_status=LoadStatus.LOADING,
    )

    assert workflow.requires_contract_details(driver.auth_user_id, load.id).required is False

    check = workflow.requires_pickup_completion(driver.auth_user_id, load.id)
    assert check.required is True
    assert check.posting_type == "pickup"

    workflow.complete_pickup(
        driver.auth_user_id, load.id,
        PickupCompletion(actual_cuft=300, rate_per_cuft=4, balance_due=1200),
    )

    assert workflow.requires_pickup_completion(driver.auth_user_id, load.id).required is False


def test_requirement_gates_fail_open(workflow, driver, make_load, monkeypatch):
    load = make_load(load_source=LoadSource.PARTNER, posting_type=PostingType.PICKUP)
    monkeypatch.setattr(workflow.loads, "get_owned", _boom)

    assert workflow.requires_contract_details(driver.auth_user_id, load.id).required is False
    assert workflow.requires_pickup_completion(driver.auth_user_id, load.id).required is False


def test_requirement_gates_fail_open_without_caller(workflow, make_load):
    load = make_load(load_source=LoadSource.PARTNER)

    assert workflow.requires_contract_details(None, load.id).required is False


def test_declared_policies():
    assert LoadWorkflowService.requires_contract_details.guard_policy == GuardPolicy.FAIL_OPEN
    assert LoadWorkflowService.requires_pickup_completion.guard_policy == GuardPolicy.FAIL_OPEN
    assert PhotoRequirementService.check_photo_requirement.guard_policy == GuardPolicy.FAIL_CLOSED


def test_guarded_returns_fresh_fallback_each_time():
    @guarded(GuardPolicy.FAIL_CLOSED, lambda: {"required": True})
    def always_fails():
        raise RuntimeError("nope")

    first = always_fails()
    first["required"] = False

    assert always_fails() == {"required": True}


def test_co_loaded_company_photo_only_on_last_load(db_session, workflow, driver, company, make_load, make_trip):
    """Only the last of a company's co-loaded shipments needs the report photo."""
    first = make_load(company_id=company.id, load_status=LoadStatus.LOADED)
    second = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    trip = make_trip([first, second])

    check = workflow.check_photo_requirement(driver.auth_user_id, first.id, trip.id)
    assert check.required is False
    assert check.siblings_still_loading == 1
    assert check.company_name == "Acme Van Lines"

    second.load_status = LoadStatus.LOADED
    db_session.commit()

    assert workflow.check_photo_requirement(driver.auth_user_id, second.id, trip.id).required is True


def test_other_companies_do_not_count(db_session, workflow, driver, company, make_load, make_trip):
    other = Company(owner_id=company.owner_id, name="Other Movers")
    db_session.add(other)
    db_session.commit()
    mine = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    theirs = make_load(company_id=other.id, load_status=LoadStatus.LOADING)
    trip = make_trip([mine, theirs])

    assert workflow.check_photo_requirement(driver.auth_user_id, mine.id, trip.id).required is True


def test_load_without_company_always_needs_photo(workflow, driver, make_load, make_trip):
    load = make_load(load_status=LoadStatus.LOADING)
    sibling = make_load(load_status=LoadStatus.LOADING)
    trip = make_trip([load, sibling])

    assert workflow.check_photo_requirement(driver.auth_user_id, load.id, trip.id).required is True


def test_photo_check_resolves_trip_from_load(workflow, driver, company, make_load, make_trip):
    first = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    second = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    make_trip([first, second])
    tripless = make_load(company_id=company.id, load_status=LoadStatus.LOADING)

    assert workflow.check_photo_requirement(driver.auth_user_id, first.id).required is False
    assert workflow.check_photo_requirement(driver.auth_user_id, tripless.id).required is True


def test_photo_check_fails_closed(workflow, driver, company, make_load, make_trip, monkeypatch):
    first = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    second = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    trip = make_trip([first, second])
    monkeypatch.setattr(workflow.photos.trips, "list_loads", _boom)

    assert workflow.check_photo_requirement(driver.auth_user_id, first.id, trip.id).required is True


def test_photo_check_on_foreign_trip_fails_closed(workflow, driver, company, make_load):
    load = make_load(company_id=company.id, load_status=LoadStatus.LOADING)

    assert workflow.check_photo_requirement(driver.auth_user_id, load.id, 9999).required is True


def test_is_last_load_from_company(db_session, company, make_load, make_trip, driver):
    first = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    second = make_load(company_id=company.id, load_status=LoadStatus.LOADING)
    trip = make_trip([first, second])
    service = PhotoRequirementService(db_session)

    assert service.is_last_load_from_company(first, trip) is False

    second.load_status = LoadStatus.LOADED
    db_session.commit()

    assert service.is_last_load_from_company(first, trip) is True
