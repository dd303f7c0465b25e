"""Driver workflow endpoints for a single load.

Domain outcomes are always HTTP 200 with a Result body; ``success`` says
whether the operation applied.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel
from sqlalchemy.orm import Session

from constants import AUTH_USER_HEADER
from models import get_db
from services.damage_ledger import DamageLedger
from services.load_workflow import LoadWorkflowService
from services.results import (
    Accessorials,
    ContractDetails,
    DeliveryPayment,
    PickupCompletion,
    StorageDrop,
)

router = APIRouter()


def get_caller(auth_user_id: Optional[str] = Header(None, alias=AUTH_USER_HEADER)) -> Optional[str]:
    """Verified caller identity set by the upstream auth layer."""
    return auth_user_id


def get_workflow_service(db: Session = Depends(get_db)) -> LoadWorkflowService:
    return LoadWorkflowService(db)


def get_damage_ledger(db: Session = Depends(get_db)) -> DamageLedger:
    return DamageLedger(db)


class StartLoadingRequest(BaseModel):
    starting_cuft: Optional[float] = None
    photo_ref: Optional[str] = None


class FinishLoadingRequest(BaseModel):
    ending_cuft: Optional[float] = None
    photo_ref: Optional[str] = None


class AccessorialsRequest(BaseModel):
    shuttle: float = 0.0
    long_carry: float = 0.0
    stairs: float = 0.0
    bulky: float = 0.0
    packing: float = 0.0
    other: float = 0.0
    notes: Optional[str] = None


class ContractDetailsRequest(BaseModel):
    balance_due: Optional[float] = None
    rate_per_cuft: Optional[float] = None
    linehaul_total: Optional[float] = None
    amount_company_owes: Optional[float] = None
    accessorials: AccessorialsRequest = AccessorialsRequest()
    job_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_address_full: Optional[str] = None
    loading_report_photo_url: Optional[str] = None
    contract_photo_url: Optional[str] = None


class PickupCompletionRequest(BaseModel):
    actual_cuft: Optional[float] = None
    rate_per_cuft: Optional[float] = None
    balance_due: Optional[float] = None
    amount_collected_at_pickup: float = 0.0
    accessorials: AccessorialsRequest = AccessorialsRequest()
    payment_method: Optional[str] = None
    zelle_recipient: Optional[str] = None
    payment_photo_front_url: Optional[str] = None
    payment_photo_back_url: Optional[str] = None
    customer_rfd_date: Optional[date] = None
    customer_rfd_date_end: Optional[date] = None
    delivery_notes: Optional[str] = None
    contract_photo_url: Optional[str] = None
    loading_report_photo_url: Optional[str] = None


class DeliveryPaymentRequest(BaseModel):
    payment_method: Optional[str] = None
    amount_collected: Optional[float] = None
    zelle_recipient: Optional[str] = None
    payment_photo_front_url: Optional[str] = None
    payment_photo_back_url: Optional[str] = None
    notes: Optional[str] = None
    authorization_name: Optional[str] = None


class StorageDropRequest(BaseModel):
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    unit_number: Optional[str] = None
    move_in_fee: Optional[float] = None
    daily_fee: Optional[float] = None
    notes: Optional[str] = None


class DamageItemRequest(BaseModel):
    sticker_number: Optional[str] = None
    item_description: Optional[str] = None
    damage_description: Optional[str] = None
    photo_url: Optional[str] = None


def _accessorials(request: AccessorialsRequest) -> Accessorials:
    return Accessorials(**request.model_dump())


@router.post("/loads/{load_id}/accept")
def accept_load(
    load_id: int,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    return service.accept_load(caller, load_id).to_dict()


@router.post("/loads/{load_id}/start-loading")
def start_loading(
    load_id: int,
    request: StartLoadingRequest,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    return service.start_loading(caller, load_id, request.starting_cuft, request.photo_ref).to_dict()


@router.post("/loads/{load_id}/finish-loading")
def finish_loading(
    load_id: int,
    request: FinishLoadingRequest,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    return service.finish_loading(caller, load_id, request.ending_cuft, request.photo_ref).to_dict()


@router.post("/loads/{load_id}/contract-details")
def save_contract_details(
    load_id: int,
    request: ContractDetailsRequest,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    """Enter the figures from a partner or marketplace contract."""
    details = ContractDetails(
        **request.model_dump(exclude={"accessorials"}),
        accessorials=_accessorials(request.accessorials),
    )
    return service.save_contract_details(caller, load_id, details).to_dict()


@router.post("/loads/{load_id}/complete-pickup")
def complete_pickup(
    load_id: int,
    request: PickupCompletionRequest,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    """Finish a pickup-type load at the customer in one step."""
    details = PickupCompletion(
        **request.model_dump(exclude={"accessorials"}),
        accessorials=_accessorials(request.accessorials),
    )
    return service.complete_pickup(caller, load_id, details).to_dict()


@router.get("/loads/{load_id}/requires-contract-details")
def requires_contract_details(
    load_id: int,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    return service.requires_contract_details(caller, load_id).to_dict()


@router.get("/loads/{load_id}/requires-pickup-completion")
def requires_pickup_completion(
    load_id: int,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    return service.requires_pickup_completion(caller, load_id).to_dict()


@router.get("/loads/{load_id}/delivery-order")
def check_delivery_order(
    load_id: int,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    """Whether this load may start delivery given its trip's order."""
    return service.check_delivery_order(caller, load_id).to_dict()


@router.post("/loads/{load_id}/start-delivery")
def start_delivery(
    load_id: int,
    payment: Optional[DeliveryPaymentRequest] = None,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    delivery_payment = DeliveryPayment(**payment.model_dump()) if payment else None
    return service.start_delivery(caller, load_id, delivery_payment).to_dict()


@router.post("/loads/{load_id}/complete-delivery")
def complete_delivery(
    load_id: int,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    return service.complete_delivery(caller, load_id).to_dict()


@router.post("/loads/{load_id}/storage-drop")
def complete_storage_drop(
    load_id: int,
    request: StorageDropRequest,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    storage = StorageDrop(**request.model_dump())
    return service.complete_storage_drop(caller, load_id, storage).to_dict()


@router.get("/loads/{load_id}/photo-requirement")
def check_photo_requirement(
    load_id: int,
    trip_id: Optional[int] = None,
    caller: Optional[str] = Depends(get_caller),
    service: LoadWorkflowService = Depends(get_workflow_service)
):
    """Whether the loading-report photo must be taken on this load."""
    return service.check_photo_requirement(caller, load_id, trip_id).to_dict()


@router.get("/loads/{load_id}/damages")
def list_damages(
    load_id: int,
    caller: Optional[str] = Depends(get_caller),
    ledger: DamageLedger = Depends(get_damage_ledger)
):
    return ledger.list_damages(caller, load_id).to_dict()


@router.post("/loads/{load_id}/damages")
def add_damage(
    load_id: int,
    request: DamageItemRequest,
    caller: Optional[str] = Depends(get_caller),
    ledger: DamageLedger = Depends(get_damage_ledger)
):
    return ledger.add_damage(caller, load_id, request.model_dump()).to_dict()


@router.patch("/loads/{load_id}/damages/{item_id}")
def update_damage(
    load_id: int,
    item_id: str,
    request: DamageItemRequest,
    caller: Optional[str] = Depends(get_caller),
    ledger: DamageLedger = Depends(get_damage_ledger)
):
    """Change only the fields present in the request body."""
    patch = request.model_dump(exclude_unset=True)
    return ledger.update_damage(caller, load_id, item_id, patch).to_dict()


@router.delete("/loads/{load_id}/damages/{item_id}")
def remove_damage(
    load_id: int,
    item_id: str,
    caller: Optional[str] = Depends(get_caller),
    ledger: DamageLedger = Depends(get_damage_ledger)
):
    """Hide a damage item; it is dropped for good once the undo window ends."""
    return ledger.remove_damage(caller, load_id, item_id).to_dict()


@router.post("/loads/{load_id}/damages/{item_id}/undo")
def undo_remove_damage(
    load_id: int,
    item_id: str,
    caller: Optional[str] = Depends(get_caller),
    ledger: DamageLedger = Depends(get_damage_ledger)
):
    return ledger.undo_remove_damage(caller, load_id, item_id).to_dict()
