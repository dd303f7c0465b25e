"""Load lifecycle workflow.

Moves a load forward through pending, accepted, loading, loaded, in_transit
and delivered (or storage_completed). Every transition is written
conditionally on the status the caller validated against, so two racing
requests cannot both apply. Owner notifications and the trip's delivery
pointer are only touched after the transition committed.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from config import get_settings
from constants import (
    EVENT_DELIVERY_COMPLETED,
    EVENT_DELIVERY_STARTED,
    EVENT_LOAD_ACCEPTED,
    EVENT_LOADING_FINISHED,
    EVENT_LOADING_STARTED,
    EVENT_PICKUP_COMPLETED,
    EVENT_STORAGE_COMPLETED,
    MAX_NOTES_LENGTH,
    PAYMENT_COLLECTED_BY_DRIVER,
    PAYMENT_METHOD_ALREADY_PAID,
    PAYMENT_METHOD_FALLBACK,
    PAYMENT_METHOD_MAP,
)
from exceptions import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    OrderViolationError,
    ValidationError,
)
from logging_config import get_logger
from models import Load, LoadPayment, LoadSource, LoadStatus, PaymentType, PostingType
from repositories import PaymentRepository, TripRepository
from services.base_service import DriverActionService
from services.delivery_sequencer import DeliverySequencer
from services.guards import GuardPolicy, guarded
from services.notifier import OwnerNotifier
from services.photo_requirement import PhotoRequirementService
from services.results import (
    Accessorials,
    ContractDetails,
    DeliveryOrderCheck,
    DeliveryPayment,
    PhotoRequirement,
    PickupCompletion,
    RequirementCheck,
    Result,
    StorageDrop,
)
from utils.retry import retry_with_backoff
from utils.validation import (
    validate_balance,
    validate_optional_amount,
    validate_optional_string,
    validate_positive_amount,
    validate_required_string,
)

logger = get_logger(__name__)
settings = get_settings()


class LoadedPath(str, Enum):
    """How a load is expected to reach a deliverable ``loaded`` state."""
    STANDARD = "standard"
    CONTRACT_DETAILS = "contract_details"
    PICKUP_COMPLETION = "pickup_completion"


def loaded_path_for(load: Load) -> LoadedPath:
    """Classify a load by its posting type and source."""
    if load.posting_type == PostingType.PICKUP:
        return LoadedPath.PICKUP_COMPLETION
    if load.load_source in (LoadSource.PARTNER, LoadSource.MARKETPLACE):
        return LoadedPath.CONTRACT_DETAILS
    return LoadedPath.STANDARD


def map_payment_method(method: Optional[str]) -> str:
    """Normalize a driver-entered payment method for the payments ledger."""
    if not method:
        return PAYMENT_METHOD_FALLBACK
    return PAYMENT_METHOD_MAP.get(method, PAYMENT_METHOD_FALLBACK)


def _validated_accessorials(accessorials: Optional[Accessorials]) -> Accessorials:
    accessorials = accessorials or Accessorials()
    return Accessorials(
        shuttle=validate_optional_amount(accessorials.shuttle, "Shuttle") or 0.0,
        long_carry=validate_optional_amount(accessorials.long_carry, "Long carry") or 0.0,
        stairs=validate_optional_amount(accessorials.stairs, "Stairs") or 0.0,
        bulky=validate_optional_amount(accessorials.bulky, "Bulky items") or 0.0,
        packing=validate_optional_amount(accessorials.packing, "Packing") or 0.0,
        other=validate_optional_amount(accessorials.other, "Other accessorials") or 0.0,
        notes=validate_optional_string(accessorials.notes, "Accessorial notes", MAX_NOTES_LENGTH),
    )


class LoadWorkflowService(DriverActionService):
    """Driver-facing operations on a single load."""
    
    def __init__(
        self,
        db: Session,
        notifier: Optional[OwnerNotifier] = None
    ):
        """
        Initialize workflow service.
        
        Args:
            db: Database session; one per request
            notifier: Owner notifier (default: Celery-backed OwnerNotifier)
        """
        super().__init__(db)
        self.trips = TripRepository(db)
        self.payments = PaymentRepository(db)
        self.sequencer = DeliverySequencer(db)
        self.photos = PhotoRequirementService(db)
        self.notifier = notifier or OwnerNotifier()
    
    def _transition(
        self,
        load: Load,
        action: str,
        allowed_from: Iterable[LoadStatus],
        target: Optional[LoadStatus],
        values: Dict[str, Any]
    ) -> Load:
        """
        Check the load's status and write ``values`` conditionally on it.
        
        ``target`` of None writes the fields without moving the status.
        
        Raises:
            InvalidTransitionError: If the load is not in an allowed status
            ConcurrencyConflictError: If the status changed since it was read
        """
        current = load.load_status
        if current not in tuple(allowed_from):
            raise InvalidTransitionError(f'Cannot {action} - current status is "{current.value}"')
        
        if target is not None:
            values = dict(values, load_status=target)
        
        self.loads.apply_transition(load, current, values)
        return load
    
    def _notify_on_success(self, result: Result, event: str, load_id: int, **context: Any) -> Result:
        if result.success:
            self.notifier.send(event, load_id, **context)
        return result
    
    def _record_payment(
        self,
        load: Load,
        payment_type: PaymentType,
        amount: Optional[float],
        method: Optional[str],
        notes: Optional[str],
        collected_at: datetime
    ) -> Optional[LoadPayment]:
        """Add a payment ledger row when money actually changed hands."""
        if not amount or amount <= 0 or method == PAYMENT_METHOD_ALREADY_PAID:
            return None
        
        return self.payments.create(
            load_id=load.id,
            owner_id=load.owner_id,
            payment_type=payment_type,
            amount=amount,
            method=map_payment_method(method),
            collected_by=PAYMENT_COLLECTED_BY_DRIVER,
            collected_at=collected_at,
            notes=notes,
        )
    
    def _advance_after_completion(self, load_id: int) -> bool:
        try:
            load = self.loads.get_by_id(load_id)
        except Exception as e:
            logger.error("Could not reload completed load", load_id=load_id, error=str(e))
            return False
        
        if load is None:
            return False
        return self.sequencer.advance_delivery_index(load)
    
    def accept_load(self, auth_user_id: Optional[str], load_id: int) -> Result:
        """Accept a pending load."""
        def operation():
            _, load = self.get_driver_load(auth_user_id, load_id)
            self._transition(
                load, "accept load", (LoadStatus.PENDING,), LoadStatus.ACCEPTED,
                {"accepted_at": datetime.utcnow()},
            )
            return {"load_status": LoadStatus.ACCEPTED.value}
        
        result = self.run_action("accept load", load_id, operation)
        return self._notify_on_success(result, EVENT_LOAD_ACCEPTED, load_id)
    
    def start_loading(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        starting_cuft: float,
        photo_ref: Optional[str] = None
    ) -> Result:
        """
        Begin loading an accepted load.
        
        Args:
            auth_user_id: Verified caller identity
            load_id: Load ID
            starting_cuft: Truck reading before loading, in cubic feet
            photo_ref: Optional reference to the starting photo
        """
        def operation():
            starting = validate_positive_amount(starting_cuft, "Starting CUFT", allow_zero=True)
            photo = validate_optional_string(photo_ref, "Loading start photo")
            
            _, load = self.get_driver_load(auth_user_id, load_id)
            self._transition(
                load, "start loading", (LoadStatus.ACCEPTED,), LoadStatus.LOADING,
                {
                    "loading_started_at": datetime.utcnow(),
                    "starting_cuft": starting,
                    "loading_start_photo": photo,
                },
            )
            return {"load_status": LoadStatus.LOADING.value, "starting_cuft": starting}
        
        result = self.run_action("start loading", load_id, operation)
        return self._notify_on_success(result, EVENT_LOADING_STARTED, load_id)
    
    def finish_loading(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        ending_cuft: Optional[float] = None,
        photo_ref: Optional[str] = None
    ) -> Result:
        """
        Finish loading and derive how much was loaded.
        
        ``actual_cuft_loaded`` is ``ending_cuft - starting_cuft``; when no
        starting reading was taken the ending reading is used as is.
        
        Returns:
            Result whose data includes ``actual_cuft_loaded`` and the
            ``loaded_path`` the load must follow next
        """
        def operation():
            ending = validate_positive_amount(ending_cuft, "Ending CUFT", allow_zero=True)
            photo = validate_optional_string(photo_ref, "Loading end photo")
            
            _, load = self.get_driver_load(auth_user_id, load_id)
            starting = load.starting_cuft
            if starting is not None and ending < starting:
                raise ValidationError(
                    f"Ending CUFT ({ending:g}) cannot be less than starting CUFT ({starting:g})"
                )
            actual = ending - starting if starting is not None else ending
            
            self._transition(
                load, "finish loading", (LoadStatus.LOADING,), LoadStatus.LOADED,
                {
                    "loading_finished_at": datetime.utcnow(),
                    "ending_cuft": ending,
                    "actual_cuft_loaded": actual,
                    "loading_end_photo": photo,
                },
            )
            return {
                "load_status": LoadStatus.LOADED.value,
                "actual_cuft_loaded": actual,
                "loaded_path": loaded_path_for(load).value,
            }
        
        result = self.run_action("finish loading", load_id, operation)
        actual = (result.data or {}).get("actual_cuft_loaded")
        return self._notify_on_success(result, EVENT_LOADING_FINISHED, load_id, actual_cuft_loaded=actual)
    
    def save_contract_details(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        details: ContractDetails
    ) -> Result:
        """
        Record contract figures for a partner or marketplace load.
        
        The linehaul is ``actual_cuft_loaded * rate_per_cuft`` when both are
        known, otherwise the total the driver copied from the contract. The
        load's status does not change.
        """
        def operation():
            _, load = self.get_driver_load(auth_user_id, load_id)
            if loaded_path_for(load) != LoadedPath.CONTRACT_DETAILS:
                raise ValidationError("Contract details only apply to partner or marketplace loads")
            
            balance = validate_balance(details.balance_due, "Balance due")
            rate = validate_optional_amount(details.rate_per_cuft, "Rate per CUFT")
            company_owes = validate_optional_amount(details.amount_company_owes, "Amount company owes")
            accessorials = _validated_accessorials(details.accessorials)
            
            actual = load.actual_cuft_loaded
            if actual is not None and rate is not None:
                linehaul = round(actual * rate, 2)
            else:
                linehaul = validate_positive_amount(details.linehaul_total, "Linehaul total", allow_zero=True)
            
            values = {
                "contract_details_entered_at": datetime.utcnow(),
                "rate_per_cuft": rate,
                "contract_linehaul_total": linehaul,
                "contract_balance_due": balance,
                "balance_due_on_delivery": balance,
                "amount_company_owes": company_owes,
                "contract_job_number": validate_optional_string(details.job_number, "Job number", 100),
                "customer_name": validate_optional_string(details.customer_name, "Customer name", 255) or load.customer_name,
                "customer_phone": validate_optional_string(details.customer_phone, "Customer phone", 50) or load.customer_phone,
                "delivery_address_full": (
                    validate_optional_string(details.delivery_address_full, "Delivery address", 500)
                    or load.delivery_address_full
                ),
                "loading_report_photo_url": details.loading_report_photo_url or load.loading_report_photo_url,
                "contract_photo_url": details.contract_photo_url or load.contract_photo_url,
            }
            values.update(accessorials.to_columns())
            
            self._transition(load, "save contract details", (LoadStatus.LOADED,), None, values)
            return {
                "contract_linehaul_total": linehaul,
                "contract_accessorials_total": accessorials.total,
                "balance_due_on_delivery": balance,
            }
        
        return self.run_action("save contract details", load_id, operation)
    
    def complete_pickup(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        details: PickupCompletion
    ) -> Result:
        """
        Finish a pickup-type load at the customer's door in one step.
        
        Combines finishing the load, the contract figures and the money taken
        at pickup, then moves the load straight to ``loaded``. Whatever was
        not collected at pickup becomes the balance due on delivery; zero or
        negative means nothing more is owed.
        """
        def operation():
            driver, load = self.get_driver_load(auth_user_id, load_id)
            if loaded_path_for(load) != LoadedPath.PICKUP_COMPLETION:
                raise ValidationError("Pickup completion only applies to pickup loads")
            if load.pickup_completed_at is not None:
                raise InvalidTransitionError("Pickup was already completed for this load")
            
            actual = validate_positive_amount(details.actual_cuft, "Actual CUFT", allow_zero=True)
            rate = validate_positive_amount(details.rate_per_cuft, "Rate per CUFT", allow_zero=True)
            balance = validate_balance(details.balance_due, "Balance due")
            collected = validate_positive_amount(
                details.amount_collected_at_pickup or 0.0, "Amount collected at pickup", allow_zero=True
            )
            accessorials = _validated_accessorials(details.accessorials)
            if details.customer_rfd_date and details.customer_rfd_date_end:
                if details.customer_rfd_date_end < details.customer_rfd_date:
                    raise ValidationError("Delivery window end cannot be before its start")
            
            remaining = balance - collected
            now = datetime.utcnow()
            values = {
                "loading_finished_at": now,
                "pickup_completed_at": now,
                "actual_cuft_loaded": actual,
                "rate_per_cuft": rate,
                "contract_linehaul_total": round(actual * rate, 2),
                "contract_balance_due": balance,
                "amount_collected_at_pickup": collected,
                "remaining_balance_for_delivery": remaining,
                "balance_due_on_delivery": remaining,
                "payment_method": details.payment_method,
                "payment_zelle_recipient": validate_optional_string(details.zelle_recipient, "Zelle recipient", 100),
                "payment_photo_front_url": details.payment_photo_front_url,
                "payment_photo_back_url": details.payment_photo_back_url,
                "customer_rfd_date": details.customer_rfd_date,
                "customer_rfd_date_end": details.customer_rfd_date_end,
                "delivery_notes": validate_optional_string(details.delivery_notes, "Delivery notes", MAX_NOTES_LENGTH),
                "contract_photo_url": details.contract_photo_url or load.contract_photo_url,
                "loading_report_photo_url": details.loading_report_photo_url or load.loading_report_photo_url,
            }
            # Keep the measured readings consistent with the contract figure
            if load.starting_cuft is not None:
                values["ending_cuft"] = load.starting_cuft + actual
            values.update(accessorials.to_columns())
            
            self._transition(
                load, "complete pickup", (LoadStatus.ACCEPTED, LoadStatus.LOADING), LoadStatus.LOADED, values
            )
            self._record_payment(
                load, PaymentType.PICKUP, collected, details.payment_method,
                "Collected at pickup", now,
            )
            logger.info(
                "Pickup completed",
                driver_id=driver.id,
                actual_cuft_loaded=actual,
                amount_collected_at_pickup=collected,
                remaining_balance=remaining,
            )
            return {
                "load_status": LoadStatus.LOADED.value,
                "actual_cuft_loaded": actual,
                "contract_linehaul_total": values["contract_linehaul_total"],
                "balance_due_on_delivery": remaining,
            }
        
        result = self.run_action("complete pickup", load_id, operation)
        return self._notify_on_success(result, EVENT_PICKUP_COMPLETED, load_id)
    
    @guarded(GuardPolicy.FAIL_OPEN, lambda: RequirementCheck(required=False))
    def requires_contract_details(self, auth_user_id: Optional[str], load_id: int) -> RequirementCheck:
        """Whether contract details must be entered before delivery can start."""
        _, load = self.get_driver_load(auth_user_id, load_id)
        required = (
            loaded_path_for(load) == LoadedPath.CONTRACT_DETAILS
            and load.contract_details_entered_at is None
        )
        return RequirementCheck(required=required, load_source=load.load_source.value)
    
    @guarded(GuardPolicy.FAIL_OPEN, lambda: RequirementCheck(required=False))
    def requires_pickup_completion(self, auth_user_id: Optional[str], load_id: int) -> RequirementCheck:
        """Whether the pickup must be completed before delivery can start."""
        _, load = self.get_driver_load(auth_user_id, load_id)
        required = (
            loaded_path_for(load) == LoadedPath.PICKUP_COMPLETION
            and load.pickup_completed_at is None
        )
        return RequirementCheck(required=required, posting_type=load.posting_type.value)
    
    def check_delivery_order(self, auth_user_id: Optional[str], load_id: int) -> DeliveryOrderCheck:
        return self.sequencer.check_delivery_order(auth_user_id, load_id)
    
    def check_photo_requirement(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        trip_id: Optional[int] = None
    ) -> PhotoRequirement:
        return self.photos.check_photo_requirement(auth_user_id, load_id, trip_id)
    
    def start_delivery(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        payment: Optional[DeliveryPayment] = None
    ) -> Result:
        """
        Put a loaded load in transit, if the trip's delivery order allows it.
        
        Args:
            auth_user_id: Verified caller identity
            load_id: Load ID
            payment: Payment collected from the customer, if any
        
        Returns:
            Result; a blocked start carries ``blocking_load``
        """
        def operation():
            driver, load = self.get_driver_load(auth_user_id, load_id)
            return self._start_delivery(driver.id, load, payment)
        
        result = self.run_action("start delivery", load_id, operation)
        return self._notify_on_success(result, EVENT_DELIVERY_STARTED, load_id)
    
    @retry_with_backoff(
        max_attempts=lambda: settings.delivery_start_max_attempts,
        exceptions=(ConcurrencyConflictError,),
    )
    def _start_delivery(
        self,
        driver_id: int,
        load: Load,
        payment: Optional[DeliveryPayment]
    ) -> Dict[str, Any]:
        """
        Order check and status write as one unit, retried on a lost race.
        
        The check's view of the trip is pinned by claiming the trip's version
        in the same transaction as the status write; if another delivery on
        the trip started in between, the claim fails, everything is rolled
        back and the check runs again against fresh state.
        """
        if load.load_status != LoadStatus.LOADED:
            raise InvalidTransitionError(
                f'Cannot start delivery - current status is "{load.load_status.value}"'
            )
        
        check = self.sequencer.check_load(load)
        if not check.allowed:
            raise OrderViolationError(check.reason, check.blocking_load)
        
        values, payment_notes = self._delivery_payment_values(payment)
        now = datetime.utcnow()
        values["delivery_started_at"] = now
        
        try:
            if check.trip_id is not None and check.trip_version is not None:
                if not self.trips.claim_version(check.trip_id, load.owner_id, check.trip_version):
                    raise ConcurrencyConflictError(
                        "Another delivery on this trip started at the same time, please retry"
                    )
            
            self._transition(load, "start delivery", (LoadStatus.LOADED,), LoadStatus.IN_TRANSIT, values)
        
        except ConcurrencyConflictError:
            self.db.rollback()
            raise
        
        if payment is not None:
            self._record_payment(
                load, PaymentType.COD, values.get("amount_collected_on_delivery"),
                payment.payment_method, payment_notes, now,
            )
        
        logger.info(
            "Delivery started",
            driver_id=driver_id,
            delivery_order=check.delivery_order,
            trip_id=check.trip_id,
            order_check_fallback=check.fallback,
        )
        return {"load_status": LoadStatus.IN_TRANSIT.value, "delivery_order": check.delivery_order}
    
    def _delivery_payment_values(self, payment: Optional[DeliveryPayment]):
        """Validate delivery payment input into load columns plus ledger notes."""
        if payment is None:
            return {}, None
        
        amount = validate_optional_amount(payment.amount_collected, "Amount collected")
        zelle = validate_optional_string(payment.zelle_recipient, "Zelle recipient", 100)
        notes = validate_optional_string(payment.notes, "Payment notes", MAX_NOTES_LENGTH)
        authorized_by = validate_optional_string(payment.authorization_name, "Authorization name", 255)
        
        if amount == 0 and authorized_by:
            notes = f"$0 balance authorized by: {authorized_by}"
        
        ledger_notes = notes or (f"Zelle to {zelle}" if zelle else None)
        values = {
            "payment_method": payment.payment_method,
            "amount_collected_on_delivery": amount,
            "payment_zelle_recipient": zelle,
            "payment_photo_front_url": payment.payment_photo_front_url,
            "payment_photo_back_url": payment.payment_photo_back_url,
            "payment_notes": notes,
        }
        return values, ledger_notes
    
    def complete_delivery(self, auth_user_id: Optional[str], load_id: int) -> Result:
        """Mark an in-transit load delivered and advance the trip's pointer."""
        def operation():
            _, load = self.get_driver_load(auth_user_id, load_id)
            self._transition(
                load, "complete delivery", (LoadStatus.IN_TRANSIT,), LoadStatus.DELIVERED,
                {"delivery_finished_at": datetime.utcnow()},
            )
            return {"load_status": LoadStatus.DELIVERED.value}
        
        result = self.run_action("complete delivery", load_id, operation)
        if result.success:
            result.data["delivery_index_advanced"] = self._advance_after_completion(load_id)
        return self._notify_on_success(result, EVENT_DELIVERY_COMPLETED, load_id)
    
    def complete_storage_drop(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        storage: StorageDrop
    ) -> Result:
        """
        Drop an in-transit load at a storage facility instead of the customer.
        
        Frees the load's delivery slot the same way a completed delivery does.
        """
        def operation():
            location = validate_required_string(storage.location_name, "Storage location name", 255)
            values = {
                "delivery_finished_at": datetime.utcnow(),
                "storage_location_name": location,
                "storage_location_address": validate_optional_string(
                    storage.location_address, "Storage location address", 500
                ),
                "storage_unit_number": validate_optional_string(storage.unit_number, "Unit number", 50),
                "storage_move_in_fee": validate_optional_amount(storage.move_in_fee, "Move-in fee"),
                "storage_daily_fee": validate_optional_amount(storage.daily_fee, "Daily fee"),
                "storage_notes": validate_optional_string(storage.notes, "Storage notes", MAX_NOTES_LENGTH),
            }
            
            _, load = self.get_driver_load(auth_user_id, load_id)
            self._transition(
                load, "complete storage drop", (LoadStatus.IN_TRANSIT,), LoadStatus.STORAGE_COMPLETED, values
            )
            return {"load_status": LoadStatus.STORAGE_COMPLETED.value}
        
        result = self.run_action("complete storage drop", load_id, operation)
        if result.success:
            result.data["delivery_index_advanced"] = self._advance_after_completion(load_id)
        return self._notify_on_success(result, EVENT_STORAGE_COMPLETED, load_id)
