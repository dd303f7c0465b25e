"""Trip-level delivery ordering.

Loads on one trip that carry a ``delivery_order`` must be completed in that
order. ``Trip.current_delivery_index`` is a fast path pointing at the open
slot; the authoritative answer is always a scan of the trip's loads, so a
pointer that fell behind (a failed advance) heals itself on the next check.
"""
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from exceptions import (
    AccessDeniedError,
    LoadNotFoundError,
    NotAuthenticatedError,
    ProfileNotFoundError,
    UpstreamFailureError,
)
from logging_config import get_logger
from models import Load
from repositories import TripRepository
from services.base_service import DriverActionService
from services.guards import GuardPolicy, guarded
from services.results import DeliveryOrderCheck

logger = get_logger(__name__)
settings = get_settings()

# Failures the order check falls open on; anything else is a real answer
STORE_ERRORS = (UpstreamFailureError, SQLAlchemyError)
CALLER_ERRORS = (NotAuthenticatedError, ProfileNotFoundError, LoadNotFoundError, AccessDeniedError)


def _blocking_load_summary(load: Load) -> dict:
    return {
        "id": load.id,
        "delivery_order": load.delivery_order,
        "customer_name": load.customer_name,
        "delivery_city": load.delivery_city,
        "delivery_state": load.delivery_state,
    }


class DeliverySequencer(DriverActionService):
    """Authorize delivery starts and advance the trip's delivery pointer."""
    
    def __init__(self, db: Session):
        super().__init__(db)
        self.trips = TripRepository(db)
    
    def evaluate(self, load: Load) -> DeliveryOrderCheck:
        """
        Decide whether ``load`` may start delivery now.
        
        Raises whatever the underlying lookups raise; callers pick the
        failure policy.
        """
        order = load.delivery_order
        if order is None:
            return DeliveryOrderCheck(allowed=True)
        
        trip = self.trips.get_trip_for_load(load)
        if trip is None:
            return DeliveryOrderCheck(allowed=True, delivery_order=order)
        
        current_index = trip.current_delivery_index or settings.default_delivery_index
        check = DeliveryOrderCheck(
            allowed=True,
            current_delivery_index=current_index,
            delivery_order=order,
            trip_id=trip.id,
            trip_version=trip.version,
        )
        
        if order <= current_index:
            return check
        
        earlier_open = sorted(
            (
                other for other in self.trips.list_loads(trip.id, load.owner_id)
                if other.id != load.id
                and other.delivery_order is not None
                and other.delivery_order < order
                and not other.is_completed
            ),
            key=lambda other: other.delivery_order,
        )
        
        if not earlier_open:
            logger.info(
                "Delivery pointer behind completed slots, allowing",
                load_id=load.id,
                trip_id=trip.id,
                delivery_order=order,
                current_delivery_index=current_index,
            )
            return check
        
        blocker = earlier_open[0]
        check.allowed = False
        check.reason = f"Complete delivery #{blocker.delivery_order} ({blocker.display_name}) first"
        check.blocking_load = _blocking_load_summary(blocker)
        return check
    
    def _evaluate_in_savepoint(self, load: Load) -> DeliveryOrderCheck:
        # A failed statement rolls back to the savepoint only, so the
        # enclosing transaction can still write the status change
        with self.db.begin_nested():
            return self.evaluate(load)

    @guarded(
        GuardPolicy.FAIL_OPEN,
        lambda: DeliveryOrderCheck(allowed=True, fallback=True),
        exceptions=STORE_ERRORS,
    )
    def check_load(self, load: Load) -> DeliveryOrderCheck:
        """Order check for an already-fetched load; store failures allow."""
        return self._evaluate_in_savepoint(load)

    @guarded(
        GuardPolicy.FAIL_OPEN,
        lambda: DeliveryOrderCheck(allowed=True, fallback=True),
        exceptions=STORE_ERRORS,
    )
    def check_delivery_order(self, auth_user_id: Optional[str], load_id: int) -> DeliveryOrderCheck:
        """
        Order check for a load, scoped to the caller's tenant.

        Store failures allow the delivery: a driver is never stranded on an
        infrastructure error. A caller who cannot see the load is refused,
        with the reason and error type of the failed lookup.
        """
        try:
            _, load = self.get_driver_load(auth_user_id, load_id)
        except CALLER_ERRORS as e:
            logger.warning(
                "Delivery order check refused",
                load_id=load_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryOrderCheck(allowed=False, reason=str(e), error_type=type(e).__name__)
        return self._evaluate_in_savepoint(load)
    
    def advance_delivery_index(self, completed_load: Load) -> bool:
        """
        Move the trip's pointer past a just-completed load's slot.
        
        No-op for unordered loads, loads not on a trip, or when the pointer is
        not on this slot. Failures are logged and swallowed; the next order
        check corrects for a pointer left behind.
        
        Returns:
            True if the pointer moved
        """
        order = completed_load.delivery_order
        if order is None:
            return False
        
        try:
            trip = self.trips.get_trip_for_load(completed_load)
            if trip is None:
                return False
            
            advanced = self.trips.advance_delivery_index(trip, order)
            self.db.commit()
            
            if advanced:
                logger.info(
                    "Delivery index advanced",
                    trip_id=trip.id,
                    completed_order=order,
                    current_delivery_index=order + 1,
                )
            else:
                logger.info(
                    "Delivery index not on completed slot, left unchanged",
                    trip_id=trip.id,
                    completed_order=order,
                )
            return advanced
            
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to advance delivery index",
                load_id=completed_load.id,
                completed_order=order,
                error=str(e),
            )
            return False
