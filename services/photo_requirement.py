"""Loading-report photo requirement for co-loaded company shipments.

When several loads from the same sending company are loaded onto one trip
together, the company's loading report covers all of them. The photo is only
demanded from whichever of those loads finishes loading last.
"""
from typing import Optional

from sqlalchemy.orm import Session

from logging_config import get_logger
from models import Load, LoadStatus, Trip
from repositories import TripRepository
from services.base_service import DriverActionService
from services.guards import GuardPolicy, guarded
from services.results import PhotoRequirement

logger = get_logger(__name__)


class PhotoRequirementService(DriverActionService):
    """Decide whether the loading-report photo is mandatory right now."""
    
    def __init__(self, db: Session):
        super().__init__(db)
        self.trips = TripRepository(db)
    
    def evaluate(self, load: Load, trip: Trip) -> PhotoRequirement:
        """
        Count same-company siblings on the trip that are still loading.
        
        Args:
            load: Load finishing its loading
            trip: Trip the load is on
            
        Returns:
            PhotoRequirement; required only when no sibling is still loading
        """
        if load.company_id is None:
            return PhotoRequirement(required=True)
        
        siblings = [
            other for other in self.trips.list_loads(trip.id, load.owner_id)
            if other.id != load.id and other.company_id == load.company_id
        ]
        still_loading = sum(1 for other in siblings if other.load_status == LoadStatus.LOADING)
        company_name = load.company.name if load.company else None
        
        logger.info(
            "Co-load photo check",
            load_id=load.id,
            trip_id=trip.id,
            company_id=load.company_id,
            siblings=len(siblings),
            siblings_still_loading=still_loading,
        )
        
        return PhotoRequirement(
            required=still_loading == 0,
            siblings_still_loading=still_loading,
            company_name=company_name,
        )
    
    def is_last_load_from_company(self, load: Load, trip: Trip) -> bool:
        """True when no other load from the same company is still loading."""
        return self.evaluate(load, trip).required
    
    @guarded(GuardPolicy.FAIL_CLOSED, lambda: PhotoRequirement(required=True))
    def check_photo_requirement(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        trip_id: Optional[int] = None
    ) -> PhotoRequirement:
        """
        Photo requirement for a load on a trip, scoped to the caller's tenant.
        
        Without ``trip_id`` the load's own trip is used; a load on no trip has
        no co-loaded siblings and always needs the photo. Any failure answers
        "required": asking for the photo is the safe side.
        """
        driver, load = self.get_driver_load(auth_user_id, load_id)
        if trip_id is None:
            trip = self.trips.get_trip_for_load(load)
            if trip is None:
                return PhotoRequirement(required=True)
        else:
            trip = self.trips.get_owned(trip_id, driver.owner_id)
        return self.evaluate(load, trip)
