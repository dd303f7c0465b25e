"""Repository for trip operations."""
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import DatabaseError, TripNotFoundError
from models import Load, Trip, TripLoad
from repositories.base import BaseRepository
from logging_config import get_logger

logger = get_logger(__name__)


class TripRepository(BaseRepository[Trip]):
    """Repository for trip-specific database operations."""
    
    not_found_error = TripNotFoundError
    
    def __init__(self, db: Session):
        """
        Initialize trip repository.
        
        Args:
            db: Database session
        """
        super().__init__(Trip, db)
    
    def get_trip_for_load(self, load: Load) -> Optional[Trip]:
        """
        Get the trip a load is assigned to.
        
        Args:
            load: Load
            
        Returns:
            Trip or None if the load is not on a trip
        """
        try:
            return (
                self.db.query(Trip)
                .join(TripLoad, TripLoad.trip_id == Trip.id)
                .filter(
                    TripLoad.load_id == load.id,
                    Trip.owner_id == load.owner_id,
                )
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error resolving trip for load {load.id}: {e}")
            raise DatabaseError("Failed to resolve trip for load") from e
    
    def list_loads(self, trip_id: int, owner_id: int) -> List[Load]:
        """
        Get all loads on a trip.
        
        Args:
            trip_id: Trip ID
            owner_id: Tenant ID
            
        Returns:
            Loads in trip sequence order
        """
        try:
            return (
                self.db.query(Load)
                .join(TripLoad, TripLoad.load_id == Load.id)
                .filter(
                    TripLoad.trip_id == trip_id,
                    Load.owner_id == owner_id,
                )
                .order_by(TripLoad.sequence_index.asc(), Load.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error listing loads for trip {trip_id}: {e}")
            raise DatabaseError("Failed to list trip loads") from e
    
    def advance_delivery_index(self, trip: Trip, completed_order: int) -> bool:
        """
        Move the delivery pointer past ``completed_order`` if it points at it.
        
        Compare-and-set, so repeated calls for the same slot advance at most
        once and the pointer never moves backward.
        
        Args:
            trip: Trip
            completed_order: Delivery order of the completed load
            
        Returns:
            True if the pointer moved
        """
        updated = self.conditional_update(
            [
                Trip.id == trip.id,
                Trip.owner_id == trip.owner_id,
                Trip.current_delivery_index == completed_order,
            ],
            {
                Trip.current_delivery_index: completed_order + 1,
                Trip.version: Trip.version + 1,
            },
        )
        self.refresh(trip)
        return updated > 0
    
    def claim_version(self, trip_id: int, owner_id: int, expected_version: int) -> bool:
        """
        Bump the trip's version token if it is still ``expected_version``.
        
        Args:
            trip_id: Trip ID
            owner_id: Tenant ID
            expected_version: Version observed during the order check
            
        Returns:
            True if this writer won the token
        """
        updated = self.conditional_update(
            [
                Trip.id == trip_id,
                Trip.owner_id == owner_id,
                Trip.version == expected_version,
            ],
            {Trip.version: expected_version + 1},
        )
        return updated > 0
