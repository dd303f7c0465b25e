"""Repository for driver profiles."""
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import DatabaseError, ProfileNotFoundError
from models import Driver
from repositories.base import BaseRepository
from logging_config import get_logger

logger = get_logger(__name__)


class DriverRepository(BaseRepository[Driver]):
    """Repository for driver lookups."""
    
    not_found_error = ProfileNotFoundError
    
    def __init__(self, db: Session):
        super().__init__(Driver, db)
    
    def get_by_auth_user_id(self, auth_user_id: str) -> Optional[Driver]:
        """
        Get the driver profile for an authenticated user.
        
        Args:
            auth_user_id: Verified identity of the caller
            
        Returns:
            Driver or None
        """
        try:
            return self.db.query(Driver).filter(
                Driver.auth_user_id == auth_user_id
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error getting driver for user {auth_user_id}: {e}")
            raise DatabaseError("Failed to get driver profile") from e
