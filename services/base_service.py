"""Shared plumbing for driver-initiated load operations."""
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import (
    DatabaseError,
    LoadWorkflowException,
    NotAuthenticatedError,
    ProfileNotFoundError,
)
from logging_config import bind_context, get_logger, unbind_context
from models import Driver, Load
from repositories import DriverRepository, LoadRepository
from services.results import Result

logger = get_logger(__name__)


class DriverActionService:
    """Base class resolving the calling driver and running one unit of work."""
    
    def __init__(self, db: Session):
        """
        Initialize service.
        
        Args:
            db: Database session; one per request
        """
        self.db = db
        self.drivers = DriverRepository(db)
        self.loads = LoadRepository(db)
    
    def resolve_driver(self, auth_user_id: Optional[str]) -> Driver:
        """
        Map a verified caller identity to its driver profile.
        
        Raises:
            NotAuthenticatedError: If there is no caller identity
            ProfileNotFoundError: If the caller has no driver profile
        """
        if not auth_user_id:
            raise NotAuthenticatedError("Not authenticated")
        
        driver = self.drivers.get_by_auth_user_id(auth_user_id)
        if driver is None:
            raise ProfileNotFoundError("Driver profile not found")
        
        bind_context(owner_id=driver.owner_id, driver_id=driver.id)
        return driver
    
    def get_driver_load(self, auth_user_id: Optional[str], load_id: int) -> Tuple[Driver, Load]:
        """Resolve the caller and fetch one of their tenant's loads."""
        driver = self.resolve_driver(auth_user_id)
        load = self.loads.get_owned(load_id, driver.owner_id)
        return driver, load
    
    def run_action(
        self,
        action: str,
        load_id: int,
        operation: Callable[[], Optional[Dict[str, Any]]]
    ) -> Result:
        """
        Run ``operation`` as one transaction and report it as a Result.
        
        The transaction commits only if ``operation`` returns; any failure
        rolls it back, so callers never observe a half-applied change.
        
        Args:
            action: Human-readable verb phrase, used in logs and errors
            load_id: Load the action targets
            operation: Callable doing the reads and writes
            
        Returns:
            Result carrying whatever ``operation`` returned as data
        """
        bind_context(load_id=load_id, action=action)
        try:
            data = operation()
            self.db.commit()
            logger.info(f"Completed {action}")
            return Result.ok(data)
            
        except LoadWorkflowException as e:
            self.db.rollback()
            logger.warning(f"Could not {action}", error=str(e), error_type=type(e).__name__)
            return Result.failure(e)
            
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error during {action}: {e}", exc_info=True)
            return Result.failure(DatabaseError(f"Failed to {action}, please try again"))
            
        except Exception as e:
            self.db.rollback()
            logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
            return Result(success=False, error=f"Failed to {action}", error_type=type(e).__name__)
            
        finally:
            unbind_context("load_id", "action", "owner_id", "driver_id")
