"""Repository for load operations."""
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from exceptions import ConcurrencyConflictError, LoadNotFoundError
from models import Load, LoadStatus
from repositories.base import BaseRepository
from logging_config import get_logger

logger = get_logger(__name__)


class LoadRepository(BaseRepository[Load]):
    """Repository for load-specific database operations."""
    
    not_found_error = LoadNotFoundError
    
    def __init__(self, db: Session):
        """
        Initialize load repository.
        
        Args:
            db: Database session
        """
        super().__init__(Load, db)
    
    def apply_transition(
        self,
        load: Load,
        expected_status: LoadStatus,
        values: Dict[str, Any]
    ) -> Load:
        """
        Write new field values only if the load is still in ``expected_status``.
        
        Args:
            load: Load snapshot the caller validated against
            expected_status: Status the snapshot was in
            values: Column name to value mapping
            
        Returns:
            The (expired) load
            
        Raises:
            ConcurrencyConflictError: If another writer moved the load first
        """
        updated = self.conditional_update(
            [
                Load.id == load.id,
                Load.owner_id == load.owner_id,
                Load.load_status == expected_status,
            ],
            {getattr(Load, key): value for key, value in values.items()},
        )
        
        if updated == 0:
            logger.warning(
                "Load changed since it was read",
                load_id=load.id,
                expected_status=expected_status.value,
            )
            raise ConcurrencyConflictError(
                f"Load {load.id} was updated by someone else, please refresh and retry"
            )
        
        return self.refresh(load)
    
    def replace_damages(
        self,
        load: Load,
        expected_version: int,
        damages: List[Dict[str, Any]]
    ) -> Load:
        """
        Persist the whole damage list if nobody else wrote it since it was read.
        
        Args:
            load: Load owning the list
            expected_version: ``damages_version`` the list was read at
            damages: Full replacement list
            
        Returns:
            The (expired) load
            
        Raises:
            ConcurrencyConflictError: If the list version moved on
        """
        updated = self.conditional_update(
            [
                Load.id == load.id,
                Load.owner_id == load.owner_id,
                Load.damages_version == expected_version,
            ],
            {
                Load.pre_existing_damages: damages,
                Load.damages_version: expected_version + 1,
            },
        )
        
        if updated == 0:
            logger.warning(
                "Stale damage list write rejected",
                load_id=load.id,
                expected_version=expected_version,
            )
            raise ConcurrencyConflictError(
                "Damage list was changed in another session, please refresh and retry"
            )
        
        return self.refresh(load)
