"""Base repository with common database operations."""
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import AccessDeniedError, DatabaseError, LoadWorkflowException
from logging_config import get_logger

logger = get_logger(__name__)

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    """
    Base repository providing owner-scoped CRUD operations.
    
    Every row carries an ``owner_id``; reads and writes that go through
    ``get_owned`` and ``conditional_update`` are always scoped to it.
    Repositories flush but never commit; the calling service owns the
    transaction.
    """
    
    not_found_error: Type[LoadWorkflowException] = LoadWorkflowException
    
    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize repository.
        
        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db
    
    def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Get entity by ID, ignoring ownership.
        
        Args:
            id: Entity ID
            
        Returns:
            Entity or None if not found
        """
        try:
            return self.db.query(self.model).filter(
                self.model.id == id
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error getting {self.model.__name__} by ID {id}: {e}")
            raise DatabaseError(f"Failed to get {self.model.__name__}") from e
    
    def get_owned(self, id: int, owner_id: int) -> ModelType:
        """
        Get entity by ID within the caller's tenant.
        
        Args:
            id: Entity ID
            owner_id: Caller's tenant ID
            
        Returns:
            Entity
            
        Raises:
            not_found_error: If no entity has this ID
            AccessDeniedError: If the entity belongs to another tenant
        """
        entity = self.get_by_id(id)
        
        if entity is None:
            raise self.not_found_error(f"{self.model.__name__} {id} not found")
        
        if entity.owner_id != owner_id:
            logger.warning(
                "Tenant mismatch",
                model=self.model.__name__,
                entity_id=id,
                owner_id=owner_id,
            )
            raise AccessDeniedError(f"Access denied to {self.model.__name__} {id}")
        
        return entity
    
    def create(self, **kwargs) -> ModelType:
        """
        Create new entity within the current transaction.
        
        Args:
            **kwargs: Entity attributes
            
        Returns:
            Created entity
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            
            logger.info(f"Created {self.model.__name__} with ID {entity.id}")
            return entity
            
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            raise DatabaseError(f"Failed to create {self.model.__name__}") from e
    
    def conditional_update(
        self,
        criteria: List[Any],
        values: Dict[Any, Any]
    ) -> int:
        """
        Issue a single UPDATE guarded by the given criteria.
        
        Args:
            criteria: SQLAlchemy filter expressions the row must satisfy
            values: Column to value mapping
            
        Returns:
            Number of rows updated (0 when the guard did not match)
        """
        try:
            return self.db.query(self.model).filter(*criteria).update(
                values, synchronize_session=False
            )
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model.__name__}: {e}")
            raise DatabaseError(f"Failed to update {self.model.__name__}") from e
    
    def refresh(self, entity: ModelType) -> ModelType:
        """Expire an entity so the next attribute access reloads it."""
        self.db.expire(entity)
        return entity
