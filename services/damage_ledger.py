"""Pre-existing damage records embedded on a load.

Damages live as a JSON list on the load and every change rewrites the whole
list. Each rewrite is conditional on ``Load.damages_version`` so a session
holding a stale copy is rejected instead of silently overwriting another
driver's edit.

Removal is a soft delete: the item is hidden at once and only dropped from
the list after the undo window passes without an undo.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from config import get_settings
from constants import MAX_DESCRIPTION_LENGTH, MAX_STICKER_NUMBER_LENGTH
from exceptions import (
    ConcurrencyConflictError,
    DamageItemNotFoundError,
    LoadWorkflowException,
    ValidationError,
)
from logging_config import get_logger
from models import Load, PendingDamageRemoval, RemovalStatus
from repositories import DamageRemovalRepository
from services.base_service import DriverActionService
from services.results import Result
from utils.retry import retry_with_backoff
from utils.validation import validate_optional_string, validate_required_string

logger = get_logger(__name__)
settings = get_settings()

REQUIRED_FIELDS = {
    "sticker_number": ("Sticker number", MAX_STICKER_NUMBER_LENGTH),
    "item_description": ("Item description", MAX_DESCRIPTION_LENGTH),
    "damage_description": ("Damage description", MAX_DESCRIPTION_LENGTH),
}
OPTIONAL_FIELDS = {
    "photo_url": ("Photo URL", MAX_DESCRIPTION_LENGTH),
}
MUTABLE_FIELDS = set(REQUIRED_FIELDS) | set(OPTIONAL_FIELDS)


def schedule_removal_finalizer(removal_id: int, countdown: int) -> None:
    """Queue the task that commits a removal once its undo window ends."""
    from tasks.celery_tasks import finalize_damage_removal
    
    finalize_damage_removal.apply_async(args=[removal_id], countdown=countdown)


def _clean_fields(fields: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    """Validate damage fields; ``partial`` allows omitting required ones."""
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown damage fields: {', '.join(sorted(unknown))}")
    
    cleaned = {}
    for key, (label, max_length) in REQUIRED_FIELDS.items():
        if partial and key not in fields:
            continue
        cleaned[key] = validate_required_string(fields.get(key), label, max_length)
    
    for key, (label, max_length) in OPTIONAL_FIELDS.items():
        if partial and key not in fields:
            continue
        cleaned[key] = validate_optional_string(fields.get(key), label, max_length)
    
    return cleaned


class DamageLedger(DriverActionService):
    """Add, edit and soft-delete damage items on one load at a time."""
    
    def __init__(
        self,
        db: Session,
        scheduler: Optional[Callable[[int, int], None]] = None,
        undo_window_seconds: Optional[int] = None
    ):
        super().__init__(db)
        self.removals = DamageRemovalRepository(db)
        self.scheduler = scheduler or schedule_removal_finalizer
        if undo_window_seconds is None:
            undo_window_seconds = settings.damage_undo_window_seconds
        self.undo_window_seconds = undo_window_seconds
    
    def _visible(self, load: Load) -> List[Dict[str, Any]]:
        hidden = self.removals.pending_item_ids(load.id)
        return [dict(item) for item in (load.pre_existing_damages or []) if item["id"] not in hidden]
    
    def _find_visible(self, load: Load, item_id: str) -> Dict[str, Any]:
        for item in self._visible(load):
            if item["id"] == item_id:
                return item
        raise DamageItemNotFoundError(f"Damage item {item_id} not found on load {load.id}")
    
    def list_damages(self, auth_user_id: Optional[str], load_id: int) -> Result:
        """Damage items currently shown for a load (pending removals hidden)."""
        def operation():
            _, load = self.get_driver_load(auth_user_id, load_id)
            return {"damages": self._visible(load)}
        
        return self.run_action("list damages", load_id, operation)
    
    def add_damage(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        item: Dict[str, Any],
        now: Optional[datetime] = None
    ) -> Result:
        """
        Append a new damage item.
        
        Args:
            auth_user_id: Caller identity
            load_id: Load ID
            item: sticker_number, item_description, damage_description, photo_url
            now: Documentation time (default: now)
            
        Returns:
            Result with the stored item under ``item``
        """
        def operation():
            _, load = self.get_driver_load(auth_user_id, load_id)
            new_item = {
                "id": str(uuid.uuid4()),
                **_clean_fields(item, partial=False),
                "documented_at": (now or datetime.utcnow()).isoformat(),
            }
            damages = list(load.pre_existing_damages or [])
            damages.append(new_item)
            self.loads.replace_damages(load, load.damages_version, damages)
            return {"item": new_item}
        
        return self.run_action("add damage item", load_id, operation)
    
    def update_damage(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        item_id: str,
        patch: Dict[str, Any]
    ) -> Result:
        """Replace the mutable fields of one damage item."""
        def operation():
            _, load = self.get_driver_load(auth_user_id, load_id)
            self._find_visible(load, item_id)
            changes = _clean_fields(patch, partial=True)
            if not changes:
                raise ValidationError("Nothing to update")
            
            damages = [
                {**item, **changes} if item["id"] == item_id else item
                for item in (load.pre_existing_damages or [])
            ]
            self.loads.replace_damages(load, load.damages_version, damages)
            return {"item": next(item for item in damages if item["id"] == item_id)}
        
        return self.run_action("update damage item", load_id, operation)
    
    def remove_damage(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        item_id: str,
        now: Optional[datetime] = None
    ) -> Result:
        """
        Hide a damage item and schedule its removal after the undo window.
        
        Returns:
            Result with ``removal_id`` and ``undo_expires_at``
        """
        now = now or datetime.utcnow()
        
        def operation():
            driver, load = self.get_driver_load(auth_user_id, load_id)
            self._find_visible(load, item_id)
            removal = self.removals.create(
                load_id=load.id,
                owner_id=driver.owner_id,
                item_id=item_id,
                status=RemovalStatus.PENDING,
                requested_at=now,
                expires_at=now + timedelta(seconds=self.undo_window_seconds),
            )
            return {
                "removal_id": removal.id,
                "undo_expires_at": removal.expires_at.isoformat(),
            }
        
        result = self.run_action("remove damage item", load_id, operation)
        
        if result.success:
            try:
                self.scheduler(result.data["removal_id"], self.undo_window_seconds)
            except Exception as e:
                # The periodic sweep commits it instead
                logger.error(
                    "Failed to schedule damage removal",
                    removal_id=result.data["removal_id"],
                    error=str(e),
                )
        
        return result
    
    def undo_remove_damage(
        self,
        auth_user_id: Optional[str],
        load_id: int,
        item_id: str,
        now: Optional[datetime] = None
    ) -> Result:
        """Cancel a pending removal; the damage list itself is never written."""
        now = now or datetime.utcnow()
        
        def operation():
            _, load = self.get_driver_load(auth_user_id, load_id)
            removal = self.removals.get_pending(load.id, item_id)
            if removal is None or not self.removals.resolve(
                removal, RemovalStatus.UNDONE, now, not_after=now
            ):
                raise ValidationError("Undo window has expired for this damage item")
            return {"item_id": item_id}
        
        return self.run_action("undo damage removal", load_id, operation)
    
    def finalize_removal(self, removal_id: int, now: Optional[datetime] = None) -> bool:
        """
        Drop a soft-deleted item from its load's list once the window elapsed.
        
        Called from the background worker; there is no caller identity, the
        removal row carries the tenant.
        
        Returns:
            True if the item was removed from the list
        """
        now = now or datetime.utcnow()
        removal = self.removals.get_by_id(removal_id)
        
        if removal is None or removal.status != RemovalStatus.PENDING:
            return False
        
        if not removal.is_expired(now):
            logger.info("Damage removal not yet due", removal_id=removal_id)
            return False
        
        try:
            return self._commit_removal(removal, now)
        except LoadWorkflowException as e:
            self.db.rollback()
            logger.error(f"Could not finalize damage removal {removal_id}: {e}")
            self.removals.resolve(removal, RemovalStatus.FAILED, now)
            self.db.commit()
            return False
    
    @retry_with_backoff(exceptions=(ConcurrencyConflictError,))
    def _commit_removal(self, removal: PendingDamageRemoval, now: datetime) -> bool:
        if not self.removals.resolve(removal, RemovalStatus.COMMITTED, now):
            # Undone (or finalized) in the meantime
            self.db.rollback()
            return False
        
        load = self.loads.get_owned(removal.load_id, removal.owner_id)
        damages = [
            item for item in (load.pre_existing_damages or [])
            if item["id"] != removal.item_id
        ]
        
        try:
            self.loads.replace_damages(load, load.damages_version, damages)
        except ConcurrencyConflictError:
            self.db.rollback()
            raise
        
        self.db.commit()
        logger.info(
            "Damage item removed",
            load_id=removal.load_id,
            item_id=removal.item_id,
        )
        return True
    
    def finalize_expired_removals(self, now: Optional[datetime] = None) -> int:
        """Commit every pending removal whose window has elapsed."""
        now = now or datetime.utcnow()
        committed = 0
        
        for removal in self.removals.list_expired(now):
            if self.finalize_removal(removal.id, now):
                committed += 1
        
        return committed
