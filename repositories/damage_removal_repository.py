"""Repository for soft-deleted damage items."""
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from models import PendingDamageRemoval, RemovalStatus
from repositories.base import BaseRepository


class DamageRemovalRepository(BaseRepository[PendingDamageRemoval]):
    """Repository for pending damage removals."""
    
    def __init__(self, db: Session):
        super().__init__(PendingDamageRemoval, db)
    
    def get_pending(self, load_id: int, item_id: str) -> Optional[PendingDamageRemoval]:
        """Get the open removal for a damage item, if any."""
        return self.db.query(PendingDamageRemoval).filter(
            PendingDamageRemoval.load_id == load_id,
            PendingDamageRemoval.item_id == item_id,
            PendingDamageRemoval.status == RemovalStatus.PENDING,
        ).first()
    
    def pending_item_ids(self, load_id: int) -> Set[str]:
        """Ids of damage items currently hidden pending removal."""
        rows = self.db.query(PendingDamageRemoval.item_id).filter(
            PendingDamageRemoval.load_id == load_id,
            PendingDamageRemoval.status == RemovalStatus.PENDING,
        ).all()
        return {row.item_id for row in rows}
    
    def list_expired(self, now: datetime, limit: int = 100) -> List[PendingDamageRemoval]:
        """Pending removals whose undo window has elapsed."""
        return self.db.query(PendingDamageRemoval).filter(
            PendingDamageRemoval.status == RemovalStatus.PENDING,
            PendingDamageRemoval.expires_at <= now,
        ).order_by(PendingDamageRemoval.expires_at.asc()).limit(limit).all()
    
    def resolve(
        self,
        removal: PendingDamageRemoval,
        status: RemovalStatus,
        now: datetime,
        not_after: Optional[datetime] = None
    ) -> bool:
        """
        Move a pending removal to a final status if it is still pending.
        
        Args:
            removal: Removal to resolve
            status: Final status
            now: Resolution time
            not_after: When given, only resolve while ``now`` is before expiry
            
        Returns:
            True if this caller resolved it
        """
        criteria = [
            PendingDamageRemoval.id == removal.id,
            PendingDamageRemoval.status == RemovalStatus.PENDING,
        ]
        if not_after is not None:
            criteria.append(PendingDamageRemoval.expires_at > not_after)
        
        updated = self.conditional_update(
            criteria,
            {
                PendingDamageRemoval.status: status,
                PendingDamageRemoval.resolved_at: now,
            },
        )
        self.refresh(removal)
        return updated > 0
