"""Soft-deleted damage items awaiting their undo window."""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum

from models.database import Base


class RemovalStatus(str, Enum):
    """State of a pending damage removal."""
    PENDING = "pending"
    UNDONE = "undone"
    COMMITTED = "committed"
    FAILED = "failed"


class PendingDamageRemoval(Base):
    """A damage item hidden from display but not yet removed from the load."""
    
    __tablename__ = "pending_damage_removals"
    
    id = Column(Integer, primary_key=True, index=True)
    load_id = Column(Integer, ForeignKey("loads.id"), nullable=False, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    item_id = Column(String(36), nullable=False, index=True)
    
    status = Column(SQLEnum(RemovalStatus), nullable=False, default=RemovalStatus.PENDING, index=True)
    requested_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)
    resolved_at = Column(DateTime)
    
    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
    
    def __repr__(self):
        return f"<PendingDamageRemoval(load={self.load_id}, item='{self.item_id}', status='{self.status}')>"
