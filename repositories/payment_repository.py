"""Repository for collected payments."""
from typing import List

from sqlalchemy.orm import Session

from models import LoadPayment
from repositories.base import BaseRepository


class PaymentRepository(BaseRepository[LoadPayment]):
    """Repository for load payment records."""
    
    def __init__(self, db: Session):
        super().__init__(LoadPayment, db)
    
    def get_by_load(self, load_id: int, owner_id: int) -> List[LoadPayment]:
        """Get payments recorded for a load, oldest first."""
        return self.db.query(LoadPayment).filter(
            LoadPayment.load_id == load_id,
            LoadPayment.owner_id == owner_id,
        ).order_by(LoadPayment.collected_at.asc(), LoadPayment.id.asc()).all()
