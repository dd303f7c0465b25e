"""Payments collected by drivers."""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship

from models.database import Base


class PaymentType(str, Enum):
    """When the payment was collected."""
    COD = "cod"
    PICKUP = "pickup"


class LoadPayment(Base):
    """Money collected from the customer for a load."""
    
    __tablename__ = "load_payments"
    
    id = Column(Integer, primary_key=True, index=True)
    load_id = Column(Integer, ForeignKey("loads.id"), nullable=False, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    
    payment_type = Column(SQLEnum(PaymentType), nullable=False)
    amount = Column(Float, nullable=False)
    method = Column(String(50), nullable=False)
    collected_by = Column(String(50), default="driver")
    collected_at = Column(DateTime, default=datetime.utcnow)
    notes = Column(Text)
    
    load = relationship("Load", back_populates="payments")
    
    def __repr__(self):
        return f"<LoadPayment(load={self.load_id}, type='{self.payment_type}', amount=${self.amount})>"
