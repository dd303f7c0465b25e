"""Driver and company models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from models.database import Base


class Driver(Base):
    """Driver profile linked to an authenticated user."""
    
    __tablename__ = "drivers"
    
    id = Column(Integer, primary_key=True, index=True)
    auth_user_id = Column(String(100), unique=True, nullable=False, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    trips = relationship("Trip", back_populates="driver")
    
    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
    
    def __repr__(self):
        return f"<Driver(id={self.id}, owner={self.owner_id})>"


class Company(Base):
    """Sending company that hands loads to the carrier."""
    
    __tablename__ = "companies"
    
    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    loads = relationship("Load", back_populates="company")
    
    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.name}')>"
