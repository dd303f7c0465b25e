"""Trip models: one truck run carrying one or more loads."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.database import Base


class Trip(Base):
    """A truck run driven by one driver."""
    
    __tablename__ = "trips"
    
    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"))
    trip_number = Column(String(50))
    
    # The delivery slot currently open; only ever increases
    current_delivery_index = Column(Integer, nullable=False, default=1)
    
    # Bumped by every delivery start so concurrent starts conflict
    version = Column(Integer, nullable=False, default=0)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    driver = relationship("Driver", back_populates="trips")
    trip_loads = relationship("TripLoad", back_populates="trip", order_by="TripLoad.sequence_index")
    
    def __repr__(self):
        return f"<Trip(id={self.id}, index={self.current_delivery_index})>"


class TripLoad(Base):
    """Membership of a load on a trip."""
    
    __tablename__ = "trip_loads"
    
    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    load_id = Column(Integer, ForeignKey("loads.id"), nullable=False, unique=True)
    sequence_index = Column(Integer, default=0)
    
    # Relationships
    trip = relationship("Trip", back_populates="trip_loads")
    load = relationship("Load", back_populates="trip_load")
    
    def __repr__(self):
        return f"<TripLoad(trip={self.trip_id}, load={self.load_id})>"
