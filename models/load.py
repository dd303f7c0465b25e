"""Load model: one shipment tracked from pickup to delivery."""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship

from models.database import Base


class LoadStatus(str, Enum):
    """Load lifecycle states, in forward order."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    LOADING = "loading"
    LOADED = "loaded"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    STORAGE_COMPLETED = "storage_completed"


class LoadSource(str, Enum):
    """Where the load came from."""
    OWN_CUSTOMER = "own_customer"
    PARTNER = "partner"
    MARKETPLACE = "marketplace"


class PostingType(str, Enum):
    """How the load was posted."""
    PICKUP = "pickup"
    LOAD = "load"
    LIVE_LOAD = "live_load"


COMPLETED_STATUSES = (LoadStatus.DELIVERED, LoadStatus.STORAGE_COMPLETED)

STATUS_RANK = {status: rank for rank, status in enumerate(LoadStatus)}
# Both terminal states share a rank
STATUS_RANK[LoadStatus.STORAGE_COMPLETED] = STATUS_RANK[LoadStatus.DELIVERED]


class Load(Base):
    """A shipment assigned to a carrier's driver."""
    
    __tablename__ = "loads"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Tenant and origin
    owner_id = Column(Integer, nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True)
    load_number = Column(String(50), index=True)
    
    # Lifecycle
    load_status = Column(SQLEnum(LoadStatus), nullable=False, default=LoadStatus.PENDING, index=True)
    accepted_at = Column(DateTime)
    loading_started_at = Column(DateTime)
    loading_finished_at = Column(DateTime)
    delivery_started_at = Column(DateTime)
    delivery_finished_at = Column(DateTime)
    
    # Measurement (cubic feet)
    starting_cuft = Column(Float)
    ending_cuft = Column(Float)
    actual_cuft_loaded = Column(Float)
    
    # Photos (opaque media references)
    loading_start_photo = Column(String(500))
    loading_end_photo = Column(String(500))
    loading_report_photo_url = Column(String(500))
    contract_photo_url = Column(String(500))
    payment_photo_front_url = Column(String(500))
    payment_photo_back_url = Column(String(500))
    
    # Branching
    load_source = Column(SQLEnum(LoadSource), nullable=False, default=LoadSource.OWN_CUSTOMER)
    posting_type = Column(SQLEnum(PostingType), nullable=False, default=PostingType.LOAD)
    pickup_completed_at = Column(DateTime)
    contract_details_entered_at = Column(DateTime)
    
    # Customer / destination
    customer_name = Column(String(255))
    customer_phone = Column(String(50))
    delivery_city = Column(String(100))
    delivery_state = Column(String(50))
    delivery_address_full = Column(String(500))
    
    # Contract
    rate_per_cuft = Column(Float)
    contract_linehaul_total = Column(Float)
    contract_balance_due = Column(Float)
    contract_job_number = Column(String(100))
    amount_company_owes = Column(Float)
    contract_accessorials_shuttle = Column(Float)
    contract_accessorials_long_carry = Column(Float)
    contract_accessorials_stairs = Column(Float)
    contract_accessorials_bulky = Column(Float)
    contract_accessorials_packing = Column(Float)
    contract_accessorials_other = Column(Float)
    contract_accessorials_total = Column(Float)
    contract_accessorials_notes = Column(Text)
    
    # Payment
    amount_collected_at_pickup = Column(Float)
    remaining_balance_for_delivery = Column(Float)
    balance_due_on_delivery = Column(Float)
    amount_collected_on_delivery = Column(Float)
    payment_method = Column(String(50))
    payment_zelle_recipient = Column(String(100))
    payment_notes = Column(Text)
    
    # Delivery scheduling
    customer_rfd_date = Column(Date)
    customer_rfd_date_end = Column(Date)
    delivery_notes = Column(Text)
    
    # Storage drop
    storage_location_name = Column(String(255))
    storage_location_address = Column(String(500))
    storage_unit_number = Column(String(50))
    storage_move_in_fee = Column(Float)
    storage_daily_fee = Column(Float)
    storage_notes = Column(Text)
    
    # Delivery sequencing within a trip; NULL means deliverable anytime
    delivery_order = Column(Integer)
    
    # Pre-existing damages, written as a whole list guarded by damages_version
    pre_existing_damages = Column(JSON, nullable=False, default=list)
    damages_version = Column(Integer, nullable=False, default=0)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    company = relationship("Company", back_populates="loads")
    trip_load = relationship("TripLoad", back_populates="load", uselist=False)
    payments = relationship("LoadPayment", back_populates="load")
    
    @property
    def is_completed(self) -> bool:
        """True once the load reached a terminal state."""
        return self.load_status in COMPLETED_STATUSES
    
    @property
    def display_name(self) -> str:
        """Customer name, else "City, ST", else the delivery slot."""
        if self.customer_name:
            return self.customer_name
        if self.delivery_city and self.delivery_state:
            return f"{self.delivery_city}, {self.delivery_state}"
        return f"Delivery #{self.delivery_order}"
    
    def __repr__(self):
        return f"<Load(id={self.id}, status='{self.load_status}', order={self.delivery_order})>"
