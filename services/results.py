"""Request and result types exchanged with workflow callers."""
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Any, Dict, Optional

from constants import ACCESSORIAL_KEYS
from exceptions import LoadWorkflowException, OrderViolationError


@dataclass
class Result:
    """Outcome of a state-changing operation."""
    
    success: bool
    error: Optional[str] = None
    error_type: Optional[str] = None
    retryable: bool = False
    blocking_load: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    
    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None) -> "Result":
        return cls(success=True, data=data)
    
    @classmethod
    def failure(cls, exc: LoadWorkflowException) -> "Result":
        """Build a failed result from a domain exception."""
        return cls(
            success=False,
            error=str(exc),
            error_type=type(exc).__name__,
            retryable=exc.retryable,
            blocking_load=exc.blocking_load if isinstance(exc, OrderViolationError) else None,
        )
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping empty fields."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class RequirementCheck:
    """Answer of a pre-delivery gate query."""
    
    required: bool
    load_source: Optional[str] = None
    posting_type: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class DeliveryOrderCheck:
    """Decision of the delivery sequencer for one load."""
    
    allowed: bool
    reason: Optional[str] = None
    blocking_load: Optional[Dict[str, Any]] = None
    current_delivery_index: Optional[int] = None
    delivery_order: Optional[int] = None
    trip_id: Optional[int] = None
    trip_version: Optional[int] = None
    fallback: bool = False
    error_type: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class PhotoRequirement:
    """Whether the loading-report photo is mandatory right now."""
    
    required: bool
    siblings_still_loading: int = 0
    company_name: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Accessorials:
    """Extra service charges added on top of the linehaul."""
    
    shuttle: float = 0.0
    long_carry: float = 0.0
    stairs: float = 0.0
    bulky: float = 0.0
    packing: float = 0.0
    other: float = 0.0
    notes: Optional[str] = None
    
    @property
    def total(self) -> float:
        return sum(getattr(self, key) or 0.0 for key in ACCESSORIAL_KEYS)
    
    def to_columns(self) -> Dict[str, Any]:
        """Map onto load columns; zero amounts are stored as NULL."""
        columns = {
            f"contract_accessorials_{key}": getattr(self, key) or None
            for key in ACCESSORIAL_KEYS
        }
        columns["contract_accessorials_total"] = self.total or None
        columns["contract_accessorials_notes"] = self.notes or None
        return columns


@dataclass
class ContractDetails:
    """Contract figures a driver copies from a partner's paperwork."""
    
    balance_due: float
    rate_per_cuft: Optional[float] = None
    linehaul_total: Optional[float] = None
    amount_company_owes: Optional[float] = None
    accessorials: Accessorials = field(default_factory=Accessorials)
    job_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_address_full: Optional[str] = None
    loading_report_photo_url: Optional[str] = None
    contract_photo_url: Optional[str] = None


@dataclass
class PickupCompletion:
    """Everything recorded when a pickup-type load is finished at the customer."""
    
    actual_cuft: float
    rate_per_cuft: float
    balance_due: float
    amount_collected_at_pickup: float = 0.0
    accessorials: Accessorials = field(default_factory=Accessorials)
    payment_method: Optional[str] = None
    zelle_recipient: Optional[str] = None
    payment_photo_front_url: Optional[str] = None
    payment_photo_back_url: Optional[str] = None
    customer_rfd_date: Optional[date] = None
    customer_rfd_date_end: Optional[date] = None
    delivery_notes: Optional[str] = None
    contract_photo_url: Optional[str] = None
    loading_report_photo_url: Optional[str] = None


@dataclass
class DeliveryPayment:
    """Payment collected when delivery starts."""
    
    payment_method: Optional[str] = None
    amount_collected: Optional[float] = None
    zelle_recipient: Optional[str] = None
    payment_photo_front_url: Optional[str] = None
    payment_photo_back_url: Optional[str] = None
    notes: Optional[str] = None
    authorization_name: Optional[str] = None


@dataclass
class StorageDrop:
    """Where a load was dropped when it went to storage instead of the customer."""
    
    location_name: str
    location_address: Optional[str] = None
    unit_number: Optional[str] = None
    move_in_fee: Optional[float] = None
    daily_fee: Optional[float] = None
    notes: Optional[str] = None
