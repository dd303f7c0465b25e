"""Database models."""
from models.database import Base, get_db, init_db
from models.driver import Driver, Company
from models.load import Load, LoadStatus, LoadSource, PostingType, COMPLETED_STATUSES
from models.trip import Trip, TripLoad
from models.payment import LoadPayment, PaymentType
from models.damage import PendingDamageRemoval, RemovalStatus

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "Driver",
    "Company",
    "Load",
    "LoadStatus",
    "LoadSource",
    "PostingType",
    "COMPLETED_STATUSES",
    "Trip",
    "TripLoad",
    "LoadPayment",
    "PaymentType",
    "PendingDamageRemoval",
    "RemovalStatus",
]
