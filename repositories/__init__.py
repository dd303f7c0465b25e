"""Repository pattern for database access."""
from repositories.base import BaseRepository
from repositories.driver_repository import DriverRepository
from repositories.load_repository import LoadRepository
from repositories.damage_removal_repository import DamageRemovalRepository
from repositories.payment_repository import PaymentRepository
from repositories.trip_repository import TripRepository

__all__ = [
    "BaseRepository",
    "DamageRemovalRepository",
    "DriverRepository",
    "LoadRepository",
    "PaymentRepository",
    "TripRepository",
]
