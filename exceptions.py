"""Custom exceptions for the load workflow system."""
from typing import Any, Dict, Optional


class LoadWorkflowException(Exception):
    """Base exception for load workflow errors."""

    retryable = False


class NotAuthenticatedError(LoadWorkflowException):
    """Raised when a request carries no caller identity."""
    pass


class ProfileNotFoundError(LoadWorkflowException):
    """Raised when the caller has no driver profile."""
    pass


class AccessDeniedError(LoadWorkflowException):
    """Raised when a record exists but belongs to another owner."""
    pass


class LoadNotFoundError(LoadWorkflowException):
    """Raised when load is not found."""
    pass


class TripNotFoundError(LoadWorkflowException):
    """Raised when trip is not found."""
    pass


class ValidationError(LoadWorkflowException):
    """Raised when data validation fails."""
    pass


class InvalidTransitionError(ValidationError):
    """Raised when an operation is not valid for the load's current status."""
    pass


class DamageItemNotFoundError(ValidationError):
    """Raised when a damage item id is not on the load."""
    pass


class OrderViolationError(LoadWorkflowException):
    """Raised when the delivery sequencer blocks a delivery start."""

    def __init__(self, reason: str, blocking_load: Optional[Dict[str, Any]] = None):
        super().__init__(reason)
        self.reason = reason
        self.blocking_load = blocking_load


class ConcurrencyConflictError(LoadWorkflowException):
    """Raised when a conditional write lost a race with another writer."""

    retryable = True


class UpstreamFailureError(LoadWorkflowException):
    """Raised when a store or notifier call fails."""

    retryable = True


class DatabaseError(UpstreamFailureError):
    """Raised when database operations fail."""
    pass


class NotificationError(UpstreamFailureError):
    """Raised when an owner notification cannot be enqueued."""
    pass


class ConfigurationError(LoadWorkflowException):
    """Raised when configuration is invalid or missing."""
    pass
