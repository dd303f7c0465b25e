"""Utility modules."""
from utils.validation import (
    validate_balance,
    validate_optional_amount,
    validate_optional_string,
    validate_positive_amount,
    validate_required_string,
)
from utils.retry import (
    retry_with_backoff,
    exponential_backoff,
)

__all__ = [
    "validate_balance",
    "validate_optional_amount",
    "validate_optional_string",
    "validate_positive_amount",
    "validate_required_string",
    "retry_with_backoff",
    "exponential_backoff",
]
