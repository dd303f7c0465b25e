"""Decision guards with an explicit failure policy.

Each guard declares which way it fails when its lookups raise. Gates that
could strand a driver fail open; gates asking for more documentation fail
closed. The policy is part of the guard's contract.
"""
import functools
from enum import Enum
from typing import Any, Callable, Tuple, Type, TypeVar

from logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class GuardPolicy(str, Enum):
    """Direction a guard fails in when it cannot decide."""
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


def guarded(
    policy: GuardPolicy,
    fallback: Callable[[], T],
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
):
    """
    Decorator substituting ``fallback()`` when a guard raises one of ``exceptions``.
    
    Args:
        policy: Declared failure direction, recorded on the wrapper and in logs
        fallback: Factory for the default decision
        exceptions: Errors the guard cannot decide through; anything else
            propagates to the caller
        
    Returns:
        Decorated function
        
    Example:
        @guarded(GuardPolicy.FAIL_OPEN, lambda: RequirementCheck(required=False))
        def requires_contract_details(self, ...):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except exceptions as e:
                decision = fallback()
                logger.warning(
                    "Guard could not decide, using default",
                    guard=func.__name__,
                    policy=policy.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return decision
        
        wrapper.guard_policy = policy
        return wrapper
    return decorator
