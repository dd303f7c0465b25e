"""Validators for figures and text a driver types in on the truck."""
from typing import Any, Optional

from exceptions import ValidationError


def _as_number(value: Any, field_name: str) -> float:
    if value is None:
        raise ValidationError(f"{field_name} is required")
    # bool is an int subclass; a checkbox value is never a dollar figure
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")
    return float(value)


def _within_length(text: str, field_name: str, max_length: Optional[int]) -> str:
    if max_length and len(text) > max_length:
        raise ValidationError(
            f"{field_name} is {len(text)} characters long; the limit is {max_length}"
        )
    return text


def validate_positive_amount(
    amount: float,
    field_name: str = "Amount",
    allow_zero: bool = False
) -> float:
    """
    Check a money or volume figure.

    Args:
        amount: Value entered by the driver
        field_name: Label used in the error message
        allow_zero: Accept 0 (a fully prepaid balance, an empty truck)

    Returns:
        The figure as a float

    Raises:
        ValidationError: Missing, not numeric, negative, or zero when
            zero is not allowed
    """
    number = _as_number(amount, field_name)
    floor_ok = number >= 0 if allow_zero else number > 0
    if not floor_ok:
        qualifier = "negative" if number < 0 else "zero"
        raise ValidationError(f"{field_name} cannot be {qualifier}, got {amount}")
    return number


def validate_optional_amount(amount: Optional[float], field_name: str = "Amount") -> Optional[float]:
    """Same as ``validate_positive_amount(allow_zero=True)`` but None passes through."""
    if amount is None:
        return None
    return validate_positive_amount(amount, field_name, allow_zero=True)


def validate_balance(amount: float, field_name: str = "Balance") -> float:
    """A balance must be present and numeric; credits (negatives) are allowed."""
    return _as_number(amount, field_name)


def validate_required_string(
    value: Optional[str],
    field_name: str,
    max_length: Optional[int] = None
) -> str:
    """
    Check a mandatory text field such as a sticker number or storage location.

    Returns:
        The value with surrounding whitespace removed

    Raises:
        ValidationError: Missing, blank, not text, or longer than ``max_length``
    """
    text = validate_optional_string(value, field_name, max_length)
    if text is None:
        raise ValidationError(f"{field_name} is required")
    return text


def validate_optional_string(
    value: Any,
    field_name: str,
    max_length: Optional[int] = None
) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text, got {type(value).__name__}")

    text = value.strip()
    if not text:
        return None
    return _within_length(text, field_name, max_length)
