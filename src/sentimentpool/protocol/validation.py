"""
sentimentpool/protocol/validation.py

Range checks applied before any state is touched.
"""

from ..config import MIN_SCORE, MAX_SCORE
from ..errors import ValidationError, ErrorCode


def is_valid_score(value: int) -> bool:
    """True when value lies in the closed score range [1, 100]."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_SCORE <= value <= MAX_SCORE


def require_valid_score(value: int, field_name: str = "score") -> int:
    """Return value unchanged or raise ValidationError (code 101)."""
    if not is_valid_score(value):
        raise ValidationError(
            f"{field_name} must be an integer in [{MIN_SCORE}, {MAX_SCORE}], got {value!r}",
            ErrorCode.INVALID_SENTIMENT,
        )
    return value
