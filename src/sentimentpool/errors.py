"""
sentimentpool/errors.py

Error codes and exception taxonomy for the sentiment engine.

The numeric codes are stable and shared with external consumers:

| Code | Name               | Raised by                    |
|------|--------------------|------------------------------|
| 100  | OWNER_ONLY         | finalize (non-authority)     |
| 101  | INVALID_SENTIMENT  | submit, finalize             |
| 102  | ALREADY_SUBMITTED  | submit, claim (double claim) |
| 103  | INSUFFICIENT_STAKE | submit (custody refused)     |
| 104  | PERIOD_NOT_ENDED   | reserved                     |
| 105  | NO_SUBMISSION      | claim, finalize              |
| 106  | ALREADY_FINALIZED  | finalize                     |
| 107  | NOT_FINALIZED      | claim                        |
| 108  | CUSTODY_FAILED     | submit, claim (custody)      |
"""

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Stable numeric error codes."""
    OWNER_ONLY = 100
    INVALID_SENTIMENT = 101
    ALREADY_SUBMITTED = 102
    INSUFFICIENT_STAKE = 103
    PERIOD_NOT_ENDED = 104
    NO_SUBMISSION = 105
    ALREADY_FINALIZED = 106
    NOT_FINALIZED = 107
    CUSTODY_FAILED = 108


class SentimentPoolError(Exception):
    """Base class for every engine error. Carries a stable code."""

    default_code: ErrorCode = ErrorCode.INVALID_SENTIMENT

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code) if code is not None else self.default_code

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": int(self.code),
            "name": self.code.name.lower(),
        }


class AuthorizationError(SentimentPoolError):
    """Caller lacks the required authority."""
    default_code = ErrorCode.OWNER_ONLY


class ValidationError(SentimentPoolError):
    """A value is outside its declared domain."""
    default_code = ErrorCode.INVALID_SENTIMENT


class StateConflictError(SentimentPoolError):
    """Operation would repeat a one-time transition."""
    default_code = ErrorCode.ALREADY_SUBMITTED


class NotFoundError(SentimentPoolError):
    """Referenced submission or aggregate does not exist."""
    default_code = ErrorCode.NO_SUBMISSION


class PreconditionError(SentimentPoolError):
    """A required prior transition has not happened yet."""
    default_code = ErrorCode.NOT_FINALIZED


class CustodyError(SentimentPoolError):
    """The value custody collaborator refused to move value."""
    default_code = ErrorCode.CUSTODY_FAILED
