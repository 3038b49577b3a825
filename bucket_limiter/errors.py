"""
Error types for the bucket limiter.
"""

from typing import Dict, Any, Optional


class LimiterException(Exception):
    """Base exception for bucket limiter failures."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict for logs and API payloads."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(LimiterException):
    """Invalid limiter configuration."""

    def __init__(self, message: str = "Invalid limiter configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class ConsumeError(LimiterException):
    """Base class for everything a consumption call can fail with."""


class BadArgument(ConsumeError):
    """A consumption request violates a precondition; no store call was made."""

    def __init__(self, message: str = "Bad argument", details: Optional[Dict[str, Any]] = None):
        super().__init__("BAD_ARGUMENT", message, details)


class Denied(ConsumeError):
    """The batch was evaluated and refused because a resource ran out of tokens.

    Carries the persisted state of the first resource that failed to admit.
    """

    def __init__(self, denial):
        self.denial = denial
        super().__init__(
            "DENIED",
            f"Not enough tokens for resource {denial.resource_key!r}",
            {
                "resource_key": denial.resource_key,
                "interval": denial.interval,
                "capacity": denial.capacity,
                "current_tokens": denial.current_tokens,
                "last_fill_at": denial.last_fill_at,
            },
        )

    @property
    def resource_key(self) -> str:
        return self.denial.resource_key

    @property
    def interval(self) -> int:
        return self.denial.interval

    @property
    def capacity(self) -> int:
        return self.denial.capacity

    @property
    def current_tokens(self) -> int:
        return self.denial.current_tokens

    @property
    def last_fill_at(self) -> int:
        return self.denial.last_fill_at


class StoreError(ConsumeError):
    """The backing store or its connection failed."""

    def __init__(self, message: str = "Store error", cause: Optional[BaseException] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.cause = cause
        details = dict(details or {})
        if cause is not None:
            details.setdefault("cause", repr(cause))
        super().__init__("STORE_ERROR", message, details)
