"""
Data models for token bucket consumption.
"""

from dataclasses import dataclass

from .errors import BadArgument


@dataclass(frozen=True)
class ConsumptionRequest:
    """Ask for ``n`` tokens from the bucket identified by ``(resource_key, interval)``."""
    resource_key: str
    interval: int
    capacity: int
    n: int = 1

    def validate(self) -> None:
        """Raise BadArgument if any field violates its precondition."""
        problems = []
        if not isinstance(self.resource_key, str) or not self.resource_key:
            problems.append("resource_key must be a non-empty string")
        for name in ("interval", "capacity", "n"):
            value = getattr(self, name)
            # bool is an int subclass but never a meaningful count
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                problems.append(f"{name} must be an integer >= 1")

        if problems:
            raise BadArgument(
                "; ".join(problems),
                details={
                    "resource_key": self.resource_key,
                    "interval": self.interval,
                    "capacity": self.capacity,
                    "n": self.n,
                },
            )


@dataclass(frozen=True)
class BucketState:
    """Token bucket state as persisted in the store."""
    tokens: int
    last_fill_at: int


@dataclass(frozen=True)
class Denial:
    """State of the first resource that could not admit its request."""
    resource_key: str
    interval: int
    capacity: int
    current_tokens: int
    last_fill_at: int
