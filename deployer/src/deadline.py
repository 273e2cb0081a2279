"""
Caller-supplied deadlines for blocking operations.
"""

import time
from typing import Optional

from deployer.src.errors import DeadlineExceeded


class Deadline:
    """A point in monotonic time after which operations must stop."""

    def __init__(self, seconds: float, clock=time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self.expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    def check(self, operation: str):
        if self.expired:
            raise DeadlineExceeded(operation)

    def timeout_for(self, default: Optional[float] = None) -> Optional[float]:
        """Subprocess timeout: the smaller of `default` and what is left."""
        remaining = self.remaining()
        if default is None:
            return remaining
        return min(default, remaining)


def timeout_for(deadline: Optional[Deadline], default: Optional[float]) -> Optional[float]:
    if deadline is None:
        return default
    return deadline.timeout_for(default)
