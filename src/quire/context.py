"""Per-request deadline and cancellation."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from quire.errors import TransformationCancelled


@dataclass
class RequestContext:
    """Caller-supplied deadline / cancellation flag for one request.

    Attributes:
        deadline: Absolute ``time.monotonic()`` value after which the request
            is abandoned, or None for no deadline.
        cancel_event: Set by the caller to cancel the request.
    """

    deadline: float | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def with_timeout(cls, seconds: float) -> RequestContext:
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self.cancel_event.set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative), or None."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def cancelled(self) -> bool:
        if self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self) -> None:
        """Raise TransformationCancelled if the request was cancelled or timed out."""
        if self.cancel_event.is_set():
            raise TransformationCancelled("Request was cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise TransformationCancelled("Request deadline exceeded")
