"""Models for probe results."""

from dataclasses import dataclass
from typing import Literal

type TransportKind = Literal["grpc-stream", "grpc-calls", "websocket", "http-calls"]
type Outcome = Literal["success", "partial", "failure"]

NO_DURATION = "-1"
NO_EVENTS = -1


@dataclass(frozen=True, kw_only=True)
class ProbeResult:
    """Normalized outcome of a single probe run.

    ``elapsed`` is ``"-1"`` and ``event_count`` is ``-1`` when no useful
    measurement was obtained. A failed probe that observed events before the
    error keeps its elapsed time and count.
    """

    elapsed: str
    event_count: int
    failed: bool
    message: str | None = None

    def __post_init__(self) -> None:
        if self.event_count < NO_EVENTS:
            raise ValueError(f"Invalid event count: {self.event_count}")
        if self.event_count == NO_EVENTS and not self.failed:
            raise ValueError("A result without events must be marked as failed")
        if self.elapsed == NO_DURATION and self.event_count != NO_EVENTS:
            raise ValueError("A result without duration cannot carry events")

    @classmethod
    def sentinel(cls, message: str | None = None) -> "ProbeResult":
        """Return the fixed result signaling no useful measurement."""
        return cls(
            elapsed=NO_DURATION, event_count=NO_EVENTS, failed=True, message=message
        )

    @property
    def outcome(self) -> Outcome:
        """Classify the result for display."""
        if self.event_count <= 0 and self.failed:
            return "failure"
        if self.failed:
            return "partial"
        return "success"
