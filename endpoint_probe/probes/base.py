"""Abstract base for transport probes and the shared timed probe lifecycle."""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from endpoint_probe.config import ProbeSettings
from endpoint_probe.formatting import format_elapsed_time
from endpoint_probe.models.result import ProbeResult, TransportKind
from endpoint_probe.precheck import is_under_maintenance

log = logging.getLogger(__name__)

type MaintenanceCheck = Callable[[str], Awaitable[bool]]


class ProbeError(Exception):
    """Raised when a transport fails while a probe is running."""


class StreamClosedError(ProbeError):
    """Raised when the inbound side ends before the deadline."""


class MessageDecodeError(ProbeError):
    """Raised when an inbound message cannot be decoded."""


class RpcError(ProbeError):
    """Raised when a remote call returns an error response."""


@dataclass(frozen=True)
class Subscribed:
    """The backend acknowledged the subscription."""


@dataclass(frozen=True)
class KeepaliveAck:
    """The backend answered a keepalive."""


@dataclass(frozen=True, kw_only=True)
class Detection:
    """One inbound event that counts toward the probe's total.

    ``matches`` is the number of tracked identifiers found in the event, so a
    message referencing two tracked accounts counts twice.
    """

    matches: int = 1
    detail: str = ""


type ProbeEvent = Subscribed | KeepaliveAck | Detection


@dataclass(kw_only=True)
class ProbeTracker:
    """Counters of a single probe run, mutated only by that probe's tasks."""

    clock: Callable[[], float]
    started_at: float = 0.0
    event_count: int = 0
    elapsed: str = ""

    def restart(self) -> None:
        """Start measuring elapsed time from now."""
        self.started_at = self.clock()

    def elapsed_seconds(self) -> int:
        """Return whole seconds since the clock was started."""
        return math.floor(self.clock() - self.started_at)

    def record(self, matches: int) -> None:
        """Count a detection and refresh the elapsed time."""
        self.event_count += matches
        self.elapsed = format_elapsed_time(self.elapsed_seconds())

    def finish(self) -> ProbeResult:
        """Build the result of a probe that reached its deadline."""
        return ProbeResult(
            elapsed=format_elapsed_time(self.elapsed_seconds()),
            event_count=self.event_count,
            failed=False,
        )

    def fail(self, message: str) -> ProbeResult:
        """Build the result of a probe that ended on an error."""
        if self.event_count > 0:
            return ProbeResult(
                elapsed=self.elapsed,
                event_count=self.event_count,
                failed=True,
                message=message,
            )
        return ProbeResult.sentinel(message)


@dataclass(frozen=True, kw_only=True)
class TransportProbe[ConnT](ABC):
    """Abstract base for a timed probe against one transport.

    Subclasses implement the transport specific steps (connect, subscribe,
    inbound events, keepalive, close). The generic type ConnT is the
    connection handle the probe owns for its lifetime.

    The lifecycle in :meth:`run` is shared: an optional maintenance precheck,
    connect, subscribe, then inbound events are consumed (with keepalives sent
    concurrently where the transport needs them) until the deadline fires or
    a transport error occurs. Every exception is converted into a
    :class:`ProbeResult`.
    """

    kind: ClassVar[TransportKind]
    label: ClassVar[str]
    keepalive_interval: ClassVar[float | None] = None
    starts_on_ack: ClassVar[bool] = False

    endpoint: str
    duration: float
    verbose_errors: bool = False
    maintenance_check: MaintenanceCheck | None = is_under_maintenance

    @abstractmethod
    async def connect(self) -> ConnT:
        """Open the transport connection."""

    async def subscribe(self, connection: ConnT) -> None:
        """Register the subscription; transports without one do nothing."""

    @abstractmethod
    def events(self, connection: ConnT) -> AsyncIterator[ProbeEvent]:
        """Yield decoded inbound events in arrival order.

        Raises:
            ProbeError: On a terminal transport or decode error

        """

    async def send_keepalive(self, connection: ConnT) -> None:
        """Send one keepalive frame on the connection."""

    @abstractmethod
    async def close(self, connection: ConnT) -> None:
        """Shut the connection down gracefully."""

    async def run(self) -> ProbeResult:
        """Run the probe to its deadline or first error.

        Returns:
            The normalized result. Never raises except on cancellation.

        """
        log.info("Starting %s probe against %s", self.label, self.endpoint)

        if await self._under_maintenance():
            log.error("%s endpoint is under maintenance, skipping probe", self.label)
            return ProbeResult.sentinel("Endpoint under maintenance")

        tracker = ProbeTracker(clock=asyncio.get_running_loop().time)

        try:
            connection = await self.connect()
        except Exception as e:
            return self._failed(tracker, e)

        try:
            await self.subscribe(connection)
            tracker.restart()
            await self._drive(connection, tracker)
            result = tracker.finish()
        except Exception as e:
            result = self._failed(tracker, e)
        finally:
            await self._close(connection)

        log.info(
            "%s probe finished: events=%d failed=%s",
            self.label,
            result.event_count,
            result.failed,
        )
        return result

    async def _under_maintenance(self) -> bool:
        """Run the precheck, treating any failure of it as available."""
        if self.maintenance_check is None:
            return False
        try:
            return await self.maintenance_check(self.endpoint)
        except Exception as e:
            log.warning(
                "%s maintenance check failed, probing anyway: %s",
                self.label,
                e,
                exc_info=e if self.verbose_errors else None,
            )
            return False

    async def _drive(self, connection: ConnT, tracker: ProbeTracker) -> None:
        """Consume events until the deadline, raising the first task error.

        Both tasks are stopped before returning so that nothing writes to the
        connection once it is being closed.
        """
        stopped = asyncio.Event()
        tasks = [asyncio.create_task(self._consume(connection, tracker))]
        if self.keepalive_interval is not None:
            tasks.append(asyncio.create_task(self._keepalive(connection, stopped)))

        try:
            done, _ = await asyncio.wait(
                tasks, timeout=self.duration, return_when=asyncio.FIRST_EXCEPTION
            )
        finally:
            stopped.set()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if (error := task.exception()) is not None:
                raise error

        log.info("%s probe reached its deadline", self.label)

    async def _consume(self, connection: ConnT, tracker: ProbeTracker) -> None:
        acknowledged = False

        async for event in self.events(connection):
            if isinstance(event, Subscribed):
                if not acknowledged:
                    log.info("%s subscription acknowledged", self.label)
                    if self.starts_on_ack:
                        tracker.restart()
                acknowledged = True
            elif isinstance(event, KeepaliveAck):
                log.info("%s keepalive acknowledged", self.label)
            elif event.matches > 0:
                tracker.record(event.matches)
                log.info(
                    "%s detection: %s (count=%d, active for %s)",
                    self.label,
                    event.detail,
                    tracker.event_count,
                    tracker.elapsed or "0 seconds",
                )

        raise StreamClosedError(f"{self.label} stream ended before the deadline")

    async def _keepalive(self, connection: ConnT, stopped: asyncio.Event) -> None:
        while not stopped.is_set():
            await self.send_keepalive(connection)
            try:
                await asyncio.wait_for(stopped.wait(), timeout=self.keepalive_interval)
            except TimeoutError:
                continue

    async def _close(self, connection: ConnT) -> None:
        try:
            await self.close(connection)
        except Exception as e:
            log.warning("Error while closing %s connection: %s", self.label, e)

    def _failed(self, tracker: ProbeTracker, error: Exception) -> ProbeResult:
        log.error(
            "%s probe failed: %s",
            self.label,
            error,
            exc_info=error if self.verbose_errors else None,
        )
        return tracker.fail(str(error) or type(error).__name__)


@dataclass(frozen=True, kw_only=True)
class PollingProbe[ConnT](TransportProbe[ConnT]):
    """Probe that issues unary calls back to back until the deadline.

    Each successful call counts as one event; the first failing call ends the
    probe and is not retried.
    """

    poll_interval: float = 0.0

    @abstractmethod
    async def call(self, connection: ConnT) -> str:
        """Issue one request and return a short description of the response."""

    async def events(self, connection: ConnT) -> AsyncIterator[ProbeEvent]:
        """Yield one detection per successful call."""
        while True:
            detail = await self.call(connection)
            yield Detection(matches=1, detail=detail)
            await asyncio.sleep(self.poll_interval)


def common_options(settings: ProbeSettings) -> dict[str, Any]:
    """Return the probe arguments shared by every transport."""
    return {
        "duration": settings.test_duration,
        "verbose_errors": settings.verbose_errors,
        "maintenance_check": is_under_maintenance
        if settings.maintenance_check
        else None,
    }


def api_token(settings: ProbeSettings) -> str | None:
    """Return the plain API token, if one is configured."""
    if settings.grpc_api_key is None:
        return None
    return settings.grpc_api_key.get_secret_value()
