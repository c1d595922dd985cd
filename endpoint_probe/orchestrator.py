"""Probe orchestrator running the enabled transports of one run."""

import asyncio
import logging
import math
import sys
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass

from endpoint_probe.config import ProbeSettings
from endpoint_probe.formatting import format_elapsed_time
from endpoint_probe.models.result import ProbeResult, TransportKind
from endpoint_probe.probes.manifest import PROBE_MANIFESTS, ProbeManifest

log = logging.getLogger(__name__)

type Countdown = Callable[[str, int], Awaitable[None]]


@dataclass(frozen=True, kw_only=True)
class RunReport:
    """Results of one run, keyed by transport in execution order."""

    settings: ProbeSettings
    results: Mapping[TransportKind, ProbeResult]
    labels: Mapping[TransportKind, str]
    total_elapsed: str


async def countdown_in_place(message: str, seconds: int) -> None:
    """Write a once-per-second countdown on a single stderr line."""
    for remaining in range(seconds, -1, -1):
        sys.stderr.write(f"\r{message} in {remaining}s...")
        sys.stderr.flush()
        if remaining:
            await asyncio.sleep(1)
    sys.stderr.write("\n")


@dataclass(frozen=True, kw_only=True)
class ProbeOrchestrator:
    """Runs every enabled probe and collects one result per probe.

    A failing probe never stops the run: any exception escaping a probe is
    recorded as the sentinel failure result.
    """

    settings: ProbeSettings
    manifests: Sequence[ProbeManifest] = PROBE_MANIFESTS
    countdown: Countdown = countdown_in_place

    async def run(self) -> RunReport:
        """Run the enabled probes.

        Probes run one at a time, each after a countdown, unless the settings
        ask for concurrent execution.

        Returns:
            The run report, with results in the fixed transport order

        """
        loop = asyncio.get_running_loop()
        started_at = loop.time()
        enabled = [m for m in self.manifests if m.enabled(self.settings)]
        results: dict[TransportKind, ProbeResult] = {}

        if not enabled:
            log.info("No probes enabled")
        elif self.settings.concurrent:
            log.info("Running %d probe(s) concurrently...", len(enabled))
            outcomes = await asyncio.gather(
                *(self._run_probe(manifest) for manifest in enabled)
            )
            results.update(
                (manifest.kind, result) for manifest, result in zip(enabled, outcomes)
            )
        else:
            for manifest in enabled:
                await self.countdown(
                    f"Starting {manifest.label} test", self.settings.test_interval
                )
                results[manifest.kind] = await self._run_probe(manifest)

        return RunReport(
            settings=self.settings,
            results=results,
            labels={manifest.kind: manifest.label for manifest in enabled},
            total_elapsed=format_elapsed_time(math.floor(loop.time() - started_at)),
        )

    async def _run_probe(self, manifest: ProbeManifest) -> ProbeResult:
        """Build and run one probe, converting escaped exceptions to results."""
        try:
            probe = manifest.probe_factory(self.settings)
            result = await probe.run()
        except Exception as e:
            log.error(
                "%s probe crashed: %s",
                manifest.label,
                e,
                exc_info=e if self.settings.verbose_errors else None,
            )
            return ProbeResult.sentinel(str(e) or type(e).__name__)

        if result.failed:
            log.error(
                "%s encountered an error, continuing with other endpoint tests...",
                manifest.label,
            )
        else:
            log.info("%s test completed!", manifest.label)
        return result
