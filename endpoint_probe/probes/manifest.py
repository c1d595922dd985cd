"""Probe manifests binding a transport to its settings."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from endpoint_probe.config import ProbeSettings
from endpoint_probe.models.result import TransportKind
from endpoint_probe.probes.base import TransportProbe
from endpoint_probe.probes.grpc_calls import GrpcCallsProbe
from endpoint_probe.probes.grpc_stream import GrpcStreamProbe
from endpoint_probe.probes.http_calls import HttpCallsProbe
from endpoint_probe.probes.websocket import WebSocketProbe


@dataclass(frozen=True, kw_only=True)
class ProbeManifest:
    """Manifest describing one transport probe.

    The manifest tells the orchestrator whether the transport is enabled for
    a run and how to build its probe, so probes are only created when needed.
    """

    kind: TransportKind
    label: str
    enabled: Callable[[ProbeSettings], bool]
    probe_factory: Callable[[ProbeSettings], TransportProbe[Any]]


PROBE_MANIFESTS: Sequence[ProbeManifest] = (
    ProbeManifest(
        kind=GrpcStreamProbe.kind,
        label=GrpcStreamProbe.label,
        enabled=lambda settings: settings.test_grpc_stream,
        probe_factory=GrpcStreamProbe.from_settings,
    ),
    ProbeManifest(
        kind=GrpcCallsProbe.kind,
        label=GrpcCallsProbe.label,
        enabled=lambda settings: settings.test_grpc_calls,
        probe_factory=GrpcCallsProbe.from_settings,
    ),
    ProbeManifest(
        kind=WebSocketProbe.kind,
        label=WebSocketProbe.label,
        enabled=lambda settings: settings.test_websocket_stream,
        probe_factory=WebSocketProbe.from_settings,
    ),
    ProbeManifest(
        kind=HttpCallsProbe.kind,
        label=HttpCallsProbe.label,
        enabled=lambda settings: settings.test_http_calls,
        probe_factory=HttpCallsProbe.from_settings,
    ),
)
