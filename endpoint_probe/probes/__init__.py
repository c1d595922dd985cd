"""Transport probes, in the order a run executes them."""

from endpoint_probe.probes.base import PollingProbe, ProbeError, TransportProbe
from endpoint_probe.probes.grpc_calls import GrpcCallsProbe
from endpoint_probe.probes.grpc_stream import GrpcStreamProbe
from endpoint_probe.probes.http_calls import HttpCallsProbe
from endpoint_probe.probes.manifest import PROBE_MANIFESTS, ProbeManifest
from endpoint_probe.probes.websocket import WebSocketProbe

__all__ = [
    "PROBE_MANIFESTS",
    "GrpcCallsProbe",
    "GrpcStreamProbe",
    "HttpCallsProbe",
    "PollingProbe",
    "ProbeError",
    "ProbeManifest",
    "TransportProbe",
    "WebSocketProbe",
]
