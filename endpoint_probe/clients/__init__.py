"""Clients for the external streaming RPC SDK."""

from endpoint_probe.clients.geyser import (
    GeyserClient,
    GeyserClientFactory,
    GeyserStream,
)
from endpoint_probe.clients.loading import (
    GeyserClientNotFoundError,
    load_geyser_client_factory,
)

__all__ = [
    "GeyserClient",
    "GeyserClientFactory",
    "GeyserClientNotFoundError",
    "GeyserStream",
    "load_geyser_client_factory",
]
