"""Loading of Geyser client factories from entry points."""

from importlib.metadata import entry_points

from endpoint_probe.clients.geyser import GeyserClientFactory

ENTRY_POINT_GROUP = "endpoint_probe.geyser_clients"


class GeyserClientNotFoundError(Exception):
    """Raised when no Geyser client is registered under a key."""


def load_geyser_client_factory(key: str) -> GeyserClientFactory:
    """Load a Geyser client factory by key.

    Args:
        key: The client key as registered in pyproject.toml of the package
             providing the SDK binding (e.g., "yellowstone")

    Returns:
        A callable taking the endpoint and optional token and returning a
        connected client

    Raises:
        GeyserClientNotFoundError: If no client with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            factory: GeyserClientFactory = entry.load()
            return factory

    available = [e.name for e in entries]
    raise GeyserClientNotFoundError(
        f"Geyser client '{key}' not found. Available clients: {available}"
    )
