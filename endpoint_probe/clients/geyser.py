"""Protocols describing the Geyser streaming RPC SDK used by the gRPC probes.

The SDK itself is an external collaborator. Requests and updates are plain
mappings shaped like the Yellowstone ``SubscribeRequest`` and
``SubscribeUpdate`` messages, with binary fields left as ``bytes``.
"""

from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any, Protocol


class GeyserStream(Protocol):
    """Bidirectional subscription stream."""

    async def write(self, request: Mapping[str, Any]) -> None:
        """Send a request, returning once the write is acknowledged."""
        ...

    def __aiter__(self) -> AsyncIterator[Mapping[str, Any]]:
        """Iterate inbound updates until the stream ends."""
        ...

    def cancel(self) -> None:
        """Cancel the stream."""
        ...


class GeyserClient(Protocol):
    """Connected Geyser client."""

    async def subscribe(self) -> GeyserStream:
        """Open a subscription stream."""
        ...

    async def get_latest_blockhash(self, commitment: str) -> Mapping[str, Any]:
        """Return the latest blockhash response, containing ``blockhash``."""
        ...

    async def close(self) -> None:
        """Close the underlying channel."""
        ...


type GeyserClientFactory = Callable[[str, str | None], GeyserClient]
