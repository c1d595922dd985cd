"""Geyser unary call probe."""

from dataclasses import dataclass

from endpoint_probe.clients.geyser import GeyserClient, GeyserClientFactory
from endpoint_probe.clients.loading import load_geyser_client_factory
from endpoint_probe.config import ProbeSettings
from endpoint_probe.probes.base import PollingProbe, RpcError, api_token, common_options


@dataclass(frozen=True, kw_only=True)
class GrpcCallsProbe(PollingProbe[GeyserClient]):
    """Fetch the latest blockhash repeatedly until the deadline."""

    kind = "grpc-calls"
    label = "gRPC Calls"

    token: str | None = None
    commitment: str = "confirmed"
    client_key: str = "yellowstone"
    client_factory: GeyserClientFactory | None = None

    @classmethod
    def from_settings(cls, settings: ProbeSettings) -> "GrpcCallsProbe":
        """Create the probe from run settings."""
        return cls(
            **common_options(settings),
            endpoint=settings.grpc_url or "",
            token=api_token(settings),
            commitment=settings.commitment,
            client_key=settings.geyser_client,
        )

    async def connect(self) -> GeyserClient:
        """Create the Geyser client."""
        factory = self.client_factory or load_geyser_client_factory(self.client_key)
        return factory(self.endpoint, self.token)

    async def call(self, connection: GeyserClient) -> str:
        """Request the latest blockhash."""
        response = await connection.get_latest_blockhash(self.commitment)
        if not (blockhash := response.get("blockhash")):
            raise RpcError(f"Latest blockhash response has no blockhash: {response!r}")
        return f"blockhash={blockhash}"

    async def close(self, connection: GeyserClient) -> None:
        """Close the client channel."""
        await connection.close()
