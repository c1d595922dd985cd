"""Geyser subscription stream probe."""

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import base58

from endpoint_probe.clients.geyser import (
    GeyserClient,
    GeyserClientFactory,
    GeyserStream,
)
from endpoint_probe.clients.loading import load_geyser_client_factory
from endpoint_probe.config import KEEPALIVE_INTERVAL_SECONDS, ProbeSettings
from endpoint_probe.probes.base import (
    Detection,
    KeepaliveAck,
    MessageDecodeError,
    ProbeEvent,
    TransportProbe,
    api_token,
    common_options,
)

log = logging.getLogger(__name__)

TRANSACTION_FILTER = "txReq"

COMMITMENT_LEVELS: Mapping[str, int] = {
    "processed": 0,
    "confirmed": 1,
    "finalized": 2,
}

EMPTY_FILTERS: Mapping[str, Any] = {
    "accounts": {},
    "accounts_data_slice": [],
    "transactions": {},
    "transactions_status": {},
    "blocks": {},
    "blocks_meta": {},
    "entry": {},
    "slots": {},
}

PING_REQUEST: Mapping[str, Any] = {**EMPTY_FILTERS, "ping": {"id": 1}}


def encode_key(key: bytes | str) -> str:
    """Return the base58 form of an account key."""
    if isinstance(key, str):
        return key
    return base58.b58encode(bytes(key)).decode("ascii")


def build_subscribe_request(
    accounts: Sequence[str], commitment: str
) -> Mapping[str, Any]:
    """Build the transaction subscription naming the tracked accounts."""
    return {
        **EMPTY_FILTERS,
        "commitment": COMMITMENT_LEVELS[commitment],
        "transactions": {
            TRANSACTION_FILTER: {
                "vote": None,
                "failed": None,
                "signature": None,
                "account_include": list(accounts),
                "account_exclude": [],
                "account_required": [],
            }
        },
    }


@dataclass(frozen=True, kw_only=True)
class StreamConnection:
    """Client and open subscription stream owned by one probe."""

    client: GeyserClient
    stream: GeyserStream


@dataclass(frozen=True, kw_only=True)
class GrpcStreamProbe(TransportProbe[StreamConnection]):
    """Subscribe to transactions mentioning the tracked accounts."""

    kind = "grpc-stream"
    label = "gRPC Stream"
    keepalive_interval = KEEPALIVE_INTERVAL_SECONDS

    token: str | None = None
    accounts: Sequence[str]
    commitment: str = "confirmed"
    client_key: str = "yellowstone"
    client_factory: GeyserClientFactory | None = None

    @classmethod
    def from_settings(cls, settings: ProbeSettings) -> "GrpcStreamProbe":
        """Create the probe from run settings."""
        return cls(
            **common_options(settings),
            endpoint=settings.grpc_url or "",
            token=api_token(settings),
            accounts=settings.copy_accounts,
            commitment=settings.commitment,
            client_key=settings.geyser_client,
        )

    async def connect(self) -> StreamConnection:
        """Connect the client and open the subscription stream."""
        factory = self.client_factory or load_geyser_client_factory(self.client_key)
        client = factory(self.endpoint, self.token)
        try:
            stream = await client.subscribe()
        except Exception:
            await client.close()
            raise
        return StreamConnection(client=client, stream=stream)

    async def subscribe(self, connection: StreamConnection) -> None:
        """Send the transaction filter for the tracked accounts."""
        await connection.stream.write(
            build_subscribe_request(self.accounts, self.commitment)
        )
        log.info("Subscribed to transactions for %d account(s)", len(self.accounts))

    async def send_keepalive(self, connection: StreamConnection) -> None:
        """Write a ping request on the stream."""
        await connection.stream.write(PING_REQUEST)

    async def events(self, connection: StreamConnection) -> AsyncIterator[ProbeEvent]:
        """Decode stream updates into probe events."""
        async for update in connection.stream:
            if update.get("pong"):
                yield KeepaliveAck()
                continue

            if TRANSACTION_FILTER not in update.get("filters", ()):
                continue

            account_keys, signature = self._decode_transaction(update)
            for account in account_keys:
                if account in self.accounts:
                    yield Detection(
                        matches=1,
                        detail=f"account={account} signature={signature}",
                    )

    async def close(self, connection: StreamConnection) -> None:
        """Cancel the stream and release the client."""
        connection.stream.cancel()
        await connection.client.close()

    def _decode_transaction(
        self, update: Mapping[str, Any]
    ) -> tuple[Sequence[str], str]:
        try:
            info = update["transaction"]["transaction"]
            keys = info["transaction"]["message"]["account_keys"]
            return [encode_key(key) for key in keys], encode_key(info["signature"])
        except (KeyError, TypeError, ValueError) as e:
            raise MessageDecodeError(f"Malformed transaction update: {e!r}") from e
