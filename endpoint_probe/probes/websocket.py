"""Solana logs subscription probe over WebSocket."""

import json
import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import aiohttp

from endpoint_probe.config import ProbeSettings
from endpoint_probe.probes.base import (
    Detection,
    MessageDecodeError,
    ProbeError,
    ProbeEvent,
    RpcError,
    Subscribed,
    TransportProbe,
    common_options,
)

log = logging.getLogger(__name__)

NOTIFICATION_METHOD = "logsNotification"


@dataclass(frozen=True, kw_only=True)
class WebSocketConnection:
    """Session and socket owned by one probe."""

    session: aiohttp.ClientSession
    socket: aiohttp.ClientWebSocketResponse


@dataclass(frozen=True, kw_only=True)
class WebSocketProbe(TransportProbe[WebSocketConnection]):
    """Subscribe to logs mentioning each tracked account.

    ``logsSubscribe`` accepts a single address in ``mentions``, so one
    subscription is opened per account. Request ids are the 1-based account
    positions, which lets acknowledgments be mapped back to accounts.
    """

    kind = "websocket"
    label = "WebSocket Stream"
    starts_on_ack = True

    accounts: Sequence[str]
    commitment: str = "finalized"

    @classmethod
    def from_settings(cls, settings: ProbeSettings) -> "WebSocketProbe":
        """Create the probe from run settings."""
        return cls(
            **common_options(settings),
            endpoint=settings.ws_url or "",
            accounts=settings.copy_accounts,
            commitment=settings.ws_commitment,
        )

    async def connect(self) -> WebSocketConnection:
        """Open the WebSocket connection."""
        session = aiohttp.ClientSession()
        try:
            socket = await session.ws_connect(self.endpoint)
        except Exception:
            await session.close()
            raise
        log.info("WebSocket connection opened")
        return WebSocketConnection(session=session, socket=socket)

    async def subscribe(self, connection: WebSocketConnection) -> None:
        """Send one logs subscription per tracked account."""
        for request_id, account in enumerate(self.accounts, start=1):
            await connection.socket.send_json(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "method": "logsSubscribe",
                    "params": [
                        {"mentions": [account]},
                        {"commitment": self.commitment},
                    ],
                }
            )
        log.info("Subscription request(s) sent for %d account(s)", len(self.accounts))

    async def events(
        self, connection: WebSocketConnection
    ) -> AsyncIterator[ProbeEvent]:
        """Decode socket messages into probe events."""
        requests = dict(enumerate(self.accounts, start=1))
        subscriptions: dict[Any, str] = {}

        async for message in connection.socket:
            if message.type == aiohttp.WSMsgType.ERROR:
                raise ProbeError(f"WebSocket error: {connection.socket.exception()}")
            if message.type != aiohttp.WSMsgType.TEXT:
                log.debug("Ignoring WebSocket message of type %s", message.type)
                continue

            payload = decode_message(message.data)

            if "error" in payload:
                raise RpcError(f"Subscription rejected: {payload['error']}")

            if "result" in payload and "id" in payload:
                account = requests.get(payload["id"], self.accounts[0])
                subscriptions[payload["result"]] = account
                yield Subscribed()
                continue

            if payload.get("method") != NOTIFICATION_METHOD:
                continue

            try:
                params = payload["params"]
                value = params["result"]["value"]
                error, signature = value.get("err"), value.get("signature")
                account = subscriptions.get(
                    params.get("subscription"), self.accounts[0]
                )
            except (AttributeError, KeyError, TypeError) as e:
                raise MessageDecodeError(f"Malformed logs notification: {e!r}") from e

            if error is not None:
                log.warning("Error in detected transaction %s, skipping", signature)
                continue

            yield Detection(
                matches=1,
                detail=f"account={account} signature={signature}",
            )

    async def close(self, connection: WebSocketConnection) -> None:
        """Close the socket and its session."""
        try:
            await connection.socket.close()
        finally:
            await connection.session.close()


def decode_message(data: str) -> Mapping[str, Any]:
    """Parse a JSON-RPC message.

    Raises:
        MessageDecodeError: If the text is not a JSON object

    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Invalid WebSocket message: {e}") from e
    if not isinstance(payload, dict):
        raise MessageDecodeError(f"Unexpected WebSocket message: {payload!r}")
    return payload
