"""JSON-RPC over HTTP polling probe."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import aiohttp

from endpoint_probe.config import ProbeSettings
from endpoint_probe.probes.base import PollingProbe, RpcError, common_options

REQUEST_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, kw_only=True)
class HttpCallsProbe(PollingProbe[aiohttp.ClientSession]):
    """Fetch signatures for the first tracked account until the deadline."""

    kind = "http-calls"
    label = "HTTP Calls"

    accounts: Sequence[str]
    commitment: str = "confirmed"

    @classmethod
    def from_settings(cls, settings: ProbeSettings) -> "HttpCallsProbe":
        """Create the probe from run settings."""
        return cls(
            **common_options(settings),
            endpoint=settings.http_url or "",
            accounts=settings.copy_accounts,
            commitment=settings.commitment,
        )

    async def connect(self) -> aiohttp.ClientSession:
        """Open the HTTP session."""
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS),
            headers={"Content-Type": "application/json"},
        )

    async def call(self, connection: aiohttp.ClientSession) -> str:
        """Request the signatures for the first tracked account."""
        account = self.accounts[0]
        result = await self.rpc(
            connection,
            "getSignaturesForAddress",
            [account, {"commitment": self.commitment}],
        )
        if not isinstance(result, list):
            raise RpcError(f"Unexpected getSignaturesForAddress result: {result!r}")

        latest = result[0].get("signature") if result else None
        return f"account={account} latest_signature={latest}"

    async def rpc(
        self, session: aiohttp.ClientSession, method: str, params: Sequence[Any]
    ) -> Any:
        """Issue one JSON-RPC request and return its result member."""
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": list(params),
        }

        async with session.post(self.endpoint, json=payload) as response:
            if response.status != 200:
                text = await response.text()
                raise RpcError(f"{method} failed: {response.status} {text}")
            data = await response.json(content_type=None)

        if "error" in data:
            raise RpcError(f"{method} failed: {data['error']}")
        return data.get("result")

    async def close(self, connection: aiohttp.ClientSession) -> None:
        """Close the HTTP session."""
        await connection.close()
