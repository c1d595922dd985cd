"""Tests for the Geyser subscription stream probe."""

from collections.abc import AsyncIterator
from unittest.mock import patch

import pytest

from endpoint_probe.config import CLOCK_SYSVAR
from endpoint_probe.probes.base import Detection, KeepaliveAck, MessageDecodeError
from endpoint_probe.probes.grpc_stream import (
    PING_REQUEST,
    GrpcStreamProbe,
    StreamConnection,
    build_subscribe_request,
    encode_key,
)
from endpoint_probe.testing.factories import ProbeSettingsFactory
from endpoint_probe.testing.geyser import (
    PONG_UPDATE,
    FakeGeyserClient,
    FakeGeyserStream,
    transaction_update,
)

OTHER_ACCOUNT = "Vote111111111111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


def make_probe(client: FakeGeyserClient, **kwargs: object) -> GrpcStreamProbe:
    """Create a probe bound to a fake client."""
    options: dict[str, object] = {
        "endpoint": "https://grpc.example.com",
        "duration": 0.05,
        "maintenance_check": None,
        "token": "x-token",
        "accounts": (CLOCK_SYSVAR, TOKEN_PROGRAM),
        "client_factory": client.factory,
    }
    options.update(kwargs)
    return GrpcStreamProbe(**options)  # type: ignore[arg-type]


async def collect(
    probe: GrpcStreamProbe, client: FakeGeyserClient
) -> list[object]:
    """Drain the events of the probe's stream."""
    connection = StreamConnection(client=client, stream=client.stream)
    events: AsyncIterator[object] = probe.events(connection)
    return [event async for event in events]


def test_encode_key_handles_bytes_and_text() -> None:
    """Encodes binary keys to base58 and passes text through."""
    assert encode_key(bytes(32)) == "11111111111111111111111111111111"
    assert encode_key(CLOCK_SYSVAR) == CLOCK_SYSVAR


def test_subscribe_request_filters_tracked_accounts() -> None:
    """Builds a transaction filter naming the tracked accounts."""
    request = build_subscribe_request([CLOCK_SYSVAR], "finalized")

    assert request["commitment"] == 2
    assert request["transactions"]["txReq"]["account_include"] == [CLOCK_SYSVAR]
    assert request["accounts"] == {}
    assert "ping" not in request


class TestEvents:
    """Tests for update decoding."""

    async def test_counts_each_tracked_account(self) -> None:
        """A transaction touching two tracked accounts counts twice."""
        client = FakeGeyserClient(
            stream=FakeGeyserStream(
                updates=[
                    transaction_update([CLOCK_SYSVAR, OTHER_ACCOUNT, TOKEN_PROGRAM]),
                    PONG_UPDATE,
                ],
                hold_open=False,
            )
        )

        events = await collect(make_probe(client), client)

        detections = [e for e in events if isinstance(e, Detection)]
        assert len(detections) == 2
        assert CLOCK_SYSVAR in detections[0].detail
        assert TOKEN_PROGRAM in detections[1].detail
        assert isinstance(events[-1], KeepaliveAck)

    async def test_ignores_untracked_updates(self) -> None:
        """Updates without the transaction filter are skipped."""
        client = FakeGeyserClient(
            stream=FakeGeyserStream(
                updates=[{"filters": ["slots"], "slot": {"slot": 1}}],
                hold_open=False,
            )
        )

        assert await collect(make_probe(client), client) == []

    async def test_malformed_transaction_raises(self) -> None:
        """A transaction update missing its keys is a decode error."""
        client = FakeGeyserClient(
            stream=FakeGeyserStream(
                updates=[{"filters": ["txReq"], "transaction": {}}],
                hold_open=False,
            )
        )

        with pytest.raises(MessageDecodeError):
            await collect(make_probe(client), client)


class TestRun:
    """Tests for the full stream probe lifecycle."""

    async def test_subscribes_pings_and_counts(self) -> None:
        """Sends the filter and a ping, then counts matches until the deadline."""
        client = FakeGeyserClient(
            stream=FakeGeyserStream(
                updates=[transaction_update([CLOCK_SYSVAR]), PONG_UPDATE]
            )
        )

        result = await make_probe(client).run()

        assert result.failed is False
        assert result.event_count == 1
        assert client.connections == [("https://grpc.example.com", "x-token")]
        assert client.stream.written[0]["transactions"]["txReq"]["account_include"] == [
            CLOCK_SYSVAR,
            TOKEN_PROGRAM,
        ]
        assert client.stream.written[1] == PING_REQUEST
        assert client.stream.cancelled is True
        assert client.closed is True

    async def test_stream_error_after_matches_is_partial(self) -> None:
        """A stream error keeps earlier detections."""
        client = FakeGeyserClient(
            stream=FakeGeyserStream(
                updates=[
                    transaction_update([CLOCK_SYSVAR, TOKEN_PROGRAM]),
                    ConnectionError("14 UNAVAILABLE"),
                ]
            )
        )

        result = await make_probe(client, duration=5.0).run()

        assert result.failed is True
        assert result.event_count == 2
        assert result.elapsed != "-1"
        assert client.stream.cancelled is True

    async def test_subscribe_failure_is_sentinel(self) -> None:
        """Failing to open the stream yields the sentinel and closes the client."""
        client = FakeGeyserClient(subscribe_error=PermissionError("unauthenticated"))

        result = await make_probe(client).run()

        assert (result.elapsed, result.event_count, result.failed) == ("-1", -1, True)
        assert client.closed is True

    async def test_filter_write_failure_is_sentinel(self) -> None:
        """Failing to send the subscription yields the sentinel."""
        client = FakeGeyserClient(stream=FakeGeyserStream(max_writes=0))

        result = await make_probe(client).run()

        assert result.event_count == -1
        assert result.failed is True

    async def test_ping_failure_is_fatal(self) -> None:
        """A failed keepalive write ends the probe."""
        client = FakeGeyserClient(
            stream=FakeGeyserStream(
                updates=[transaction_update([CLOCK_SYSVAR])], max_writes=1
            )
        )

        result = await make_probe(client, duration=5.0).run()

        assert result.failed is True
        assert result.message == "write after close"

    async def test_missing_client_binding_is_sentinel(self) -> None:
        """Without an installed SDK binding the probe fails at connect."""
        with patch(
            "endpoint_probe.clients.loading.entry_points", return_value=[]
        ):
            result = await GrpcStreamProbe(
                endpoint="https://grpc.example.com",
                duration=0.05,
                maintenance_check=None,
                accounts=(CLOCK_SYSVAR,),
            ).run()

        assert result.failed is True
        assert result.message is not None
        assert "not found" in result.message


def test_from_settings() -> None:
    """Builds the probe from run settings."""
    settings = ProbeSettingsFactory.build(
        grpc_url="https://grpc.example.com",
        test_duration=30,
        commitment="processed",
        geyser_client="yellowstone",
    )

    probe = GrpcStreamProbe.from_settings(settings)

    assert probe.endpoint == "https://grpc.example.com"
    assert probe.duration == 30
    assert probe.token is None
    assert probe.commitment == "processed"
    assert probe.client_key == "yellowstone"
    assert probe.maintenance_check is None
