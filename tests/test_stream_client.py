"""Tests for the reconnecting SSE consumer."""

import asyncio
import json

import httpx
import pytest

from relaycode.client.stream import (
    ConnectionState,
    ReconnectPolicy,
    StreamErrorKind,
    TransactionStreamConsumer,
    iter_sse_frames,
)


def _frame(payload: dict) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode()


def _consumer(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://relaycode.test")
    return TransactionStreamConsumer("http://relaycode.test", client=client, **kwargs), client


class TestReconnectPolicy:
    def test_doubles_then_caps(self):
        policy = ReconnectPolicy(max_attempts=8)
        delays = [policy.next_delay() for _ in range(9)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0, None]

    def test_reset(self):
        policy = ReconnectPolicy()
        policy.next_delay()
        policy.next_delay()
        policy.reset()
        assert policy.next_delay() == 1.0


class TestParser:
    @pytest.mark.asyncio
    async def test_frames(self):
        async def lines():
            for line in ["retry: 3000", "", ": keepalive", "", "data: a", "data: b", "", "event: x", "data: c"]:
                yield line

        frames = [f async for f in iter_sse_frames(lines())]
        assert [(f.retry, f.data) for f in frames] == [(3000, None), (None, "a\nb"), (None, "c")]
        assert frames[2].event == "x"


class TestConsumer:
    @pytest.mark.asyncio
    async def test_backoff_then_give_up(self):
        attempts = []
        delays = []
        states = []

        def handler(request):
            attempts.append(request.url.path)
            raise httpx.ConnectError("refused", request=request)

        async def sleep(seconds):
            delays.append(seconds)

        consumer, client = _consumer(handler, sleep=sleep, on_state_change=states.append)
        await consumer.run()
        await client.aclose()

        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]
        assert len(attempts) == 6
        assert attempts[0] == "/api/events"
        assert consumer.state is ConnectionState.DISCONNECTED
        assert ConnectionState.CONNECTED not in states

    @pytest.mark.asyncio
    async def test_decodes_events_and_resets_attempts(self, caplog):
        events = []
        states = []
        delays = []
        body = (
            b"retry: 3000\n\n"
            + _frame({"type": "connected"})
            + b": keepalive\n\n"
            + _frame({"type": "transaction", "transactionId": "t1", "status": "APPLYING", "timestamp": "2026-10-19T12:00:00Z"})
            + b"data: {not json\n\n"
            + _frame({"type": "file", "transactionId": "t1", "filePath": "a.py", "applyStatus": "FAILED", "errorMessage": "x"})
        )

        def handler(request):
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        async def sleep(seconds):
            delays.append(seconds)
            consumer.close()

        consumer, client = _consumer(handler, sleep=sleep, on_event=events.append, on_state_change=states.append)
        consumer.policy.attempt = 3
        await consumer.run()
        await client.aclose()

        assert [e.type for e in events] == ["connected", "transaction", "file"]
        assert events[2].error_message == "x"
        assert consumer.retry_ms == 3000
        # The stream ending counts as a dropped connection after a reset
        assert delays == [1.0]
        assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED, ConnectionState.DISCONNECTED]
        assert "Skipping undecodable frame" in caplog.text

    @pytest.mark.asyncio
    async def test_non_200_is_network_closed(self):
        delays = []

        def handler(request):
            return httpx.Response(503)

        async def sleep(seconds):
            delays.append(seconds)
            consumer.close()

        consumer, client = _consumer(handler, sleep=sleep)
        await consumer.run()
        await client.aclose()

        assert delays == [1.0]
        assert consumer.policy.attempt == 1

    @pytest.mark.asyncio
    async def test_idle_timeout_uses_retry_hint(self):
        delays = []

        def handler(request):
            raise httpx.ReadTimeout("idle", request=request)

        async def sleep(seconds):
            delays.append(seconds)
            consumer.close()

        consumer, client = _consumer(handler, sleep=sleep)
        await consumer.run()
        await client.aclose()

        assert delays == [5.0]
        assert consumer.policy.attempt == 0

    @pytest.mark.asyncio
    async def test_teardown_is_idempotent_and_silent(self):
        connected = asyncio.Event()
        states = []

        async def endless():
            yield _frame({"type": "connected"})
            await asyncio.Event().wait()

        def handler(request):
            return httpx.Response(200, content=endless())

        def on_event(event):
            connected.set()

        consumer, client = _consumer(handler, on_event=on_event, on_state_change=states.append)
        teardown = consumer.start()
        await asyncio.wait_for(connected.wait(), timeout=5)

        teardown()
        teardown()
        await consumer.aclose()
        await client.aclose()

        assert consumer.closed
        assert consumer.state is ConnectionState.DISCONNECTED
        assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]

    @pytest.mark.asyncio
    async def test_teardown_releases_owned_client(self):
        connected = asyncio.Event()

        async def endless():
            yield _frame({"type": "connected"})
            await asyncio.Event().wait()

        consumer = TransactionStreamConsumer("http://relaycode.test", on_event=lambda e: connected.set())
        await consumer._client.aclose()
        consumer._client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=endless())),
            base_url="http://relaycode.test",
        )

        teardown = consumer.start()
        await asyncio.wait_for(connected.wait(), timeout=5)
        teardown()
        await asyncio.wait_for(consumer._releasing, timeout=5)

        assert consumer._client.is_closed
        await consumer.aclose()

    @pytest.mark.asyncio
    async def test_errors_reported_with_classification(self):
        errors = []
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("idle", request=request)
            raise httpx.ConnectError("refused", request=request)

        async def sleep(seconds):
            pass

        consumer, client = _consumer(handler, sleep=sleep, on_error=errors.append)
        await consumer.run()
        await client.aclose()

        assert [e.is_network_error for e in errors] == [False] + [True] * 6
        assert errors[0].kind is StreamErrorKind.IDLE_TIMEOUT

    @pytest.mark.asyncio
    async def test_failing_error_callback_does_not_stop_reconnect(self, caplog):
        delays = []

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        def on_error(error):
            raise RuntimeError("boom")

        async def sleep(seconds):
            delays.append(seconds)

        consumer, client = _consumer(handler, sleep=sleep, on_error=on_error)
        await consumer.run()
        await client.aclose()

        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]
        assert "Error callback failed" in caplog.text
