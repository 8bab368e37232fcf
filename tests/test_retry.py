"""Tests for the upstream retry policy and the Bot API client error mapping."""

import asyncio
import time
from types import SimpleNamespace

import httpx
import pytest

from server.exceptions import UpstreamRejectedError, UpstreamTransientError
from server import retry
from server.retry import RetryPolicy, send_with_retry
from server.telegram_client import TelegramClient


class TestRetryPolicy:
    def test_default_delays(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.timeout_seconds == 60
        assert [policy.delay_for(i) for i in range(3)] == pytest.approx([0.6, 1.2, 2.4])


class TestSendWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        calls = []

        async def operation():
            calls.append(1)
            return "ok"

        assert await send_with_retry(operation, RetryPolicy(base_delay_seconds=0), "op") == "ok"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise UpstreamTransientError("boom", status_code=503)
            return "ok"

        assert await send_with_retry(operation, RetryPolicy(base_delay_seconds=0), "op") == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        calls = []

        async def operation():
            calls.append(1)
            raise UpstreamTransientError("still down", status_code=500)

        with pytest.raises(UpstreamTransientError):
            await send_with_retry(operation, RetryPolicy(base_delay_seconds=0), "op")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_rejections(self):
        calls = []

        async def operation():
            calls.append(1)
            raise UpstreamRejectedError("Bad Request: chat not found", error_code=400)

        with pytest.raises(UpstreamRejectedError):
            await send_with_retry(operation, RetryPolicy(base_delay_seconds=0), "op")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_sleeps_with_backoff(self, monkeypatch):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr(retry, "asyncio", SimpleNamespace(sleep=fake_sleep))

        async def operation():
            raise UpstreamTransientError("down")

        with pytest.raises(UpstreamTransientError):
            await send_with_retry(operation, RetryPolicy(), "op")
        assert delays == pytest.approx([0.6, 1.2])


class TestTelegramClientErrors:
    @pytest.mark.asyncio
    async def test_429_is_retried(self, fake_telegram, telegram_client):
        fake_telegram.queue("sendDocument", 429, {"ok": False, "error_code": 429, "description": "Too Many Requests"})

        message = await telegram_client.send_media("document", "a.pdf", b"%PDF", "application/pdf")

        assert "document" in message
        assert fake_telegram.methods() == ["sendDocument", "sendDocument"]

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self, fake_telegram, telegram_client):
        for _ in range(3):
            fake_telegram.queue("sendVideo", 502, {"ok": False})

        with pytest.raises(UpstreamTransientError) as exc_info:
            await telegram_client.send_media("video", "a.mp4", b"v", "video/mp4")

        assert exc_info.value.status_code == 502
        assert fake_telegram.methods() == ["sendVideo"] * 3

    @pytest.mark.asyncio
    async def test_not_ok_payload_surfaces_description(self, fake_telegram, telegram_client):
        fake_telegram.queue_error("sendPhoto", "Bad Request: IMAGE_PROCESS_FAILED")

        with pytest.raises(UpstreamRejectedError) as exc_info:
            await telegram_client.send_media("photo", "a.jpg", b"x", "image/jpeg")

        assert exc_info.value.description == "Bad Request: IMAGE_PROCESS_FAILED"
        assert exc_info.value.error_code == 400
        assert fake_telegram.methods() == ["sendPhoto"]

    @pytest.mark.asyncio
    async def test_network_errors_are_transient(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            raise httpx.ConnectError("connection refused", request=request)

        client = TelegramClient(
            bot_token="1:abc",
            chat_id="1",
            api_base="https://api.telegram.test",
            retry_policy=RetryPolicy(base_delay_seconds=0),
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(UpstreamTransientError) as exc_info:
            await client.send_media("document", "a.bin", b"x", "")

        assert "1:abc" not in str(exc_info.value)
        assert len(attempts) == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_get_file_path_returns_none_when_rejected(self, telegram_client):
        assert await telegram_client.get_file_path("unknown") is None


class DripStream(httpx.AsyncByteStream):
    """Response body delivered one byte at a time."""

    def __init__(self, body: bytes, delay: float):
        self.body = body
        self.delay = delay

    async def __aiter__(self):
        for index in range(len(self.body)):
            await asyncio.sleep(self.delay)
            yield self.body[index:index + 1]


class TestTelegramClientDeadline:
    @pytest.mark.asyncio
    async def test_slow_reply_is_abandoned_at_timeout(self):
        attempts = []

        async def handler(request):
            attempts.append(1)
            body = b'{"ok": true, "result": {"file_id": "X", "file_path": "a/b"}}'
            return httpx.Response(200, stream=DripStream(body, delay=0.05))

        client = TelegramClient(
            bot_token="1:abc",
            chat_id="1",
            api_base="https://api.telegram.test",
            retry_policy=RetryPolicy(max_attempts=2, base_delay_seconds=0, timeout_seconds=0.5),
            transport=httpx.MockTransport(handler),
        )

        started = time.monotonic()
        with pytest.raises(UpstreamTransientError) as exc_info:
            await client.get_file_path("X")
        elapsed = time.monotonic() - started

        assert "getFile timed out after 0.5s" in str(exc_info.value)
        assert len(attempts) == 2
        assert elapsed < 1.5
        await client.close()
