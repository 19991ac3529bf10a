"""
Game Platform Backend: E-mail Sender Tests
============================================

What:  Unit tests for WebhookEmailSender with the relay replaced by
       httpx.MockTransport. No waits: backoff is configured to zero.

What we test:
    ✅ Disabled when no relay URL is configured
    ✅ Payload shape sent to the relay
    ✅ 5xx and network errors retried, then NotificationDeliveryError
    ✅ 4xx not retried
    ✅ Circuit breaker opens and short-circuits delivery
"""

import json

import httpx
import pytest

from gameplatform.circuit_breaker import CircuitBreaker
from gameplatform.exceptions import NotificationDeliveryError
from gameplatform.services.notification_sender import WebhookEmailSender


def make_sender(handler, max_attempts: int = 3) -> WebhookEmailSender:
    return WebhookEmailSender(
        url="http://mail-relay.internal/send",
        timeout=1.0,
        max_attempts=max_attempts,
        min_wait=0,
        max_wait=0,
        transport=httpx.MockTransport(handler),
    )


class TestWebhookEmailSender:

    def setup_method(self):
        self.calls = []

    @pytest.mark.asyncio
    async def test_disabled_without_url(self):
        sender = WebhookEmailSender(url="")
        assert sender.enabled is False
        assert await sender.send("nova@playmail.net", "Hi", "Body") is False
        assert await sender.health_check() is False

    @pytest.mark.asyncio
    async def test_sends_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.calls.append(request)
            return httpx.Response(202)

        sender = make_sender(handler)
        delivered = await sender.send("nova@playmail.net", "Welcome", "Your account is ready", {"k": "v"})

        assert delivered is True
        assert json.loads(self.calls[0].content) == {
            "to": "nova@playmail.net",
            "subject": "Welcome",
            "text": "Your account is ready",
            "data": {"k": "v"},
        }
        assert await sender.health_check() is True

    @pytest.mark.asyncio
    async def test_5xx_retried_then_fails(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.calls.append(request)
            return httpx.Response(503)

        sender = make_sender(handler)
        with pytest.raises(NotificationDeliveryError):
            await sender.send("nova@playmail.net", "Hi", "Body")
        assert len(self.calls) == 3

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.calls.append(request)
            if len(self.calls) == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200)

        sender = make_sender(handler)
        assert await sender.send("nova@playmail.net", "Hi", "Body") is True
        assert len(self.calls) == 2
        assert sender.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_4xx_not_retried(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.calls.append(request)
            return httpx.Response(422)

        sender = make_sender(handler)
        with pytest.raises(NotificationDeliveryError):
            await sender.send("nova@playmail.net", "Hi", "Body")
        assert len(self.calls) == 1

    @pytest.mark.asyncio
    async def test_open_circuit_short_circuits(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        sender = make_sender(handler, max_attempts=1)
        sender.circuit_breaker = CircuitBreaker(name="email", failure_threshold=2, recovery_timeout=60)

        for _ in range(2):
            with pytest.raises(NotificationDeliveryError):
                await sender.send("nova@playmail.net", "Hi", "Body")
        assert sender.circuit_breaker.state == CircuitBreaker.OPEN

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await sender.send("nova@playmail.net", "Hi", "Body")
        assert "circuit" in exc_info.value.message.lower()
        assert len(self.calls) == 2
        assert await sender.health_check() is False
