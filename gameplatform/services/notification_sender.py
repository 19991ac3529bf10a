"""
Game Platform Backend: Notification Delivery Channels
=======================================================

What:  Outbound e-mail delivery for notifications created with the "email" channel.
Why:   The notification service decides WHAT to send; senders decide HOW.
       An abstract interface keeps the mail transport swappable (webhook
       relay today, SMTP or a provider SDK later) and easy to fake in tests.
How:   WebhookEmailSender POSTs a JSON message to the configured mail relay,
       with tenacity retries for transient failures and a circuit breaker
       that stops hammering a relay that is down.
Who:   notification_service.create_notification().
When:  Synchronously after the notification row is flushed. Failures are
       logged and never fail the originating request.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transport errors and 5xx
    2. Circuit breaker (shared implementation with the gateway)
    3. Per-request timeout (EMAIL_TIMEOUT)
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from gameplatform.circuit_breaker import CircuitBreaker
from gameplatform.config import settings
from gameplatform.exceptions import CircuitBreakerOpenError, NotificationDeliveryError

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    """
    Contract:
        - send() returns True when the message was accepted for delivery,
          False when the channel is not configured
        - transport failures are wrapped in NotificationDeliveryError
    """

    @abstractmethod
    async def send(self, recipient: str, subject: str, body: str, data: Optional[dict] = None) -> bool:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...


class _RetryableStatus(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"relay answered {status_code}")
        self.status_code = status_code


class WebhookEmailSender(NotificationSender):
    """
    Delivers e-mails through an HTTP mail relay.

    Payload:
        {"to": "...", "subject": "...", "text": "...", "data": {...}}
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        max_attempts: int = 3,
        min_wait: float = 1.0,
        max_wait: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self._transport = transport
        self.circuit_breaker = CircuitBreaker(
            name="email",
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
            monitoring_period=settings.cb_monitoring_period,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send(self, recipient: str, subject: str, body: str, data: Optional[dict] = None) -> bool:
        if not self.enabled:
            logger.debug("E-mail delivery disabled; skipping message to %s", recipient)
            return False

        try:
            self.circuit_breaker.can_execute()
        except CircuitBreakerOpenError as e:
            raise NotificationDeliveryError(
                message="Mail relay circuit is open",
                context={"recovery_time": e.recovery_time},
            )

        payload = {"to": recipient, "subject": subject, "text": body, "data": data or {}}
        start_time = time.perf_counter()
        try:
            await self._post_with_retry(payload)
        except (httpx.HTTPError, _RetryableStatus) as e:
            self.circuit_breaker.record_failure()
            logger.error("E-mail delivery to %s failed after retries: %s", recipient, str(e))
            raise NotificationDeliveryError(context={"error_type": type(e).__name__})

        self.circuit_breaker.record_success()
        logger.info(
            "E-mail '%s' delivered to relay in %.0fms",
            subject,
            (time.perf_counter() - start_time) * 1000,
        )
        return True

    async def _post_with_retry(self, payload: dict) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(initial=self.min_wait, max=self.max_wait, jitter=1),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        await retrying(self._post_once, payload)

    async def _post_once(self, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, json=payload)
        if response.status_code >= 500:
            raise _RetryableStatus(response.status_code)
        # 4xx is a permanent rejection of this message
        response.raise_for_status()

    async def health_check(self) -> bool:
        return self.enabled and self.circuit_breaker.state != CircuitBreaker.OPEN


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds the circuit breaker state, which must be shared across requests
email_sender = WebhookEmailSender(
    url=settings.email_webhook_url,
    timeout=settings.email_timeout,
    max_attempts=settings.retry_max_attempts,
    min_wait=settings.retry_min_wait,
    max_wait=settings.retry_max_wait,
)
