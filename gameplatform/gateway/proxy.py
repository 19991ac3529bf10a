"""
Game Platform Backend: Upstream Service Proxy
===============================================

What:  Forwards /api/{resource}/... requests to the platform service that
       owns the resource and relays the answer unchanged.
Why:   Clients talk to one host; services can be deployed, scaled and
       restarted independently behind it.
How:   A shared httpx.AsyncClient, tenacity retries for network errors and
       5xx answers, and one circuit breaker per upstream.
Who:   gateway.routes (catch-all proxy routes, /health, /gateway/circuits).

Resource → Service:
    auth, users, studios   → users
    games                  → catalog
    reviews                → reviews
    notifications          → notifications
    social                 → social
    security               → security

Failure Mapping:
    unknown resource            → 404 NotFoundError
    circuit open                → 503 CircuitBreakerOpenError (upstream not called)
    timeout                     → 504 UpstreamTimeoutError (not retried)
    network error after retries → 502 UpstreamServiceError
    5xx after retries           → last upstream response relayed as-is
    4xx                         → relayed as-is, never retried
"""

import logging
import time
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gameplatform.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from gameplatform.config import settings
from gameplatform.exceptions import (
    NotFoundError,
    UpstreamServiceError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

RESOURCE_TO_SERVICE: Dict[str, str] = {
    "auth": "users",
    "users": "users",
    "studios": "users",
    "games": "catalog",
    "reviews": "reviews",
    "notifications": "notifications",
    "social": "social",
    "security": "security",
}

# RFC 7230 §6.1 connection-scoped headers, plus values httpx recomputes
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)

# httpx has already decoded the body, so the original encoding no longer applies
_STRIPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}

HEALTH_TIMEOUT = 5.0


class _RetryableStatus(Exception):
    """Upstream answered 5xx; carries the response so it can be relayed once retries run out."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"upstream answered {response.status_code}")
        self.response = response


def forwarded_headers(
    headers: Iterable[Tuple[str, str]],
    client_host: str,
    host: str,
    scheme: str,
    request_id: str,
) -> List[Tuple[str, str]]:
    """
    Build the header list sent upstream.

    Drops hop-by-hop headers and any incoming X-Forwarded-Host/Proto or
    X-Request-ID, then appends the client to the X-Forwarded-For chain.
    """
    replaced = {"x-forwarded-for", "x-forwarded-host", "x-forwarded-proto", "x-request-id"}
    prior_chain = ""
    out: List[Tuple[str, str]] = []
    for name, value in headers:
        lowered = name.lower()
        if lowered == "x-forwarded-for":
            prior_chain = value
            continue
        if lowered in HOP_BY_HOP_HEADERS or lowered in replaced:
            continue
        out.append((name, value))

    chain = f"{prior_chain}, {client_host}" if prior_chain else client_host
    out.extend(
        [
            ("X-Forwarded-For", chain),
            ("X-Forwarded-Host", host),
            ("X-Forwarded-Proto", scheme),
            ("X-Request-ID", request_id),
        ]
    )
    return out


def relayed_headers(headers: httpx.Headers) -> List[Tuple[str, str]]:
    return [(k, v) for k, v in headers.multi_items() if k.lower() not in _STRIPPED_RESPONSE_HEADERS]


class ServiceProxy:
    """
    Routes requests to upstream services.

    Args:
        upstreams:  service name → base URL (scheme://host:port)
        timeout:    per-attempt timeout in seconds
        retries:    total attempts for network errors and 5xx answers
        base_delay: first backoff delay; doubles on every retry
        breakers:   registry holding one CircuitBreaker per service
        transport:  optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        upstreams: Mapping[str, str],
        timeout: float = 30.0,
        retries: int = 3,
        base_delay: float = 0.1,
        breakers: Optional[CircuitBreakerRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upstreams = {name: url.rstrip("/") for name, url in upstreams.items()}
        self.timeout = timeout
        self.retries = retries
        self.base_delay = base_delay
        self.breakers = breakers or CircuitBreakerRegistry(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
            monitoring_period=settings.cb_monitoring_period,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls) -> "ServiceProxy":
        return cls(
            upstreams=settings.upstream_urls,
            timeout=settings.proxy_timeout,
            retries=settings.proxy_retries,
            base_delay=settings.proxy_retry_base_delay,
        )

    # ── Client lifecycle ──────────────────────────────────────────────────

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=False,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Routing ───────────────────────────────────────────────────────────

    def resolve(self, resource: str) -> str:
        service = RESOURCE_TO_SERVICE.get(resource)
        if service is None or service not in self.upstreams:
            raise NotFoundError(resource="API resource", resource_id=resource)
        return service

    def breaker(self, service: str) -> CircuitBreaker:
        return self.breakers.get(service)

    async def forward(
        self,
        resource: str,
        method: str,
        path: str,
        query: str,
        headers: List[Tuple[str, str]],
        body: bytes,
    ) -> httpx.Response:
        """
        Send one request upstream and return the upstream response.

        Args:
            resource: first path segment after /api (selects the service)
            path:     full upstream path, e.g. /api/games/123
            query:    raw query string without the leading "?"
            headers:  already filtered by forwarded_headers()
        """
        service = self.resolve(resource)
        breaker = self.breaker(service)
        breaker.can_execute()

        url = f"{self.upstreams[service]}{path}"
        if query:
            url = f"{url}?{query}"

        start_time = time.perf_counter()
        try:
            response = await self._send_with_retry(method, url, headers, body)
        except _RetryableStatus as e:
            breaker.record_failure()
            logger.error(
                "%s %s → %s answered %d after %d attempts",
                method, path, service, e.response.status_code, self.retries,
            )
            return e.response
        except httpx.TimeoutException:
            breaker.record_failure()
            logger.error("%s %s → %s timed out after %.1fs", method, path, service, self.timeout)
            raise UpstreamTimeoutError(service=service, timeout=self.timeout)
        except httpx.TransportError as e:
            breaker.record_failure()
            logger.error("%s %s → %s unreachable: %s", method, path, service, type(e).__name__)
            raise UpstreamServiceError(service=service, context={"error_type": type(e).__name__})

        breaker.record_success()
        logger.debug(
            "%s %s → %s %d in %.0fms",
            method, path, service, response.status_code,
            (time.perf_counter() - start_time) * 1000,
        )
        return response

    async def _send_with_retry(
        self, method: str, url: str, headers: List[Tuple[str, str]], body: bytes
    ) -> httpx.Response:
        retrying = AsyncRetrying(
            retry=(
                retry_if_exception_type((httpx.TransportError, _RetryableStatus))
                & retry_if_not_exception_type(httpx.TimeoutException)
            ),
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=self.base_delay),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(self._send_once, method, url, headers, body)

    async def _send_once(
        self, method: str, url: str, headers: List[Tuple[str, str]], body: bytes
    ) -> httpx.Response:
        response = await self.client.request(method, url, headers=headers, content=body)
        if response.status_code >= 500:
            raise _RetryableStatus(response)
        return response

    # ── Health ────────────────────────────────────────────────────────────

    async def health_check(self, service: str) -> dict:
        """
        GET {upstream}/health once, without retries or breaker accounting.

        Returns:
            {"service", "status", "circuit", "response_time_ms"}; status is the
            upstream's own value, or "unreachable" when no JSON answer came back
        """
        start_time = time.perf_counter()
        status = "unreachable"
        try:
            response = await self.client.get(f"{self.upstreams[service]}/health", timeout=HEALTH_TIMEOUT)
            payload = response.json()
            status = payload.get("status", "unhealthy") if isinstance(payload, dict) else "unhealthy"
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Health check of %s failed: %s", service, type(e).__name__)
        return {
            "service": service,
            "status": status,
            "circuit": self.breaker(service).state,
            "response_time_ms": round((time.perf_counter() - start_time) * 1000, 1),
        }
