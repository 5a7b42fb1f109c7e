"""
Platera Backend — Clerk Identity Provider
=========================================

What:  Verifies Clerk session tokens and fetches user profiles from the Clerk
       Backend API.
How:   Session tokens are RS256 JWTs verified locally with the instance's PEM
       public key (PyJWT), so the hot path makes no network call. Profile
       fetches go through httpx with tenacity retries (exponential backoff +
       jitter) and a circuit breaker that fails fast while Clerk is down.
Who:   Constructed by create_app(); used by request dependencies and by
       AccountService during lazy sync.

Failure mapping:
    - invalid / expired / missing token      → authenticate() returns None
    - 404 for the user                       → fetch_profile() returns None
    - timeouts, connection errors, 429, 5xx  → retried, then IdentityProviderError
    - other 4xx (bad secret key, ...)        → IdentityProviderError, no retry
    - circuit open                           → CircuitBreakerOpenError
"""

import logging
import time
from typing import Optional

import httpx
import jwt
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from platera.config import Settings, settings
from platera.exceptions import CircuitBreakerOpenError, IdentityProviderError
from platera.schemas.identity import ClerkUser
from platera.services.identity_base import IdentityProfile, IdentityProvider

logger = logging.getLogger(__name__)


class TransientClerkError(Exception):
    """A response status worth retrying (429 / 5xx)."""

    def __init__(self, status_code: int):
        super().__init__(f"Clerk responded with HTTP {status_code}")
        self.status_code = status_code


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    State Machine:
        CLOSED    → failure_count reaches threshold → OPEN
        OPEN      → recovery_timeout elapsed        → HALF_OPEN
        HALF_OPEN → success → CLOSED; failure → OPEN

    Single-process only: state lives in this object.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 30):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and the recovery timeout has not elapsed.
        """
        if self.state == self.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True
            raise CircuitBreakerOpenError(recovery_time=int(self.recovery_timeout - elapsed) + 1)
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (identity provider recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()
        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (trial call failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Clerk Identity Provider
# ══════════════════════════════════════════════════════════════════════════

class ClerkIdentityProvider(IdentityProvider):
    """
    Clerk implementation of IdentityProvider.

    Args:
        config: Settings carrying the secret key, public key and API URL.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or settings
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.cb_failure_threshold,
            recovery_timeout=self.config.cb_recovery_timeout,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.clerk_api_url,
                headers={"Authorization": f"Bearer {self.config.clerk_secret_key}"},
                timeout=self.config.clerk_timeout,
                transport=self._transport,
            )
        return self._client

    # ── Session tokens ────────────────────────────────────────────────────

    def authenticate(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        if not self.config.clerk_jwt_public_key:
            logger.error("CLERK_JWT_PUBLIC_KEY is not configured; treating request as anonymous")
            return None
        try:
            claims = jwt.decode(
                token,
                key=self.config.clerk_jwt_public_key,
                algorithms=["RS256"],
                leeway=self.config.clerk_leeway,
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as e:
            logger.debug("Rejected session token: %s", str(e))
            return None
        subject = claims.get("sub")
        return subject if isinstance(subject, str) and subject else None

    # ── Backend API ───────────────────────────────────────────────────────

    async def fetch_profile(self, external_id: str) -> Optional[IdentityProfile]:
        self.circuit_breaker.can_execute()

        try:
            clerk_user = await self._get_user_with_retry(external_id)
        except (httpx.TransportError, TransientClerkError) as e:
            self.circuit_breaker.record_failure()
            logger.error("Clerk user lookup for %s failed after retries: %s", external_id, str(e))
            raise IdentityProviderError(
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"external_id": external_id, "error_type": type(e).__name__},
            ) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Clerk rejected user lookup for %s: HTTP %d",
                external_id,
                e.response.status_code,
            )
            raise IdentityProviderError(
                context={"external_id": external_id, "status": e.response.status_code},
            ) from e

        self.circuit_breaker.record_success()
        if clerk_user is None:
            return None
        return IdentityProfile(
            external_id=clerk_user.id,
            email=clerk_user.primary_email,
            first_name=clerk_user.first_name,
            last_name=clerk_user.last_name,
            image_url=clerk_user.image_url,
        )

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, TransientClerkError)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=settings.retry_min_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _get_user_with_retry(self, external_id: str) -> Optional[ClerkUser]:
        start_time = time.perf_counter()
        response = await self.client.get(f"/users/{external_id}")
        duration_ms = (time.perf_counter() - start_time) * 1000

        if response.status_code == 404:
            logger.info("Clerk has no user %s (%.0fms)", external_id, duration_ms)
            return None
        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(
                "Clerk user lookup returned HTTP %d after %.0fms",
                response.status_code,
                duration_ms,
            )
            raise TransientClerkError(response.status_code)
        response.raise_for_status()

        logger.debug("Clerk user lookup for %s completed in %.0fms", external_id, duration_ms)
        return ClerkUser.model_validate(response.json())

    async def health_check(self) -> bool:
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return False
        try:
            response = await self.client.get("/users", params={"limit": 1})
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.warning("Clerk health check failed: %s", str(e))
            return False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
