"""
Session verification for protected portal routes.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request

from shared.errors import InvalidSessionToken, StoreUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.credential_store import CredentialStore, UserRecord
from .tokens import SessionTokenCodec


class FailureReason(str, Enum):
    """Why a request was not authenticated."""

    MISSING_TOKEN = "missing_token"
    MALFORMED_TOKEN = "malformed_token"
    EXPIRED_TOKEN = "expired_token"
    UNKNOWN_USER = "unknown_user"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """The user a request is acting as, rebuilt on every request."""

    user_id: str
    display_attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        return self.display_attributes.get("name")

    @classmethod
    def from_user(cls, user: UserRecord) -> "AuthenticatedIdentity":
        return cls(user_id=user.id, display_attributes={"name": user.name, "email": user.email})


@dataclass(frozen=True)
class VerificationResult:
    """Either an identity or the reason there is none."""

    identity: Optional[AuthenticatedIdentity] = None
    reason: Optional[FailureReason] = None

    @property
    def authenticated(self) -> bool:
        return self.identity is not None


class SessionVerifier:
    """Resolves the session cookie on a request to an authenticated identity."""

    def __init__(
        self,
        codec: SessionTokenCodec,
        store: CredentialStore,
        *,
        cookie_name: str = "token",
        lookup_timeout: float = 2.0,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.codec = codec
        self.store = store
        self.cookie_name = cookie_name
        self.lookup_timeout = lookup_timeout
        self.metrics = metrics
        self.logger = get_logger("portal.session_verifier")

    async def verify(self, request: Request) -> VerificationResult:
        """Authenticate ``request``. Never raises for bad or missing tokens."""
        token = request.cookies.get(self.cookie_name)
        if not token:
            return VerificationResult(reason=FailureReason.MISSING_TOKEN)
        return await self.verify_token(token)

    async def verify_token(self, token: str) -> VerificationResult:
        try:
            claims = self.codec.decode(token)
        except InvalidSessionToken as exc:
            reason = FailureReason.EXPIRED_TOKEN if exc.expired else FailureReason.MALFORMED_TOKEN
            self.logger.debug("Session token rejected", reason=reason.value)
            return VerificationResult(reason=reason)

        try:
            user = await self._lookup(claims.user_id)
        except StoreUnavailableError as exc:
            self.logger.error(
                "Credential store unavailable during session check",
                error=exc.message,
                details=exc.details
            )
            if self.metrics:
                self.metrics.record_error("store_unavailable")
            return VerificationResult(reason=FailureReason.STORE_UNAVAILABLE)

        if user is None:
            self.logger.info("Session bound to missing user", user_id=claims.user_id)
            return VerificationResult(reason=FailureReason.UNKNOWN_USER)

        return VerificationResult(identity=AuthenticatedIdentity.from_user(user))

    async def _lookup(self, user_id: str) -> Optional[UserRecord]:
        """Store lookup bounded by ``lookup_timeout``.

        The lookup runs as its own task so that a timeout or a cancelled
        request leaves it to finish in the background; its result is dropped.
        """
        task = asyncio.ensure_future(self.store.lookup_session(user_id))
        started = time.monotonic()
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.lookup_timeout)
        except asyncio.TimeoutError as exc:
            task.add_done_callback(_discard_result)
            raise StoreUnavailableError(
                "Credential store lookup timed out",
                details={"timeout_seconds": self.lookup_timeout}
            ) from exc
        except asyncio.CancelledError:
            task.add_done_callback(_discard_result)
            raise
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise StoreUnavailableError(
                "Credential store lookup failed",
                details={"error": str(exc)}
            ) from exc
        finally:
            if self.metrics:
                self.metrics.get_metric("session_lookup_duration_seconds").observe(
                    time.monotonic() - started
                )


def _discard_result(task: "asyncio.Future[Any]") -> None:
    """Consume the outcome of an abandoned lookup."""
    if not task.cancelled():
        task.exception()
