"""
Access gateway for the portal.

Every gated request passes through an ordered list of stages: the rate
limiter first, then session verification. Each stage takes the request
context and returns either a terminal decision or an updated context; the
first decision ends the pass. Route policies pick which stages run.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from shared.errors import AuthenticationError, RateLimitError
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector
from ..auth.sessions import AuthenticatedIdentity, SessionVerifier
from ..ratelimit.window import ClientIdResolver, FixedWindowRateLimiter, RateLimitResult

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
LOGIN_REQUIRED_MESSAGE = "Please log in to continue."
LOGIN_PATH = "/"


class Outcome(str, Enum):
    ADMIT = "admit"
    RATE_LIMITED = "rate_limited"
    UNAUTHENTICATED = "unauthenticated"


class RouteKind(str, Enum):
    """How a rejected request is answered: redirect for pages, JSON for APIs."""

    BROWSER = "browser"
    API = "api"


@dataclass(frozen=True)
class RoutePolicy:
    """Which gateway stages a route requires."""

    requires_rate_limit: bool = True
    requires_auth: bool = True
    kind: RouteKind = RouteKind.BROWSER


@dataclass(frozen=True)
class GatewayDecision:
    """Result of one gateway pass. Exactly one outcome per request."""

    outcome: Outcome
    identity: Optional[AuthenticatedIdentity] = None
    reason: Optional[str] = None
    rate_limit: Optional[RateLimitResult] = None

    @property
    def admitted(self) -> bool:
        return self.outcome is Outcome.ADMIT


@dataclass(frozen=True)
class GatewayContext:
    """Request state threaded through the stages."""

    request: Request
    policy: RoutePolicy
    client_id: str
    rate_limit: Optional[RateLimitResult] = None
    identity: Optional[AuthenticatedIdentity] = None


StageResult = Tuple[Optional[GatewayDecision], GatewayContext]
Stage = Callable[[GatewayContext], Awaitable[StageResult]]


class GatewayRejected(Exception):
    """Raised by the route guard so the rejection response replaces the handler."""

    def __init__(self, decision: GatewayDecision, policy: RoutePolicy):
        super().__init__(decision.outcome.value)
        self.decision = decision
        self.policy = policy


class ClientDisconnected(Exception):
    """The client went away while its session was being verified."""


async def run_stages(stages: List[Stage], context: GatewayContext) -> StageResult:
    """Run ``stages`` in order, stopping at the first decision."""
    for stage in stages:
        decision, context = await stage(context)
        if decision is not None:
            return decision, context

    decision = GatewayDecision(
        outcome=Outcome.ADMIT,
        identity=context.identity,
        rate_limit=context.rate_limit,
    )
    return decision, context


class AccessGateway:
    """Rate limiting and session verification in front of portal handlers."""

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter,
        verifier: SessionVerifier,
        client_id_resolver: Optional[ClientIdResolver] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.verifier = verifier
        self.client_id_resolver = client_id_resolver or ClientIdResolver()
        self.metrics = metrics
        self.logger = get_logger("portal.gateway")

    async def rate_stage(self, context: GatewayContext) -> StageResult:
        result = await self.rate_limiter.admit(context.client_id)
        context = replace(context, rate_limit=result)
        if not result.allowed:
            return GatewayDecision(Outcome.RATE_LIMITED, reason="rate_limited", rate_limit=result), context
        return None, context

    async def auth_stage(self, context: GatewayContext) -> StageResult:
        result = await self.verifier.verify(context.request)
        if not result.authenticated:
            decision = GatewayDecision(
                Outcome.UNAUTHENTICATED,
                reason=result.reason.value if result.reason else None,
                rate_limit=context.rate_limit,
            )
            return decision, context
        return None, replace(context, identity=result.identity)

    def stages_for(self, policy: RoutePolicy) -> List[Stage]:
        stages: List[Stage] = []
        if policy.requires_rate_limit:
            stages.append(self.rate_stage)
        if policy.requires_auth:
            stages.append(self.auth_stage)
        return stages

    async def evaluate(self, request: Request, policy: RoutePolicy) -> GatewayDecision:
        """Run the gateway once for ``request``.

        The decision is kept on the request; evaluating the same request
        again returns it without touching the rate limiter.
        """
        cached = getattr(request.state, "gateway_decision", None)
        if cached is not None:
            return cached

        client_id = self.client_id_resolver(request)
        set_user_context(client_id=client_id)
        context = GatewayContext(request=request, policy=policy, client_id=client_id)

        decision, context = await run_stages(self.stages_for(policy), context)

        request.state.gateway_decision = decision
        if decision.identity is not None:
            request.state.user = decision.identity
            set_user_context(user_id=decision.identity.user_id)

        if self.metrics:
            self.metrics.record_gateway_decision(decision.outcome.value, decision.reason)
        if decision.outcome is Outcome.UNAUTHENTICATED:
            self.logger.info("Request not authenticated", path=request.url.path, reason=decision.reason)

        return decision

    def guard(self, policy: RoutePolicy) -> Callable[[Request], Awaitable[Optional[AuthenticatedIdentity]]]:
        """FastAPI dependency that admits the request or raises ``GatewayRejected``."""

        async def dependency(request: Request) -> Optional[AuthenticatedIdentity]:
            decision = await self.evaluate(request, policy)
            if not decision.admitted:
                raise GatewayRejected(decision, policy)
            if policy.requires_auth and await request.is_disconnected():
                self.logger.info("Client disconnected during session check", path=request.url.path)
                raise ClientDisconnected()
            return decision.identity

        return dependency


def rate_limit_headers(request: Request) -> Dict[str, str]:
    """Rate limit headers for the decision recorded on ``request``, if any."""
    decision: Optional[GatewayDecision] = getattr(request.state, "gateway_decision", None)
    if decision is None or decision.rate_limit is None:
        return {}
    return decision.rate_limit.headers()


def rejection_response(decision: GatewayDecision, policy: RoutePolicy) -> Response:
    """Terminal response for a rejected request."""
    headers = decision.rate_limit.headers() if decision.rate_limit else {}

    if decision.outcome is Outcome.RATE_LIMITED:
        if policy.kind is RouteKind.API:
            body = RateLimitError(RATE_LIMIT_MESSAGE).to_response().model_dump()
            return JSONResponse(status_code=429, content=body, headers=headers)
        return PlainTextResponse(RATE_LIMIT_MESSAGE, status_code=429, headers=headers)

    if policy.kind is RouteKind.API:
        body = AuthenticationError("Authentication required").to_response().model_dump()
        return JSONResponse(status_code=401, content=body, headers=headers)

    location = f"{LOGIN_PATH}?{urlencode({'error': LOGIN_REQUIRED_MESSAGE})}"
    return RedirectResponse(location, status_code=302, headers=headers)
