"""
Registration, login, logout and session introspection routes.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from shared.config import PortalConfig
from shared.errors import AuthenticationError, StoreUnavailableError, ValidationError
from shared.logging import get_logger
from ..auth.accounts import AccountService
from ..auth.sessions import AuthenticatedIdentity
from ..domain.gateway import AccessGateway, RouteKind, RoutePolicy, rate_limit_headers

PUBLIC_API = RoutePolicy(requires_rate_limit=True, requires_auth=False, kind=RouteKind.BROWSER)
PRIVATE_JSON = RoutePolicy(requires_rate_limit=True, requires_auth=True, kind=RouteKind.API)

logger = get_logger("portal.routes.accounts")


def _redirect(path: str, request: Request, **messages: str) -> RedirectResponse:
    location = f"{path}?{urlencode(messages)}" if messages else path
    response = RedirectResponse(location, status_code=303)
    response.headers.update(rate_limit_headers(request))
    return response


def build_accounts_router(
    accounts: AccountService,
    gateway: AccessGateway,
    templates: Jinja2Templates,
    config: PortalConfig,
) -> APIRouter:
    router = APIRouter(prefix="/api", include_in_schema=False)
    public_guard = gateway.guard(PUBLIC_API)

    @router.post("/register", dependencies=[Depends(public_guard)])
    async def register(
        request: Request,
        name: str = Form(""),
        email: str = Form(""),
        password: str = Form(""),
    ) -> Response:
        try:
            await accounts.register(name, email, password)
        except ValidationError as exc:
            response = templates.TemplateResponse(
                request, "register.html", {"error": exc.message}, status_code=400
            )
            response.headers.update(rate_limit_headers(request))
            return response
        except StoreUnavailableError as exc:
            logger.error("Registration failed, credential store unavailable", error=exc.message)
            return _redirect("/register", request, error="Service temporarily unavailable, please try again.")

        return _redirect("/", request, success="Registration successful, please log in.")

    @router.post("/login", dependencies=[Depends(public_guard)])
    async def login(
        request: Request,
        email: str = Form(""),
        password: str = Form(""),
    ) -> Response:
        try:
            _, token = await accounts.login(email, password)
        except AuthenticationError as exc:
            return _redirect("/", request, error=exc.message)
        except StoreUnavailableError as exc:
            logger.error("Login failed, credential store unavailable", error=exc.message)
            return _redirect("/", request, error="Service temporarily unavailable, please try again.")

        response = _redirect("/api/dashboard", request)
        response.set_cookie(
            config.session_cookie_name,
            token,
            max_age=config.session_ttl_seconds,
            httponly=True,
            secure=config.cookie_secure,
            samesite="lax",
        )
        return response

    @router.get("/logout", dependencies=[Depends(public_guard)])
    async def logout(request: Request) -> Response:
        response = _redirect("/", request, success="You have been logged out.")
        response.delete_cookie(
            config.session_cookie_name,
            httponly=True,
            secure=config.cookie_secure,
            samesite="lax",
        )
        return response

    @router.get("/me")
    async def current_user(
        request: Request,
        user: AuthenticatedIdentity = Depends(gateway.guard(PRIVATE_JSON)),
    ) -> Response:
        return JSONResponse(
            {"user_id": user.user_id, **user.display_attributes},
            headers=rate_limit_headers(request),
        )

    return router
