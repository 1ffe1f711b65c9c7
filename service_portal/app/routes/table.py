"""
Declarative route table for the portal's pages.

Each ``PageRoute`` names its path, the template that renders it, the
content it shows and which gateway stages guard it. ``register_page_routes``
turns the table into FastAPI routes.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.templating import Jinja2Templates

from shared.errors import NotFoundError
from ..auth.sessions import AuthenticatedIdentity
from ..content import INFO_PAGES, VENUES, page_context
from ..domain.gateway import AccessGateway, RouteKind, RoutePolicy, rate_limit_headers


@dataclass(frozen=True)
class PageRoute:
    path: str
    template: str
    content_key: Optional[str] = None
    requires_auth: bool = True
    requires_rate_limit: bool = True
    kind: RouteKind = RouteKind.BROWSER

    @property
    def policy(self) -> RoutePolicy:
        return RoutePolicy(
            requires_rate_limit=self.requires_rate_limit,
            requires_auth=self.requires_auth,
            kind=self.kind,
        )


PAGE_ROUTES: Tuple[PageRoute, ...] = (
    PageRoute("/", "login.html", requires_auth=False, requires_rate_limit=False),
    PageRoute("/register", "register.html", requires_auth=False, requires_rate_limit=False),
    PageRoute("/api/dashboard", "dashboard.html", "dashboard"),
    PageRoute("/api/bar", "bars.html", "bars"),
    PageRoute("/api/reserve-table", "reservation.html", "reservation"),
    PageRoute("/api/team", "team.html", "team"),
    *(PageRoute(venue.link, "venue.html", venue.slug) for venue in VENUES),
    *(PageRoute(f"/api/{key}", "info.html", key, requires_auth=False) for key in INFO_PAGES),
)

API_FALLBACK_PATH = "/api/{path:path}"
API_FALLBACK_POLICY = RoutePolicy(requires_rate_limit=True, requires_auth=False, kind=RouteKind.API)


def _page_handler(
    route: PageRoute,
    templates: Jinja2Templates,
    guard: Callable[[Request], Awaitable[Optional[AuthenticatedIdentity]]],
) -> Callable[..., Awaitable[Response]]:
    async def handler(
        request: Request,
        user: Optional[AuthenticatedIdentity] = Depends(guard),
    ) -> Response:
        context: Dict[str, Any] = {"user": user}
        if route.content_key:
            context.update(page_context(route.content_key))
        else:
            # Login and register pages show flash messages from the query string
            context["error"] = request.query_params.get("error")
            context["success"] = request.query_params.get("success")

        response = templates.TemplateResponse(request, route.template, context)
        response.headers.update(rate_limit_headers(request))
        return response

    handler.__name__ = f"page_{route.content_key or route.template.split('.')[0]}"
    return handler


def register_page_routes(app: FastAPI, gateway: AccessGateway, templates: Jinja2Templates) -> None:
    """Add every entry of ``PAGE_ROUTES`` to ``app`` behind the gateway."""
    for route in PAGE_ROUTES:
        app.add_api_route(
            route.path,
            _page_handler(route, templates, gateway.guard(route.policy)),
            methods=["GET"],
            include_in_schema=False,
        )


def register_api_fallback(app: FastAPI, gateway: AccessGateway) -> None:
    """Count unmatched /api requests against the limiter before answering 404.

    Must be registered after every other /api route.
    """

    async def api_not_found(request: Request, path: str) -> Response:
        body = NotFoundError(f"No page at /api/{path}").to_response().model_dump()
        return JSONResponse(status_code=404, content=body, headers=rate_limit_headers(request))

    app.add_api_route(
        API_FALLBACK_PATH,
        api_not_found,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        dependencies=[Depends(gateway.guard(API_FALLBACK_POLICY))],
        include_in_schema=False,
    )
