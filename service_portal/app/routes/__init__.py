"""
Route wiring for the portal.
"""

from .accounts import build_accounts_router
from .table import PAGE_ROUTES, PageRoute, register_api_fallback, register_page_routes

__all__ = [
    "PAGE_ROUTES",
    "PageRoute",
    "build_accounts_router",
    "register_api_fallback",
    "register_page_routes",
]
