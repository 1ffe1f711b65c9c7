"""
Page content for the portal.
"""

from .pages import INFO_PAGES, TEAM, VENUES, VENUES_BY_SLUG, page_context

__all__ = ["INFO_PAGES", "TEAM", "VENUES", "VENUES_BY_SLUG", "page_context"]
