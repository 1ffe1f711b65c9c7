"""
Unit tests for the page route table and page content.
"""

import pytest

from service_portal.app.content import INFO_PAGES, VENUES, page_context
from service_portal.app.domain.gateway import RouteKind
from service_portal.app.routes.table import PAGE_ROUTES


class TestPageRoutes:
    """Test cases for PAGE_ROUTES."""

    @pytest.fixture
    def routes_by_path(self):
        return {route.path: route for route in PAGE_ROUTES}

    def test_paths_are_unique(self):
        paths = [route.path for route in PAGE_ROUTES]
        assert len(paths) == len(set(paths))

    def test_login_and_register_are_open(self, routes_by_path):
        for path in ("/", "/register"):
            policy = routes_by_path[path].policy
            assert policy.requires_auth is False
            assert policy.requires_rate_limit is False

    @pytest.mark.parametrize("path", ["/api/dashboard", "/api/bar", "/api/team", "/api/reserve-table"])
    def test_member_pages_are_fully_guarded(self, routes_by_path, path):
        policy = routes_by_path[path].policy
        assert policy.requires_auth is True
        assert policy.requires_rate_limit is True
        assert policy.kind is RouteKind.BROWSER

    def test_every_venue_has_a_guarded_page(self, routes_by_path):
        for venue in VENUES:
            route = routes_by_path[venue.link]
            assert route.template == "venue.html"
            assert route.policy.requires_auth is True

    def test_info_pages_are_public_but_limited(self, routes_by_path):
        for key in INFO_PAGES:
            policy = routes_by_path[f"/api/{key}"].policy
            assert policy.requires_auth is False
            assert policy.requires_rate_limit is True


class TestPageContext:
    """Test cases for page_context."""

    def test_bars_split_by_city(self):
        context = page_context("bars")

        assert len(context["chdBars"]) == 4
        assert len(context["ldhBars"]) == 4
        assert context["chdBars"][0] == {
            "name": "BREWESTATE",
            "image": "/images/brewestate.png",
            "link": "/api/brewestate",
        }

    def test_venue_page(self):
        venue = page_context("paara")["venue"]

        assert venue.name == "PAARA - NIGHT CLUB"
        assert venue.city == "Ludhiana"

    def test_team(self):
        names = [member["name"] for member in page_context("team")["team"]]
        assert names == ["Ansh Vohra", "Akhil Handa", "Anmol Singh"]

    def test_info_page(self):
        assert page_context("faq") == {"page_key": "faq", "title": "Frequently Asked Questions"}

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            page_context("nowhere")
