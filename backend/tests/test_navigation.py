"""
Unit Tests for Hash-Route Resolution

Usage:
    cd backend && pytest tests/test_navigation.py -v
"""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from portal.navigation import HOME, ROUTES, apply_route, resolve


class TestResolve:

    @pytest.mark.parametrize("route", ROUTES)
    def test_known_routes_resolve_to_themselves(self, route):
        assert resolve(route).path == route

    @pytest.mark.parametrize("value", ["", "#", "#/nowhere", "#/admin/panel", "garbage"])
    def test_unknown_routes_fall_back_home(self, value):
        assert resolve(value).path == HOME

    def test_query_parameters_are_parsed(self):
        route = resolve("#/apply?preselectedGrant=sba-biz-2026")
        assert route.path == "#/apply"
        assert route.params == {"preselectedGrant": "sba-biz-2026"}

    def test_trailing_slash_is_ignored(self):
        assert resolve("#/grants/").path == "#/grants"

    def test_missing_hash_prefix(self):
        assert resolve("/dashboard").path == "#/dashboard"

    def test_unknown_route_drops_params(self):
        assert resolve("#/nowhere?x=1").params == {}


class TestApplyRoute:

    def test_round_trips_through_resolve(self):
        route = resolve(apply_route("home-equity-24"))
        assert route.path == "#/apply"
        assert route.params["preselectedGrant"] == "home-equity-24"
