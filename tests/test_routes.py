from pathlib import Path

import pytest
from pydantic import ValidationError

from openapi_rulegen.errors import DocumentLoadError
from openapi_rulegen.validation.routes import (
    Route,
    extract_path_parameters,
    filter_routes,
    is_closure_route,
    is_framework_route,
    load_routes,
    route_stats,
)

FIXTURES = Path(__file__).parent / "fixtures"


class TestRoute:
    def test_from_route_list_record(self):
        route = Route.from_record({"uri": "api/users/{user}/posts/{post?}", "method": "GET|HEAD", "name": None})
        assert route.methods == ["GET", "HEAD"]
        assert route.path_parameters == ["user", "post"]
        assert route.name == ""
        assert route.normalized_path() == "/api/users/{user}/posts/{post}"
        assert route.primary_method() == "GET"
        assert route.signature() == "GET:/api/users/{user}/posts/{post}"
        assert route.normalized_signature() == "GET:/api/users/{param1}/posts/{param2}"

    def test_methods_list_is_upper_cased(self):
        route = Route.from_record({"uri": "/api/users/", "methods": ["post"], "middleware": "api"})
        assert route.methods == ["POST"]
        assert route.middleware == ["api"]
        assert route.normalized_path() == "/api/users"

    def test_head_only_route(self):
        assert Route(uri="ping", methods=["HEAD"]).primary_method() == "GET"

    def test_invalid_method(self):
        with pytest.raises(ValidationError, match="Invalid HTTP method"):
            Route(uri="api/x", methods=["FETCH"])

    def test_empty_uri_and_methods(self):
        with pytest.raises(ValidationError):
            Route(uri="", methods=["GET"])
        with pytest.raises(ValidationError):
            Route(uri="api/x", methods=[])

    def test_is_api_route(self):
        assert Route(uri="users", methods=["GET"], middleware=["api"]).is_api_route()
        assert Route(uri="/api/users", methods=["GET"]).is_api_route()
        assert not Route(uri="home", methods=["GET"], middleware=["web"]).is_api_route()
        assert not Route(uri="telescope/requests", methods=["GET"], middleware=["api"]).is_api_route()

    def test_route_id(self):
        first = Route(uri="api/users", methods=["GET"], middleware=["api"])
        second = Route(uri="api/users", methods=["GET"], middleware=["api", "auth"])
        assert len(first.route_id()) == 32
        assert first.route_id() == Route(uri="api/users", methods=["GET"], middleware=["api"]).route_id()
        assert first.route_id() != second.route_id()

    def test_to_dict(self):
        data = Route(uri="api/users/{id}", methods=["DELETE"], path_parameters=["id"]).to_dict()
        assert data["signature"] == "DELETE:/api/users/{id}"
        assert data["is_api_route"] is True

    def test_extract_path_parameters(self):
        assert extract_path_parameters("a/{x}/b/{y?}") == ["x", "y"]
        assert extract_path_parameters("plain") == []


class TestLoadRoutes:
    def test_fixture(self):
        routes = load_routes(FIXTURES / "routes.json")
        assert len(routes) == 7
        assert routes[3].methods == ["PUT", "PATCH"]
        assert routes[3].path_parameters == ["user"]

    def test_mapping_with_routes_key(self, tmp_path):
        f = tmp_path / "routes.yaml"
        f.write_text("routes:\n  - uri: api/ping\n    methods: [GET]\n")
        assert load_routes(f)[0].uri == "api/ping"

    def test_not_a_list(self, tmp_path):
        f = tmp_path / "routes.json"
        f.write_text('"nope"')
        with pytest.raises(DocumentLoadError, match="must contain a list of routes"):
            load_routes(f)

    def test_invalid_record(self, tmp_path):
        f = tmp_path / "routes.json"
        f.write_text('[{"uri": "api/x", "method": "BREW"}]')
        with pytest.raises(DocumentLoadError, match="Route #0"):
            load_routes(f)


class TestFilterRoutes:
    def _routes(self):
        return load_routes(FIXTURES / "routes.json")

    def test_drops_closure_and_framework_routes(self):
        routes = self._routes()
        assert is_closure_route(routes[6])
        assert is_framework_route(routes[5])
        kept = filter_routes(routes)
        assert [r.uri for r in kept] == ["api/users", "api/users", "api/users/{user}", "api/users/{user}", "api/orders"]

    def test_framework_namespace(self):
        route = Route(uri="api/broadcast", methods=["POST"], action="Illuminate\\Broadcasting\\BroadcastController@authenticate")
        assert is_framework_route(route)

    def test_include_and_exclude(self):
        routes = self._routes()
        assert len(filter_routes(routes, include_patterns=["/api/users*"])) == 4
        assert len(filter_routes(routes, exclude_patterns=["users.*"])) == 1
        assert len(filter_routes(routes, exclude_patterns=["api/orders"])) == 4
        assert len(filter_routes(routes, exclude_middleware=["auth:sanctum"])) == 3

    def test_include_domains(self):
        routes = [
            Route(uri="api/a", methods=["GET"], domain="admin.example.com"),
            Route(uri="api/b", methods=["GET"]),
        ]
        assert [r.uri for r in filter_routes(routes, include_domains=["admin.example.com"])] == ["api/a"]

    def test_route_stats(self):
        stats = route_stats(filter_routes(self._routes()))
        assert stats["total_routes"] == 5
        assert stats["method_distribution"]["HEAD"] == 3
        assert stats["middleware_usage"] == {"api": 5, "auth:sanctum": 2}
        assert stats["api_routes"] == 5
