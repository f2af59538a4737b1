import pytest

from openapi_rulegen.parser.base import OpenApiDocument
from openapi_rulegen.parser.servers import (
    base_path_from_url,
    default_base_path,
    extract_base_paths,
    normalize_base_path,
    resolve_base_path,
)


def _doc(*urls) -> OpenApiDocument:
    return OpenApiDocument.from_dict({"openapi": "3.0.3", "paths": {}, "servers": [{"url": url} for url in urls]})


class TestBasePathFromUrl:
    def test_absolute_urls(self):
        assert base_path_from_url("https://api.example.com/api/v1/") == "/api/v1"
        assert base_path_from_url("http://localhost:8000") == ""

    def test_relative_and_other_schemes(self):
        assert base_path_from_url("/api") == ""
        assert base_path_from_url("ftp://files.example.com/pub") == ""

    def test_normalize(self):
        assert normalize_base_path("api/") == "/api"
        assert normalize_base_path(" / ") == ""
        assert normalize_base_path("") == ""


class TestExtractBasePaths:
    def test_distinct_in_order(self):
        doc = _doc("https://a.example.com/v2", "https://b.example.com/v1", "https://c.example.com/v2/", "https://d.example.com")
        assert extract_base_paths(doc) == ["/v2", "/v1"]
        assert default_base_path(doc) == "/v2"

    def test_no_servers(self):
        assert extract_base_paths(_doc()) == []
        assert default_base_path(_doc()) == ""


class TestResolveBasePath:
    def test_single_server(self):
        assert resolve_base_path(_doc("https://api.example.com/api")) == "/api"

    def test_user_choice_among_servers(self):
        doc = _doc("https://a.example.com/v1", "https://a.example.com/v2")
        assert resolve_base_path(doc, "v2/") == "/v2"

    def test_unknown_user_choice(self):
        with pytest.raises(ValueError, match="not found in servers"):
            resolve_base_path(_doc("https://api.example.com/api"), "/v9")

    def test_ambiguous_servers(self):
        with pytest.raises(ValueError, match="Multiple server base paths"):
            resolve_base_path(_doc("https://a.example.com/v1", "https://a.example.com/v2"))

    def test_user_choice_without_servers(self):
        assert resolve_base_path(_doc(), "/custom") == "/custom"

    def test_nothing_declared(self):
        assert resolve_base_path(_doc()) == ""
