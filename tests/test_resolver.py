import threading

import pytest

from openapi_rulegen.errors import (
    CircularReferenceError,
    InvalidReferenceError,
    ReferenceNotFoundError,
)
from openapi_rulegen.parser.base import OpenApiDocument
from openapi_rulegen.parser.resolver import (
    ReferenceResolver,
    ResolverCache,
    get_references,
    parse_reference,
    reference_type,
    validate_reference,
)


def _document(schemas: dict, **extra) -> OpenApiDocument:
    return OpenApiDocument.from_dict({"openapi": "3.0.3", "paths": {}, "components": {"schemas": schemas, **extra}})


ADDRESS = {"type": "object", "properties": {"city": {"type": "string"}}}
USER = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "address": {"$ref": "#/components/schemas/Address"},
        "previous": {"type": "array", "items": {"$ref": "#/components/schemas/Address"}},
    },
}


class TestParseReference:
    def test_segments(self):
        assert parse_reference("#/components/schemas/User") == ["components", "schemas", "User"]

    def test_escapes_are_decoded(self):
        assert parse_reference("#/paths/~1users~1{id}/a~0b") == ["paths", "/users/{id}", "a~b"]

    def test_must_be_internal(self):
        with pytest.raises(InvalidReferenceError):
            parse_reference("other.yaml#/components/schemas/User")

    def test_reference_type(self):
        assert reference_type("#/components/schemas/User") == "schema"
        assert reference_type("#/components/requestBodies/Body") == "requestBody"
        assert reference_type("#/paths/x") == "unknown"
        assert reference_type("User") == "unknown"

    def test_validate_reference(self):
        assert validate_reference("#/components/schemas/User")["valid"]
        assert validate_reference("")["errors"] == ["Reference cannot be empty"]
        assert validate_reference("file.yaml#/x")["errors"] == ["External file references are not supported"]
        assert validate_reference("components/x")["errors"] == ["Reference must start with #/"]

    def test_get_references(self):
        assert get_references(USER) == ["#/components/schemas/Address"]
        assert get_references({"allOf": [{"$ref": "#/a"}, {"oneOf": [{"$ref": "#/b"}]}]}) == ["#/a", "#/b"]


class TestReferenceResolver:
    def test_resolve_expands_nested_references(self):
        doc = _document({"User": USER, "Address": ADDRESS})
        resolved = ReferenceResolver().resolve("#/components/schemas/User", doc)
        assert resolved["properties"]["address"] == ADDRESS
        assert resolved["properties"]["previous"]["items"] == ADDRESS

    def test_siblings_override_target(self):
        doc = _document({"Address": ADDRESS})
        resolver = ReferenceResolver()
        resolved = resolver.resolve_all({"$ref": "#/components/schemas/Address", "description": "Home"}, doc)
        assert resolved["description"] == "Home"
        assert resolved["properties"] == ADDRESS["properties"]

    def test_two_schema_cycle_raises(self):
        doc = _document(
            {
                "A": {"type": "object", "properties": {"b": {"$ref": "#/components/schemas/B"}}},
                "B": {"type": "object", "properties": {"a": {"$ref": "#/components/schemas/A"}}},
            }
        )
        with pytest.raises(CircularReferenceError) as exc_info:
            ReferenceResolver().resolve("#/components/schemas/A", doc)
        assert exc_info.value.chain == [
            "#/components/schemas/A",
            "#/components/schemas/B",
            "#/components/schemas/A",
        ]
        assert "Circular reference detected" in str(exc_info.value)

    def test_stack_is_unwound_after_cycle(self):
        doc = _document({"A": {"properties": {"a": {"$ref": "#/components/schemas/A"}}}, "Address": ADDRESS})
        resolver = ReferenceResolver()
        with pytest.raises(CircularReferenceError):
            resolver.resolve("#/components/schemas/A", doc)
        assert resolver.resolve("#/components/schemas/Address", doc) == ADDRESS

    def test_missing_target(self):
        with pytest.raises(ReferenceNotFoundError) as exc_info:
            ReferenceResolver().resolve("#/components/schemas/Missing", _document({}))
        assert exc_info.value.ref == "#/components/schemas/Missing"

    def test_external_reference_rejected(self):
        with pytest.raises(InvalidReferenceError):
            ReferenceResolver().resolve("common.yaml#/components/schemas/Error", _document({}))

    def test_reference_without_fragment_rejected(self):
        with pytest.raises(InvalidReferenceError):
            ReferenceResolver().resolve("components/schemas/User", _document({}))

    def test_non_mapping_target_resolves_to_none(self):
        doc = OpenApiDocument.from_dict({"openapi": "3.0.3", "info": {"title": "T"}, "paths": {}})
        assert ReferenceResolver().resolve("#/info/title", doc) is None

    def test_cache_hits(self):
        doc = _document({"User": USER, "Address": ADDRESS})
        resolver = ReferenceResolver()
        resolver.resolve("#/components/schemas/User", doc)
        resolver.resolve("#/components/schemas/User", doc)
        stats = resolver.cache_stats()
        assert stats["cache_size"] == 2
        assert stats["cache_hits"] >= 1
        assert "#/components/schemas/User" in stats["cached_references"]

        resolver.clear_cache()
        assert resolver.cache_stats()["cache_size"] == 0

    def test_cache_is_emptied_for_a_new_document(self):
        resolver = ReferenceResolver()
        first = _document({"Address": ADDRESS})
        second = _document({"Address": {"type": "object", "properties": {"zip": {"type": "string"}}}})

        assert list(resolver.resolve("#/components/schemas/Address", first)["properties"]) == ["city"]
        assert list(resolver.resolve("#/components/schemas/Address", second)["properties"]) == ["zip"]
        assert resolver.cache_stats()["cached_references"] == ["#/components/schemas/Address"]

    def test_max_depth_stops_expansion(self):
        doc = _document({"Address": ADDRESS})
        schema = {"properties": {"a": {"$ref": "#/components/schemas/Address"}}}
        resolved = ReferenceResolver(max_depth=1).resolve_all(schema, doc)
        assert resolved["properties"]["a"] == {"$ref": "#/components/schemas/Address"}

    def test_reference_exists(self):
        doc = _document({"Address": ADDRESS})
        resolver = ReferenceResolver()
        assert resolver.reference_exists("#/components/schemas/Address", doc)
        assert not resolver.reference_exists("#/components/schemas/Nope", doc)

    def test_flatten_reference_follows_chains(self):
        doc = _document(
            {
                "Alias": {"$ref": "#/components/schemas/Address", "description": "Alias"},
                "Address": ADDRESS,
            }
        )
        flattened = ReferenceResolver().flatten_reference("#/components/schemas/Alias", doc)
        assert flattened["type"] == "object"
        assert flattened["description"] == "Alias"

    def test_has_circular_references(self):
        doc = _document({"Node": {"properties": {"next": {"$ref": "#/components/schemas/Node"}}}, "Address": ADDRESS})
        resolver = ReferenceResolver()
        assert resolver.has_circular_references({"$ref": "#/components/schemas/Node"}, doc)
        assert not resolver.has_circular_references({"$ref": "#/components/schemas/Address"}, doc)

    def test_validate_references(self):
        doc = OpenApiDocument.from_dict(
            {
                "openapi": "3.0.3",
                "paths": {
                    "/users": {
                        "post": {
                            "requestBody": {
                                "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Nope"}}}
                            }
                        }
                    }
                },
                "components": {"schemas": {"User": {"properties": {"a": {"$ref": "#/components/schemas/Gone"}}}}},
            }
        )
        result = ReferenceResolver().validate_references(doc)
        assert result["valid"] is False
        assert result["errors"] == [
            "Invalid reference in schema 'User': #/components/schemas/Gone",
            "Invalid reference in post /users (application/json): #/components/schemas/Nope",
        ]

    def test_shared_between_threads(self):
        doc = _document({"User": USER, "Address": ADDRESS})
        resolver = ReferenceResolver()
        results = []

        def _work():
            results.append(resolver.resolve("#/components/schemas/User", doc))

        threads = [threading.Thread(target=_work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(results) == 8
        assert all(result == results[0] for result in results)


class TestResolverCache:
    def test_evicts_oldest_quarter_when_full(self):
        cache = ResolverCache(max_size=4)
        for i in range(4):
            cache.put(f"#/r{i}", {"i": i})
        cache.put("#/r4", {"i": 4})
        assert len(cache) == 4
        assert "#/r0" not in cache
        assert "#/r4" in cache

    def test_overwriting_does_not_evict(self):
        cache = ResolverCache(max_size=2)
        cache.put("#/a", {})
        cache.put("#/b", {})
        cache.put("#/a", {"x": 1})
        assert len(cache) == 2
        assert cache.get("#/a") == {"x": 1}
