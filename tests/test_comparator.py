import pytest

from openapi_rulegen.parser.base import EndpointDefinition
from openapi_rulegen.validation.comparator import (
    RouteComparator,
    SimilarityWeights,
    are_parameter_variations,
    levenshtein,
    to_camel_case,
    to_snake_case,
)
from openapi_rulegen.validation.routes import Route


def _route(uri: str, method: str = "GET") -> Route:
    return Route.from_record({"uri": uri, "method": method, "middleware": ["api"]})


def _endpoint(path: str, method: str = "GET", operation_id: str = "op") -> EndpointDefinition:
    return EndpointDefinition(path=path, method=method, operation_id=operation_id)


class TestHelpers:
    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_case_conversion(self):
        assert to_snake_case("userId") == "user_id"
        assert to_camel_case("user_id") == "userId"

    def test_parameter_variations(self):
        assert are_parameter_variations("id", "identifier")
        assert are_parameter_variations("user_id", "userId")
        assert are_parameter_variations("postId", "post_id")
        assert are_parameter_variations("user", "user_id")
        assert not are_parameter_variations("user", "id")


class TestSimilarity:
    def test_identical_paths(self):
        assert RouteComparator().path_similarity("/api/users/", "/API/users") == 1.0

    def test_parameter_synonyms_score_full(self):
        assert RouteComparator().path_similarity("/users/{id}", "/users/{identifier}") == 1.0

    def test_unrelated_parameters_score_partial(self):
        assert RouteComparator().path_similarity("/users/{id}", "/users/{slug}") == pytest.approx(0.9)

    def test_different_literal_segment(self):
        assert RouteComparator().path_similarity("/users", "/orders") == 0.0

    def test_segment_count_mismatch_uses_edit_distance(self):
        assert RouteComparator().path_similarity("/users", "/users/{id}") == pytest.approx(1 - 5 / 11)

    def test_composite(self):
        comparator = RouteComparator()
        score = comparator.similarity(_route("api/users/{user}"), _endpoint("/api/users/{id}"))
        assert score == pytest.approx((2.8 / 3) * 0.8 + 0.2)
        assert comparator.similarity(_route("api/users", "POST"), _endpoint("/api/users")) == pytest.approx(0.8)

    def test_custom_weights(self):
        comparator = RouteComparator(SimilarityWeights(path_weight=0.5, method_weight=0.5, parameter_score=0.0))
        assert comparator.similarity(_route("users/{a}"), _endpoint("/users/{b}")) == pytest.approx(0.75)


class TestFindSimilar:
    def test_sorted_and_filtered(self):
        endpoints = [
            _endpoint("/orders", "POST", operation_id="orders"),
            _endpoint("/api/users/{id}", operation_id="show"),
            _endpoint("/api/users/{id}", "DELETE", operation_id="destroy"),
        ]
        candidates = RouteComparator().find_similar_endpoints(_route("api/users/{user}"), endpoints)
        assert [c["endpoint"].operation_id for c in candidates] == ["show", "destroy"]
        assert candidates[0]["similarity"] > candidates[1]["similarity"]

    def test_cutoff_is_configurable(self):
        comparator = RouteComparator(SimilarityWeights(cutoff=0.95))
        assert comparator.find_similar_endpoints(_route("api/users/{user}"), [_endpoint("/api/users/{id}")]) == []

    def test_find_similar_routes(self):
        routes = [_route("api/users"), _route("api/users", "POST"), _route("web/home")]
        candidates = RouteComparator().find_similar_routes(_endpoint("/api/users"), routes)
        assert [c["route"].primary_method() for c in candidates] == ["GET", "POST"]


class TestSuggestionsAndBatch:
    def test_method_suggestion(self):
        suggestions = RouteComparator().matching_suggestions(_route("api/users", "PUT"), _endpoint("/api/users", "PATCH"))
        assert suggestions[0] == "Consider changing HTTP method from 'PUT' to 'PATCH' or vice versa"

    def test_path_suggestion(self):
        suggestions = RouteComparator().matching_suggestions(_route("api/users/{user}"), _endpoint("/api/users/{id}"))
        assert suggestions[0] == "Paths are similar but not identical: '/api/users/{user}' vs '/api/users/{id}'"

    def test_have_similar_parameters(self):
        comparator = RouteComparator()
        assert comparator.have_similar_parameters(_route("users/{userId}"), _endpoint("/users/{user_id}"))
        assert not comparator.have_similar_parameters(_route("users/{a}/{b}"), _endpoint("/users/{a}"))

    def test_exact_match(self):
        comparator = RouteComparator()
        assert comparator.exact_match(_route("api/users/"), _endpoint("/api/users"))
        assert not comparator.exact_match(_route("api/users", "POST"), _endpoint("/api/users"))

    def test_fingerprint(self):
        comparator = RouteComparator()
        assert comparator.fingerprint("get", "/Users/") == comparator.fingerprint("GET", "/users")

    def test_batch_compare(self):
        result = RouteComparator().batch_compare(
            [_route("api/users"), _route("api/orders")],
            [_endpoint("/api/users"), _endpoint("/api/users", "POST")],
        )
        assert len(result["matches"]) == 1
        assert result["matches"][0]["type"] == "exact"
        assert [r.uri for r in result["unmatched_routes"]] == ["api/orders"]
        assert [e.method for e in result["unmatched_endpoints"]] == ["POST"]
