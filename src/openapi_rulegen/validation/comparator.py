"""Similarity scoring between implemented routes and documented endpoints.

Used to suggest the documented endpoint a route was probably meant to
match when their signatures differ.
"""

import hashlib
import re

from pydantic import BaseModel

from openapi_rulegen.parser.base import EndpointDefinition

from .routes import Route

_PARAM_SEGMENT_RE = re.compile(r"^\{.+\}$")

PARAMETER_SYNONYMS = (
    ("id", "identifier"),
    ("user_id", "userId", "user"),
    ("post_id", "postId", "post"),
    ("category_id", "categoryId", "category"),
    ("user_id", "userid"),
)


class SimilarityWeights(BaseModel):
    """Scoring constants; candidates must score strictly above ``cutoff``."""

    path_weight: float = 0.8
    method_weight: float = 0.2
    cutoff: float = 0.5
    parameter_score: float = 0.8


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert, delete and substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def normalize_method(method: str) -> str:
    return method.strip().upper()


def normalize_path(path: str) -> str:
    path = "/" + path.lstrip("/")
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"
    path = re.sub(r"\{([^}?]+)\?\}", r"{\1}", path)
    return path.lower()


def to_snake_case(value: str) -> str:
    return re.sub(r"([a-z])([A-Z])", r"\1_\2", value).lower()


def to_camel_case(value: str) -> str:
    words = value.replace("_", " ").split()
    pascal = "".join(word[:1].upper() + word[1:] for word in words)
    return pascal[:1].lower() + pascal[1:]


def are_parameter_variations(first: str, second: str) -> bool:
    """Whether two parameter names plausibly denote the same thing."""
    if first == second:
        return True
    for group in PARAMETER_SYNONYMS:
        if first in group and second in group:
            return True
    first_forms = {to_snake_case(first), to_camel_case(first)}
    second_forms = {to_snake_case(second), to_camel_case(second)}
    return bool(first_forms & second_forms)


class RouteComparator:
    def __init__(self, weights: SimilarityWeights | None = None):
        self.weights = weights or SimilarityWeights()

    def exact_match(self, route: Route, endpoint: EndpointDefinition) -> bool:
        return normalize_method(route.primary_method()) == normalize_method(endpoint.method) and normalize_path(
            route.normalized_path()
        ) == normalize_path(endpoint.path)

    def path_similarity(self, first: str, second: str) -> float:
        first = normalize_path(first)
        second = normalize_path(second)
        if first == second:
            return 1.0

        first_parts = first.strip("/").split("/")
        second_parts = second.strip("/").split("/")
        if len(first_parts) == len(second_parts):
            score = 0.0
            for part_a, part_b in zip(first_parts, second_parts):
                if part_a == part_b:
                    score += 1.0
                elif _PARAM_SEGMENT_RE.match(part_a) and _PARAM_SEGMENT_RE.match(part_b):
                    if are_parameter_variations(part_a.strip("{}"), part_b.strip("{}")):
                        score += 1.0
                    else:
                        score += self.weights.parameter_score
            return score / len(first_parts)

        longest = max(len(first), len(second))
        if longest == 0:
            return 1.0
        return 1.0 - levenshtein(first, second) / longest

    def method_similarity(self, first: str, second: str) -> float:
        return 1.0 if normalize_method(first) == normalize_method(second) else 0.0

    def similarity(self, route: Route, endpoint: EndpointDefinition) -> float:
        path_score = self.path_similarity(route.normalized_path(), endpoint.path)
        method_score = self.method_similarity(route.primary_method(), endpoint.method)
        return path_score * self.weights.path_weight + method_score * self.weights.method_weight

    def find_similar_endpoints(self, route: Route, endpoints: list[EndpointDefinition]) -> list[dict]:
        """Endpoints scoring above the cutoff, best first."""
        candidates = []
        for endpoint in endpoints:
            score = self.similarity(route, endpoint)
            if score > self.weights.cutoff:
                candidates.append({"endpoint": endpoint, "similarity": score})
        candidates.sort(key=lambda c: c["similarity"], reverse=True)
        return candidates

    def find_similar_routes(self, endpoint: EndpointDefinition, routes: list[Route]) -> list[dict]:
        candidates = []
        for route in routes:
            score = self.similarity(route, endpoint)
            if score > self.weights.cutoff:
                candidates.append({"route": route, "similarity": score})
        candidates.sort(key=lambda c: c["similarity"], reverse=True)
        return candidates

    def have_similar_parameters(self, route: Route, endpoint: EndpointDefinition) -> bool:
        route_params = route.path_parameters
        endpoint_params = endpoint.path_parameters()
        if len(route_params) != len(endpoint_params):
            return False
        return all(
            are_parameter_variations(a.lower(), b.lower()) for a, b in zip(route_params, endpoint_params)
        )

    def matching_suggestions(self, route: Route, endpoint: EndpointDefinition) -> list[str]:
        suggestions = []
        path_score = self.path_similarity(route.normalized_path(), endpoint.path)
        method_score = self.method_similarity(route.primary_method(), endpoint.method)

        if path_score > 0.8 and method_score < 1.0:
            suggestions.append(
                f"Consider changing HTTP method from '{route.primary_method()}' to '{endpoint.method}' or vice versa"
            )
        if method_score == 1.0 and 0.6 < path_score < 1.0:
            suggestions.append(
                f"Paths are similar but not identical: '{route.normalized_path()}' vs '{endpoint.path}'"
            )
            suggestions.append("Check for parameter naming differences or path structure variations")
        if self.have_similar_parameters(route, endpoint):
            suggestions.append("Parameter structures match - this might be the same endpoint")
        return suggestions

    def fingerprint(self, method: str, path: str) -> str:
        key = f"{normalize_method(method)}:{normalize_path(path)}"
        return hashlib.md5(key.encode("utf-8")).hexdigest()

    def batch_compare(self, routes: list[Route], endpoints: list[EndpointDefinition]) -> dict:
        """Pair routes and endpoints with identical method and normalized path."""
        route_map = {self.fingerprint(r.primary_method(), r.normalized_path()): r for r in routes}
        endpoint_map = {self.fingerprint(e.method, e.path): e for e in endpoints}

        matched = []
        unmatched_routes = []
        for fingerprint, route in route_map.items():
            endpoint = endpoint_map.pop(fingerprint, None)
            if endpoint is None:
                unmatched_routes.append(route)
            else:
                matched.append({"route": route, "endpoint": endpoint, "type": "exact"})

        return {
            "matches": matched,
            "unmatched_routes": unmatched_routes,
            "unmatched_endpoints": list(endpoint_map.values()),
        }
