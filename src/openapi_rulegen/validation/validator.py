"""Reconciles implemented routes with documented endpoints.

Both sides are keyed by their normalized signature (``GET:/users/{param1}``)
so parameter names never cause a mismatch; only the method, the literal
path segments and the parameter positions do.
"""

import logging

from openapi_rulegen.errors import RuleGenError
from openapi_rulegen.parser.base import EndpointDefinition, OpenApiDocument
from openapi_rulegen.parser.servers import resolve_base_path
from openapi_rulegen.parser.swagger import SchemaExtractor

from . import patterns
from .comparator import RouteComparator
from .models import Mismatch, RouteMatch, ValidationOptions, ValidationResult
from .routes import Route

logger = logging.getLogger(__name__)

METHOD_ORDER = {"GET": 1, "POST": 2, "PUT": 3, "PATCH": 4, "DELETE": 5, "HEAD": 6, "OPTIONS": 7}


def coverage_percentage(covered: int, total: int) -> float:
    if total == 0:
        return 100.0
    return round(covered / total * 100, 2)


def total_coverage_percentage(total_routes: int, total_endpoints: int, covered_routes: int, covered_endpoints: int) -> float:
    """Share of items matched on both sides; each match covers one route and one endpoint."""
    total = total_routes + total_endpoints
    if total == 0:
        return 100.0
    return round(min(covered_routes, covered_endpoints) * 2 / total * 100, 2)


def _sort_key(match: RouteMatch) -> tuple:
    return (match.path, METHOD_ORDER.get(match.method, 99), match.method)


class RouteValidator:
    def __init__(self, comparator: RouteComparator | None = None, extractor: SchemaExtractor | None = None):
        self.comparator = comparator or RouteComparator()
        self.extractor = extractor or SchemaExtractor()

    def validate(
        self,
        document: OpenApiDocument,
        routes: list[Route],
        options: ValidationOptions | None = None,
    ) -> ValidationResult:
        """Resolve the base path, extract endpoints and validate.

        Any failure becomes a failed result holding one ``validation_error``.
        """
        options = options or ValidationOptions()
        try:
            base_path = resolve_base_path(document, options.base_path)
            endpoints = self.extractor.extract_endpoints(document, base_path=base_path)
            return self.validate_routes(routes, endpoints, options)
        except (RuleGenError, ValueError) as e:
            logger.error("Route validation failed: %s", e)
            return ValidationResult.failed([Mismatch.error(str(e))])

    def validate_routes(
        self,
        routes: list[Route],
        endpoints: list[EndpointDefinition],
        options: ValidationOptions | None = None,
    ) -> ValidationResult:
        options = options or ValidationOptions()

        if options.include_patterns:
            endpoints = [e for e in endpoints if patterns.matches_any(options.include_patterns, e.path)]
            routes = [r for r in routes if self.should_include_route(r, options)]

        route_map = self._signature_map(routes, lambda r: r.normalized_signature())
        endpoint_map = self._signature_map(endpoints, lambda e: e.normalized_signature())

        matches = self._build_matches(route_map, endpoint_map, endpoints, options)
        mismatches = [match.mismatch for match in matches if match.mismatch is not None]

        filtered = bool(options.filter_types)
        if filtered:
            mismatches = [m for m in mismatches if m.type in options.filter_types]
            matches = [m for m in matches if m.mismatch is not None and m.mismatch.type in options.filter_types]

        matches.sort(key=_sort_key)

        statistics = self.statistics(routes, endpoints, mismatches, filtered)
        extra = {} if filtered else {"all_routes": routes, "all_endpoints": endpoints}
        return ValidationResult(
            is_valid=not mismatches,
            mismatches=mismatches,
            statistics=statistics,
            matches=matches,
            **extra,
        )

    def should_include_route(self, route: Route, options: ValidationOptions) -> bool:
        """Exclude-middleware and include-pattern filters, then the API-route heuristic."""
        if any(route.has_middleware(m) for m in options.exclude_middleware):
            return False
        if options.include_patterns and not patterns.matches_any(options.include_patterns, route.normalized_path()):
            return False
        return route.is_api_route()

    def statistics(
        self,
        routes: list[Route],
        endpoints: list[EndpointDefinition],
        mismatches: list[Mismatch],
        filtered: bool = False,
    ) -> dict:
        breakdown: dict[str, int] = {}
        for mismatch in mismatches:
            breakdown[mismatch.type] = breakdown.get(mismatch.type, 0) + 1

        missing_docs = breakdown.get("missing_documentation", 0)
        missing_impl = breakdown.get("missing_implementation", 0)

        if filtered:
            # only the filtered mismatches are counted, all of them uncovered
            total_routes, total_endpoints = missing_docs, missing_impl
            covered_routes = covered_endpoints = 0
        else:
            total_routes, total_endpoints = len(routes), len(endpoints)
            covered_routes = max(0, total_routes - missing_docs)
            covered_endpoints = max(0, total_endpoints - missing_impl)

        return {
            "total_routes": total_routes,
            "covered_routes": covered_routes,
            "route_coverage_percentage": coverage_percentage(covered_routes, total_routes),
            "total_endpoints": total_endpoints,
            "covered_endpoints": covered_endpoints,
            "endpoint_coverage_percentage": coverage_percentage(covered_endpoints, total_endpoints),
            "total_mismatches": len(mismatches),
            "mismatch_breakdown": breakdown,
            "total_coverage_percentage": total_coverage_percentage(
                total_routes, total_endpoints, covered_routes, covered_endpoints
            ),
        }

    def _signature_map(self, items, signature) -> dict[str, list]:
        result: dict[str, list] = {}
        for item in items:
            result.setdefault(signature(item), []).append(item)
        return result

    def _build_matches(
        self,
        route_map: dict[str, list[Route]],
        endpoint_map: dict[str, list[EndpointDefinition]],
        endpoints: list[EndpointDefinition],
        options: ValidationOptions,
    ) -> list[RouteMatch]:
        matches = []
        for signature, routes in route_map.items():
            if signature in endpoint_map:
                route = routes[0]
                endpoint = endpoint_map[signature][0]
                matches.append(RouteMatch.matched(route, endpoint, self._parameter_mismatch(route, endpoint)))
                continue

            for route in routes:
                if not self.should_include_route(route, options):
                    logger.debug("Not reporting %s: filtered out", route.signature())
                    continue
                suggestions = self._suggestions(route, endpoints) if options.suggestions else None
                matches.append(RouteMatch.undocumented(route, Mismatch.missing_documentation(route, suggestions)))

        for signature, documented in endpoint_map.items():
            if signature in route_map:
                continue
            for endpoint in documented:
                matches.append(RouteMatch.unimplemented(endpoint, Mismatch.missing_implementation(endpoint)))

        return matches

    def _parameter_mismatch(self, route: Route, endpoint: EndpointDefinition) -> Mismatch | None:
        route_params = list(route.path_parameters)
        documented_params = endpoint.path_parameters()
        # names may differ freely, only the count matters
        if len(route_params) == len(documented_params):
            return None
        return Mismatch.parameter_mismatch(
            route.normalized_path(), route.primary_method(), route_params, documented_params
        )

    def _suggestions(self, route: Route, endpoints: list[EndpointDefinition]) -> list[str] | None:
        candidates = self.comparator.find_similar_endpoints(route, endpoints)[:3]
        if not candidates:
            return None
        suggestions = []
        for candidate in candidates:
            endpoint = candidate["endpoint"]
            suggestions.append(
                f"Similar documented endpoint: {endpoint.display_name} (similarity {candidate['similarity']:.2f})"
            )
            suggestions += [
                s for s in self.comparator.matching_suggestions(route, endpoint) if s not in suggestions
            ]
        return suggestions
