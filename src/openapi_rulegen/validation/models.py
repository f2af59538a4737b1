"""Result models of route validation."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

from openapi_rulegen.parser.base import EndpointDefinition

from .routes import Route

MismatchType = Literal[
    "missing_documentation",
    "missing_implementation",
    "method_mismatch",
    "parameter_mismatch",
    "path_mismatch",
    "validation_error",
]

MISMATCH_TYPES = (
    "missing_documentation",
    "missing_implementation",
    "method_mismatch",
    "parameter_mismatch",
    "path_mismatch",
    "validation_error",
)

Severity = Literal["error", "warning", "info"]

SEVERITY_LEVELS = {"error": 3, "warning": 2, "info": 1}

MatchStatus = Literal["match", "missing_documentation", "missing_implementation", "parameter_mismatch"]


def _difference(first: list[str], second: list[str]) -> list[str]:
    return [item for item in first if item not in second]


class Mismatch(BaseModel):
    """One discrepancy between routes and documentation."""

    model_config = ConfigDict(frozen=True)

    type: MismatchType
    message: str
    path: str
    method: str
    details: dict = {}
    suggestions: list[str] = []
    severity: Severity = "error"

    @classmethod
    def missing_documentation(cls, route: Route, suggestions: list[str] | None = None) -> "Mismatch":
        return cls(
            type="missing_documentation",
            message=f"Route '{route.signature()}' is implemented but not documented in the OpenAPI document",
            path=route.normalized_path(),
            method=route.primary_method(),
            details={"route_name": route.name, "action": route.action, "middleware": list(route.middleware)},
            suggestions=suggestions
            or [
                f"Add '{route.primary_method()} {route.normalized_path()}' to your OpenAPI document",
                "Consider if this route should be excluded from API documentation",
            ],
        )

    @classmethod
    def missing_implementation(cls, endpoint: EndpointDefinition, suggestions: list[str] | None = None) -> "Mismatch":
        return cls(
            type="missing_implementation",
            message=f"Endpoint '{endpoint.display_name}' is documented but not implemented in the routes",
            path=endpoint.path,
            method=endpoint.method,
            details={"operation_id": endpoint.operation_id, "summary": endpoint.summary, "tags": list(endpoint.tags)},
            suggestions=suggestions
            or [
                f"Implement route '{endpoint.method} {endpoint.path}' in your application",
                "Remove this endpoint from the OpenAPI document if not needed",
            ],
        )

    @classmethod
    def method_mismatch(cls, path: str, route_methods: list[str], documented_methods: list[str]) -> "Mismatch":
        return cls(
            type="method_mismatch",
            message=f"Path '{path}' has different HTTP methods in the routes vs the OpenAPI document",
            path=path,
            method=",".join([*route_methods, *documented_methods]),
            details={
                "route_methods": route_methods,
                "openapi_methods": documented_methods,
                "missing_in_routes": _difference(documented_methods, route_methods),
                "missing_in_openapi": _difference(route_methods, documented_methods),
            },
            suggestions=[
                "Align HTTP methods between the routes and the OpenAPI document",
                "Consider if different methods are intentionally excluded",
            ],
        )

    @classmethod
    def parameter_mismatch(
        cls, path: str, method: str, route_params: list[str], documented_params: list[str]
    ) -> "Mismatch":
        return cls(
            type="parameter_mismatch",
            message=f"Path '{path}' has different parameters in the routes vs the OpenAPI document",
            path=path,
            method=method,
            details={
                "route_parameters": route_params,
                "openapi_parameters": documented_params,
                "missing_in_routes": _difference(documented_params, route_params),
                "missing_in_openapi": _difference(route_params, documented_params),
            },
            suggestions=[
                "Align path parameters between the routes and the OpenAPI document",
                "Check for parameter naming differences (camelCase vs snake_case)",
            ],
        )

    @classmethod
    def error(cls, message: str, path: str = "", method: str = "", type: MismatchType = "validation_error") -> "Mismatch":
        return cls(type=type, message=message, path=path, method=method, severity="error")

    @property
    def severity_level(self) -> int:
        return SEVERITY_LEVELS.get(self.severity, 0)

    def is_error(self) -> bool:
        return self.severity == "error"

    def is_warning(self) -> bool:
        return self.severity == "warning"

    def suggestions_text(self) -> str:
        if not self.suggestions:
            return "No suggestions available"
        return "\n".join(f"- {suggestion}" for suggestion in self.suggestions)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "path": self.path,
            "method": self.method,
            "severity": self.severity,
            "details": self.details,
            "suggestions": list(self.suggestions),
        }


class RouteMatch(BaseModel):
    """Outcome for one signature: both sides present, or only one."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    route: Route | None = None
    endpoint: EndpointDefinition | None = None
    status: MatchStatus = "match"
    mismatch: Mismatch | None = None

    @classmethod
    def matched(cls, route: Route, endpoint: EndpointDefinition, mismatch: Mismatch | None = None) -> "RouteMatch":
        return cls(
            method=endpoint.method,
            path=endpoint.path,
            route=route,
            endpoint=endpoint,
            status="parameter_mismatch" if mismatch is not None else "match",
            mismatch=mismatch,
        )

    @classmethod
    def undocumented(cls, route: Route, mismatch: Mismatch) -> "RouteMatch":
        return cls(
            method=route.primary_method(),
            path=route.normalized_path(),
            route=route,
            status="missing_documentation",
            mismatch=mismatch,
        )

    @classmethod
    def unimplemented(cls, endpoint: EndpointDefinition, mismatch: Mismatch) -> "RouteMatch":
        return cls(
            method=endpoint.method,
            path=endpoint.path,
            endpoint=endpoint,
            status="missing_implementation",
            mismatch=mismatch,
        )

    def is_match(self) -> bool:
        return self.route is not None and self.endpoint is not None

    @property
    def source(self) -> str:
        if self.route is not None and self.endpoint is not None:
            return "Both"
        if self.route is not None:
            return "Route"
        if self.endpoint is not None:
            return "OpenAPI"
        return "Unknown"

    @property
    def display_status(self) -> str:
        return {
            "match": "",
            "missing_documentation": "Missing Doc",
            "missing_implementation": "Missing Impl",
            "parameter_mismatch": "Param Mismatch",
        }[self.status]

    def route_parameters(self) -> list[str]:
        return list(self.route.path_parameters) if self.route is not None else []

    def documented_parameters(self) -> list[str]:
        return self.endpoint.path_parameters() if self.endpoint is not None else []

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "path": self.path,
            "status": self.status,
            "source": self.source,
            "route_parameters": self.route_parameters(),
            "openapi_parameters": self.documented_parameters(),
            "route": self.route.to_dict() if self.route is not None else None,
            "endpoint": self.endpoint.to_dict() if self.endpoint is not None else None,
            "mismatch": self.mismatch.to_dict() if self.mismatch is not None else None,
        }


class ValidationOptions(BaseModel):
    base_path: str | None = None
    include_patterns: list[str] = []
    exclude_middleware: list[str] = []
    filter_types: list[MismatchType] = []
    suggestions: bool = False


class ValidationResult(BaseModel):
    """Everything one reconciliation run found."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    mismatches: list[Mismatch] = []
    warnings: list[str] = []
    statistics: dict = {}
    matches: list[RouteMatch] = []
    all_routes: list[Route] | None = None
    all_endpoints: list[EndpointDefinition] | None = None

    @classmethod
    def success(cls, statistics: dict | None = None, **kwargs) -> "ValidationResult":
        return cls(is_valid=True, statistics=statistics or {}, **kwargs)

    @classmethod
    def failed(cls, mismatches: list[Mismatch], warnings: list[str] | None = None, **kwargs) -> "ValidationResult":
        return cls(is_valid=False, mismatches=mismatches, warnings=warnings or [], **kwargs)

    @property
    def mismatch_count(self) -> int:
        return len(self.mismatches)

    def mismatches_by_type(self, mismatch_type: str) -> list[Mismatch]:
        return [mismatch for mismatch in self.mismatches if mismatch.type == mismatch_type]

    def mismatch_types(self) -> list[str]:
        types: list[str] = []
        for mismatch in self.mismatches:
            if mismatch.type not in types:
                types.append(mismatch.type)
        return types

    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def summary(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "total_mismatches": self.mismatch_count,
            "mismatch_types": {t: len(self.mismatches_by_type(t)) for t in self.mismatch_types()},
            "warning_count": len(self.warnings),
            "statistics": self.statistics,
        }

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Combine two results; statistics keys of ``other`` win."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            mismatches=[*self.mismatches, *other.mismatches],
            warnings=[*self.warnings, *other.warnings],
            statistics={**self.statistics, **other.statistics},
            matches=[*self.matches, *other.matches],
            all_routes=self.all_routes if self.all_routes is not None else other.all_routes,
            all_endpoints=self.all_endpoints if self.all_endpoints is not None else other.all_endpoints,
        )

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "mismatches": [mismatch.to_dict() for mismatch in self.mismatches],
            "warnings": list(self.warnings),
            "statistics": self.statistics,
            "summary": self.summary(),
        }
