"""Implemented routes, loaded from a route list file.

The file is JSON or YAML: either a list of route records or a mapping with
a ``routes`` list. Records follow ``php artisan route:list --json``: ``uri``,
``method`` (``"GET|HEAD"``) or ``methods`` (list), ``name``, ``action``,
``middleware`` and ``domain``.
"""

import fnmatch
import hashlib
import logging
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from openapi_rulegen.errors import DocumentLoadError
from openapi_rulegen.parser.base import HTTP_METHODS, normalize_parameters
from openapi_rulegen.parser.detect import load_data

logger = logging.getLogger(__name__)

_ROUTE_PARAM_RE = re.compile(r"\{([^}?]+)\??\}")
_OPTIONAL_PARAM_RE = re.compile(r"\{([^}?]+)\?\}")

# uri fragments of debug and admin tooling, never part of a documented API
NON_API_FRAGMENTS = ("_ignition", "telescope", "horizon", "_debugbar", "livewire")

FRAMEWORK_PATTERNS = (
    "_ignition/*",
    "telescope/*",
    "horizon/*",
    "_debugbar/*",
    "livewire/*",
    "nova-api/*",
    "sanctum/*",
)

FRAMEWORK_NAMESPACES = (
    "Illuminate\\",
    "Laravel\\",
    "Facade\\Ignition\\",
    "Barryvdh\\Debugbar\\",
    "Livewire\\",
)


class Route(BaseModel):
    """One implemented HTTP route."""

    model_config = ConfigDict(frozen=True)

    uri: str
    methods: list[str]
    name: str = ""
    action: str = ""
    middleware: list[str] = []
    path_parameters: list[str] = []
    domain: str | None = None

    @field_validator("uri")
    @classmethod
    def _check_uri(cls, value: str) -> str:
        if not value:
            raise ValueError("Route URI cannot be empty")
        return value

    @field_validator("methods", mode="before")
    @classmethod
    def _check_methods(cls, value) -> list[str]:
        if isinstance(value, str):
            value = value.split("|")
        if not value:
            raise ValueError("Route must have at least one HTTP method")
        methods = [str(method).upper() for method in value]
        for method in methods:
            if method not in HTTP_METHODS:
                raise ValueError(f"Invalid HTTP method: {method}")
        return methods

    @classmethod
    def from_record(cls, record: dict) -> "Route":
        uri = str(record.get("uri") or "")
        middleware = record.get("middleware") or []
        if isinstance(middleware, str):
            middleware = [middleware]
        return cls(
            uri=uri,
            methods=record.get("methods", record.get("method")) or [],
            name=record.get("name") or "",
            action=record.get("action") or "",
            middleware=[str(m) for m in middleware],
            path_parameters=record.get("path_parameters") or extract_path_parameters(uri),
            domain=record.get("domain") or None,
        )

    def normalized_path(self) -> str:
        """Leading slash, no surrounding slashes, ``{id?}`` -> ``{id}``."""
        return _OPTIONAL_PARAM_RE.sub(r"{\1}", "/" + self.uri.strip("/"))

    def primary_method(self) -> str:
        """First method that is not HEAD."""
        return next((method for method in self.methods if method != "HEAD"), "GET")

    def has_method(self, method: str) -> bool:
        return method.upper() in self.methods

    def has_path_parameters(self) -> bool:
        return bool(self.path_parameters)

    def has_middleware(self, middleware: str) -> bool:
        return middleware in self.middleware

    def signature(self) -> str:
        return f"{self.primary_method()}:{self.normalized_path()}"

    def normalized_signature(self) -> str:
        return f"{self.primary_method()}:{normalize_parameters(self.normalized_path())}"

    def is_api_route(self) -> bool:
        if any(fragment in self.uri for fragment in NON_API_FRAGMENTS):
            return False
        if self.has_middleware("api"):
            return True
        return self.uri.lstrip("/").startswith("api/")

    def route_id(self) -> str:
        key = self.signature() + ",".join(self.middleware) + (self.domain or "")
        return hashlib.md5(key.encode("utf-8")).hexdigest()

    def to_dict(self) -> dict:
        return {
            "uri": self.uri,
            "methods": list(self.methods),
            "name": self.name,
            "action": self.action,
            "middleware": list(self.middleware),
            "path_parameters": list(self.path_parameters),
            "domain": self.domain,
            "normalized_path": self.normalized_path(),
            "primary_method": self.primary_method(),
            "signature": self.signature(),
            "is_api_route": self.is_api_route(),
        }


def extract_path_parameters(uri: str) -> list[str]:
    """Parameter names of ``{name}`` and optional ``{name?}`` segments."""
    return _ROUTE_PARAM_RE.findall(uri)


def load_routes(file_path: Path) -> list[Route]:
    data = load_data(file_path)
    if isinstance(data, dict):
        data = data.get("routes")
    if not isinstance(data, list):
        raise DocumentLoadError(f"{file_path} must contain a list of routes")

    routes = []
    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise DocumentLoadError(f"Route #{index} in {file_path} is not a mapping")
        try:
            routes.append(Route.from_record(record))
        except ValueError as e:
            raise DocumentLoadError(f"Route #{index} in {file_path} is invalid: {e}") from e
    return routes


def is_closure_route(route: Route) -> bool:
    return "Closure" in route.action


def is_framework_route(route: Route) -> bool:
    uri = route.uri.lstrip("/")
    if any(fnmatch.fnmatchcase(uri, pattern) for pattern in FRAMEWORK_PATTERNS):
        return True
    return route.action.startswith(FRAMEWORK_NAMESPACES)


def filter_routes(
    routes: list[Route],
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
    exclude_middleware: list[str] | None = None,
    include_domains: list[str] | None = None,
) -> list[Route]:
    """Drop closure and framework routes, then apply the caller's filters.

    Patterns are matched against the raw uri; exclude patterns also against
    the route name.
    """
    kept = []
    for route in routes:
        if is_closure_route(route) or is_framework_route(route):
            logger.debug("Skipping framework or closure route %s", route.signature())
            continue
        uri = route.uri.lstrip("/")
        if include_patterns and not any(fnmatch.fnmatchcase(uri, p.lstrip("/")) for p in include_patterns):
            continue
        if exclude_patterns and any(
            fnmatch.fnmatchcase(uri, p.lstrip("/")) or fnmatch.fnmatchcase(route.name, p) for p in exclude_patterns
        ):
            continue
        if exclude_middleware and any(route.has_middleware(m) for m in exclude_middleware):
            continue
        if include_domains and route.domain not in include_domains:
            continue
        kept.append(route)
    return kept


def route_stats(routes: list[Route]) -> dict:
    method_counts: dict[str, int] = {}
    middleware_counts: dict[str, int] = {}
    for route in routes:
        for method in route.methods:
            method_counts[method] = method_counts.get(method, 0) + 1
        for middleware in route.middleware:
            middleware_counts[middleware] = middleware_counts.get(middleware, 0) + 1
    return {
        "total_routes": len(routes),
        "method_distribution": method_counts,
        "middleware_usage": middleware_counts,
        "api_routes": sum(1 for route in routes if route.is_api_route()),
    }
