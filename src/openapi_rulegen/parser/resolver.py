"""Resolution of internal ``$ref`` pointers (``#/components/schemas/User``).

External files and URLs are not supported. Resolved targets are fully
expanded: nested references inside ``properties``, ``items`` and the
``allOf``/``oneOf``/``anyOf`` compositions are resolved as well.
"""

import logging
import threading
from collections import OrderedDict

from openapi_rulegen.errors import (
    CircularReferenceError,
    InvalidReferenceError,
    ReferenceNotFoundError,
    ReferenceResolutionError,
)

from .base import OpenApiDocument

logger = logging.getLogger(__name__)

COMPOSITION_KEYS = ("allOf", "oneOf", "anyOf")

COMPONENT_TYPES = {
    "schemas": "schema",
    "parameters": "parameter",
    "responses": "response",
    "requestBodies": "requestBody",
    "headers": "header",
    "securitySchemes": "securityScheme",
    "links": "link",
    "callbacks": "callback",
}


class ResolverCache:
    """Bounded insertion-ordered cache of resolved references.

    When full, the oldest quarter of the entries is evicted.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self.hits = 0
        self._entries: OrderedDict[str, dict | None] = OrderedDict()

    def __contains__(self, ref: str) -> bool:
        return ref in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, ref: str) -> dict | None:
        self.hits += 1
        return self._entries[ref]

    def put(self, ref: str, value: dict | None) -> None:
        if ref not in self._entries and len(self._entries) >= self.max_size:
            evict = max(1, self.max_size // 4)
            for _ in range(evict):
                self._entries.popitem(last=False)
            logger.debug("Resolver cache full, evicted %d entries", evict)
        self._entries[ref] = value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0

    def stats(self) -> dict:
        return {
            "cache_size": len(self._entries),
            "max_cache_size": self.max_size,
            "cache_hits": self.hits,
            "cached_references": list(self._entries),
        }


def parse_reference(ref: str) -> list[str]:
    """Split an internal pointer into decoded path segments."""
    if not ref.startswith("#/"):
        raise InvalidReferenceError(f"Invalid reference format: {ref}. Must start with '#/'", ref)
    return [part.replace("~1", "/").replace("~0", "~") for part in ref[2:].split("/")]


def is_reference(data) -> bool:
    return isinstance(data, dict) and "$ref" in data


def reference_type(ref: str) -> str:
    """Component kind a pointer targets (``schema``, ``parameter``...), or ``unknown``."""
    if not ref.startswith("#/"):
        return "unknown"
    parts = parse_reference(ref)
    if len(parts) >= 2 and parts[0] == "components":
        return COMPONENT_TYPES.get(parts[1], "unknown")
    return "unknown"


def validate_reference(ref: str) -> dict:
    """Check the format of a pointer without looking it up."""
    if not ref:
        return {"valid": False, "errors": ["Reference cannot be empty"]}
    if ref.find("#") > 0:
        return {"valid": False, "errors": ["External file references are not supported"]}
    if not ref.startswith("#/"):
        return {"valid": False, "errors": ["Reference must start with #/"]}
    return {"valid": True, "errors": []}


def get_references(schema: dict) -> list[str]:
    """All ``$ref`` values used in a raw schema, first occurrence order."""
    references: list[str] = []

    def _collect(node) -> None:
        if not isinstance(node, dict):
            return
        ref = node.get("$ref")
        if isinstance(ref, str) and ref not in references:
            references.append(ref)
        for child in (node.get("properties") or {}).values():
            _collect(child)
        _collect(node.get("items"))
        for key in COMPOSITION_KEYS:
            for child in node.get(key) or []:
                _collect(child)

    _collect(schema)
    return references


class ReferenceResolver:
    """Resolve ``$ref`` pointers against one document.

    The resolution stack detects cycles; finished resolutions go to the
    cache. Stack and cache are guarded by one re-entrant lock so a resolver
    can be shared between threads. The cache only holds targets from the
    document last resolved against; a different document empties it.
    """

    def __init__(self, cache: ResolverCache | None = None, max_depth: int = 10):
        self.cache = cache if cache is not None else ResolverCache()
        self.max_depth = max_depth
        self._stack: list[str] = []
        self._lock = threading.RLock()
        self._document: OpenApiDocument | None = None

    def resolve(self, ref: str, document: OpenApiDocument) -> dict | None:
        """Return the fully resolved target of ``ref``.

        Returns ``None`` when the pointer lands on a non-mapping value.
        """
        with self._lock:
            if document is not self._document:
                self.cache.clear()
                self._document = document

            if ref in self.cache:
                return self.cache.get(ref)

            if ref in self._stack:
                raise CircularReferenceError([*self._stack, ref])

            self._stack.append(ref)
            try:
                resolved = self._lookup(ref, document)
                if resolved:
                    resolved = self.resolve_all(resolved, document)
                self.cache.put(ref, resolved)
                return resolved
            finally:
                self._stack.pop()

    def resolve_all(self, schema: dict, document: OpenApiDocument, depth: int = 0) -> dict:
        """Expand every ``$ref`` in ``schema`` up to ``max_depth`` levels.

        Keys next to a ``$ref`` override the keys of the resolved target.
        """
        if depth >= self.max_depth:
            return schema

        resolved = schema
        ref = schema.get("$ref")
        if isinstance(ref, str):
            target = self.resolve(ref, document)
            if target:
                siblings = {key: value for key, value in schema.items() if key != "$ref"}
                resolved = {**target, **siblings}

        properties = resolved.get("properties")
        if isinstance(properties, dict):
            resolved = {
                **resolved,
                "properties": {
                    name: self.resolve_all(child, document, depth + 1) if isinstance(child, dict) else child
                    for name, child in properties.items()
                },
            }

        items = resolved.get("items")
        if isinstance(items, dict):
            resolved = {**resolved, "items": self.resolve_all(items, document, depth + 1)}

        for key in COMPOSITION_KEYS:
            subschemas = resolved.get(key)
            if isinstance(subschemas, list):
                resolved = {
                    **resolved,
                    key: [
                        self.resolve_all(child, document, depth + 1) if isinstance(child, dict) else child
                        for child in subschemas
                    ],
                }

        return resolved

    def reference_exists(self, ref: str, document: OpenApiDocument) -> bool:
        try:
            return self.resolve(ref, document) is not None
        except ReferenceResolutionError:
            return False

    def flatten_reference(self, ref: str, document: OpenApiDocument) -> dict:
        """Follow a chain of references whose targets are themselves references."""
        resolved = self.resolve(ref, document)
        if not resolved:
            return {}
        nested = resolved.get("$ref")
        if isinstance(nested, str):
            siblings = {key: value for key, value in resolved.items() if key != "$ref"}
            return {**self.flatten_reference(nested, document), **siblings}
        return resolved

    def has_circular_references(self, schema: dict, document: OpenApiDocument, visited: tuple[str, ...] = ()) -> bool:
        ref = schema.get("$ref")
        if isinstance(ref, str):
            if ref in visited:
                return True
            try:
                target = self._lookup(ref, document)
            except ReferenceResolutionError:
                target = None
            if target:
                return self.has_circular_references(target, document, (*visited, ref))

        for child in (schema.get("properties") or {}).values():
            if isinstance(child, dict) and self.has_circular_references(child, document, visited):
                return True

        items = schema.get("items")
        return isinstance(items, dict) and self.has_circular_references(items, document, visited)

    def validate_references(self, document: OpenApiDocument) -> dict:
        """Check every reference used by component schemas and request bodies."""
        errors = []
        for name, schema in document.schemas().items():
            if not isinstance(schema, dict):
                continue
            for ref in get_references(schema):
                if not self.reference_exists(ref, document):
                    errors.append(f"Invalid reference in schema '{name}': {ref}")

        for path, path_item in document.paths.items():
            if not isinstance(path_item, dict):
                continue
            for method, operation in path_item.items():
                if not isinstance(operation, dict) or not isinstance(operation.get("requestBody"), dict):
                    continue
                content = operation["requestBody"].get("content") or {}
                for content_type, media in content.items():
                    if not isinstance(media, dict) or not isinstance(media.get("schema"), dict):
                        continue
                    for ref in get_references(media["schema"]):
                        if not self.reference_exists(ref, document):
                            errors.append(f"Invalid reference in {method} {path} ({content_type}): {ref}")

        return {"valid": not errors, "errors": errors, "warnings": []}

    def clear_cache(self) -> None:
        with self._lock:
            self.cache.clear()
            self._stack.clear()
            self._document = None

    def cache_stats(self) -> dict:
        with self._lock:
            return self.cache.stats()

    def _lookup(self, ref: str, document: OpenApiDocument) -> dict | None:
        if "#" not in ref:
            raise InvalidReferenceError(f"Invalid reference format: {ref}", ref)
        if ref.find("#") > 0:
            raise InvalidReferenceError("External file references are not supported", ref)

        current = document.to_dict()
        for part in parse_reference(ref):
            if not isinstance(current, dict) or part not in current:
                raise ReferenceNotFoundError(f"Reference not found: {ref}", ref)
            current = current[part]

        return current if isinstance(current, dict) else None
