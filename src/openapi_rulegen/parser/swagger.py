"""OpenAPI document parser.

Extracts EndpointDefinitions, with their request schemas, from OpenAPI 3.x
documents.
"""

import logging
import re
from pathlib import Path

from pydantic import ValidationError

from openapi_rulegen.errors import ReferenceResolutionError

from .base import HTTP_METHODS, EndpointDefinition, OpenApiDocument, SchemaNode
from .detect import load_document
from .resolver import ReferenceResolver
from .schema import build_schema

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^3\.[01]\.\d+$")


def parse_openapi(file_path: Path, base_path: str = "") -> list[EndpointDefinition]:
    """Parse an OpenAPI file into a list of EndpointDefinition."""
    document = load_document(file_path)
    return SchemaExtractor().extract_endpoints(document, base_path=base_path)


class SchemaExtractor:
    """Walks ``paths`` and builds one EndpointDefinition per operation.

    Failures tied to a single operation (a dangling ``$ref``, contradictory
    constraints) do not abort extraction: the endpoint is listed without a
    request schema and the message is kept in ``errors`` until the next ``extract_endpoints`` call.
    """

    def __init__(self, resolver: ReferenceResolver | None = None):
        self.resolver = resolver or ReferenceResolver()
        self.errors: list[str] = []

    def extract_endpoints(self, document: OpenApiDocument, base_path: str = "") -> list[EndpointDefinition]:
        self.errors = []
        endpoints = []
        for path, path_item in document.paths.items():
            if not isinstance(path_item, dict):
                logger.debug("Skipping path %s: path item is not a mapping", path)
                continue

            full_path = join_base_path(base_path, path)
            for method, operation in path_item.items():
                if str(method).upper() not in HTTP_METHODS:
                    continue
                if not isinstance(operation, dict):
                    logger.debug("Skipping %s %s: operation is not a mapping", method, path)
                    continue

                operation = {**operation, "parameters": operation.get("parameters") or []}
                schema = None
                try:
                    operation["parameters"] = self.merge_parameters(
                        path_item.get("parameters") or [], operation["parameters"], document
                    )
                    schema = self.extract_request_schema(operation, document)
                except (ReferenceResolutionError, ValidationError) as e:
                    message = f"{str(method).upper()} {path}: {e}"
                    logger.warning("Request schema extraction failed for %s", message)
                    self.errors.append(message)

                endpoints.append(EndpointDefinition.from_operation(full_path, method, operation, schema))
        return endpoints

    def endpoints_with_request_bodies(self, document: OpenApiDocument) -> list[EndpointDefinition]:
        return [endpoint for endpoint in self.extract_endpoints(document) if endpoint.has_request_body()]

    def merge_parameters(self, shared: list, own: list, document: OpenApiDocument) -> list[dict]:
        """Path-item parameters combined with operation parameters.

        An operation parameter replaces a path-item one with the same
        ``name`` and ``in``.
        """
        merged: dict[tuple, dict] = {}
        for parameter in [*shared, *own]:
            parameter = self._resolve_parameter(parameter, document)
            if parameter is None:
                continue
            merged[(parameter.get("name"), parameter.get("in", "query"))] = parameter
        return list(merged.values())

    def extract_request_schema(self, operation: dict, document: OpenApiDocument) -> SchemaNode | None:
        body = operation.get("requestBody")
        if isinstance(body, dict):
            schema = self.extract_from_request_body(body, document)
            if schema is not None:
                return schema
        return self.extract_from_parameters(operation.get("parameters") or [], document)

    def extract_from_request_body(self, body: dict, document: OpenApiDocument) -> SchemaNode | None:
        if isinstance(body.get("$ref"), str):
            body = self.resolver.resolve(body["$ref"], document) or {}

        content = body.get("content")
        if not isinstance(content, dict) or not content:
            return None

        media = content.get("application/json")
        if not isinstance(media, dict):
            media = next(iter(content.values()))
        schema = media.get("schema") if isinstance(media, dict) else None
        if not isinstance(schema, dict):
            return None
        return self.parse_schema(schema, document)

    def extract_from_parameters(self, parameters: list, document: OpenApiDocument) -> SchemaNode | None:
        """Synthetic object schema from query and path parameters."""
        properties = {}
        required = []
        for parameter in parameters:
            parameter = self._resolve_parameter(parameter, document)
            if parameter is None or not parameter.get("name"):
                continue
            # headers and cookies are not part of the validated input
            if parameter.get("in", "query") in ("header", "cookie"):
                continue

            name = parameter["name"]
            schema = parameter.get("schema")
            properties[name] = self.parse_schema(schema if isinstance(schema, dict) else {"type": "string"}, document)
            if parameter.get("required"):
                required.append(name)

        if not properties:
            return None
        return SchemaNode(
            type="object",
            properties=properties,
            required=required,
            title="Parameters",
            description="Request parameters",
        )

    def parse_schema(self, schema: dict, document: OpenApiDocument) -> SchemaNode:
        return build_schema(self.resolver.resolve_all(schema, document))

    def extract_component_schemas(self, document: OpenApiDocument) -> dict[str, SchemaNode]:
        schemas = {}
        for name, schema in document.schemas().items():
            if not isinstance(schema, dict):
                continue
            try:
                schemas[name] = self.parse_schema(schema, document)
            except (ReferenceResolutionError, ValidationError) as e:
                logger.warning("Skipping component schema %s: %s", name, e)
                self.errors.append(f"components.schemas.{name}: {e}")
        return schemas

    def _resolve_parameter(self, parameter, document: OpenApiDocument) -> dict | None:
        if not isinstance(parameter, dict):
            return None
        if isinstance(parameter.get("$ref"), str):
            return self.resolver.resolve(parameter["$ref"], document)
        return parameter


def join_base_path(base_path: str, path: str) -> str:
    if not base_path:
        return path
    base_path = "/" + base_path.strip("/")
    if path in ("", "/"):
        return base_path
    return base_path + path


def content_types(request_body: dict) -> list[str]:
    content = request_body.get("content")
    if not isinstance(content, dict):
        return []
    return [key for key in content if isinstance(key, str)]


def is_request_body_required(request_body: dict) -> bool:
    return bool(request_body.get("required", False))


def validate_document(document: OpenApiDocument, endpoints: list[EndpointDefinition] | None = None) -> dict:
    """Minimal structural checks of a document."""
    errors = []
    warnings = []

    if not document.info:
        errors.append("Missing required info section")
    if not document.paths:
        errors.append("Missing required paths section")

    if not _VERSION_RE.match(document.openapi):
        warnings.append(f"OpenAPI version {document.openapi or '(none)'} may not be fully supported")

    if endpoints is None:
        endpoints = SchemaExtractor().extract_endpoints(document)
    if not any(endpoint.has_request_body() for endpoint in endpoints):
        warnings.append("No endpoints with request bodies found - no form requests will be generated")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def document_stats(document: OpenApiDocument, endpoints: list[EndpointDefinition] | None = None) -> dict:
    if endpoints is None:
        endpoints = SchemaExtractor().extract_endpoints(document)

    methods: list[str] = []
    tags: list[str] = []
    for endpoint in endpoints:
        if endpoint.method not in methods:
            methods.append(endpoint.method)
        tags += [tag for tag in endpoint.tags if tag not in tags]

    return {
        "total_endpoints": len(endpoints),
        "endpoints_with_request_bodies": sum(1 for endpoint in endpoints if endpoint.has_request_body()),
        "http_methods": methods,
        "tags": tags,
        "has_components": document.has_components(),
        "schema_count": len(document.schemas()),
    }
