"""Build SchemaNode trees from raw schema mappings and check them."""

from typing import Any

from .base import CONSTRAINT_KEYS, Constraints, SchemaNode

MAX_NESTING_DEPTH = 10


def infer_type(schema: dict) -> str:
    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        # OpenAPI 3.1: ["string", "null"]
        schema_type = next((t for t in schema_type if t != "null"), None)
    if schema_type:
        return schema_type
    if "properties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    return "string"


def build_schema(schema: dict) -> SchemaNode:
    """Convert a raw (already resolved) schema mapping into a SchemaNode.

    Raises pydantic ``ValidationError`` for an unknown type or contradictory
    constraints.
    """
    if "allOf" in schema and "properties" not in schema and "type" not in schema:
        schema = _fold_all_of(schema)

    properties = schema.get("properties")
    items = schema.get("items")
    required = schema.get("required")
    has_constraints = any(key in schema for key in CONSTRAINT_KEYS)

    return SchemaNode(
        type=infer_type(schema),
        format=schema.get("format") if isinstance(schema.get("format"), str) else None,
        properties={
            name: build_schema(child) for name, child in properties.items() if isinstance(child, dict)
        }
        if isinstance(properties, dict)
        else {},
        items=build_schema(items) if isinstance(items, dict) else None,
        required=[name for name in required if isinstance(name, str)] if isinstance(required, list) else [],
        constraints=Constraints.from_schema(schema) if has_constraints else None,
        ref=schema.get("$ref") if isinstance(schema.get("$ref"), str) else None,
        title=schema.get("title") if isinstance(schema.get("title"), str) else "",
        description=schema.get("description") if isinstance(schema.get("description"), str) else "",
    )


def _fold_all_of(schema: dict) -> dict:
    merged: dict[str, Any] = {}
    for part in schema.get("allOf") or []:
        if isinstance(part, dict):
            merged = merge_schemas(merged, part) if merged else dict(part)
    siblings = {key: value for key, value in schema.items() if key != "allOf"}
    return merge_schemas(merged, siblings) if siblings else merged


def is_object_schema(schema: dict) -> bool:
    return schema.get("type") == "object" or "properties" in schema


def merge_schemas(first: dict, second: dict) -> dict:
    """Merge two raw schemas; ``second`` wins on conflicts.

    Object schemas union their properties and required lists; for anything
    else ``second`` replaces ``first``.
    """
    if not (is_object_schema(first) and is_object_schema(second)):
        return second

    merged = dict(second)
    if "properties" in first:
        merged["properties"] = {**first["properties"], **second.get("properties", {})}
    if "required" in first:
        required = list(first["required"])
        required += [name for name in second.get("required", []) if name not in required]
        merged["required"] = required
    if "type" not in merged and "type" in first:
        merged["type"] = first["type"]
    return merged


def validate_schema(node: SchemaNode) -> dict:
    """Structural checks of a built schema tree."""
    errors = []
    warnings = []

    if node.has_circular_reference():
        warnings.append("Schema contains circular references")

    depth = node.max_depth()
    if depth > MAX_NESTING_DEPTH:
        warnings.append(f"Schema has deep nesting (depth: {depth})")

    if node.is_array() and node.items is None:
        errors.append("Array schema missing items definition")

    for name in node.missing_required():
        warnings.append(f"Required property '{name}' is not defined in properties")

    for path, child in node.nested_schemas().items():
        if child.is_array() and child.items is None:
            errors.append(f"Array schema at '{path}' missing items definition")
        for name in child.missing_required():
            warnings.append(f"Required property '{path}.{name}' is not defined in properties")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def validate_schema_data(schema: dict) -> dict:
    """Shape checks of a raw schema mapping, before building."""
    errors = []
    if "type" not in schema and "properties" not in schema and "items" not in schema:
        errors.append("Schema must have either type, properties, or items")
    if "properties" in schema and not isinstance(schema["properties"], dict):
        errors.append("Properties must be a mapping")
    if "items" in schema and not isinstance(schema["items"], dict):
        errors.append("Items must be a mapping")
    if "required" in schema and not isinstance(schema["required"], list):
        errors.append("Required field must be a list")
    return {"valid": not errors, "errors": errors, "warnings": []}


def complexity_score(node: SchemaNode) -> int:
    score = 1 + len(node.properties) + node.max_depth() * 2 + len(node.required)
    if node.has_constraints():
        score += 2
    if node.items is not None:
        score += complexity_score(node.items)
    for child in node.properties.values():
        score += complexity_score(child)
    return score
