"""Compile SchemaNode trees into Laravel-style validation rule maps.

The output maps a dotted field path (``*`` standing for each array element)
to a ``|`` separated rule string, e.g. ``{"tags.*": "string|in:a,b,c"}``.
"""

import logging
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from openapi_rulegen.parser.base import Constraints, SchemaNode

logger = logging.getLogger(__name__)

QUALIFIERS = ("required", "nullable")

_PROPERTY_RE = re.compile(r"^[A-Za-z0-9._*-]+$")

RuleType = Literal["string", "integer", "number", "boolean", "array", "object", "constraint", "custom"]


def format_value(value: Any) -> str:
    """Render a rule parameter: integral floats lose ``.0``, booleans are lower case."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def constraint_tokens(node: SchemaNode) -> list[str]:
    """Rule tokens for a node's constraints, gated by the node's type."""
    constraints = node.constraints
    if constraints is None:
        return []

    if node.is_array():
        return _array_tokens(constraints)

    tokens = []
    if node.is_string():
        if constraints.min_length is not None:
            tokens.append(f"min:{constraints.min_length}")
        if constraints.max_length is not None:
            tokens.append(f"max:{constraints.max_length}")
    elif node.is_numeric():
        if constraints.exclusive_minimum is not None:
            tokens.append(f"gt:{format_value(constraints.exclusive_minimum)}")
        elif constraints.minimum is not None:
            tokens.append(f"min:{format_value(constraints.minimum)}")
        if constraints.exclusive_maximum is not None:
            tokens.append(f"lt:{format_value(constraints.exclusive_maximum)}")
        elif constraints.maximum is not None:
            tokens.append(f"max:{format_value(constraints.maximum)}")

    if node.is_object():
        return tokens

    if constraints.has_pattern():
        tokens.append(f"regex:/{constraints.escaped_pattern()}/")
    if node.is_numeric() and constraints.multiple_of is not None:
        tokens.append(f"multiple_of:{format_value(constraints.multiple_of)}")
    if constraints.has_enum():
        values = [format_value(value) for value in constraints.enum if value is not None]
        if values:
            tokens.append("in:" + ",".join(values))
    return tokens


def _array_tokens(constraints: Constraints) -> list[str]:
    tokens = []
    if constraints.min_items is not None:
        tokens.append(f"min:{constraints.min_items}")
    if constraints.max_items is not None:
        tokens.append(f"max:{constraints.max_items}")
    if constraints.unique_items:
        tokens.append("distinct")
    return tokens


def _unique(tokens: list[str]) -> list[str]:
    seen = []
    for token in tokens:
        if token and token not in seen:
            seen.append(token)
    return seen


def _append_once(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


class RuleCompiler:
    """Walks a schema tree and emits one rule string per field path.

    Compilation never raises on schema content. Suspicious regular
    expressions are still emitted and reported in ``pattern_warnings``.
    Field paths that cannot become a ValidationRule are left out of
    ``compile_individual`` and listed in ``skipped_paths``.
    """

    def __init__(self):
        self.pattern_warnings: list[str] = []
        self.skipped_paths: list[str] = []

    def compile(self, node: SchemaNode, field_path: str = "") -> dict[str, str]:
        rules: dict[str, str] = {}
        self._compile(node, field_path, rules)
        return rules

    def compile_individual(self, node: SchemaNode, field_path: str = "") -> list["ValidationRule"]:
        """Same as ``compile`` but as ValidationRule objects."""
        nodes = {field_path: node} if field_path else {}
        for sub_path, sub_node in node.nested_schemas().items():
            nodes[f"{field_path}.{sub_path}" if field_path else sub_path] = sub_node

        result = []
        for path, rule_string in self.compile(node, field_path).items():
            if not _PROPERTY_RE.match(path):
                logger.warning("Skipping field %r: not a valid property name", path)
                _append_once(self.skipped_paths, path)
                continue
            sub_node = nodes.get(path)
            parts = rule_string.split("|")
            result.append(
                ValidationRule(
                    property=path,
                    type=sub_node.type if sub_node is not None else "custom",
                    rules=parts,
                    is_required=parts[0] == "required",
                    constraints=sub_node.constraints if sub_node is not None else None,
                )
            )
        return result

    def build_rule(self, node: SchemaNode, field_path: str = "") -> str:
        """Rule string for one node, without the required/nullable qualifier."""
        tokens = [node.type_rule()]
        format_rule = node.format_rule()
        if format_rule:
            tokens.append(format_rule)
        tokens += constraint_tokens(node)

        if node.constraints is not None:
            for warning in node.constraints.pattern_warnings():
                _append_once(self.pattern_warnings, f"{field_path or '<root>'}: {warning}")
                logger.warning("Suspicious pattern at %s: %s", field_path or "<root>", warning)

        return "|".join(_unique(tokens))

    def _compile(self, node: SchemaNode, field_path: str, rules: dict[str, str]) -> None:
        if node.is_object():
            if field_path:
                rules[field_path] = self.build_rule(node, field_path)
            for name, child in node.properties.items():
                child_path = f"{field_path}.{name}" if field_path else name
                self._compile(child, child_path, rules)
                qualifier = "required" if node.is_required(name) else "nullable"
                existing = rules.get(child_path)
                if existing:
                    parts = [part for part in existing.split("|") if part not in QUALIFIERS]
                    rules[child_path] = "|".join([qualifier, *parts])
                else:
                    rules[child_path] = f"{qualifier}|{child.type_rule()}"
        elif node.is_array():
            if field_path:
                rules[field_path] = self.build_rule(node, field_path)
            if node.items is not None:
                self._compile(node.items, f"{field_path}.*" if field_path else "*", rules)
        elif field_path:
            rules[field_path] = self.build_rule(node, field_path)


class ValidationRule(BaseModel):
    """The rules of a single field path as a structured value."""

    model_config = ConfigDict(frozen=True)

    property: str
    type: RuleType
    rules: list[str] = []
    is_required: bool = False
    constraints: Constraints | None = None

    @field_validator("property")
    @classmethod
    def _check_property(cls, value: str) -> str:
        if not value:
            raise ValueError("Property name cannot be empty")
        if not _PROPERTY_RE.match(value):
            raise ValueError(f"Invalid property name: {value}")
        return value

    def first_rule(self) -> str | None:
        """The first of possibly several atomic rules, or None when there are none."""
        return self.rules[0] if self.rules else None

    def has_rule(self, rule: str) -> bool:
        return rule in self.rules

    def has_constraints(self) -> bool:
        return self.constraints is not None and self.constraints.has_constraints()

    @property
    def is_nested(self) -> bool:
        return "." in self.property

    @property
    def is_array_element(self) -> bool:
        return "*" in self.property

    @property
    def base_property(self) -> str:
        return self.property.split(".", 1)[0]

    def to_rule_string(self) -> str:
        return "|".join(self.rules)

    def to_validation_dict(self) -> dict[str, list[str]]:
        return {self.property: list(self.rules)}

    def to_dict(self) -> dict:
        return {
            "property": self.property,
            "type": self.type,
            "rules": list(self.rules),
            "isRequired": self.is_required,
            "constraints": self.constraints.to_dict() if self.constraints else None,
        }


def combine_rules(*rule_maps: dict[str, str]) -> dict[str, str]:
    """Merge rule maps; tokens of the same path are unioned in order."""
    combined: dict[str, str] = {}
    for rule_map in rule_maps:
        for path, rule_string in rule_map.items():
            tokens = combined[path].split("|") if path in combined else []
            combined[path] = "|".join(_unique(tokens + rule_string.split("|")))
    return combined


def sort_rules(rules: dict[str, str]) -> dict[str, str]:
    return dict(sorted(rules.items()))


def validate_rule_strings(rules: dict[str, Any]) -> list[str]:
    """Syntax problems in a rule map, as messages."""
    errors = []
    for field, rule_string in rules.items():
        if not isinstance(rule_string, str) or not rule_string:
            errors.append(f"Invalid rule for field '{field}': must be non-empty string")
            continue
        for rule in rule_string.split("|"):
            if not rule:
                errors.append(f"Empty rule part in field '{field}'")
            elif ":" in rule and not rule.split(":", 1)[0]:
                errors.append(f"Invalid rule format in field '{field}': '{rule}'")
    return errors
