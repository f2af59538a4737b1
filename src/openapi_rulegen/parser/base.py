"""Unified data models for parsed OpenAPI documents.

The extractor converts raw document mappings into these models; the rule
compiler and the route validator only ever work with these types. Every
model is frozen: transformations build new instances instead of mutating.
"""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD")

SCHEMA_TYPES = ("string", "integer", "number", "boolean", "array", "object")

SchemaType = Literal["string", "integer", "number", "boolean", "array", "object"]

# OpenAPI keyword -> Constraints field
CONSTRAINT_KEYS = {
    "minLength": "min_length",
    "maxLength": "max_length",
    "minimum": "minimum",
    "maximum": "maximum",
    "exclusiveMinimum": "exclusive_minimum",
    "exclusiveMaximum": "exclusive_maximum",
    "pattern": "pattern",
    "enum": "enum",
    "multipleOf": "multiple_of",
    "minItems": "min_items",
    "maxItems": "max_items",
    "uniqueItems": "unique_items",
}

FORMAT_RULES = {
    "email": "email",
    "uri": "url",
    "url": "url",
    "date": "date_format:Y-m-d",
    "date-time": "date",
    "time": "date_format:H:i:s",
    "uuid": "uuid",
    "ipv4": "ipv4",
    "ipv6": "ipv6",
    "hostname": r"regex:/^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*$/",
    "byte": r"regex:/^[A-Za-z0-9+\/]*={0,2}$/",  # base64
    "binary": "file",
}

# Objects are validated as associative arrays by the target rule language.
TYPE_RULES = {
    "string": "string",
    "integer": "integer",
    "number": "numeric",
    "boolean": "boolean",
    "array": "array",
    "object": "array",
}

_PATH_PARAM_RE = re.compile(r"\{([^}]+)\}")
_OPERATION_ID_RE = re.compile(r"^[a-zA-Z]\w*$")


class Constraints(BaseModel):
    """Declarative bounds attached to a schema node.

    Field aliases are the OpenAPI keywords, so a raw schema mapping can be
    validated directly. The OpenAPI 3.0 boolean form of
    ``exclusiveMinimum``/``exclusiveMaximum`` is normalized to the numeric
    3.1 form by copying the companion inclusive bound.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    min_length: int | None = Field(default=None, alias="minLength")
    max_length: int | None = Field(default=None, alias="maxLength")
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: int | float | None = Field(default=None, alias="exclusiveMinimum")
    exclusive_maximum: int | float | None = Field(default=None, alias="exclusiveMaximum")
    pattern: str | None = None
    enum: list[Any] | None = None
    multiple_of: int | float | None = Field(default=None, alias="multipleOf")
    min_items: int | None = Field(default=None, alias="minItems")
    max_items: int | None = Field(default=None, alias="maxItems")
    unique_items: bool | None = Field(default=None, alias="uniqueItems")

    @model_validator(mode="before")
    @classmethod
    def _normalize_exclusive_bounds(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, name, companion in (
            ("exclusiveMinimum", "exclusive_minimum", "minimum"),
            ("exclusiveMaximum", "exclusive_maximum", "maximum"),
        ):
            key = alias if alias in data else name
            value = data.get(key)
            if isinstance(value, bool):
                data[key] = data.get(companion) if value else None
        return data

    @model_validator(mode="after")
    def _check_bounds(self) -> "Constraints":
        for name in ("min_length", "max_length", "min_items", "max_items"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be >= 0")

        if _greater(self.min_length, self.max_length):
            raise ValueError("minLength cannot be greater than maxLength")
        if _greater(self.minimum, self.maximum):
            raise ValueError("minimum cannot be greater than maximum")
        if (
            self.exclusive_minimum is not None
            and self.exclusive_maximum is not None
            and self.exclusive_minimum >= self.exclusive_maximum
        ):
            raise ValueError("exclusiveMinimum must be less than exclusiveMaximum")
        if self.multiple_of is not None and self.multiple_of <= 0:
            raise ValueError("multipleOf must be > 0")
        if _greater(self.min_items, self.max_items):
            raise ValueError("minItems cannot be greater than maxItems")
        return self

    @classmethod
    def from_schema(cls, schema: dict) -> "Constraints":
        """Build constraints from the constraint keywords of a raw schema."""
        return cls.model_validate({key: schema[key] for key in CONSTRAINT_KEYS if key in schema})

    def has_constraints(self) -> bool:
        return any(
            getattr(self, name) is not None for name in CONSTRAINT_KEYS.values() if name != "enum"
        ) or self.has_enum()

    def has_enum(self) -> bool:
        return bool(self.enum)

    def has_pattern(self) -> bool:
        return bool(self.pattern)

    def has_string_constraints(self) -> bool:
        return self.min_length is not None or self.max_length is not None or self.has_pattern() or self.has_enum()

    def has_numeric_constraints(self) -> bool:
        return any(
            value is not None
            for value in (self.minimum, self.maximum, self.exclusive_minimum, self.exclusive_maximum, self.multiple_of)
        ) or self.has_enum()

    def has_array_constraints(self) -> bool:
        return self.min_items is not None or self.max_items is not None or self.unique_items is not None

    def escaped_pattern(self) -> str:
        """Pattern with forward slashes escaped for a ``/.../`` delimited rule."""
        if self.pattern is None:
            return ""
        return self.pattern.replace("/", "\\/")

    def pattern_warnings(self) -> list[str]:
        """Sanity check of the pattern; the pattern is still emitted as-is."""
        if not self.pattern:
            return []
        return check_pattern(self.pattern)

    def summary(self) -> list[str]:
        """Human readable ``keyword: value`` lines, for debugging output."""
        lines = []
        for key, value in self.to_dict().items():
            if isinstance(value, list):
                value = "[" + ", ".join(str(v) for v in value) + "]"
            elif isinstance(value, bool):
                value = "true" if value else "false"
            lines.append(f"{key}: {value}")
        return lines

    def complexity_score(self) -> int:
        score = 0
        for key, value in self.to_dict().items():
            # patterns and multipleOf need custom handling downstream
            score += 2 if key in ("pattern", "multipleOf") else 1
        return score

    def merge(self, other: "Constraints") -> "Constraints":
        """Return new constraints where values set on ``other`` win."""
        overrides = other.to_dict()
        return Constraints.model_validate({**self.to_dict(), **overrides})

    def to_dict(self) -> dict:
        data = self.model_dump(by_alias=True, exclude_none=True)
        if not data.get("enum"):
            data.pop("enum", None)
        return data


class SchemaNode(BaseModel):
    """Immutable schema tree node.

    Construction is permissive: arrays without ``items`` and required names
    missing from ``properties`` are accepted here and reported by
    ``validate_schema`` instead.
    """

    model_config = ConfigDict(frozen=True)

    type: SchemaType = "string"
    format: str | None = None
    properties: dict[str, "SchemaNode"] = {}
    items: "SchemaNode | None" = None
    required: list[str] = []
    constraints: Constraints | None = None
    ref: str | None = None  # set while the node is still an unresolved $ref
    title: str = ""
    description: str = ""

    def is_reference(self) -> bool:
        return bool(self.ref)

    def is_object(self) -> bool:
        return self.type == "object"

    def is_array(self) -> bool:
        return self.type == "array"

    def is_string(self) -> bool:
        return self.type == "string"

    def is_numeric(self) -> bool:
        return self.type in ("integer", "number")

    def is_boolean(self) -> bool:
        return self.type == "boolean"

    def is_primitive(self) -> bool:
        return self.type in ("string", "integer", "number", "boolean")

    def has_constraints(self) -> bool:
        return self.constraints is not None

    @property
    def property_names(self) -> list[str]:
        return list(self.properties)

    def is_required(self, name: str) -> bool:
        return name in self.required

    def required_properties(self) -> list[str]:
        return [name for name in self.required if name in self.properties]

    def optional_properties(self) -> list[str]:
        return [name for name in self.properties if name not in self.required]

    def missing_required(self) -> list[str]:
        """Required names that have no matching property."""
        return [name for name in self.required if name not in self.properties]

    def type_rule(self) -> str:
        return TYPE_RULES.get(self.type, "string")

    def format_rule(self) -> str | None:
        if not self.format:
            return None
        return FORMAT_RULES.get(self.format)

    def max_depth(self) -> int:
        """Length of the longest property/items chain below this node."""
        depth = 0
        for child in self.properties.values():
            depth = max(depth, 1 + child.max_depth())
        if self.items is not None:
            depth = max(depth, 1 + self.items.max_depth())
        return depth

    def nesting_level(self) -> int:
        if self.is_primitive():
            return 0
        if self.is_array() and self.items is not None:
            return 1 + self.items.nesting_level()
        if self.is_object() and self.properties:
            return max(1 + child.nesting_level() for child in self.properties.values())
        return 1

    def has_circular_reference(self, visited: tuple[str, ...] = ()) -> bool:
        """True when a ``ref`` marker repeats along one branch of the tree.

        Only nodes that still carry ``ref`` can trip this. Trees built from
        extracted endpoints never do, since the resolver raises
        CircularReferenceError first; markers survive only where
        ``resolve_all`` stopped at its depth limit or the node was built by hand.
        """
        if self.ref and self.ref in visited:
            return True
        if self.ref:
            visited = (*visited, self.ref)
        for child in self.properties.values():
            if child.has_circular_reference(visited):
                return True
        return self.items is not None and self.items.has_circular_reference(visited)

    def nested_schemas(self) -> dict[str, "SchemaNode"]:
        """Flatten the tree into ``{"a.b": node, "a.*": node}``."""
        nested: dict[str, SchemaNode] = {}
        for name, child in self.properties.items():
            nested[name] = child
            for sub_path, sub_node in child.nested_schemas().items():
                nested[f"{name}.{sub_path}"] = sub_node
        if self.items is not None:
            nested["*"] = self.items
            for sub_path, sub_node in self.items.nested_schemas().items():
                nested[f"*.{sub_path}"] = sub_node
        return nested

    def to_dict(self) -> dict:
        """OpenAPI-shaped mapping of this node."""
        data: dict[str, Any] = {"type": self.type}
        if self.format:
            data["format"] = self.format
        if self.properties:
            data["properties"] = {name: child.to_dict() for name, child in self.properties.items()}
        if self.items is not None:
            data["items"] = self.items.to_dict()
        if self.required:
            data["required"] = list(self.required)
        if self.constraints is not None:
            data.update(self.constraints.to_dict())
        if self.ref:
            data["$ref"] = self.ref
        if self.title:
            data["title"] = self.title
        if self.description:
            data["description"] = self.description
        return data


SchemaNode.model_rebuild()


def generate_operation_id(path: str, method: str) -> str:
    """Deterministic operation id from method and path.

    ``GET /user-profiles/{id}`` -> ``getUserProfilesId``
    """
    clean_path = _PATH_PARAM_RE.sub("Id", path)
    operation_id = method.lower()
    for segment in clean_path.strip("/").split("/"):
        for word in re.split(r"[^A-Za-z0-9]+", segment):
            if word:
                operation_id += word.lower().capitalize()
    return operation_id


def to_pascal_case(value: str) -> str:
    words = re.split(r"[_\-\s]+", value)
    return "".join(word[:1].upper() + word[1:] for word in words if word)


class EndpointDefinition(BaseModel):
    """A single documented operation with its request schema."""

    model_config = ConfigDict(frozen=True)

    path: str
    method: str
    operation_id: str
    request_schema: SchemaNode | None = None
    summary: str = ""
    description: str = ""
    tags: list[str] = []
    parameters: list[dict] = []

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if not value:
            raise ValueError("Path cannot be empty")
        if not value.startswith("/"):
            raise ValueError("Path must start with /")
        return value

    @field_validator("method", mode="before")
    @classmethod
    def _check_method(cls, value: Any) -> str:
        method = str(value or "").upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Invalid HTTP method: {value!r}. Must be one of: {', '.join(HTTP_METHODS)}")
        return method

    @field_validator("operation_id")
    @classmethod
    def _check_operation_id(cls, value: str) -> str:
        if not value:
            raise ValueError("Operation ID cannot be empty")
        if not _OPERATION_ID_RE.match(value):
            raise ValueError(
                f"Invalid operation ID: {value}. Must start with a letter and contain only "
                "letters, numbers, and underscores."
            )
        return value

    @classmethod
    def from_operation(
        cls,
        path: str,
        method: str,
        operation: dict,
        request_schema: SchemaNode | None = None,
    ) -> "EndpointDefinition":
        operation_id = operation.get("operationId")
        return cls(
            path=path,
            method=method,
            operation_id=operation_id if isinstance(operation_id, str) else generate_operation_id(path, method),
            request_schema=request_schema,
            summary=_text(operation.get("summary")),
            description=_text(operation.get("description")),
            tags=[tag for tag in operation.get("tags") or [] if isinstance(tag, str)],
            parameters=[param for param in operation.get("parameters") or [] if isinstance(param, dict)],
        )

    @property
    def endpoint_id(self) -> str:
        return f"{self.method}_{self.path}"

    @property
    def display_name(self) -> str:
        return f"{self.method} {self.path}"

    def has_request_body(self) -> bool:
        return self.request_schema is not None

    def has_parameters(self) -> bool:
        return bool(self.parameters)

    def parameter_names(self) -> list[str]:
        return [param["name"] for param in self.parameters if "name" in param]

    def required_parameter_names(self) -> list[str]:
        return [param["name"] for param in self.parameters if "name" in param and param.get("required")]

    def is_read_operation(self) -> bool:
        return self.method in ("GET", "HEAD", "OPTIONS")

    def is_write_operation(self) -> bool:
        return self.method in ("POST", "PUT", "PATCH", "DELETE")

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def path_parameters(self) -> list[str]:
        return _PATH_PARAM_RE.findall(self.path)

    def normalized_signature(self) -> str:
        """``METHOD:/path`` with parameters renamed by position (``{param1}``...)."""
        return f"{self.method}:{normalize_parameters(self.path)}"

    def form_request_class_name(self) -> str:
        class_name = to_pascal_case(self.operation_id)
        if not class_name.endswith("Request"):
            class_name += "Request"
        return class_name

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "method": self.method,
            "operationId": self.operation_id,
            "summary": self.summary,
            "description": self.description,
            "tags": list(self.tags),
            "parameters": list(self.parameters),
            "requestSchema": self.request_schema.to_dict() if self.request_schema else None,
        }


def normalize_parameters(path: str) -> str:
    """Replace each ``{name}`` segment with a positional ``{paramN}`` placeholder."""
    counter = 0

    def _placeholder(_match: re.Match) -> str:
        nonlocal counter
        counter += 1
        return f"{{param{counter}}}"

    return _PATH_PARAM_RE.sub(_placeholder, path)


class OpenApiDocument(BaseModel):
    """A parsed OpenAPI 3.x document, already deserialized."""

    model_config = ConfigDict(frozen=True)

    source: str = ""
    openapi: str = ""
    info: dict = {}
    paths: dict = {}
    components: dict = {}
    servers: list[dict] = []

    @classmethod
    def from_dict(cls, data: dict, source: str = "") -> "OpenApiDocument":
        return cls(
            source=source,
            openapi=str(data.get("openapi", "") or ""),
            info=_mapping(data.get("info")),
            paths=_mapping(data.get("paths")),
            components=_mapping(data.get("components")),
            servers=[server for server in data.get("servers") or [] if isinstance(server, dict)],
        )

    @property
    def title(self) -> str:
        return self.info.get("title", "Untitled API")

    @property
    def api_version(self) -> str:
        return str(self.info.get("version", "1.0.0"))

    @property
    def description(self) -> str:
        return self.info.get("description", "")

    def schemas(self) -> dict:
        return _mapping(self.components.get("schemas"))

    def operations_for_path(self, path: str) -> dict:
        return _mapping(self.paths.get(path))

    def has_components(self) -> bool:
        return bool(self.components)

    def all_methods(self) -> list[str]:
        methods: list[str] = []
        for path_item in self.paths.values():
            for key in _mapping(path_item):
                method = str(key).upper()
                if method in HTTP_METHODS and method not in methods:
                    methods.append(method)
        return methods

    def operation_count(self) -> int:
        return sum(
            1
            for path_item in self.paths.values()
            for key in _mapping(path_item)
            if str(key).upper() in HTTP_METHODS
        )

    def to_dict(self) -> dict:
        return {
            "openapi": self.openapi,
            "info": self.info,
            "paths": self.paths,
            "components": self.components,
            "servers": self.servers,
        }


_CLOSERS = {")": "(", "]": "[", "}": "{"}


def check_pattern(pattern: str) -> list[str]:
    """Bracket balance check for a regular expression.

    Escaped characters are skipped and nothing but the closing bracket is
    significant inside a character class.
    """
    warnings = []
    stack: list[str] = []
    in_class = False
    escaped = False
    for char in pattern:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif in_class:
            if char == "]":
                in_class = False
        elif char == "[":
            in_class = True
        elif char in "({":
            stack.append(char)
        elif char in ")}":
            if not stack or stack[-1] != _CLOSERS[char]:
                warnings.append(f"Unbalanced '{char}' in pattern {pattern!r}")
                return warnings
            stack.pop()
        elif char == "]":
            warnings.append(f"Unbalanced ']' in pattern {pattern!r}")
            return warnings
    if in_class:
        warnings.append(f"Unterminated character class in pattern {pattern!r}")
    elif stack:
        warnings.append(f"Unbalanced '{stack[-1]}' in pattern {pattern!r}")
    if "|" in pattern:
        # the rule string itself is '|' separated
        warnings.append(f"Pattern {pattern!r} contains '|', which collides with the rule separator")
    return warnings


def _greater(low: Any, high: Any) -> bool:
    return low is not None and high is not None and low > high


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}
