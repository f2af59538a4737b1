"""Form request generator: rule maps -> named PHP form-request classes."""

import logging
import re
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from openapi_rulegen.parser.base import EndpointDefinition, SchemaNode

from .rules import RuleCompiler

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "App\\Http\\Requests"
DEFAULT_AUTHORIZATION = "return true;"

CLASS_NAME_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*Request$")
NAMESPACE_RE = re.compile(r"^[A-Z][a-zA-Z0-9_\\]*[a-zA-Z0-9]$")


class GenerationOptions(BaseModel):
    """Settings shared by every class of one generation run."""

    namespace: str = DEFAULT_NAMESPACE
    authorization_expression: str = DEFAULT_AUTHORIZATION
    custom_messages: dict[str, str] = {}
    custom_attributes: dict[str, str] = {}
    force: bool = False
    include_timestamp: bool = True

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        if not NAMESPACE_RE.match(value):
            raise ValueError(f"Invalid namespace: {value}")
        return value

    @classmethod
    def from_legacy(cls, options: dict) -> "GenerationOptions":
        """Accept the older camelCase option names.

        ``authorizationMethod`` wins over ``authorize_return``.
        """
        authorization = next(
            (
                options[key]
                for key in ("authorizationMethod", "authorize_return")
                if isinstance(options.get(key), str) and options[key]
            ),
            DEFAULT_AUTHORIZATION,
        )
        messages = options.get("customMessages")
        attributes = options.get("customAttributes")
        return cls(
            namespace=options.get("namespace") or DEFAULT_NAMESPACE,
            authorization_expression=authorization,
            custom_messages=messages if isinstance(messages, dict) else {},
            custom_attributes=attributes if isinstance(attributes, dict) else {},
            force=bool(options.get("force", False)),
        )


def php_string(value: str) -> str:
    """Single-quoted PHP string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _php_array(entries: dict[str, str]) -> str:
    if not entries:
        return "[]"
    lines = [f"            {php_string(key)} => {php_string(value)}," for key, value in entries.items()]
    return "[\n" + "\n".join(lines) + "\n        ]"


class FormRequestClass(BaseModel):
    """One generated form-request class, ready to render."""

    model_config = ConfigDict(frozen=True)

    class_name: str
    namespace: str = DEFAULT_NAMESPACE
    file_path: str
    rules: dict[str, str]
    authorization_expression: str = DEFAULT_AUTHORIZATION
    custom_messages: dict[str, str] = {}
    custom_attributes: dict[str, str] = {}
    endpoint: EndpointDefinition | None = None
    source_schema: SchemaNode | None = None
    generated_at: datetime | None = None

    @field_validator("class_name")
    @classmethod
    def _check_class_name(cls, value: str) -> str:
        if not value:
            raise ValueError("Class name cannot be empty")
        if not CLASS_NAME_RE.match(value):
            raise ValueError(
                f"Invalid class name: {value}. Must start with an uppercase letter and end with 'Request'"
            )
        return value

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        if not value:
            raise ValueError("Namespace cannot be empty")
        if not NAMESPACE_RE.match(value):
            raise ValueError(f"Invalid namespace: {value}")
        return value

    @field_validator("file_path")
    @classmethod
    def _check_file_path(cls, value: str) -> str:
        if not value:
            raise ValueError("File path cannot be empty")
        if not value.endswith(".php"):
            raise ValueError(f"File path must end with .php: {value}")
        return value

    @field_validator("rules")
    @classmethod
    def _check_rules(cls, value: dict[str, str]) -> dict[str, str]:
        if not value:
            raise ValueError("Validation rules cannot be empty")
        if any(not field for field in value):
            raise ValueError("Field names cannot be empty")
        return value

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.namespace}\\{self.class_name}"

    @property
    def source_endpoint(self) -> str:
        return self.endpoint.display_name if self.endpoint else "Unknown"

    def has_custom_authorization(self) -> bool:
        return self.authorization_expression != DEFAULT_AUTHORIZATION

    def rules_count(self) -> int:
        return len(self.rules)

    def complexity_score(self) -> int:
        """Rule tokens, plus nesting depth, plus 2 per array-element field."""
        score = 0
        for field, rule_string in self.rules.items():
            score += rule_string.count("|") + 1
            score += field.count(".")
            if "*" in field:
                score += 2
        return score

    def file_exists(self) -> bool:
        return Path(self.file_path).exists()

    def render(self) -> str:
        """PHP source of the class."""
        return (
            "<?php\n\n"
            f"namespace {self.namespace};\n\n"
            "use Illuminate\\Foundation\\Http\\FormRequest;\n\n"
            + self._render_docblock()
            + f"class {self.class_name} extends FormRequest\n"
            "{\n"
            + self._render_authorize()
            + self._render_rules()
            + self._render_messages()
            + self._render_attributes()
            + "}\n"
        )

    def _render_docblock(self) -> str:
        lines = ["/**", f" * Form request for {self.source_endpoint}"]
        if self.source_schema is not None and self.source_schema.description:
            lines += [" *", f" * {self.source_schema.description}"]
        if self.generated_at is not None:
            lines += [" *", f" * Generated at: {self.generated_at:%Y-%m-%d %H:%M:%S}"]
        lines.append(" */")
        return "\n".join(lines) + "\n"

    def _render_authorize(self) -> str:
        return (
            "    /**\n"
            "     * Determine if the user is authorized to make this request.\n"
            "     */\n"
            "    public function authorize(): bool\n"
            "    {\n"
            f"        {self.authorization_expression}\n"
            "    }\n\n"
        )

    def _render_rules(self) -> str:
        return (
            "    /**\n"
            "     * Get the validation rules that apply to the request.\n"
            "     */\n"
            "    public function rules(): array\n"
            "    {\n"
            f"        return {_php_array(self.rules)};\n"
            "    }\n"
        )

    def _render_messages(self) -> str:
        if not self.custom_messages:
            return ""
        return (
            "\n"
            "    /**\n"
            "     * Get custom validation messages.\n"
            "     */\n"
            "    public function messages(): array\n"
            "    {\n"
            f"        return {_php_array(self.custom_messages)};\n"
            "    }\n"
        )

    def _render_attributes(self) -> str:
        if not self.custom_attributes:
            return ""
        return (
            "\n"
            "    /**\n"
            "     * Get custom attribute names for validation errors.\n"
            "     */\n"
            "    public function attributes(): array\n"
            "    {\n"
            f"        return {_php_array(self.custom_attributes)};\n"
            "    }\n"
        )


class FormRequestGenerator:
    """Builds FormRequestClass objects and writes them to disk."""

    def __init__(self, compiler: RuleCompiler | None = None):
        self.compiler = compiler or RuleCompiler()
        self.errors: list[str] = []

    def generate_from_endpoint(
        self,
        endpoint: EndpointDefinition,
        output_dir: Path,
        options: GenerationOptions | None = None,
        class_name: str | None = None,
    ) -> FormRequestClass:
        if endpoint.request_schema is None:
            raise ValueError(f"Endpoint {endpoint.display_name} has no request schema")
        options = options or GenerationOptions()
        class_name = class_name or endpoint.form_request_class_name()
        return self._build(class_name, endpoint.request_schema, output_dir, options, endpoint)

    def generate_from_schema(
        self,
        schema: SchemaNode,
        class_name: str,
        output_dir: Path,
        options: GenerationOptions | None = None,
    ) -> FormRequestClass:
        return self._build(class_name, schema, output_dir, options or GenerationOptions(), None)

    def generate_from_endpoints(
        self,
        endpoints: list[EndpointDefinition],
        output_dir: Path,
        options: GenerationOptions | None = None,
    ) -> list[FormRequestClass]:
        """One class per endpoint with a request schema; names are made unique."""
        options = options or GenerationOptions()
        form_requests = []
        taken: list[str] = []
        for endpoint in endpoints:
            if not endpoint.has_request_body():
                logger.debug("Skipping %s: no request schema", endpoint.display_name)
                continue

            class_name = endpoint.form_request_class_name()
            if class_name in taken:
                class_name = resolve_naming_conflict(class_name, endpoint.method, taken)
            try:
                form_request = self.generate_from_endpoint(endpoint, output_dir, options, class_name)
            except ValidationError as e:
                message = f"{endpoint.display_name}: {e.errors()[0]['msg']}"
                logger.warning("Skipping form request for %s", message)
                self.errors.append(message)
                continue
            taken.append(class_name)
            form_requests.append(form_request)
        return form_requests

    def write(self, form_request: FormRequestClass, force: bool = False) -> dict:
        """Write one class file; existing files are kept unless ``force``."""
        result = {
            "success": False,
            "skipped": False,
            "message": "",
            "file_path": form_request.file_path,
            "class_name": form_request.class_name,
        }
        path = Path(form_request.file_path)
        if path.exists() and not force:
            result["skipped"] = True
            result["message"] = f"File already exists and force flag not set: {path}"
            return result

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(form_request.render(), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to write %s: %s", path, e)
            result["message"] = f"Failed to write file: {path} ({e})"
            return result

        result["success"] = True
        result["message"] = f"Generated form request: {form_request.class_name}"
        return result

    def write_many(self, form_requests: list[FormRequestClass], force: bool = False) -> dict:
        results = [self.write(form_request, force) for form_request in form_requests]
        summary = {
            "total": len(results),
            "success": sum(1 for r in results if r["success"]),
            "skipped": sum(1 for r in results if r["skipped"]),
            "failed": sum(1 for r in results if not r["success"] and not r["skipped"]),
        }
        return {"summary": summary, "results": results}

    def dry_run(self, form_requests: list[FormRequestClass]) -> list[dict]:
        return [
            {
                "class_name": form_request.class_name,
                "namespace": form_request.namespace,
                "file_path": form_request.file_path,
                "source_endpoint": form_request.source_endpoint,
                "rules_count": form_request.rules_count(),
                "complexity": form_request.complexity_score(),
                "file_exists": form_request.file_exists(),
                "estimated_size": len(form_request.render()),
            }
            for form_request in form_requests
        ]

    def stats(self, form_requests: list[FormRequestClass]) -> dict:
        complexities = [form_request.complexity_score() for form_request in form_requests]
        namespaces: list[str] = []
        for form_request in form_requests:
            if form_request.namespace not in namespaces:
                namespaces.append(form_request.namespace)

        most_complex = None
        for form_request, complexity in zip(form_requests, complexities):
            if most_complex is None or complexity > most_complex["complexity"]:
                most_complex = {"class_name": form_request.class_name, "complexity": complexity}

        return {
            "total_classes": len(form_requests),
            "total_rules": sum(form_request.rules_count() for form_request in form_requests),
            "total_complexity": sum(complexities),
            "estimated_total_size": sum(len(form_request.render()) for form_request in form_requests),
            "namespaces": namespaces,
            "most_complex": most_complex,
            "average_complexity": sum(complexities) / len(complexities) if complexities else 0,
        }

    def _build(
        self,
        class_name: str,
        schema: SchemaNode,
        output_dir: Path,
        options: GenerationOptions,
        endpoint: EndpointDefinition | None,
    ) -> FormRequestClass:
        return FormRequestClass(
            class_name=class_name,
            namespace=options.namespace,
            file_path=str(Path(output_dir) / f"{class_name}.php"),
            rules=self.compiler.compile(schema),
            authorization_expression=options.authorization_expression,
            custom_messages=options.custom_messages,
            custom_attributes=options.custom_attributes,
            endpoint=endpoint,
            source_schema=schema,
            generated_at=datetime.now() if options.include_timestamp else None,
        )


def resolve_naming_conflict(class_name: str, method: str, taken: list[str]) -> str:
    """``CreateUserRequest`` -> ``CreateUserPostRequest``, then ``CreateUser2Request``..."""
    base = class_name[: -len("Request")] if class_name.endswith("Request") else class_name
    candidate = f"{base}{method.capitalize()}Request"
    if candidate not in taken:
        return candidate
    counter = 2
    while f"{base}{counter}Request" in taken:
        counter += 1
    return f"{base}{counter}Request"
