"""Detect the serialization of input files and load them."""

import json
from pathlib import Path

import yaml

from openapi_rulegen.errors import DocumentLoadError

from .base import OpenApiDocument

SUPPORTED_EXTENSIONS = (".json", ".yaml", ".yml")


def detect_format(file_path: Path) -> str:
    """Detect whether a file holds JSON or YAML.

    Returns: 'json' or 'yaml'. The extension decides when it is known,
    otherwise the first non-blank character.
    """
    suffix = file_path.suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"

    text = file_path.read_text(encoding="utf-8").lstrip()
    if text.startswith(("{", "[")):
        return "json"
    return "yaml"


def load_data(file_path: Path):
    """Read and deserialize a JSON or YAML file."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentLoadError(f"Cannot read {file_path}: {e}") from e

    fmt = detect_format(file_path)
    try:
        if fmt == "json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DocumentLoadError(f"Failed to parse {file_path} as {fmt.upper()}: {e}") from e


def load_document(file_path: Path) -> OpenApiDocument:
    """Load an OpenAPI document from a ``.json``, ``.yaml`` or ``.yml`` file."""
    data = load_data(file_path)
    if not isinstance(data, dict):
        raise DocumentLoadError(f"{file_path} does not contain an OpenAPI document")
    if "openapi" not in data and "paths" not in data:
        raise DocumentLoadError(f"{file_path} is missing both 'openapi' and 'paths'")
    return OpenApiDocument.from_dict(data, source=str(file_path))


def is_openapi_file(file_path: Path) -> bool:
    if file_path.suffix.lower() not in SUPPORTED_EXTENSIONS or not file_path.is_file():
        return False
    try:
        load_document(file_path)
    except DocumentLoadError:
        return False
    return True
