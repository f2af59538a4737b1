"""Base path prefixes declared by a document's ``servers`` entries."""

from urllib.parse import urlsplit

from .base import OpenApiDocument


def normalize_base_path(path: str) -> str:
    """Leading slash, no trailing slash; ``/`` and blank become ``""``."""
    path = path.strip()
    if path in ("", "/"):
        return ""
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/")


def base_path_from_url(url: str) -> str:
    """Path component of an absolute http(s) server url, else ``""``."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return ""
    if parts.scheme not in ("http", "https"):
        return ""
    return normalize_base_path(parts.path)


def extract_base_paths(document: OpenApiDocument) -> list[str]:
    """Distinct non-empty base paths, in server order."""
    base_paths = []
    for server in document.servers:
        url = server.get("url")
        if not isinstance(url, str):
            continue
        base_path = base_path_from_url(url)
        if base_path and base_path not in base_paths:
            base_paths.append(base_path)
    return base_paths


def default_base_path(document: OpenApiDocument) -> str:
    base_paths = extract_base_paths(document)
    return base_paths[0] if base_paths else ""


def resolve_base_path(document: OpenApiDocument, user_choice: str | None = None) -> str:
    """Pick the base path to prefix documented paths with.

    Raises ValueError when the choice is not declared by any server, or when
    several servers disagree and no choice was given.
    """
    available = extract_base_paths(document)

    if user_choice is not None:
        choice = normalize_base_path(user_choice)
        if available and choice not in available:
            raise ValueError(
                f"Specified base path '{choice}' not found in servers. Available paths: {', '.join(available)}"
            )
        return choice

    if len(available) > 1:
        raise ValueError(
            f"Multiple server base paths found: {', '.join(available)}. "
            "Please specify which one to use with the --base-path option."
        )

    return available[0] if available else ""
