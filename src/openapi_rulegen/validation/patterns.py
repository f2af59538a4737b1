"""Case-insensitive glob matching of URL paths (``/api/users/*``)."""

import fnmatch
import re

_INVALID_CHARS_RE = re.compile(r'[<>"|]')


def normalize_pattern(pattern: str) -> str:
    pattern = pattern.strip()
    if not pattern.startswith(("*", "/")):
        pattern = "/" + pattern
    return pattern.lower()


def normalize_path(path: str) -> str:
    path = path.strip()
    if not path.startswith("/"):
        path = "/" + path
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path.lower()


def matches(pattern: str, path: str) -> bool:
    return fnmatch.fnmatchcase(normalize_path(path), normalize_pattern(pattern))


def matches_any(patterns: list[str], path: str) -> bool:
    return any(matches(pattern, path) for pattern in patterns)


def filter_paths(paths: list[str], pattern: str) -> list[str]:
    return [path for path in paths if matches(pattern, path)]


def count_matches(pattern: str, paths: list[str]) -> int:
    return len(filter_paths(paths, pattern))


def suggestions(pattern: str, available_paths: list[str]) -> list[str]:
    """Alternative patterns that would match something, for a pattern that matched nothing."""
    result = []

    if not pattern.startswith(("/", "*")):
        with_slash = "/" + pattern
        if count_matches(with_slash, available_paths):
            result.append(f"Try adding a leading slash: '{with_slash}'")

    if pattern.startswith("/") and len(pattern) > 1:
        without_slash = pattern.lstrip("/")
        if count_matches(without_slash, available_paths):
            result.append(f"Try removing the leading slash: '{without_slash}'")

    if "*" not in pattern:
        prefix = pattern + "*"
        if count_matches(prefix, available_paths):
            result.append(f"Try a prefix wildcard: '{prefix}'")
        contains = "*" + pattern.strip("/") + "*"
        if count_matches(contains, available_paths):
            result.append(f"Try a contains wildcard: '{contains}'")

    if not result and available_paths:
        result.append("Available paths include: " + ", ".join(available_paths[:3]))
    return result


def validate_patterns(patterns: list[str]) -> dict:
    errors = []
    for pattern in patterns:
        if not pattern.strip():
            errors.append("Empty pattern provided")
            continue
        if _INVALID_CHARS_RE.search(pattern):
            errors.append(f"Pattern '{pattern}' contains invalid characters")
        if pattern.endswith("/") and not pattern.endswith("*/"):
            errors.append(
                f"Pattern '{pattern}' ends with / which might not match as expected. Consider removing it or adding *"
            )
    return {"valid": not errors, "errors": errors}
