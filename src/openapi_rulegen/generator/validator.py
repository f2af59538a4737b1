"""Validates generated form-request classes before they are written."""

from .form_request import CLASS_NAME_RE, NAMESPACE_RE, FormRequestClass
from .rules import validate_rule_strings

MAX_COMPLEXITY = 100


def validate_names(form_requests: list[FormRequestClass]) -> dict[str, str]:
    """Check class names and namespaces.

    Returns dict of {class_name: error_message} for classes with errors.
    """
    errors = {}
    for form_request in form_requests:
        if not CLASS_NAME_RE.match(form_request.class_name):
            errors[form_request.class_name] = f"Invalid class name: {form_request.class_name}"
        elif not NAMESPACE_RE.match(form_request.namespace):
            errors[form_request.class_name] = f"Invalid namespace: {form_request.namespace}"
    return errors


def validate_rules(form_requests: list[FormRequestClass]) -> dict[str, str]:
    """Check rule string syntax.

    Returns dict of {class_name: error_message} for classes with errors.
    """
    errors = {}
    for form_request in form_requests:
        rule_errors = validate_rule_strings(form_request.rules)
        if rule_errors:
            errors[form_request.class_name] = "; ".join(rule_errors)
    return errors


def validate_file_paths(form_requests: list[FormRequestClass]) -> dict[str, str]:
    errors = {}
    for form_request in form_requests:
        if not form_request.file_path.endswith(".php"):
            errors[form_request.class_name] = f"Invalid file path: {form_request.file_path}"
    return errors


def complexity_warnings(form_requests: list[FormRequestClass]) -> dict[str, str]:
    warnings = {}
    for form_request in form_requests:
        score = form_request.complexity_score()
        if score > MAX_COMPLEXITY:
            warnings[form_request.class_name] = f"High complexity in {form_request.class_name} (score: {score})"
    return warnings


def validate_form_requests(form_requests: list[FormRequestClass]) -> dict:
    """Run all checks.

    Returns {"valid": bool, "errors": [...], "warnings": [...]}.
    """
    errors = []
    for check in (validate_names, validate_rules, validate_file_paths):
        errors += [f"In {name}: {message}" for name, message in check(form_requests).items()]

    warnings = list(complexity_warnings(form_requests).values())
    warnings += [f"No validation rules for {fr.class_name}" for fr in form_requests if not fr.rules]

    return {"valid": not errors, "errors": errors, "warnings": warnings}
