"""CLI entry point for openapi-rulegen."""

import json
import logging
from pathlib import Path

import click

from openapi_rulegen.errors import RuleGenError
from openapi_rulegen.generator.form_request import DEFAULT_NAMESPACE, FormRequestGenerator, GenerationOptions
from openapi_rulegen.generator.rules import RuleCompiler
from openapi_rulegen.generator.validator import validate_form_requests
from openapi_rulegen.parser.base import EndpointDefinition, OpenApiDocument
from openapi_rulegen.parser.detect import load_document
from openapi_rulegen.parser.resolver import ReferenceResolver
from openapi_rulegen.parser.swagger import SchemaExtractor, document_stats, validate_document
from openapi_rulegen.validation import patterns
from openapi_rulegen.validation.models import MISMATCH_TYPES, ValidationOptions
from openapi_rulegen.validation.reporters import REPORTERS, get_reporter
from openapi_rulegen.validation.routes import filter_routes, load_routes
from openapi_rulegen.validation.validator import RouteValidator

logger = logging.getLogger(__name__)

FILTER_TYPE_CHOICES = [t.replace("_", "-") for t in MISMATCH_TYPES]


def _load(spec_path: Path) -> OpenApiDocument:
    try:
        return load_document(spec_path)
    except RuleGenError as e:
        raise click.ClickException(str(e)) from e


def _extract(extractor: SchemaExtractor, document: OpenApiDocument) -> list[EndpointDefinition]:
    try:
        return extractor.extract_endpoints(document)
    except ValueError as e:
        raise click.ClickException(f"Could not extract endpoints: {e}") from e


def _echo_errors(errors: list[str]) -> None:
    for error in errors:
        click.echo(f"  ! {error}", err=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, envvar="OPENAPI_RULEGEN_VERBOSE", help="Enable debug logging.")
def main(verbose: bool):
    """openapi-rulegen: validation rules and route checks from OpenAPI documents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("spec_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(file_okay=False, path_type=Path), envvar="OPENAPI_RULEGEN_OUTPUT", help="Output directory for generated classes.")
@click.option("--namespace", default=DEFAULT_NAMESPACE, show_default=True, envvar="OPENAPI_RULEGEN_NAMESPACE", help="PHP namespace of the generated classes.")
@click.option("--authorize", "authorization", default="return true;", show_default=True, help="Body of the generated authorize() method.")
@click.option("--force", is_flag=True, help="Overwrite existing files.")
@click.option("--dry-run", is_flag=True, help="Show what would be generated without writing files.")
def gen_rules(spec_path: Path, output: Path, namespace: str, authorization: str, force: bool, dry_run: bool):
    """Generate form-request classes from an OpenAPI document."""
    click.echo(f"Parsing {spec_path}...")
    document = _load(spec_path)
    extractor = SchemaExtractor()
    endpoints = _extract(extractor, document)
    click.echo(f"Found {len(endpoints)} endpoints.")
    if extractor.errors:
        click.echo(f"{len(extractor.errors)} endpoints could not be parsed:", err=True)
        _echo_errors(extractor.errors)

    try:
        options = GenerationOptions(
            namespace=namespace, authorization_expression=authorization, force=force
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    generator = FormRequestGenerator()
    form_requests = generator.generate_from_endpoints(endpoints, output, options)
    if generator.errors:
        _echo_errors(generator.errors)
    if generator.compiler.pattern_warnings:
        _echo_errors(generator.compiler.pattern_warnings)
    if not form_requests:
        click.echo("No endpoints with request schemas found; nothing to generate.")
        return

    checks = validate_form_requests(form_requests)
    _echo_errors(checks["warnings"])
    if not checks["valid"]:
        _echo_errors(checks["errors"])
        raise click.ClickException("Generated classes failed validation.")

    if dry_run:
        for item in generator.dry_run(form_requests):
            status = "exists" if item["file_exists"] else "new"
            click.echo(
                f"  {item['class_name']} ({item['source_endpoint']}): "
                f"{item['rules_count']} rules, complexity {item['complexity']} [{status}] -> {item['file_path']}"
            )
        click.echo(f"Dry run: {len(form_requests)} classes would be generated.")
        return

    logger.debug("Writing %d classes to %s", len(form_requests), output)
    outcome = generator.write_many(form_requests, force=options.force)
    for result in outcome["results"]:
        click.echo(f"  {result['message']}")
    summary = outcome["summary"]
    click.echo(
        f"Generated {summary['success']} classes in {output} "
        f"({summary['skipped']} skipped, {summary['failed']} failed)."
    )
    if summary["failed"]:
        raise click.ClickException(f"{summary['failed']} files could not be written.")


@main.command()
@click.argument("spec_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--operation", "operation_ids", multiple=True, help="Only show these operation ids.")
@click.option("--sort", "sort_keys", is_flag=True, help="Sort field paths alphabetically.")
def show_rules(spec_path: Path, operation_ids: tuple[str, ...], sort_keys: bool):
    """Print the compiled rule map of each endpoint as JSON."""
    document = _load(spec_path)
    extractor = SchemaExtractor()
    compiler = RuleCompiler()

    rule_maps = {}
    for endpoint in _extract(extractor, document):
        if endpoint.request_schema is None:
            continue
        if operation_ids and endpoint.operation_id not in operation_ids:
            continue
        rule_maps[endpoint.operation_id] = compiler.compile(endpoint.request_schema)

    _echo_errors(extractor.errors)
    _echo_errors(compiler.pattern_warnings)
    click.echo(json.dumps(rule_maps, indent=2, sort_keys=sort_keys))


@main.command()
@click.argument("spec_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("routes_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--base-path", default=None, envvar="OPENAPI_RULEGEN_BASE_PATH", help="Server base path to prefix documented paths with (e.g. /api).")
@click.option("--include-pattern", "include_patterns", multiple=True, help="Path patterns to include (wildcards allowed).")
@click.option("--exclude-pattern", "exclude_patterns", multiple=True, help="Route uris or names to ignore (wildcards allowed).")
@click.option("--exclude-middleware", "exclude_middleware", multiple=True, help="Ignore routes using this middleware.")
@click.option("--filter-type", "filter_types", multiple=True, type=click.Choice(FILTER_TYPE_CHOICES), help="Only report these mismatch types.")
@click.option("--report-format", default="table", show_default=True, type=click.Choice(sorted(REPORTERS)), envvar="OPENAPI_RULEGEN_REPORT_FORMAT", help="Report format.")
@click.option("--output-file", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Save the report to a file.")
@click.option("--strict", is_flag=True, envvar="OPENAPI_RULEGEN_STRICT", help="Exit with status 1 on any mismatch.")
@click.option("--suggestions", is_flag=True, help="Include fix suggestions.")
@click.pass_context
def validate_routes(
    ctx: click.Context,
    spec_path: Path,
    routes_path: Path,
    base_path: str | None,
    include_patterns: tuple[str, ...],
    exclude_patterns: tuple[str, ...],
    exclude_middleware: tuple[str, ...],
    filter_types: tuple[str, ...],
    report_format: str,
    output_file: Path | None,
    strict: bool,
    suggestions: bool,
):
    """Compare implemented routes with the documented endpoints."""
    pattern_check = patterns.validate_patterns([*include_patterns, *exclude_patterns])
    if not pattern_check["valid"]:
        raise click.ClickException("; ".join(pattern_check["errors"]))

    document = _load(spec_path)
    try:
        routes = load_routes(routes_path)
    except RuleGenError as e:
        raise click.ClickException(str(e)) from e

    routes = filter_routes(
        routes, exclude_patterns=list(exclude_patterns), exclude_middleware=list(exclude_middleware)
    )
    logger.debug("%d routes left after filtering", len(routes))
    options = ValidationOptions(
        base_path=base_path,
        include_patterns=list(include_patterns),
        exclude_middleware=list(exclude_middleware),
        filter_types=[t.replace("-", "_") for t in filter_types],
        suggestions=suggestions,
    )
    result = RouteValidator().validate(document, routes, options)

    report = get_reporter(report_format).render(result, suggestions=suggestions)
    if output_file is not None:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(report, encoding="utf-8")
        click.echo(f"Report saved to {output_file}")
    else:
        click.echo(report)

    if strict and not result.is_valid:
        click.echo("Validation failed with mismatches (strict mode)", err=True)
        ctx.exit(1)


@main.command()
@click.argument("spec_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def check(ctx: click.Context, spec_path: Path):
    """Check document structure and every $ref it uses."""
    document = _load(spec_path)
    resolver = ReferenceResolver()
    extractor = SchemaExtractor(resolver)
    endpoints = _extract(extractor, document)

    structure = validate_document(document, endpoints)
    references = resolver.validate_references(document)
    stats = document_stats(document, endpoints)

    click.echo(f"{document.title} {document.api_version} (OpenAPI {document.openapi or 'unknown'})")
    click.echo(
        f"  {stats['total_endpoints']} endpoints, {stats['endpoints_with_request_bodies']} with request schemas, "
        f"{stats['schema_count']} component schemas"
    )

    errors = structure["errors"] + references["errors"] + extractor.errors
    warnings = structure["warnings"] + references["warnings"]
    for warning in warnings:
        click.echo(f"  warning: {warning}")
    for error in errors:
        click.echo(f"  error: {error}", err=True)

    if errors:
        click.echo(f"Document has {len(errors)} errors.", err=True)
        ctx.exit(1)
    click.echo("Document OK.")
