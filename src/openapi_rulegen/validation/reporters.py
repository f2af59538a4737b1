"""Render a ValidationResult as JSON, HTML, a console report or a text table."""

import html
import json
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

import click

from .models import Mismatch, RouteMatch, ValidationResult

SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}
SEVERITY_ICONS = {"error": "x", "warning": "!", "info": "i"}
SEVERITY_COLORS = {"error": "red", "warning": "yellow", "info": "cyan"}


def _package_version() -> str:
    try:
        return version("openapi-rulegen")
    except PackageNotFoundError:
        return "unknown"


class JsonReporter:
    extension = "json"

    def render(self, result: ValidationResult, pretty: bool = True, include_metadata: bool = True, **_) -> str:
        mismatches = sorted(result.mismatches, key=lambda m: (m.path, m.method))
        data = {
            "validation": {
                "status": "passed" if result.is_valid else "failed",
                "summary": result.summary(),
            },
            "mismatches": [mismatch.to_dict() for mismatch in mismatches],
            "warnings": list(result.warnings),
            "statistics": result.statistics,
        }
        if include_metadata:
            data["metadata"] = {
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "generator": "openapi-rulegen route validator",
                "version": _package_version(),
            }
        return json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)


class ConsoleReporter:
    extension = "txt"

    def render(self, result: ValidationResult, suggestions: bool = False, colors: bool = False, **_) -> str:
        self.colors = colors
        sections = [self._header(), self._summary(result)]
        if not result.is_valid:
            sections.append(self._mismatches(result, suggestions))
        if result.has_warnings():
            sections.append(self._warnings(result))
        sections.append(self._statistics(result))
        return "\n\n".join(section for section in sections if section)

    def _style(self, text: str, **styles) -> str:
        return click.style(text, **styles) if self.colors else text

    def _header(self) -> str:
        title = "Route Validation Report"
        timestamp = f"Generated: {datetime.now():%Y-%m-%d %H:%M:%S}"
        separator = "=" * max(len(title), len(timestamp))
        return "\n".join(
            [self._style(separator, fg="cyan"), self._style(title, fg="blue", bold=True), timestamp, self._style(separator, fg="cyan")]
        )

    def _summary(self, result: ValidationResult) -> str:
        status = "PASSED" if result.is_valid else "FAILED"
        lines = [
            "VALIDATION SUMMARY",
            "-" * 18,
            f"Status: {self._style(status, fg='green' if result.is_valid else 'red')}",
            f"Total mismatches: {result.mismatch_count}",
        ]
        if result.has_warnings():
            lines.append(f"Warnings: {len(result.warnings)}")
        return "\n".join(lines)

    def _mismatches(self, result: ValidationResult, suggestions: bool) -> str:
        grouped: dict[str, list[Mismatch]] = {}
        for mismatch in result.mismatches:
            grouped.setdefault(mismatch.type, []).append(mismatch)

        lines = ["MISMATCHES", "-" * 10]
        # most severe group first
        for mismatch_type, mismatches in sorted(
            grouped.items(), key=lambda item: min(SEVERITY_ORDER[m.severity] for m in item[1])
        ):
            title = f"{mismatch_type.replace('_', ' ').upper()} ({len(mismatches)})"
            lines += ["", self._style(title, fg="yellow", bold=True), "-" * len(title)]
            for mismatch in mismatches:
                lines.append(self._mismatch(mismatch, suggestions))
        return "\n".join(lines)

    def _mismatch(self, mismatch: Mismatch, suggestions: bool) -> str:
        icon = self._style(SEVERITY_ICONS[mismatch.severity], fg=SEVERITY_COLORS[mismatch.severity])
        lines = [
            f"{icon} {mismatch.message}",
            f"   Path: {mismatch.path}",
            f"   Method: {mismatch.method}",
        ]
        if mismatch.details:
            details = ", ".join(f"{key}: {_format_value(value)}" for key, value in mismatch.details.items())
            lines.append(f"   Details: {details}")
        if suggestions and mismatch.suggestions:
            lines.append("   Suggestions:")
            lines += [f"     - {suggestion}" for suggestion in mismatch.suggestions]
        return "\n".join(lines) + "\n"

    def _warnings(self, result: ValidationResult) -> str:
        lines = ["WARNINGS", "-" * 8]
        lines += [f"{self._style('!', fg='yellow')} {warning}" for warning in result.warnings]
        return "\n".join(lines)

    def _statistics(self, result: ValidationResult) -> str:
        lines = ["STATISTICS", "-" * 10]
        for key, value in result.statistics.items():
            if key == "mismatch_breakdown" and isinstance(value, dict):
                lines.append("Mismatch breakdown:")
                lines += [f"  {mismatch_type}: {count}" for mismatch_type, count in value.items()]
            else:
                lines.append(f"{key.replace('_', ' ').capitalize()}: {_format_value(value)}")
        return "\n".join(lines)


def _format_value(value) -> str:
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


class TableReporter:
    extension = "txt"

    MAX_CELL_WIDTH = 30
    HEADERS = ("Method", "Path", "Route Params", "OpenAPI Params", "Status")
    DETAIL_HEADERS = ("Route Name", "Tags")

    def render(self, result: ValidationResult, details: bool = False, **_) -> str:
        if not result.matches:
            return self._empty(result)

        headers = self.HEADERS + (self.DETAIL_HEADERS if details else ())
        rows = [self._row(match, details) for match in result.matches]
        widths = [
            max(len(header), *(min(len(row[i]), self.MAX_CELL_WIDTH) for row in rows))
            for i, header in enumerate(headers)
        ]

        border = "+" + "+".join("-" * (width + 2) for width in widths) + "+"
        lines = ["ROUTE VALIDATION TABLE", border, self._line(headers, widths), border]
        lines += [self._line(row, widths) for row in rows]
        lines.append(border)
        lines += ["", self._summary(result)]
        return "\n".join(lines)

    def _row(self, match: RouteMatch, details: bool) -> tuple:
        status = "Match" if match.status == "match" else match.display_status
        row = (
            match.method,
            match.path,
            _format_params(match.route_parameters()),
            _format_params(match.documented_parameters()),
            status,
        )
        if details:
            row += (
                match.route.name if match.route is not None and match.route.name else "-",
                ", ".join(match.endpoint.tags) if match.endpoint is not None and match.endpoint.tags else "-",
            )
        return row

    def _line(self, cells, widths) -> str:
        return "| " + " | ".join(_truncate(cell, width).ljust(width) for cell, width in zip(cells, widths)) + " |"

    def _summary(self, result: ValidationResult) -> str:
        stats = result.statistics
        return "\n".join(
            [
                f"Status: {'PASSED' if result.is_valid else 'FAILED'}",
                f"Mismatches: {result.mismatch_count}",
                f"Route coverage: {stats.get('route_coverage_percentage', 100.0)}%",
                f"Endpoint coverage: {stats.get('endpoint_coverage_percentage', 100.0)}%",
                f"Total coverage: {stats.get('total_coverage_percentage', 100.0)}%",
            ]
        )

    def _empty(self, result: ValidationResult) -> str:
        return "No routes or endpoints to display.\n\n" + self._summary(result)


_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
{style}
</head>
<body>
{body}
</body>
</html>
"""

_HTML_STYLE = """\
<style>
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 1200px; margin: 2rem auto; color: #333; }
  .summary, .section { background: #f8f9fa; padding: 1rem; border-radius: 6px; margin-bottom: 1.5rem; }
  .status { display: inline-block; padding: 4px 12px; border-radius: 12px; color: #fff; font-weight: 600; }
  .status.passed { background: #28a745; }
  .status.failed { background: #dc3545; }
  .mismatch { border-left: 4px solid #6c757d; padding: 0.5rem 1rem; margin-bottom: 0.75rem; background: #fff; }
  .mismatch.error { border-color: #dc3545; }
  .mismatch.warning { border-color: #ffc107; }
  .mismatch.info { border-color: #17a2b8; }
  .mismatch-type { font-size: 0.8em; text-transform: uppercase; color: #6c757d; }
  table { border-collapse: collapse; }
  th, td { text-align: left; padding: 4px 12px; border-bottom: 1px solid #dee2e6; }
</style>"""


class HtmlReporter:
    extension = "html"

    def render(
        self,
        result: ValidationResult,
        suggestions: bool = True,
        title: str = "Route Validation Report",
        include_css: bool = True,
        **_,
    ) -> str:
        parts = [
            f"<h1>{html.escape(title)}</h1>",
            f"<p class=\"timestamp\">Generated on {datetime.now():%Y-%m-%d %H:%M:%S}</p>",
            self._summary(result),
        ]
        if not result.is_valid:
            parts.append(self._mismatches(result, suggestions))
        if result.has_warnings():
            parts.append(self._warnings(result))
        parts.append(self._statistics(result))
        return _HTML_TEMPLATE.format(
            title=html.escape(title),
            style=_HTML_STYLE if include_css else "",
            body="\n".join(parts),
        )

    def _summary(self, result: ValidationResult) -> str:
        status = "passed" if result.is_valid else "failed"
        lines = [
            '<div class="summary">',
            "<h2>Validation Summary</h2>",
            f'<p><span class="status {status}">{status.capitalize()}</span></p>',
            f"<p><strong>Total mismatches:</strong> {result.mismatch_count}</p>",
        ]
        if result.has_warnings():
            lines.append(f"<p><strong>Warnings:</strong> {len(result.warnings)}</p>")
        lines.append("</div>")
        return "\n".join(lines)

    def _mismatches(self, result: ValidationResult, suggestions: bool) -> str:
        ordered = sorted(result.mismatches, key=lambda m: (SEVERITY_ORDER[m.severity], m.path, m.method))
        lines = ['<div class="section">', "<h2>Mismatches</h2>"]
        lines += [self._mismatch(mismatch, suggestions) for mismatch in ordered]
        lines.append("</div>")
        return "\n".join(lines)

    def _mismatch(self, mismatch: Mismatch, suggestions: bool) -> str:
        lines = [
            f'<div class="mismatch {mismatch.severity}">',
            f'<div class="mismatch-type">{mismatch.type.replace("_", " ").title()}</div>',
            f"<p>{html.escape(mismatch.message)}</p>",
            f"<p><strong>Path:</strong> {html.escape(mismatch.path)}<br>"
            f"<strong>Method:</strong> {html.escape(mismatch.method)}</p>",
        ]
        if mismatch.details:
            lines.append("<dl>")
            for key, value in mismatch.details.items():
                lines.append(f"<dt>{html.escape(key.replace('_', ' ').capitalize())}</dt>")
                lines.append(f"<dd>{html.escape(_format_value(value))}</dd>")
            lines.append("</dl>")
        if suggestions and mismatch.suggestions:
            lines.append('<div class="suggestions"><h4>Suggestions</h4><ul>')
            lines += [f"<li>{html.escape(suggestion)}</li>" for suggestion in mismatch.suggestions]
            lines.append("</ul></div>")
        lines.append("</div>")
        return "\n".join(lines)

    def _warnings(self, result: ValidationResult) -> str:
        lines = ['<div class="section">', "<h2>Warnings</h2>"]
        lines += [f"<p>{html.escape(warning)}</p>" for warning in result.warnings]
        lines.append("</div>")
        return "\n".join(lines)

    def _statistics(self, result: ValidationResult) -> str:
        lines = ['<div class="section">', "<h2>Statistics</h2>", "<table>"]
        for key, value in result.statistics.items():
            label = html.escape(key.replace("_", " ").capitalize())
            lines.append(f"<tr><th>{label}</th><td>{html.escape(_format_value(value))}</td></tr>")
        lines += ["</table>", "</div>"]
        return "\n".join(lines)


def _format_params(params: list[str]) -> str:
    return "[" + ", ".join(params) + "]"


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


REPORTERS = {
    "json": JsonReporter,
    "html": HtmlReporter,
    "console": ConsoleReporter,
    "text": ConsoleReporter,
    "table": TableReporter,
}


def get_reporter(fmt: str):
    try:
        return REPORTERS[fmt.lower()]()
    except KeyError:
        raise ValueError(f"Unsupported report format: {fmt}. Available: {', '.join(REPORTERS)}") from None
