"""
Report Formatter
================
Renders the cross-service comparison table.

DETERMINISM CONTRACT:
  - Pure functions: no I/O, no environment, no clock.
  - Service columns are sorted lexicographically, so the same set of
    reports always renders the same table regardless of completion order.
  - Rows follow the order of the test-case table, then the aggregate flags.

Layout (pipe-delimited, one line per row):
    test-name|<service1>|<service2>|...
    <test display name>|<symbol>|<symbol>|...
    healthcheck-up|<symbol>|...
    equation-echoed|<symbol>|...
    error-messages|<symbol>|...
"""
from typing import Iterable, List, Sequence

from harness.models.cases import TestCase
from harness.models.outcome import Classification
from harness.models.service_report import ServiceReport

SEPARATOR = "|"
HEADER_LABEL = "test-name"
MISSING = " "

SYMBOLS = {
    Classification.PASS: "+",
    Classification.FAIL: "-",
    Classification.TIMEOUT: "T",
}

# (row label, ServiceReport attribute)
AGGREGATE_ROWS = (
    ("healthcheck-up", "healthcheck_up"),
    ("equation-echoed", "equation_echoed"),
    ("error-messages", "error_messages_present"),
)


def symbol_for(value) -> str:
    """Map a Classification or a boolean flag to its table symbol."""
    if isinstance(value, Classification):
        return SYMBOLS[value]
    if isinstance(value, bool):
        return "+" if value else "-"
    return MISSING


def _row(label: str, cells: Iterable[str]) -> str:
    return SEPARATOR.join([label, *cells])


def format_report(reports: Sequence[ServiceReport], test_cases: Sequence[TestCase]) -> str:
    """Render the comparison table for every report that completed."""
    ordered = sorted(reports, key=lambda r: r.service_name)

    lines: List[str] = [_row(HEADER_LABEL, (r.service_name for r in ordered))]
    if not ordered:
        return lines[0]

    for case in test_cases:
        name = case.display_name
        lines.append(_row(name, (symbol_for(r.results.get(name)) for r in ordered)))

    for label, attr in AGGREGATE_ROWS:
        lines.append(_row(label, (symbol_for(getattr(r, attr)) for r in ordered)))

    return "\n".join(lines)
