"""
Unit Tests — Report Formatter
=============================
The comparison table is compared line by line with exact string equality.
"""
import pytest

from harness.core.report_formatter import (
    AGGREGATE_ROWS,
    HEADER_LABEL,
    MISSING,
    SEPARATOR,
    SYMBOLS,
    format_report,
    symbol_for,
)
from harness.core.test_cases import TEST_CASES
from harness.models.cases import TestCase
from harness.models.outcome import Classification
from harness.models.service_report import ServiceReport

CASES = (
    TestCase(equation="1/2 + 1/3", expected_result="5/6", name="fractions"),
    TestCase(equation="1 / 0", expected_result="error", name="division-by-zero"),
    TestCase(equation="7 - 2", expected_result="5"),
)


def _report(name, results, healthcheck_up=True, equation_echoed=True, error_messages_present=True):
    return ServiceReport(
        service_name=name,
        results=results,
        healthcheck_up=healthcheck_up,
        equation_echoed=equation_echoed,
        error_messages_present=error_messages_present,
    )


# ---------------------------------------------------------------------------
# 1. Symbols
# ---------------------------------------------------------------------------
class TestSymbols:

    @pytest.mark.parametrize("value, expected", [
        (Classification.PASS, "+"),
        (Classification.FAIL, "-"),
        (Classification.TIMEOUT, "T"),
        (True, "+"),
        (False, "-"),
        (None, MISSING),
    ])
    def test_symbol_for(self, value, expected):
        assert symbol_for(value) == expected

    def test_every_classification_has_a_symbol(self):
        assert set(SYMBOLS) == set(Classification)

    def test_separator_and_header(self):
        assert SEPARATOR == "|"
        assert HEADER_LABEL == "test-name"


# ---------------------------------------------------------------------------
# 2. Table layout
# ---------------------------------------------------------------------------
def test_two_services_exact_table():
    alpha = _report("alpha", {
        "fractions": Classification.PASS,
        "division-by-zero": Classification.FAIL,
        "7 - 2": Classification.TIMEOUT,
    }, error_messages_present=False)
    beta = _report("beta", {
        "fractions": Classification.FAIL,
        "division-by-zero": Classification.PASS,
        "7 - 2": Classification.PASS,
    }, healthcheck_up=False, equation_echoed=False)

    assert format_report([beta, alpha], CASES).splitlines() == [
        "test-name|alpha|beta",
        "fractions|+|-",
        "division-by-zero|-|+",
        "7 - 2|T|+",
        "healthcheck-up|+|-",
        "equation-echoed|+|-",
        "error-messages|-|+",
    ]


def test_columns_sorted_by_service_name():
    names = ["mango", "Apple", "banana"]
    reports = [_report(n, {}) for n in names]
    header = format_report(reports, CASES).splitlines()[0]
    assert header == "test-name|Apple|banana|mango"


def test_missing_result_renders_blank_cell():
    report = _report("svc", {"fractions": Classification.PASS})
    lines = format_report([report], CASES).splitlines()
    assert lines[2] == "division-by-zero|" + MISSING


def test_empty_report_is_header_only():
    assert format_report([], CASES) == "test-name"


def test_row_count_follows_case_table():
    report = _report("svc", {case.display_name: Classification.PASS for case in TEST_CASES})
    lines = format_report([report], TEST_CASES).splitlines()
    assert len(lines) == 1 + len(TEST_CASES) + len(AGGREGATE_ROWS)
    assert all(line.endswith("|+") for line in lines[1:])
    # The long case is labelled by name, not by its equation
    assert "long|+" in lines
