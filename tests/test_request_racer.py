"""
Unit Tests — Request Racer
==========================
Exactly-once settlement of each test request: success, 4xx rejection,
transport failure, and deadline expiry (with late responses discarded).
"""
import asyncio
import json
import logging

import httpx
import pytest

from harness.agents.request_racer import RequestRacer, ResultSlot
from harness.core.test_cases import LONG_TERM_COUNT, TEST_CASES
from harness.models.cases import TestCase
from harness.models.outcome import Classification
from harness.services.service_client import ServiceClient

FRACTIONS = TestCase(equation="1/2 + 1/3", expected_result="5/6", name="fractions")
UNBALANCED = TestCase(equation="(2 + 2) + (", expected_result="error", name="unbalanced-parens")
LONG = TestCase(
    equation=" + ".join(["1/2"] * LONG_TERM_COUNT), expected_result="3000", name="long",
)


def _race(handler, case, deadline=1.0):
    async def run_test():
        async with ServiceClient("http://svc", transport=httpx.MockTransport(handler)) as client:
            return await RequestRacer(client, deadline=deadline).race(case)

    return asyncio.run(run_test())


# ---------------------------------------------------------------------------
# 1. Result slot
# ---------------------------------------------------------------------------
class TestResultSlot:

    def test_first_settle_wins(self):
        slot = ResultSlot()
        assert not slot.settled
        assert slot.settle("first") is True
        assert slot.settle("second") is False
        assert slot.value == "first"
        assert slot.settled


# ---------------------------------------------------------------------------
# 2. Outcomes
# ---------------------------------------------------------------------------
def test_success_scenario_passes_and_echoes():
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(200, json={"result": "5/6", "equation": body["equation"]})

    outcome = _race(handler, FRACTIONS)
    assert outcome.classification == Classification.PASS
    assert outcome.raw_result == "5/6"
    assert outcome.equation_echoed is True
    assert outcome.error_message is None


def test_wrong_result_fails():
    def handler(request):
        return httpx.Response(200, json={"result": "2/5", "equation": "1/2 + 1/3"})

    outcome = _race(handler, FRACTIONS)
    assert outcome.classification == Classification.FAIL
    assert outcome.raw_result == "2/5"


def test_numeric_result_is_compared_as_string():
    case = TestCase(equation="2 + 3", expected_result="5")

    def handler(request):
        return httpx.Response(200, json={"result": 5, "equation": "2 + 3"})

    assert _race(handler, case).classification == Classification.PASS


def test_echo_mismatch_is_recorded():
    def handler(request):
        return httpx.Response(200, json={"result": "5/6", "equation": "1/2+1/3"})

    outcome = _race(handler, FRACTIONS)
    assert outcome.classification == Classification.PASS
    assert outcome.equation_echoed is False


def test_application_error_scenario_passes_with_message():
    def handler(request):
        return httpx.Response(
            400, json={"error": "unbalanced parens", "equation": "(2 + 2) + ("},
        )

    outcome = _race(handler, UNBALANCED)
    assert outcome.classification == Classification.PASS
    assert outcome.raw_result == "error"
    assert outcome.error_message == "unbalanced parens"
    assert outcome.equation_echoed is True
    assert outcome.application_error is True


def test_application_error_on_valid_equation_fails():
    def handler(request):
        return httpx.Response(400, json={"error": "cannot parse", "equation": "1/2 + 1/3"})

    outcome = _race(handler, FRACTIONS)
    assert outcome.classification == Classification.FAIL
    assert outcome.raw_result == "error"
    assert outcome.error_message == "cannot parse"


def test_transport_failure_has_no_message():
    def handler(request):
        raise httpx.ConnectError("connection reset", request=request)

    outcome = _race(handler, UNBALANCED)
    assert outcome.raw_result == "error"
    assert outcome.error_message is None
    assert outcome.equation_echoed is False
    assert outcome.application_error is False


def test_server_error_is_transport_failure():
    def handler(request):
        return httpx.Response(500, json={"error": "boom", "equation": "1/2 + 1/3"})

    outcome = _race(handler, FRACTIONS)
    assert outcome.classification == Classification.FAIL
    assert outcome.raw_result == "error"
    assert outcome.error_message is None


def test_body_without_equation_is_transport_failure():
    def handler(request):
        return httpx.Response(200, json={"result": "5/6"})

    outcome = _race(handler, FRACTIONS)
    assert outcome.raw_result == "error"
    assert outcome.equation_echoed is False


# ---------------------------------------------------------------------------
# 3. Deadline
# ---------------------------------------------------------------------------
def test_timeout_scenario_for_long_case():
    async def handler(request):
        await asyncio.sleep(0.5)
        return httpx.Response(200, json={"result": "3000", "equation": LONG.equation})

    outcome = _race(handler, LONG, deadline=0.05)
    assert outcome.classification == Classification.TIMEOUT
    assert outcome.raw_result == "timeout"
    assert outcome.equation_echoed is False


def test_late_response_is_discarded(caplog):
    caplog.set_level(logging.DEBUG, logger="harness.agents.request_racer")

    async def handler(request):
        await asyncio.sleep(0.1)
        return httpx.Response(200, json={"result": "5/6", "equation": "1/2 + 1/3"})

    async def run_test():
        async with ServiceClient("http://svc", transport=httpx.MockTransport(handler)) as client:
            outcome = await RequestRacer(client, deadline=0.02).race(FRACTIONS)
            # Let the abandoned request finish while the client is still open
            await asyncio.sleep(0.2)
            return outcome

    outcome = asyncio.run(run_test())
    assert outcome.classification == Classification.TIMEOUT
    assert "Discarding late response for fractions" in caplog.text


def test_slow_case_does_not_affect_siblings():
    async def handler(request):
        equation = json.loads(request.content)["equation"]
        if equation == LONG.equation:
            await asyncio.sleep(0.5)
        if equation == UNBALANCED.equation:
            return httpx.Response(400, json={"error": "unbalanced", "equation": equation})
        return httpx.Response(200, json={"result": "5/6", "equation": equation})

    async def run_test():
        async with ServiceClient("http://svc", transport=httpx.MockTransport(handler)) as client:
            racer = RequestRacer(client, deadline=0.1)
            return await asyncio.gather(
                racer.race(FRACTIONS), racer.race(UNBALANCED), racer.race(LONG),
            )

    fractions, unbalanced, long = asyncio.run(run_test())
    assert fractions.classification == Classification.PASS
    assert unbalanced.classification == Classification.PASS
    assert long.classification == Classification.TIMEOUT


def test_every_table_case_settles_exactly_once():
    def handler(request):
        equation = json.loads(request.content)["equation"]
        return httpx.Response(400, json={"error": "no", "equation": equation})

    async def run_test():
        async with ServiceClient("http://svc", transport=httpx.MockTransport(handler)) as client:
            racer = RequestRacer(client, deadline=1.0)
            return await asyncio.gather(*(racer.race(case) for case in TEST_CASES))

    outcomes = asyncio.run(run_test())
    assert len(outcomes) == len(TEST_CASES)
    for case, outcome in zip(TEST_CASES, outcomes):
        expected = Classification.PASS if case.expected_result == "error" else Classification.FAIL
        assert outcome.classification == expected


# ---------------------------------------------------------------------------
# 4. Malformed rejections
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("error", [{"code": 7, "msg": "bad"}, 7, ["bad"], None, ""])
def test_rejection_without_usable_message(error):
    def handler(request):
        return httpx.Response(400, json={"error": error, "equation": "(2 + 2) + ("})

    outcome = _race(handler, UNBALANCED)
    assert outcome.classification == Classification.PASS
    assert outcome.raw_result == "error"
    assert not outcome.error_message
    assert outcome.application_error is True
    assert outcome.equation_echoed is True


def test_on_time_response_is_not_reported_as_late(caplog):
    caplog.set_level(logging.DEBUG, logger="harness.agents.request_racer")

    def handler(request):
        return httpx.Response(200, json={"result": "5/6", "equation": "1/2 + 1/3"})

    assert _race(handler, FRACTIONS).classification == Classification.PASS
    assert "Discarding late response" not in caplog.text
