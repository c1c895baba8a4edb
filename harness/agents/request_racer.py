"""
Request Racer
=============
Submits one test equation and races the response against a fixed deadline.

Exactly one outcome settles per request:
    1. 2xx with result + equation  → raw_result = str(result)
    2. 4xx structured rejection    → raw_result = "error" + error message
    3. any other failure           → raw_result = "error", no message
    4. deadline first              → raw_result = "timeout"

The request and a timer run as two tasks; whichever finishes first writes the
ResultSlot. The slot accepts a single write; later writes are ignored. A
request that completes after the deadline is NOT cancelled: its outcome still
reaches the slot through a done-callback and is discarded there.
"""
import asyncio
import logging
from typing import Any, Dict, Generic, Optional, TypeVar

from harness.core.config import REQUEST_TIMEOUT
from harness.core.errors import RequestError
from harness.models.cases import TestCase
from harness.models.outcome import RAW_ERROR, RAW_TIMEOUT, TestOutcome, classify
from harness.services.service_client import ServiceClient

logger = logging.getLogger(__name__)

CALC_PATH = "/calc"

T = TypeVar("T")


class ResultSlot(Generic[T]):
    """Single-assignment cell: the first settle wins, the rest are no-ops."""

    def __init__(self) -> None:
        self._settled = False
        self._value: Optional[T] = None

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def value(self) -> Optional[T]:
        return self._value

    def settle(self, value: T) -> bool:
        if self._settled:
            return False
        self._value = value
        self._settled = True
        return True


def _outcome_from_body(case: TestCase, body: Dict[str, Any]) -> TestOutcome:
    if "result" not in body or "equation" not in body:
        logger.debug("Response for %s lacks result/equation: %s", case.display_name, body)
        return _transport_failure(case)
    raw = str(body["result"])
    return TestOutcome(
        classification=classify(raw, case.expected_result),
        raw_result=raw,
        equation_echoed=body["equation"] == case.equation,
    )


def _outcome_from_rejection(case: TestCase, error: RequestError) -> TestOutcome:
    if "error" not in error.body or "equation" not in error.body:
        logger.debug("Rejection for %s lacks error/equation: %s", case.display_name, error.body)
        return _transport_failure(case)
    # A non-string "error" still counts as a rejection, just without a message
    message = error.message if isinstance(error.message, str) else None
    return TestOutcome(
        classification=classify(RAW_ERROR, case.expected_result),
        raw_result=RAW_ERROR,
        error_message=message,
        equation_echoed=error.body["equation"] == case.equation,
        application_error=True,
    )


def _transport_failure(case: TestCase) -> TestOutcome:
    return TestOutcome(
        classification=classify(RAW_ERROR, case.expected_result),
        raw_result=RAW_ERROR,
    )


def _timed_out(case: TestCase) -> TestOutcome:
    return TestOutcome(
        classification=classify(RAW_TIMEOUT, case.expected_result),
        raw_result=RAW_TIMEOUT,
    )


class RequestRacer:
    """Races test-case requests against a deadline for one live service."""

    def __init__(self, client: ServiceClient, deadline: float = REQUEST_TIMEOUT) -> None:
        self.client = client
        self.deadline = deadline

    async def _submit(self, case: TestCase) -> TestOutcome:
        """Perform the request; never raises, every failure becomes an outcome."""
        try:
            try:
                body = await self.client.post(CALC_PATH, {"equation": case.equation})
            except RequestError as e:
                return _outcome_from_rejection(case, e)
            return _outcome_from_body(case, body)
        except Exception as e:
            logger.debug("Request for %s failed: %s: %s", case.display_name, type(e).__name__, e)
            return _transport_failure(case)

    async def race(self, case: TestCase) -> TestOutcome:
        slot: ResultSlot[TestOutcome] = ResultSlot()

        request = asyncio.ensure_future(self._submit(case))
        timer = asyncio.ensure_future(asyncio.sleep(self.deadline))

        def _late_arrival(task: asyncio.Future) -> None:
            if task.cancelled():
                return
            if not slot.settle(task.result()):
                logger.debug("Discarding late response for %s", case.display_name)

        try:
            done, _ = await asyncio.wait({request, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()

        if request in done:
            slot.settle(request.result())
        else:
            slot.settle(_timed_out(case))
            # Only a request that lost the race is watched for a late arrival
            request.add_done_callback(_late_arrival)

        return slot.value
