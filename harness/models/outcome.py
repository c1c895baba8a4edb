"""
Test Outcome Model
==================
What a single raced request settled to, and how it was classified.

Fields:
    classification   — pass / fail / timeout
    raw_result       — stringified "result", or "error" / "timeout"
    error_message    — "error" field of a 4xx body, None otherwise
    equation_echoed  — True when the body echoed the submitted equation
"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel

RAW_ERROR = "error"
RAW_TIMEOUT = "timeout"


class Classification(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    TIMEOUT = "timeout"


def classify(raw_result: Optional[str], expected_result: str) -> Classification:
    """Bucket a raw result against the expected value of its test case."""
    if raw_result == RAW_TIMEOUT:
        return Classification.TIMEOUT
    if raw_result == expected_result:
        return Classification.PASS
    return Classification.FAIL


class TestOutcome(BaseModel):
    __test__ = False  # not a pytest class

    classification: Classification
    raw_result: Optional[str] = None
    error_message: Optional[str] = None
    equation_echoed: bool = False
    # True only for structured 4xx rejections
    application_error: bool = False
