"""
Harness Errors
==============
Exception taxonomy shared by the pipeline stages.

Fatal to one service's pipeline:
    SetupError, ProcessError (build / run / inspect), ConnectivityError

Fatal to one service's cleanup only:
    ProcessError (kill)

Never fatal (recorded as a test-case outcome):
    RequestError, and request timeouts (which are an outcome, not an exception)
"""
from typing import Optional, Sequence


class HarnessError(Exception):
    """Base class for every error the harness raises on purpose."""


class ConfigError(HarnessError):
    """The repo-list file is unreadable or malformed."""


class SetupError(HarnessError):
    """The workspace or container could not be prepared."""


class ProcessError(HarnessError):
    """An external command exited non-zero."""

    def __init__(self, stage: str, exit_code: int, output: Sequence[str] = ()) -> None:
        self.stage = stage
        self.exit_code = exit_code
        self.output = list(output)
        super().__init__(f"{stage} failed with exit code {exit_code}")


class ConnectivityError(HarnessError):
    """The service never answered its healthcheck."""


class RequestError(HarnessError):
    """A service rejected a request with a 4xx response."""

    def __init__(self, message: Optional[str], status_code: int, body: Optional[dict] = None) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body or {}
        super().__init__(f"HTTP {status_code}: {message or 'no error message'}")
