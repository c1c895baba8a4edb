"""
Orchestrator
============
Fans out one ServiceRunner per service and gathers what they produce.

Phases:
    1. Pipelines   — every runner's pipeline runs as its own asyncio task.
                     One service failing never blocks or aborts another.
    2. Cleanup     — starts only after ALL pipelines settled; every runner's
                     container is released concurrently. Runs in a
                     ``finally`` so containers are released even if phase 1
                     is interrupted.
    3. Report      — only services that completed their pipeline are kept.

Fault tolerance:
    - Broken results (fatal stage error) are logged as one line and dropped.
    - Unexpected exceptions from a runner are logged the same way.
    - Cleanup failures are logged per service and never raised.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from harness.agents.service_runner import ServiceRunner
from harness.core.test_cases import TEST_CASES
from harness.core.report_formatter import format_report
from harness.models.cases import TestCase
from harness.models.service_report import ServiceReport, ServiceResult
from harness.models.service_spec import ServiceSpec

logger = logging.getLogger(__name__)

RunnerFactory = Callable[[ServiceSpec], ServiceRunner]


def _one_line(exc: BaseException) -> str:
    text = str(exc).strip().splitlines()
    return f"{type(exc).__name__}: {text[0] if text else ''}"


class Orchestrator:
    """Runs every service pipeline concurrently and collects the reports."""

    def __init__(
        self,
        specs: Sequence[ServiceSpec],
        fresh_clone: bool = False,
        runner_factory: Optional[RunnerFactory] = None,
        test_cases: Sequence[TestCase] = TEST_CASES,
    ) -> None:
        self.specs = list(specs)
        self.fresh_clone = fresh_clone
        self.test_cases = tuple(test_cases)
        self.runner_factory = runner_factory or self._default_runner
        self.runners: List[ServiceRunner] = []

    def _default_runner(self, spec: ServiceSpec) -> ServiceRunner:
        return ServiceRunner(spec, fresh_clone=self.fresh_clone, test_cases=self.test_cases)

    async def run(self) -> List[ServiceReport]:
        """Run all pipelines, then all cleanups; return the completed reports."""
        self.runners = [self.runner_factory(spec) for spec in self.specs]
        logger.info("Launching %d service pipeline(s)", len(self.runners))

        try:
            tasks = [
                asyncio.create_task(runner.run(), name=f"pipeline-{runner.spec.name}")
                for runner in self.runners
            ]
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            await self._cleanup_all()

        return self._collect(outcomes)

    def _collect(self, outcomes: Sequence[object]) -> List[ServiceReport]:
        reports: List[ServiceReport] = []
        for runner, outcome in zip(self.runners, outcomes):
            name = runner.spec.name
            if isinstance(outcome, BaseException):
                logger.error("[%s] Pipeline crashed: %s", name, _one_line(outcome))
                continue
            result: ServiceResult = outcome
            if result.broken:
                logger.error(
                    "[%s] Excluded from report (failed during %s)", name, result.failed_stage,
                )
                continue
            reports.append(result.report)

        logger.info("%d of %d service(s) completed", len(reports), len(self.runners))
        return reports

    async def _cleanup_all(self) -> None:
        results = await asyncio.gather(
            *(runner.cleanup() for runner in self.runners), return_exceptions=True,
        )
        for runner, result in zip(self.runners, results):
            if isinstance(result, BaseException):
                logger.error("[%s] Cleanup failed: %s", runner.spec.name, _one_line(result))

    def render(self, reports: Sequence[ServiceReport]) -> str:
        return format_report(reports, self.test_cases)
