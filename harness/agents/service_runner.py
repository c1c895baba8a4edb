"""
Service Runner
==============
Drives one service through its whole lifecycle:

    preparing → cloning → building → running → inspecting
              → healthchecking → testing   (pipeline, ``run``)
    cleaning_up → done                      (``cleanup``, called later)

Stages run strictly in sequence inside the runner's own task. Any fatal
stage error aborts the rest of the pipeline, is logged as one line, and is
handed back as a broken ServiceResult; sibling runners never see it.

The container is owned through a ContainerHandle recorded only once the
``run`` stage succeeded. ``cleanup`` releases it if, and only if, it exists.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from harness.agents.request_racer import RequestRacer
from harness.core.config import (
    BUILD_TAIL_LINES,
    CONTAINER_PREFIX,
    HEALTHCHECK_ATTEMPTS,
    HEALTHCHECK_INTERVAL,
    REQUEST_TIMEOUT,
    SERVICE_PORT,
    WORKSPACE_ROOT,
)
from harness.core.errors import ConnectivityError, HarnessError, ProcessError, SetupError
from harness.core.test_cases import TEST_CASES
from harness.executor.container_runtime import ContainerRuntime, bridge_ip_address
from harness.executor.process_executor import ProcessExecutor
from harness.models.cases import TestCase
from harness.models.outcome import Classification, TestOutcome
from harness.models.service_report import ServiceReport, ServiceResult
from harness.models.service_spec import ServiceSpec
from harness.services import repo_service
from harness.services.service_client import ServiceClient
from harness.state.service_run import ServiceRun, Stage
from harness.utils.logging_config import ServiceLogAdapter
from harness.utils.output_tail import OutputTail

logger = logging.getLogger(__name__)

HEALTHCHECK_PATH = "/healthcheck"
HEALTHY_STATUS = "UP"

ClientFactory = Callable[[str], ServiceClient]


def image_tag(spec: ServiceSpec, prefix: str = CONTAINER_PREFIX) -> str:
    return f"{prefix}-{spec.slug}"


def container_name(spec: ServiceSpec, prefix: str = CONTAINER_PREFIX) -> str:
    return f"{prefix}-{spec.slug}-container"


def summarize_outcomes(
    service_name: str,
    cases: Sequence[TestCase],
    outcomes: Sequence[TestOutcome],
    healthcheck_up: bool,
) -> ServiceReport:
    """Fold settled outcomes into the structured per-service record."""
    return ServiceReport(
        service_name=service_name,
        results={case.display_name: o.classification for case, o in zip(cases, outcomes)},
        healthcheck_up=healthcheck_up,
        equation_echoed=all(o.equation_echoed for o in outcomes),
        error_messages_present=all(
            bool(o.error_message) for o in outcomes if o.application_error
        ),
    )


class ServiceRunner:
    """Runs the build → run → test pipeline for a single service."""

    def __init__(
        self,
        spec: ServiceSpec,
        runtime: Optional[ContainerRuntime] = None,
        executor: Optional[ProcessExecutor] = None,
        fresh_clone: bool = False,
        workspace_root: str = WORKSPACE_ROOT,
        test_cases: Sequence[TestCase] = TEST_CASES,
        client_factory: ClientFactory = ServiceClient,
        service_port: int = SERVICE_PORT,
        healthcheck_attempts: int = HEALTHCHECK_ATTEMPTS,
        healthcheck_interval: float = HEALTHCHECK_INTERVAL,
        request_timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.executor = executor or ProcessExecutor()
        self.runtime = runtime or ContainerRuntime(self.executor)
        self.fresh_clone = fresh_clone
        self.workspace_root = workspace_root
        self.test_cases = tuple(test_cases)
        self.client_factory = client_factory
        self.service_port = service_port
        self.healthcheck_attempts = healthcheck_attempts
        self.healthcheck_interval = healthcheck_interval
        self.request_timeout = request_timeout

        self.state = ServiceRun(spec=spec)
        self.log = ServiceLogAdapter(logger, spec.name)

    @property
    def spec(self) -> ServiceSpec:
        return self.state.spec

    def _enter(self, stage: Stage) -> None:
        self.state.stage = stage
        self.log.debug("Stage: %s", stage.value)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    async def run(self) -> ServiceResult:
        """Run the pipeline; fatal stage errors become a broken result."""
        try:
            report = await self.execute()
        except HarnessError as e:
            failed_stage = self.state.stage.value
            self.state.stage = Stage.FAILED
            self.state.error = str(e)
            self.log.error("Failed during %s: %s", failed_stage, e)
            return ServiceResult(
                service_name=self.spec.name, error=str(e), failed_stage=failed_stage,
            )
        return ServiceResult(service_name=self.spec.name, report=report)

    async def execute(self) -> ServiceReport:
        """Run every pipeline stage in order, raising on the first fatal one."""
        await self._prepare()
        await self._clone()
        self._require_dockerfile()
        await self._build()
        await self._start_container()
        base_url = await self._inspect()

        async with self.client_factory(base_url) as client:
            healthcheck_up = await self._healthcheck(client)
            report = await self._test(client, healthcheck_up)

        self.state.report = report
        return report

    async def _prepare(self) -> None:
        self._enter(Stage.PREPARING)
        self.state.workspace_path = repo_service.workspace_path_for(self.spec, self.workspace_root)
        recreated = await asyncio.to_thread(
            repo_service.prepare_workspace, self.state.workspace_path, self.fresh_clone,
        )
        self.log.info(
            "Workspace %s %s", self.state.workspace_path, "created" if recreated else "reused",
        )

    async def _clone(self) -> None:
        self._enter(Stage.CLONING)
        self.log.info("Cloning %s", self.spec.repository_url)
        result = await repo_service.clone_repository(
            self.executor,
            self.spec.repository_url,
            self.state.workspace_path,
            on_line=lambda stream, line: self.log.debug("git: %s", line),
        )
        if result.ok:
            self.log.success("Cloned")
        else:
            self.log.warning("Clone exited with %d, continuing with existing files", result.exit_code)

    def _require_dockerfile(self) -> None:
        if not repo_service.has_dockerfile(self.state.workspace_path):
            raise SetupError(f"missing Dockerfile in {self.state.workspace_path}")

    async def _build(self) -> None:
        self._enter(Stage.BUILDING)
        tail = OutputTail(BUILD_TAIL_LINES)

        def on_line(stream: str, line: str) -> None:
            tail.append(line)
            self.log.debug("build: %s", line)

        result = await self.runtime.build(image_tag(self.spec), self.state.workspace_path, on_line)
        if not result.ok:
            for line in tail:
                self.log.error("build | %s", line)
            raise ProcessError("build", result.exit_code, tail.lines())
        self.log.success("Image %s built", image_tag(self.spec))

    async def _start_container(self) -> None:
        self._enter(Stage.RUNNING)
        self.state.container = await self.runtime.run(
            container_name(self.spec), image_tag(self.spec),
        )
        self.log.success("Container %s running", self.state.container_name)

    async def _inspect(self) -> str:
        self._enter(Stage.INSPECTING)
        records = await self.runtime.inspect(self.state.container_name)
        address = bridge_ip_address(records)
        base_url = f"http://{address}:{self.service_port}"
        self.log.info("Service reachable at %s", base_url)
        return base_url

    async def _healthcheck(self, client: ServiceClient) -> bool:
        self._enter(Stage.HEALTHCHECKING)
        for attempt in range(1, self.healthcheck_attempts + 1):
            try:
                body = await client.get(HEALTHCHECK_PATH)
            except Exception as e:
                self.log.debug(
                    "Healthcheck %d/%d failed: %s: %s",
                    attempt, self.healthcheck_attempts, type(e).__name__, e,
                )
                if attempt < self.healthcheck_attempts:
                    await asyncio.sleep(self.healthcheck_interval)
                continue

            healthy = body.get("status") == HEALTHY_STATUS
            if healthy:
                self.log.success("Healthcheck UP after %d attempt(s)", attempt)
            else:
                self.log.warning("Healthcheck answered with status %r", body.get("status"))
            return healthy

        raise ConnectivityError(
            f"no healthcheck response after {self.healthcheck_attempts} attempts"
        )

    async def _test(self, client: ServiceClient, healthcheck_up: bool) -> ServiceReport:
        self._enter(Stage.TESTING)
        racer = RequestRacer(client, deadline=self.request_timeout)
        outcomes: List[TestOutcome] = await asyncio.gather(
            *(racer.race(case) for case in self.test_cases)
        )

        for case, outcome in zip(self.test_cases, outcomes):
            self.log.info(
                "%s: %s (got %s, expected %s)",
                case.display_name, outcome.classification.value,
                outcome.raw_result, case.expected_result,
            )

        report = summarize_outcomes(self.spec.name, self.test_cases, outcomes, healthcheck_up)
        passed = sum(1 for o in outcomes if o.classification == Classification.PASS)
        self.log.success("Tests finished: %d/%d passed", passed, len(outcomes))
        return report

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------
    async def cleanup(self) -> None:
        """
        Kill the container if one was started. Safe to call on any outcome.

        Raises
        ------
        ProcessError
            The kill exited non-zero. Only this service's cleanup is affected.
        """
        failed = self.state.stage == Stage.FAILED
        if self.state.container is not None:
            self._enter(Stage.CLEANING_UP)
            try:
                if await self.state.container.release():
                    self.log.success("Container %s killed", self.state.container_name)
            finally:
                if failed:
                    self.state.stage = Stage.FAILED
        if not failed:
            self.state.stage = Stage.DONE
