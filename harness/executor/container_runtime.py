"""
Container Runtime
=================
build / run / inspect / kill against a container engine CLI (docker by
default), on top of the ProcessExecutor.

The engine is treated as an opaque command: only exit codes and the JSON
printed by ``inspect`` are interpreted.

CONTAINER OWNERSHIP:
    ``run`` returns a ContainerHandle only when the container started.
    Whoever holds the handle owns the container; ``release()`` issues the
    kill exactly once, however many times it is called.
"""
import json
import logging
from typing import List, Optional

from harness.core.config import CONTAINER_ENGINE
from harness.core.errors import ProcessError, SetupError
from harness.executor.process_executor import LineCallback, ProcessExecutor, ProcessResult

logger = logging.getLogger(__name__)

BRIDGE_NETWORK = "bridge"


def bridge_ip_address(records: List[dict]) -> str:
    """Extract the bridge-network IP address from ``inspect`` output."""
    if not records:
        raise SetupError("inspect returned no records")
    try:
        address = records[0]["NetworkSettings"]["Networks"][BRIDGE_NETWORK]["IPAddress"]
    except (KeyError, TypeError) as e:
        raise SetupError(f"inspect output has no {BRIDGE_NETWORK} network address") from e
    if not address:
        raise SetupError(f"container has an empty {BRIDGE_NETWORK} network address")
    return address


class ContainerHandle:
    """A running container owned by one service run."""

    def __init__(self, runtime: "ContainerRuntime", name: str) -> None:
        self.runtime = runtime
        self.name = name
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> bool:
        """
        Kill the container once. Returns False when already released.

        Raises
        ------
        ProcessError
            The kill command exited non-zero.
        """
        # Flag flips before the first await, so concurrent callers see it.
        if self._released:
            return False
        self._released = True
        result = await self.runtime.kill(self.name)
        if not result.ok:
            raise ProcessError("kill", result.exit_code, [result.error] if result.error else [])
        return True


class ContainerRuntime:
    """Thin async wrapper over the container engine CLI."""

    def __init__(self, executor: Optional[ProcessExecutor] = None, engine: str = CONTAINER_ENGINE) -> None:
        self.executor = executor or ProcessExecutor()
        self.engine = engine

    async def build(self, tag: str, context_dir: str, on_line: Optional[LineCallback] = None) -> ProcessResult:
        logger.info("Building image %s from %s", tag, context_dir)
        return await self.executor.run(
            self.engine, ["build", "-t", tag, "."], cwd=context_dir, on_line=on_line,
        )

    async def run(self, name: str, image: str) -> ContainerHandle:
        """
        Start a detached container and hand back its ownership.

        Raises
        ------
        ProcessError
            The engine exited non-zero; no container is owned.
        """
        logger.info("Starting container %s from %s", name, image)
        result = await self.executor.run(
            self.engine, ["run", "-d", "--rm", "--name", name, image],
        )
        if not result.ok:
            raise ProcessError("run", result.exit_code, [result.error] if result.error else [])
        return ContainerHandle(self, name)

    async def inspect(self, name: str) -> List[dict]:
        result = await self.executor.run(self.engine, ["inspect", name], capture=True)
        if not result.ok:
            raise ProcessError("inspect", result.exit_code)
        try:
            records = json.loads(result.stdout)
        except ValueError as e:
            raise SetupError(f"inspect output for {name} is not JSON: {e}") from e
        if not isinstance(records, list):
            raise SetupError(f"inspect output for {name} is not a JSON array")
        return records

    async def kill(self, name: str) -> ProcessResult:
        logger.info("Killing container %s", name)
        return await self.executor.run(self.engine, ["kill", name])
