"""
Process Executor
================
Spawns an external command, streams its stdout/stderr line by line, and
returns its exit code.

BOUNDARY RULES:
    - Executor ONLY observes execution.
    - Executor NEVER decides whether a non-zero exit is fatal; callers do.
    - Executor NEVER raises for spawn failures; it returns a result with
      exit_code -1 and ``error`` set.
    - If streaming is interrupted, the child is killed and reaped.

STREAMING:
    stdout and stderr are pumped concurrently so neither pipe can fill up and
    block the child. Output is read in chunks and split on newlines, so a
    line of any length is handled; lines over 1 MiB are delivered in pieces.
    Each decoded line is handed to ``on_line(stream, line)`` as soon as it
    arrives.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

LineCallback = Callable[[str, str], None]

_CHUNK_SIZE = 64 * 1024
# Build tools can emit very long lines (progress bars, base64 layers)
_MAX_LINE = 1024 * 1024


@dataclass
class ProcessResult:
    """
    Outcome of one external command.

    Fields
    ------
    program : str
        Executable that was spawned.
    args : list[str]
        Arguments passed to it.
    exit_code : int
        Process exit code; -1 when the process could not be spawned.
    stdout : str
        Captured stdout, only filled when ``capture=True``.
    error : str | None
        Spawn failure message, if any.
    """
    program: str
    args: List[str] = field(default_factory=list)
    exit_code: int = -1
    stdout: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessExecutor:
    """Runs commands as asyncio subprocesses."""

    async def run(
        self,
        program: str,
        args: Sequence[str],
        cwd: Optional[str] = None,
        on_line: Optional[LineCallback] = None,
        capture: bool = False,
    ) -> ProcessResult:
        result = ProcessResult(program=program, args=list(args))
        captured: List[str] = []

        logger.debug("Spawning: %s %s (cwd=%s)", program, " ".join(args), cwd or ".")

        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            result.error = f"Failed to start {program}: {e}"
            logger.error(result.error)
            return result

        def emit(raw: bytes, name: str) -> None:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if capture and name == STDOUT:
                captured.append(line)
            if on_line is not None:
                on_line(name, line)

        async def pump(stream: asyncio.StreamReader, name: str) -> None:
            pending = b""
            while True:
                chunk = await stream.read(_CHUNK_SIZE)
                if not chunk:
                    break
                *lines, pending = (pending + chunk).split(b"\n")
                for raw in lines:
                    emit(raw, name)
                # An unterminated line longer than the limit is cut into pieces
                if len(pending) >= _MAX_LINE:
                    emit(pending, name)
                    pending = b""
            if pending:
                emit(pending, name)

        try:
            await asyncio.gather(
                pump(process.stdout, STDOUT),
                pump(process.stderr, STDERR),
            )
            result.exit_code = await process.wait()
        finally:
            if process.returncode is None:
                logger.warning("Killing %s (pid %d) after a streaming failure", program, process.pid)
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
        result.stdout = "\n".join(captured)

        logger.debug("Finished: %s exit=%d", program, result.exit_code)
        return result
