"""External process execution.

The transcoder never spawns processes itself; it is handed a ProcessRunner
so tests can substitute canned results for the real encoder.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

from app.core.logging import get_logger

logger = get_logger(__name__)

# Encoders can write megabytes of progress to stderr
_STDERR_TAIL_CHARS = 4000


@dataclass
class ProcessResult:
    """Outcome of one external process run.

    Attributes:
        returncode: Exit status (None when killed on timeout)
        stdout: Decoded standard output
        stderr: Decoded tail of standard error
        timed_out: Whether the process was killed for exceeding its timeout
    """

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """Whether the process exited cleanly."""
        return not self.timed_out and self.returncode == 0


class ProcessRunner(Protocol):
    """Capability to run an external command with a hard timeout."""

    async def run(self, args: list[str], timeout: float) -> ProcessResult: ...


class AsyncProcessRunner:
    """ProcessRunner backed by asyncio subprocesses.

    The event loop stays free while the child process works.
    """

    async def run(self, args: list[str], timeout: float) -> ProcessResult:
        """Run a command and wait for it, killing it on timeout.

        Args:
            args: Command and arguments
            timeout: Seconds before the process is killed

        Returns:
            ProcessResult (never raises for a failing command)
        """
        logger.debug("Starting process", command=args[0], arg_count=len(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            logger.error("Process could not be started", command=args[0], error=str(e))
            return ProcessResult(returncode=127, stderr=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Process timed out", command=args[0], timeout=timeout)
            return ProcessResult(returncode=None, timed_out=True)

        result = ProcessResult(
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace")[-_STDERR_TAIL_CHARS:],
        )
        if not result.ok:
            logger.warning(
                "Process exited with error",
                command=args[0],
                returncode=result.returncode,
            )
        return result


__all__ = ["AsyncProcessRunner", "ProcessResult", "ProcessRunner"]
