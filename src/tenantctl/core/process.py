"""External command execution with a hard timeout.

Used for the ACME client and nginx. A command that cannot start, exits non-zero
or runs past its timeout produces a failed CommandResult; nothing is raised.
"""

from __future__ import annotations

import asyncio
import shlex
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


@dataclass
class CommandResult:
    """Outcome of one external command."""

    argv: tuple[str, ...]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def command(self) -> str:
        """Shell-ready rendering for an operator to run by hand."""
        return shlex.join(self.argv)

    @property
    def error(self) -> str:
        if self.timed_out:
            return f"Command timed out: {self.command}"
        return (self.stderr or self.stdout).strip() or f"exit code {self.returncode}"


async def run_command(argv: Sequence[str], timeout: float) -> CommandResult:
    """Run a command and capture its output.

    Args:
        argv: Program and arguments, no shell involved.
        timeout: Seconds before the process is killed.
    """
    argv = tuple(argv)
    logger.debug("command_start", command=shlex.join(argv))
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error("command_not_started", command=shlex.join(argv), error=str(e))
        return CommandResult(argv=argv, returncode=None, stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        logger.error("command_timeout", command=shlex.join(argv), timeout=timeout)
        return CommandResult(argv=argv, returncode=None, timed_out=True)

    result = CommandResult(
        argv=argv,
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    logger.debug("command_finished", command=result.command, returncode=result.returncode)
    return result
