"""Run noninteractive subprocesses asynchronously and capture output."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from shlex import join

from structlog.stdlib import BoundLogger

from ..exceptions import InvocationError

__all__ = ["Process", "ProcessResult"]


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and interleaved stdout and stderr of a process."""

    returncode: int
    output: str


class Process:
    """A thin wrapper around asyncio.subprocess.create_subprocess_exec.

    Unlike `~tattoo.storage.git.Git`, a non-zero exit status is not an
    error here. It is returned to the caller to interpret, since a failing
    test run is a result rather than a problem with running it.
    """

    def __init__(self, *, logger: BoundLogger | None = None) -> None:
        self._logger = logger

    async def run(
        self, cmd: str, *args: str, cwd: Path | None = None
    ) -> ProcessResult:
        """Run a command to completion.

        Parameters
        ----------
        cmd
            Executable to run.
        *args
            Arguments to the executable.
        cwd
            Working directory of the process.

        Returns
        -------
        ProcessResult
            Return code and combined output.

        Raises
        ------
        InvocationError
            Raised if the process could not be started at all.
        """
        msg = join([cmd, *args])
        try:
            proc = await asyncio.subprocess.create_subprocess_exec(
                cmd,
                *args,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise InvocationError(f"Could not start '{msg}': {e}") from e
        stdout, _ = await proc.communicate()  # Waits for process exit

        returncode = proc.returncode if proc.returncode is not None else -1
        output = stdout.decode(errors="replace") if stdout else ""
        if self._logger:
            self._logger.debug(
                f"'{msg}' exited", returncode=returncode, cwd=str(cwd)
            )
        return ProcessResult(returncode=returncode, output=output)
