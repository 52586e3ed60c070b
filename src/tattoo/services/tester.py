"""Run the test suite of workspace entries."""

from __future__ import annotations

import shlex

from structlog.stdlib import BoundLogger

from ..asyncio import RateLimiter
from ..constants import DEFAULT_WCT_COMMAND, FLAKE_RETRIES, TEST_DIR_NAME
from ..exceptions import InvocationError
from ..models.results import SuiteResult, SuiteStatus
from ..models.workspace import WorkspaceEntry
from ..storage.process import Process

__all__ = ["SuiteTester"]


class SuiteTester:
    """Run web-component-tester against one entry at a time.

    A failing run is retried, since browser tests are often flaky, and
    only the last attempt counts.

    Parameters
    ----------
    process
        Runner for the test command.
    limiter
        Rate limiter for test runs. A test and all its retries count as
        one task.
    logger
        Logger to use.
    wct_command
        Test runner executable.
    wct_flags
        Flags for the test runner. Each may hold several shell words.
    test_dir_name
        Directory whose presence means a repository has tests.
    flake_retries
        Additional attempts after a failed run.
    """

    def __init__(
        self,
        process: Process,
        limiter: RateLimiter,
        logger: BoundLogger,
        *,
        wct_command: str = DEFAULT_WCT_COMMAND,
        wct_flags: list[str] | None = None,
        test_dir_name: str = TEST_DIR_NAME,
        flake_retries: int = FLAKE_RETRIES,
    ) -> None:
        self._process = process
        self._limiter = limiter
        self._logger = logger
        self._wct_command = wct_command
        self._wct_flags = wct_flags or []
        self._test_dir_name = test_dir_name
        self._flake_retries = flake_retries

    @property
    def command(self) -> list[str]:
        """The test command with its flags split into words."""
        args = [a for flag in self._wct_flags for a in shlex.split(flag)]
        return [self._wct_command, *args]

    async def test(self, entry: WorkspaceEntry) -> SuiteResult:
        """Test one entry and classify the outcome."""
        return await self._limiter.run(lambda: self._test(entry))

    async def _test(self, entry: WorkspaceEntry) -> SuiteResult:
        logger = self._logger.bind(
            repo=str(entry.repo_ref), dir=str(entry.local_dir)
        )
        if entry.error:
            return SuiteResult(entry, SuiteStatus.failed, output=entry.error)
        if not (entry.local_dir / self._test_dir_name).is_dir():
            logger.info("No tests, skipping")
            return SuiteResult(entry, SuiteStatus.skipped)

        attempts = 0
        output = ""
        for _ in range(self._flake_retries + 1):
            attempts += 1
            try:
                result = await self._process.run(
                    *self.command, cwd=entry.local_dir
                )
            except InvocationError as e:
                logger.error("Could not run tests", error=str(e))
                return SuiteResult(
                    entry, SuiteStatus.failed, output=str(e), attempts=attempts
                )
            output = result.output
            if result.returncode == 0:
                logger.info("Tests passed", attempts=attempts)
                return SuiteResult(
                    entry, SuiteStatus.passed, output=output, attempts=attempts
                )
            logger.info(
                "Tests failed", attempt=attempts, returncode=result.returncode
            )
        return SuiteResult(
            entry, SuiteStatus.failed, output=output, attempts=attempts
        )
