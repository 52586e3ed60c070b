"""Run the whole clone, install, test, and report pipeline."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable
from typing import TextIO

from structlog.stdlib import BoundLogger

from ..asyncio import RateLimiter
from ..config import Configuration
from ..models.results import RunSummary, SuiteResult
from ..models.workspace import Workspace, WorkspaceEntry
from ..storage.github import GitHubStorage
from ..storage.process import Process
from .cloner import CloneOrchestrator
from .directory import RepoCache, RepoDirectory
from .installer import DependencyInstaller
from .reporter import ResultReporter
from .resolver import WorkspaceResolver
from .tester import SuiteTester

__all__ = ["Runner"]


class Runner:
    """Wire the services together for one run.

    Parameters
    ----------
    config
        Configuration of the run, with command-line options merged in.
    github
        GitHub API client.
    logger
        Logger to use.
    token
        GitHub token for git to clone and fetch with.
    stream
        Where to print the summary.
    """

    def __init__(
        self,
        config: Configuration,
        github: GitHubStorage,
        logger: BoundLogger,
        *,
        token: str | None = None,
        stream: TextIO = sys.stdout,
    ) -> None:
        self._config = config
        self._logger = logger

        self._scm_limiter = RateLimiter(
            config.scm_concurrency, config.scm_delay
        )
        test_limiter = RateLimiter(config.test_concurrency, config.test_delay)
        process = Process(logger=logger)

        self._directory = RepoDirectory(github, RepoCache(), logger)
        self._resolver = WorkspaceResolver(
            self._directory, self._scm_limiter, logger
        )
        self._cloner = CloneOrchestrator(
            self._scm_limiter,
            logger,
            token=token,
            fresh=config.fresh,
            latest_release=config.latest_release,
        )
        self._installer = DependencyInstaller(
            process, config.install_command, logger
        )
        self._tester = SuiteTester(
            process,
            test_limiter,
            logger,
            wct_command=config.wct_command,
            wct_flags=config.effective_wct_flags,
            test_dir_name=config.test_dir_name,
            flake_retries=config.flake_retries,
        )
        self._reporter = ResultReporter(
            stream,
            self._tester.command,
            config.rerun_script,
            verbose=config.verbose,
        )

    async def run(self) -> RunSummary:
        """Run everything and report the results.

        Returns
        -------
        RunSummary
            Counts of passed, failed, and skipped test targets.

        Raises
        ------
        tattoo.exceptions.ConfigurationError
            Raised if the token is rejected or the repos are misconfigured.
        tattoo.exceptions.RemoteLookupError
            Raised if a repo cannot be found on GitHub.
        """
        user = await self._scm_limiter.run(self._directory.get_current_user)
        self._logger.info("Authenticated to GitHub", user=user.login)

        config = self._config
        workspace = await self._resolver.resolve(
            config.workspace_dir,
            require=config.require,
            test=config.test,
            exclude=config.exclude,
            skip_test=config.skip_test,
        )
        self._cloner.prepare(workspace)
        if config.install_dependencies:
            results = await self._clone_install_test(workspace)
        else:
            results = await self._clone_and_test(workspace)

        summary = self._reporter.summarize(results)
        self._reporter.report(summary)
        return summary

    async def _clone_install_test(
        self, workspace: Workspace
    ) -> list[SuiteResult]:
        targets = workspace.test_targets()
        cloned = _Progress("clone", len(workspace), self._logger)
        tested = _Progress("test", len(targets), self._logger)
        await asyncio.gather(
            *(cloned.track(self._cloner.update(e)) for e in workspace)
        )
        await self._installer.install(workspace)
        return await asyncio.gather(
            *(tested.track(self._tester.test(e)) for e in targets)
        )

    async def _clone_and_test(self, workspace: Workspace) -> list[SuiteResult]:
        cloned = _Progress("clone", len(workspace), self._logger)
        tested = _Progress(
            "test", len(workspace.test_targets()), self._logger
        )

        async def process(entry: WorkspaceEntry) -> SuiteResult | None:
            await cloned.track(self._cloner.update(entry))
            if not entry.is_test_target:
                return None
            return await tested.track(self._tester.test(entry))

        results = await asyncio.gather(*(process(e) for e in workspace))
        return [r for r in results if r is not None]


class _Progress:
    """Log how many tasks of one phase of the run have finished."""

    def __init__(self, phase: str, total: int, logger: BoundLogger) -> None:
        self._phase = phase
        self._total = total
        self._logger = logger
        self.completed = 0

    async def track[T](self, task: Awaitable[T]) -> T:
        try:
            return await task
        finally:
            self.completed += 1
            self._logger.info(
                "Progress",
                phase=self._phase,
                completed=self.completed,
                total=self._total,
            )
