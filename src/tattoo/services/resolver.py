"""Turn repository expressions into a workspace."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from pathlib import Path
from typing import cast

from structlog.stdlib import BoundLogger

from ..asyncio import RateLimiter
from ..models.repo import RepoRef
from ..models.workspace import Workspace
from .directory import RepoDirectory

__all__ = ["WorkspaceResolver"]


class WorkspaceResolver:
    """Resolve repository expressions into one consistent workspace.

    Parameters
    ----------
    directory
        Repository lookups on GitHub.
    limiter
        Rate limiter for GitHub API calls.
    logger
        Logger to use.
    """

    def __init__(
        self,
        directory: RepoDirectory,
        limiter: RateLimiter,
        logger: BoundLogger,
    ) -> None:
        self._directory = directory
        self._limiter = limiter
        self._logger = logger

    async def resolve(
        self,
        root_dir: Path,
        *,
        require: Iterable[str] = (),
        test: Iterable[str] = (),
        exclude: Iterable[str] = (),
        skip_test: Iterable[str] = (),
    ) -> Workspace:
        """Build the workspace for a run.

        Wildcard expressions are expanded against the repositories of
        their owner, excluded repositories are dropped from the required
        ones and skipped repositories from the tested ones, and what is
        left is merged into one workspace with one entry per repository
        name. Every entry has its GitHub metadata filled in.

        Parameters
        ----------
        root_dir
            Directory the repositories will be cloned into.
        require
            Expressions for repositories that must be present.
        test
            Expressions for repositories to run the tests of. These are
            present in the workspace whether or not they are required.
        exclude
            Patterns of repositories to remove from ``require``.
        skip_test
            Patterns of repositories to remove from ``test``.

        Returns
        -------
        Workspace
            The resolved workspace.

        Raises
        ------
        tattoo.exceptions.MalformedRepoRefError
            Raised if any expression cannot be parsed.
        tattoo.exceptions.DuplicateWorkspaceEntryError
            Raised if two different references resolve to the same name.
        tattoo.exceptions.RemoteLookupError
            Raised if an owner or repository cannot be found on GitHub or
            a repository has moved.
        """
        require_refs = [RepoRef.parse(e) for e in require]
        test_refs = [RepoRef.parse(e) for e in test]
        exclude_refs = [RepoRef.parse(e) for e in exclude]
        skip_refs = [RepoRef.parse(e) for e in skip_test]

        await self._fetch_owners([*require_refs, *test_refs])
        required = self._filter(await self._expand(require_refs), exclude_refs)
        tested = self._filter(await self._expand(test_refs), skip_refs)

        workspace = Workspace(root_dir=root_dir)
        seen = set()
        for repo_ref in tested:
            if repo_ref.key not in seen:
                seen.add(repo_ref.key)
                workspace.add(repo_ref, is_test_target=True)
        for repo_ref in required:
            if repo_ref.key not in seen:
                seen.add(repo_ref.key)
                workspace.add(repo_ref, is_test_target=False)

        await self._fetch_metadata(workspace)
        self._logger.info(
            "Resolved workspace",
            repos=len(workspace),
            tests=len(workspace.test_targets()),
        )
        return workspace

    async def _fetch_owners(self, refs: list[RepoRef]) -> None:
        """List each owner named by a wildcard once, concurrently."""
        owners: dict[str, str] = {}
        for ref in refs:
            if ref.is_wildcard:
                owners.setdefault(ref.owner_name.lower(), ref.owner_name)
        await _gather_all(
            *(
                self._limiter.run(
                    lambda o=owner: self._directory.list_repo_names(o)
                )
                for owner in owners.values()
            )
        )

    async def _expand(self, refs: list[RepoRef]) -> list[RepoRef]:
        expanded = []
        for ref in refs:
            if not ref.is_wildcard:
                expanded.append(ref)
                continue
            names = await self._directory.list_repo_names(ref.owner_name)
            matches = [
                ref.with_repo_name(name)
                for name in names
                if ref.matches(ref.with_repo_name(name))
            ]
            self._logger.debug(
                "Expanded wildcard", pattern=str(ref), matches=len(matches)
            )
            expanded.extend(matches)
        return expanded

    def _filter(
        self, refs: list[RepoRef], patterns: list[RepoRef]
    ) -> list[RepoRef]:
        return [r for r in refs if not any(p.matches(r) for p in patterns)]

    async def _fetch_metadata(self, workspace: Workspace) -> None:
        entries = list(workspace)
        metadata = await _gather_all(
            *(
                self._limiter.run(
                    lambda r=entry.repo_ref: self._directory.get_repo_info(
                        r.owner_name, r.repo_name
                    )
                )
                for entry in entries
            )
        )
        for entry, info in zip(entries, metadata, strict=True):
            entry.remote_metadata = info


async def _gather_all[T](*aws: Awaitable[T]) -> list[T]:
    """Wait for every awaitable, then raise the first failure if any."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return cast("list[T]", results)
