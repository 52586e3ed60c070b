"""Bring the working copies of a workspace up to date."""

from __future__ import annotations

import shutil

from structlog.stdlib import BoundLogger

from ..asyncio import RateLimiter
from ..exceptions import CloneOrUpdateError, SubprocessError
from ..models.workspace import Workspace, WorkspaceEntry
from ..storage.git import Git

__all__ = ["CloneOrchestrator"]


class CloneOrchestrator:
    """Clone or update each workspace entry and check out its ref.

    Parameters
    ----------
    limiter
        Rate limiter for git network operations.
    logger
        Logger to use.
    token
        GitHub token git authenticates with, if any.
    fresh
        Whether to delete the whole workspace before cloning.
    latest_release
        Whether to check out the newest version tag of repositories that
        do not name a ref.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        logger: BoundLogger,
        *,
        token: str | None = None,
        fresh: bool = False,
        latest_release: bool = False,
    ) -> None:
        self._limiter = limiter
        self._logger = logger
        self._token = token
        self._fresh = fresh
        self._latest_release = latest_release

    def prepare(self, workspace: Workspace) -> None:
        """Create the workspace root and clear out debris in it.

        Anything in the root that is not a directory is deleted, as is
        any directory holding exactly one item, which is what an
        interrupted clone leaves behind.
        """
        root = workspace.root_dir
        if self._fresh and root.exists():
            self._logger.info("Removing workspace", dir=str(root))
            shutil.rmtree(root)
        root.mkdir(parents=True, exist_ok=True)

        for child in root.iterdir():
            if not child.is_dir() or child.is_symlink():
                child.unlink()
            elif len(list(child.iterdir())) == 1:
                self._logger.info("Removing partial clone", dir=str(child))
                shutil.rmtree(child)

    async def update(self, entry: WorkspaceEntry) -> None:
        """Clone or update one entry and check out the ref it should test.

        Failures to reach the remote are recorded in ``entry.error``
        rather than raised, so that one unreachable repository does not
        stop the run. A ref that cannot be checked out is only logged and
        the working copy stays on whatever it had.
        """
        logger = self._logger.bind(
            repo=str(entry.repo_ref), dir=str(entry.local_dir)
        )
        git = Git(repo=entry.local_dir, token=self._token, logger=logger)
        try:
            await self._limiter.run(lambda: self._sync(entry, git, logger))
        except SubprocessError as e:
            detail = (e.stderr or "").strip()
            self._record_error(entry, detail, logger)
            return
        except OSError as e:
            self._record_error(entry, str(e), logger)
            return

        try:
            ref = await self._checkout(entry, git, logger)
        except CloneOrUpdateError as e:
            logger.warning("Checkout failed", error=str(e))
            ref = None
        try:
            entry.head_commit = await git.head_commit()
        except (SubprocessError, OSError):
            entry.head_commit = None
        logger.info("Repo ready", ref=ref, commit=entry.head_commit)

    async def _sync(
        self, entry: WorkspaceEntry, git: Git, logger: BoundLogger
    ) -> None:
        if git.is_working_copy():
            logger.debug("Fetching")
            await git.fetch("--all")
            return
        if entry.local_dir.exists():
            logger.info("Removing directory that is not a working copy")
            shutil.rmtree(entry.local_dir)
        logger.debug("Cloning")
        await git.clone(self._clone_url(entry), entry.local_dir)

    async def _checkout(
        self, entry: WorkspaceEntry, git: Git, logger: BoundLogger
    ) -> str | None:
        ref = entry.repo_ref.checkout_ref
        if ref is None and self._latest_release:
            ref = await self._latest_tag(git, logger)
        if ref is None and entry.remote_metadata:
            ref = entry.remote_metadata.default_branch
        if ref is None:
            return None

        try:
            await git.checkout(ref)
            upstream = await git.upstream()
            if upstream:
                await git.merge("--ff-only", upstream)
        except OSError as e:
            msg = f"Could not check out {ref} in {entry.name}: {e}"
            raise CloneOrUpdateError(msg) from e
        except SubprocessError as e:
            stderr = (e.stderr or "").strip()
            msg = f"Could not check out {ref} in {entry.name}: {stderr}"
            raise CloneOrUpdateError(msg) from e
        return ref

    async def _latest_tag(self, git: Git, logger: BoundLogger) -> str | None:
        try:
            tags = await git.version_tags()
        except (SubprocessError, OSError) as e:
            logger.warning("Could not list release tags", error=str(e))
            return None
        if not tags:
            logger.debug("No release tags, using default branch")
            return None
        return tags[0]

    def _record_error(
        self, entry: WorkspaceEntry, detail: str, logger: BoundLogger
    ) -> None:
        entry.error = f"Could not clone or update {entry.repo_ref}"
        if detail:
            entry.error += f": {detail}"
        logger.error("Clone or update failed", error=detail)

    def _clone_url(self, entry: WorkspaceEntry) -> str:
        if entry.remote_metadata and entry.remote_metadata.clone_url:
            return entry.remote_metadata.clone_url
        owner = entry.repo_ref.owner_name
        repo = entry.repo_ref.repo_name
        return f"https://github.com/{owner}/{repo}.git"
