"""Look up repositories on GitHub, with a per-run cache."""

from __future__ import annotations

from dataclasses import dataclass, field

from structlog.stdlib import BoundLogger

from ..constants import GITHUB_PAGE_SIZE
from ..exceptions import (
    GitHubNotFoundError,
    OwnerNotFoundError,
    RepoMovedError,
    RepoNotFoundError,
)
from ..models.repo import RepoMetadata, UserMetadata
from ..storage.github import GitHubStorage

__all__ = ["RepoCache", "RepoDirectory"]


@dataclass
class RepoCache:
    """Repository names and metadata already fetched from GitHub.

    Keys are lower-cased, since GitHub names are case-insensitive.
    """

    names: dict[str, list[str]] = field(default_factory=dict)
    """Names of all repositories of an owner, keyed by owner."""

    repos: dict[tuple[str, str], RepoMetadata] = field(default_factory=dict)
    """Repository metadata, keyed by owner and repository name."""

    def get_repo(self, owner: str, repo: str) -> RepoMetadata | None:
        return self.repos.get((owner.lower(), repo.lower()))

    def set_repo(self, owner: str, metadata: RepoMetadata) -> None:
        self.repos[(owner.lower(), metadata.name.lower())] = metadata


class RepoDirectory:
    """Find out which repositories exist and how to clone them.

    Everything fetched is remembered in the cache for the lifetime of the
    cache object, so expanding several wildcards for the same owner costs
    one listing, and repositories found by a listing need no further
    lookup. Whether a cache is shared between runs is up to the caller.

    Parameters
    ----------
    github
        GitHub API client.
    cache
        Cache to read from and populate.
    logger
        Logger to use.
    page_size
        Number of repositories to request per page when listing.
    """

    def __init__(
        self,
        github: GitHubStorage,
        cache: RepoCache,
        logger: BoundLogger,
        *,
        page_size: int = GITHUB_PAGE_SIZE,
    ) -> None:
        self._github = github
        self._cache = cache
        self._logger = logger
        self._page_size = page_size

    async def get_current_user(self) -> UserMetadata:
        """Return the user the GitHub token belongs to."""
        return await self._github.get_current_user()

    async def list_repo_names(self, owner: str) -> list[str]:
        """Return the names of all repositories of an organization or user.

        The owner is first treated as an organization. If GitHub has no
        organization of that name, it is treated as a user.

        Raises
        ------
        OwnerNotFoundError
            Raised if the owner is neither an organization nor a user.
        """
        if (names := self._cache.names.get(owner.lower())) is not None:
            return names

        logger = self._logger.bind(owner=owner)
        try:
            repos = await self._list_all(owner, user=False)
        except GitHubNotFoundError:
            logger.debug("Owner is not an organization, trying as user")
            try:
                repos = await self._list_all(owner, user=True)
            except GitHubNotFoundError as e:
                raise OwnerNotFoundError(owner) from e

        # GitHub pagination sometimes repeats a repository across pages.
        names = []
        seen = set()
        for repo in repos:
            if repo.name.lower() in seen:
                continue
            seen.add(repo.name.lower())
            names.append(repo.name)
            self._cache.set_repo(owner, repo)
        self._cache.names[owner.lower()] = names
        logger.info("Listed repos", count=len(names))
        return names

    async def get_repo_info(self, owner: str, repo: str) -> RepoMetadata:
        """Return metadata for one repository.

        Raises
        ------
        RepoMovedError
            Raised if the repository has been renamed or transferred.
        RepoNotFoundError
            Raised if the repository does not exist.
        """
        if metadata := self._cache.get_repo(owner, repo):
            return metadata
        try:
            metadata = await self._github.get_repo(owner, repo)
        except GitHubNotFoundError as e:
            raise RepoNotFoundError(owner, repo) from e
        if metadata.is_redirect:
            location = None
            if metadata.full_name.lower() != f"{owner}/{repo}".lower():
                location = metadata.full_name
            raise RepoMovedError(owner, repo, location)
        self._cache.set_repo(owner, metadata)
        return metadata

    async def _list_all(self, owner: str, *, user: bool) -> list[RepoMetadata]:
        """Fetch pages until GitHub returns a short one."""
        repos: list[RepoMetadata] = []
        page = 1
        while True:
            if user:
                batch = await self._github.list_user_repos(
                    owner, self._page_size, page
                )
            else:
                batch = await self._github.list_org_repos(
                    owner, self._page_size, page
                )
            repos.extend(batch)
            if len(batch) < self._page_size:
                return repos
            page += 1
