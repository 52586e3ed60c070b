"""Tools for interacting with the GitHub REST API."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Self

from gidgethub import BadRequest, RedirectionException
from gidgethub.httpx import GitHubAPI
from httpx import AsyncClient

from ..exceptions import ConfigurationError, GitHubNotFoundError
from ..models.repo import RepoMetadata, UserMetadata

__all__ = ["GitHubStorage"]

_PERMANENT_REDIRECTS = {
    HTTPStatus.MOVED_PERMANENTLY,
    HTTPStatus.PERMANENT_REDIRECT,
}


class GitHubStorage:
    """Tools to interact with the GitHub API as the token's user.

    Parameters
    ----------
    client
        An auth'd GitHub API client.
    """

    def __init__(self, client: GitHubAPI) -> None:
        self.client = client

    @classmethod
    def create(cls, http_client: AsyncClient, token: str) -> Self:
        """Create an auth'd GitHub client and construct an instance.

        Parameters
        ----------
        http_client
            Shared HTTP client. It must not follow redirects, since a
            redirect means the requested repository has moved.
        token
            GitHub token used for every call.
        """
        client = GitHubAPI(http_client, "tattoo", oauth_token=token)
        return cls(client)

    async def get_current_user(self) -> UserMetadata:
        """Get the user the token belongs to.

        Raises
        ------
        ConfigurationError
            Raised if GitHub rejects the token.
        """
        try:
            data = await self.client.getitem("/user")
        except BadRequest as e:
            if e.status_code == HTTPStatus.UNAUTHORIZED:
                raise ConfigurationError("GitHub rejected the token") from e
            raise
        return UserMetadata.model_validate(data)

    async def get_repo(self, owner: str, repo: str) -> RepoMetadata:
        """Get metadata for a single repository.

        A permanent redirect is not followed. It is reported through
        ``is_redirect`` on the returned metadata instead, as is a response
        describing a repository under a different name.

        Raises
        ------
        GitHubNotFoundError
            Raised if the repository does not exist.
        """
        try:
            data = await self.client.getitem(
                "/repos/{owner}/{repo}",
                url_vars={"owner": owner, "repo": repo},
            )
        except RedirectionException as e:
            if e.status_code in _PERMANENT_REDIRECTS:
                return RepoMetadata(
                    name=repo, full_name=f"{owner}/{repo}", is_redirect=True
                )
            raise
        except BadRequest as e:
            if e.status_code == HTTPStatus.NOT_FOUND:
                raise GitHubNotFoundError(f"{owner}/{repo}") from e
            raise
        metadata = RepoMetadata.model_validate(data)
        if metadata.full_name.lower() != f"{owner}/{repo}".lower():
            metadata = metadata.model_copy(update={"is_redirect": True})
        return metadata

    async def list_org_repos(
        self, org: str, page_size: int, page: int
    ) -> list[RepoMetadata]:
        """Get one page of the repositories of an organization.

        Parameters
        ----------
        org
            Organization name.
        page_size
            Number of repositories per page.
        page
            Page number, starting from 1.

        Raises
        ------
        GitHubNotFoundError
            Raised if there is no organization with that name.
        """
        path = "/orgs/{org}/repos{?per_page,page}"
        url_vars = {"org": org, "per_page": str(page_size), "page": str(page)}
        return await self._get_repo_page(path, url_vars, org)

    async def list_user_repos(
        self, user: str, page_size: int, page: int
    ) -> list[RepoMetadata]:
        """Get one page of the repositories of a user.

        Raises
        ------
        GitHubNotFoundError
            Raised if there is no user with that name.
        """
        path = "/users/{user}/repos{?per_page,page}"
        url_vars = {
            "user": user,
            "per_page": str(page_size),
            "page": str(page),
        }
        return await self._get_repo_page(path, url_vars, user)

    async def _get_repo_page(
        self, path: str, url_vars: dict[str, str], owner: str
    ) -> list[RepoMetadata]:
        try:
            data: list[dict[str, Any]] = await self.client.getitem(
                path, url_vars=url_vars
            )
        except BadRequest as e:
            if e.status_code == HTTPStatus.NOT_FOUND:
                raise GitHubNotFoundError(owner) from e
            raise
        return [RepoMetadata.model_validate(r) for r in data]
