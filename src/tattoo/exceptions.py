"""Exceptions for tattoo."""

from __future__ import annotations

from pathlib import Path
from typing import override

__all__ = [
    "CloneOrUpdateError",
    "ConfigurationError",
    "DuplicateWorkspaceEntryError",
    "GitHubNotFoundError",
    "InvocationError",
    "MalformedRepoRefError",
    "OwnerNotFoundError",
    "RemoteLookupError",
    "RepoMovedError",
    "RepoNotFoundError",
    "SubprocessError",
    "TattooError",
]


class TattooError(Exception):
    """Base class for tattoo exceptions."""


class ConfigurationError(TattooError):
    """The requested run is misconfigured and cannot start."""


class MalformedRepoRefError(ConfigurationError):
    """A repository expression is not of the form ``owner/repo[#ref]``."""

    def __init__(self, expression: str) -> None:
        self.expression = expression
        msg = (
            f"Repo '{expression}' is not in form owner/repo or"
            " owner/repo#ref"
        )
        super().__init__(msg)


class DuplicateWorkspaceEntryError(ConfigurationError):
    """Two different repositories would share one workspace directory."""

    def __init__(self, name: str, existing: str, duplicate: str) -> None:
        self.name = name
        self.existing = existing
        self.duplicate = duplicate
        msg = (
            f"More than one repo with name '{name}' defined: '{existing}'"
            f" and '{duplicate}'"
        )
        super().__init__(msg)


class RemoteLookupError(TattooError):
    """GitHub could not supply a repository the workspace needs."""


class OwnerNotFoundError(RemoteLookupError):
    """Neither an organization nor a user with this name exists."""

    def __init__(self, owner: str) -> None:
        self.owner = owner
        super().__init__(f"GitHub owner '{owner}' not found as org or user")


class RepoNotFoundError(RemoteLookupError):
    """The named repository does not exist or is not visible."""

    def __init__(self, owner: str, repo: str) -> None:
        self.owner = owner
        self.repo = repo
        super().__init__(f"Repo {owner}/{repo} not found")


class RepoMovedError(RemoteLookupError):
    """The named repository has moved permanently.

    Following the redirect would silently test a differently named
    repository than the one requested, so it has to be fixed in the
    configuration instead.
    """

    def __init__(
        self, owner: str, repo: str, location: str | None = None
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.location = location
        msg = f"Repo {owner}/{repo} has moved permanently"
        if location:
            msg += f" to {location}"
        super().__init__(msg)


class GitHubNotFoundError(TattooError):
    """The GitHub API answered 404 for a repository or owner."""


class CloneOrUpdateError(TattooError):
    """A working copy could not be switched to the requested ref."""


class InvocationError(TattooError):
    """The test runner process could not be started."""


class SubprocessError(TattooError):
    """Running a subprocess failed."""

    def __init__(
        self,
        msg: str,
        *,
        returncode: int | None = None,
        stdout: str | None = None,
        stderr: str | None = None,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        super().__init__(msg)
        self.msg = msg
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cwd = cwd
        self.env = env

    @override
    def __str__(self) -> str:
        return (
            f"{self.msg} with rc={self.returncode};"
            f" stdout='{self.stdout}'; stderr='{self.stderr}'"
            f" cwd='{self.cwd}'; env='{self.env}'"
        )
