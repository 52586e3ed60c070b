"""Models for GitHub repository references and metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Self, override

from pydantic import BaseModel, Field

from ..exceptions import MalformedRepoRefError

__all__ = [
    "RepoMetadata",
    "RepoRef",
    "UserMetadata",
    "wildcard_regex",
]


def wildcard_regex(pattern: str) -> re.Pattern[str]:
    """Convert a pattern with ``*`` wildcards into a regular expression.

    Everything except ``*`` is matched literally, ``*`` matches any
    substring, and the expression must match the whole candidate string.
    Matching is case-insensitive because GitHub names are.

    Parameters
    ----------
    pattern
        Pattern such as ``iron-*`` or ``*-*``.

    Returns
    -------
    re.Pattern
        Compiled expression, to be used with ``fullmatch``.
    """
    literals = (re.escape(part) for part in pattern.split("*"))
    return re.compile(".*".join(literals), re.IGNORECASE)


@dataclass(frozen=True)
class RepoRef:
    """A repository on GitHub plus an optional ref to check out.

    The repository name may contain ``*`` wildcards, in which case the
    reference is a pattern that must be expanded against the owner's list
    of repositories before it can be cloned.
    """

    owner_name: str
    """Organization or user that owns the repository."""

    repo_name: str
    """Name of the repository, possibly with wildcards."""

    checkout_ref: str | None = None
    """Branch, tag, or commit to check out instead of the default."""

    @classmethod
    def parse(cls, expression: str) -> Self:
        """Parse an expression of the form ``owner/repo[#ref]``.

        Raises
        ------
        MalformedRepoRefError
            Raised if there is not exactly one ``/`` before the ref or if
            there is more than one ``#``.
        """
        hash_split = expression.split("#")
        if len(hash_split) > 2:
            raise MalformedRepoRefError(expression)
        slash_split = hash_split[0].split("/")
        if len(slash_split) != 2 or not all(slash_split):
            raise MalformedRepoRefError(expression)
        owner, repo = slash_split
        ref = hash_split[1] if len(hash_split) == 2 else None
        return cls(owner_name=owner, repo_name=repo, checkout_ref=ref or None)

    @property
    def is_wildcard(self) -> bool:
        """Whether the repository name is a pattern."""
        return "*" in self.repo_name

    @property
    def key(self) -> tuple[str, str, str | None]:
        """Identity of the reference, ignoring the case of GitHub names."""
        return (
            self.owner_name.lower(),
            self.repo_name.lower(),
            self.checkout_ref,
        )

    def matches(self, candidate: RepoRef) -> bool:
        """Whether this reference, as a pattern, matches ``candidate``.

        Only the owner and repository names take part. The checkout ref of
        either side is ignored, so excluding ``owner/repo`` excludes every
        ref of that repository.
        """
        owner = wildcard_regex(self.owner_name)
        repo = wildcard_regex(self.repo_name)
        return bool(
            owner.fullmatch(candidate.owner_name)
            and repo.fullmatch(candidate.repo_name)
        )

    def with_repo_name(self, repo_name: str) -> RepoRef:
        """Return a concrete copy of a pattern for one matching name."""
        return replace(self, repo_name=repo_name)

    def serialize(self) -> str:
        """Return the ``owner/repo[#ref]`` form of the reference."""
        ref = f"#{self.checkout_ref}" if self.checkout_ref else ""
        return f"{self.owner_name}/{self.repo_name}{ref}"

    @override
    def __str__(self) -> str:
        return self.serialize()


class RepoMetadata(BaseModel):
    """The parts of a GitHub repository response that tattoo uses."""

    name: str = Field(..., title="Repository name")

    full_name: str = Field(..., title="Owner and repository name")

    clone_url: str = Field("", title="HTTPS URL to clone from")

    default_branch: str = Field("master", title="Default branch")

    is_redirect: bool = Field(
        False,
        title="Whether GitHub answered with a permanent redirect",
        description=(
            "Set when the requested repository was renamed or transferred."
            " Such a response does not describe the requested repository."
        ),
    )


class UserMetadata(BaseModel):
    """The authenticated GitHub user."""

    login: str = Field(..., title="User login")
