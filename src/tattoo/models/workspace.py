"""Models for the resolved set of repositories of one run."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from ..exceptions import DuplicateWorkspaceEntryError
from .repo import RepoMetadata, RepoRef

__all__ = ["Workspace", "WorkspaceEntry"]


@dataclass
class WorkspaceEntry:
    """One repository in the workspace and what is known about it.

    Entries are created during resolution and then filled in by the later
    stages of the run: the remote metadata once GitHub has been asked about
    the repository, and the head commit or an error once the working copy
    has been cloned or updated.
    """

    name: str
    """Unique key of the entry, which is also its directory name."""

    repo_ref: RepoRef
    """The concrete reference this entry was resolved from."""

    local_dir: Path
    """Directory of the working copy."""

    is_test_target: bool = False
    """Whether the test runner should be run against this repository."""

    remote_metadata: RepoMetadata | None = None
    """Repository metadata from GitHub."""

    head_commit: str | None = None
    """Commit checked out in the working copy after cloning or updating."""

    error: str | None = None
    """Why the working copy could not be cloned or updated, if it failed."""


@dataclass
class Workspace:
    """A local directory and the repositories cloned into it."""

    root_dir: Path
    """Directory holding one subdirectory per entry."""

    entries: dict[str, WorkspaceEntry] = field(default_factory=dict)
    """Entries keyed by repository name."""

    def add(self, repo_ref: RepoRef, *, is_test_target: bool) -> None:
        """Add an entry for a concrete repository reference.

        Raises
        ------
        DuplicateWorkspaceEntryError
            Raised if another entry already uses the same repository name.
            Names are compared case-insensitively since they become
            directory names.
        """
        name = repo_ref.repo_name
        for existing in self.entries.values():
            if existing.name.lower() == name.lower():
                raise DuplicateWorkspaceEntryError(
                    name, str(existing.repo_ref), str(repo_ref)
                )
        self.entries[name] = WorkspaceEntry(
            name=name,
            repo_ref=repo_ref,
            local_dir=self.root_dir / name,
            is_test_target=is_test_target,
        )

    def test_targets(self) -> list[WorkspaceEntry]:
        """Return the entries the test runner should run against."""
        return [e for e in self.entries.values() if e.is_test_target]

    def __iter__(self) -> Iterator[WorkspaceEntry]:
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)
