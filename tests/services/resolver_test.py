"""Tests for resolving repository expressions into a workspace."""

from __future__ import annotations

from pathlib import Path

import pytest
from structlog.stdlib import BoundLogger

from tattoo.asyncio import RateLimiter
from tattoo.exceptions import (
    DuplicateWorkspaceEntryError,
    MalformedRepoRefError,
    OwnerNotFoundError,
    RepoMovedError,
    RepoNotFoundError,
)
from tattoo.models.repo import RepoRef
from tattoo.services.directory import RepoCache, RepoDirectory
from tattoo.services.resolver import WorkspaceResolver

from ..support.github import MockGitHub


@pytest.fixture
def resolver(
    github: MockGitHub, limiter: RateLimiter, logger: BoundLogger
) -> WorkspaceResolver:
    directory = RepoDirectory(github, RepoCache(), logger)
    return WorkspaceResolver(directory, limiter, logger)


@pytest.mark.asyncio
async def test_wildcard_exclude(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    for name in ("a", "b", "c-test"):
        github.add_repo("acme", name)

    workspace = await resolver.resolve(
        tmp_path,
        require=["acme/*"],
        exclude=["acme/c-test"],
        test=["acme/a"],
    )
    assert {e.name: e.is_test_target for e in workspace} == {
        "a": True,
        "b": False,
    }
    assert workspace.entries["a"].repo_ref == RepoRef("acme", "a")
    assert workspace.entries["b"].local_dir == tmp_path / "b"
    for entry in workspace:
        assert entry.remote_metadata
        assert entry.remote_metadata.full_name == f"acme/{entry.name}"

    # The wildcard owner was listed once, and the listing supplied all the
    # metadata.
    assert github.calls == ["org acme 1"]


@pytest.mark.asyncio
async def test_wildcard_ref(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    for name in ("iron-icon", "iron-list", "paper-button", "polymer"):
        github.add_repo("Polymer", name)

    workspace = await resolver.resolve(
        tmp_path, test=["polymer/iron-*#2.0-preview"]
    )
    assert [str(e.repo_ref) for e in workspace] == [
        "polymer/iron-icon#2.0-preview",
        "polymer/iron-list#2.0-preview",
    ]


@pytest.mark.asyncio
async def test_skip_test(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    for name in ("paper-button", "paper-styles", "polymer"):
        github.add_repo("Polymer", name)

    workspace = await resolver.resolve(
        tmp_path,
        require=["Polymer/polymer", "Polymer/paper-styles"],
        test=["Polymer/paper-*"],
        skip_test=["Polymer/paper-styles"],
        exclude=["Polymer/paper-button"],
    )

    # Skipping only removes from the tests, and excluding only removes
    # from the requirements.
    assert {e.name: e.is_test_target for e in workspace} == {
        "paper-button": True,
        "polymer": False,
        "paper-styles": False,
    }


@pytest.mark.asyncio
async def test_exclude_ignores_ref(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    github.add_repo("acme", "widget")
    github.add_repo("acme", "gadget")

    workspace = await resolver.resolve(
        tmp_path,
        require=["acme/widget#v2", "acme/gadget"],
        exclude=["acme/widget"],
    )
    assert [e.name for e in workspace] == ["gadget"]


@pytest.mark.asyncio
async def test_concrete(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    github.add_repo("polymer", "tattoo", default_branch="master")

    workspace = await resolver.resolve(
        tmp_path, test=["polymer/tattoo#electric-boogaloo"]
    )
    entry = workspace.entries["tattoo"]
    assert entry.repo_ref.serialize() == "polymer/tattoo#electric-boogaloo"
    assert entry.remote_metadata
    assert entry.remote_metadata.default_branch == "master"
    assert github.calls == ["repo polymer/tattoo"]


@pytest.mark.asyncio
async def test_same_ref_twice(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    github.add_repo("acme", "widget")

    workspace = await resolver.resolve(
        tmp_path,
        require=["acme/widget", "ACME/Widget"],
        test=["acme/widget"],
    )
    assert len(workspace) == 1
    assert workspace.entries["widget"].is_test_target


@pytest.mark.asyncio
async def test_duplicate(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    github.add_repo("acme", "widget")
    github.add_repo("other", "widget")

    with pytest.raises(DuplicateWorkspaceEntryError):
        await resolver.resolve(
            tmp_path, require=["acme/widget", "other/widget"]
        )
    with pytest.raises(DuplicateWorkspaceEntryError):
        await resolver.resolve(
            tmp_path, test=["acme/widget#v1"], require=["acme/widget#v2"]
        )


@pytest.mark.asyncio
async def test_malformed(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    github.add_repo("acme", "widget")

    with pytest.raises(MalformedRepoRefError):
        await resolver.resolve(
            tmp_path, require=["acme/*"], skip_test=["not-a-repo"]
        )

    # Parsing happens before anything is looked up.
    assert github.calls == []


@pytest.mark.asyncio
async def test_lookup_errors(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    github.add_repo("acme", "old")
    github.move_repo("acme", "old", "acme/new")

    with pytest.raises(OwnerNotFoundError):
        await resolver.resolve(tmp_path, require=["nobody/*"])
    with pytest.raises(RepoNotFoundError):
        await resolver.resolve(tmp_path, test=["acme/missing"])
    with pytest.raises(RepoMovedError):
        await resolver.resolve(tmp_path, test=["acme/old"])


@pytest.mark.asyncio
async def test_empty(resolver: WorkspaceResolver, tmp_path: Path) -> None:
    workspace = await resolver.resolve(tmp_path)
    assert len(workspace) == 0


@pytest.mark.asyncio
async def test_exclude_nothing(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    for name in ("a", "b"):
        github.add_repo("acme", name)

    workspace = await resolver.resolve(
        tmp_path,
        require=["acme/*"],
        exclude=["acme/zzz", "other/*"],
        test=["acme/a"],
        skip_test=["acme/b", "other/a"],
    )
    assert {e.name: e.is_test_target for e in workspace} == {
        "a": True,
        "b": False,
    }

    # Patterns that match nothing do not look anything up.
    assert "org other 1" not in github.calls
    assert "user other 1" not in github.calls


@pytest.mark.asyncio
async def test_first_lookup_error(
    github: MockGitHub, resolver: WorkspaceResolver, tmp_path: Path
) -> None:
    github.add_repo("acme", "old")
    github.add_repo("acme", "good")
    github.move_repo("acme", "old", "acme/new")

    with pytest.raises(RepoNotFoundError):
        await resolver.resolve(
            tmp_path, test=["acme/missing", "acme/old", "acme/good"]
        )

    # Every lookup still ran to completion.
    assert "repo acme/good" in github.calls
    assert "repo acme/old" in github.calls

    with pytest.raises(RepoMovedError):
        await resolver.resolve(tmp_path, test=["acme/old", "acme/missing"])
