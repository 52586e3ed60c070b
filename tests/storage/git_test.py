"""Tests for the git client."""

from __future__ import annotations

from pathlib import Path

import pytest

from tattoo.exceptions import SubprocessError
from tattoo.storage.git import Git

from ..support.git import commit_files, create_origin


@pytest.mark.asyncio
async def test_clone(tmp_path: Path) -> None:
    origin = await create_origin(tmp_path / "origin", {"a.txt": "hello\n"})
    commit = await origin.head_commit()

    git = Git()
    await git.clone(str(tmp_path / "origin"), tmp_path / "clone")
    assert git.repo == tmp_path / "clone"
    assert git.is_working_copy()
    assert (tmp_path / "clone" / "a.txt").read_text() == "hello\n"
    assert await git.head_commit() == commit
    assert await git.upstream() == "origin/main"


@pytest.mark.asyncio
async def test_fetch_and_merge(tmp_path: Path) -> None:
    origin = await create_origin(tmp_path / "origin")
    git = Git()
    await git.clone(str(tmp_path / "origin"), tmp_path / "clone")

    commit = await commit_files(origin, {"new.txt": "new\n"})
    await git.fetch("--all")
    assert await git.head_commit() != commit
    await git.merge("--ff-only", "origin/main")
    assert await git.head_commit() == commit


@pytest.mark.asyncio
async def test_version_tags(tmp_path: Path) -> None:
    origin = await create_origin(tmp_path / "origin")
    for tag in ("v1.2.0", "v1.10.0", "v1.9.1", "nightly", "v0.1.0"):
        await origin.tag(tag)

    assert await origin.version_tags() == [
        "v1.10.0",
        "v1.9.1",
        "v1.2.0",
        "v0.1.0",
    ]


@pytest.mark.asyncio
async def test_detached_has_no_upstream(tmp_path: Path) -> None:
    origin = await create_origin(tmp_path / "origin")
    await origin.tag("v1.0.0")
    await origin.checkout("v1.0.0")
    assert await origin.upstream() is None


@pytest.mark.asyncio
async def test_failure(tmp_path: Path) -> None:
    await create_origin(tmp_path / "origin")
    git = Git(repo=tmp_path / "origin", token="very-secret")

    with pytest.raises(SubprocessError) as excinfo:
        await git.checkout("no-such-branch")
    assert excinfo.value.returncode != 0
    assert excinfo.value.cwd == tmp_path / "origin"
    assert "no-such-branch" in (excinfo.value.stderr or "")

    # The token must never show up in the error.
    assert "very-secret" not in str(excinfo.value)
    assert excinfo.value.env
    assert "GIT_CONFIG_VALUE_0" not in excinfo.value.env


@pytest.mark.asyncio
async def test_clone_failure(tmp_path: Path) -> None:
    git = Git()
    with pytest.raises(SubprocessError):
        await git.clone(str(tmp_path / "missing"), tmp_path / "clone")
    assert not git.is_working_copy()
