"""End-to-end tests of a run against local repositories."""

from __future__ import annotations

import io
import json
from datetime import timedelta
from pathlib import Path
from typing import Any

import pytest
import structlog
from structlog.stdlib import BoundLogger
from structlog.testing import LogCapture

from tattoo.config import Configuration
from tattoo.exceptions import MalformedRepoRefError, RepoNotFoundError
from tattoo.models.results import SuiteStatus
from tattoo.services.runner import Runner

from ..support.git import create_origin, write_wct
from ..support.github import MockGitHub


async def make_acme(github: MockGitHub, tmp_path: Path) -> None:
    """Create the acme repositories and their local origins."""
    origins = tmp_path / "origins"
    repos: dict[str, dict[str, Any]] = {
        "a": {},
        "b": {"with_tests": False},
        "c-test": {},
        "flaky": {"fail_runs": 2},
        "broken": {"fail_runs": 99},
        "untested": {"with_tests": False},
    }
    for name, options in repos.items():
        manifest = {"dependencies": {"polymer": "Polymer/polymer#^2.0.0"}}
        files = {"bower.json": json.dumps(manifest)}
        await create_origin(origins / name, files, **options)
        github.add_repo("acme", name, clone_url=str(origins / name))


def make_config(tmp_path: Path, **kwargs: object) -> Configuration:
    return Configuration(
        wct_command=str(write_wct(tmp_path / "wct")),
        workspace_dir=tmp_path / "repos",
        rerun_script=tmp_path / "rerun.sh",
        scm_delay=timedelta(0),
        test_delay=timedelta(0),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_run(
    github: MockGitHub, logger: BoundLogger, tmp_path: Path
) -> None:
    await make_acme(github, tmp_path)
    config = make_config(
        tmp_path,
        require=["acme/*"],
        exclude=["acme/c-test"],
        test=["acme/a", "acme/flaky", "acme/broken", "acme/untested"],
    )
    stream = io.StringIO()
    runner = Runner(config, github, logger, stream=stream)

    summary = await runner.run()
    assert (summary.passed, summary.failed, summary.skipped) == (2, 1, 1)
    statuses = {r.entry.name: r.status for r in summary.results}
    assert statuses == {
        "a": SuiteStatus.passed,
        "flaky": SuiteStatus.passed,
        "broken": SuiteStatus.failed,
        "untested": SuiteStatus.skipped,
    }
    attempts = {r.entry.name: r.attempts for r in summary.results}
    assert attempts["flaky"] == 3

    repos = tmp_path / "repos"
    assert sorted(p.name for p in repos.iterdir()) == [
        "a",
        "b",
        "broken",
        "flaky",
        "untested",
    ]
    assert not (repos / "b" / ".wct-count").exists()
    assert not (repos / "bower.json").exists()

    broken = repos / "broken"
    assert stream.getvalue() == (
        f"Tests for: {broken} status: FAILED\n"
        "2 / 3 tests passed. 1 skipped.\n"
    )
    wct = tmp_path / "wct"
    assert (tmp_path / "rerun.sh").read_text() == (
        f"#!/bin/bash\npushd {broken}\n{wct} --local chrome\npopd\n"
    )
    assert github.calls[0] == "user"


@pytest.mark.asyncio
async def test_rerun(
    github: MockGitHub, logger: BoundLogger, tmp_path: Path
) -> None:
    await make_acme(github, tmp_path)
    config = make_config(tmp_path, test=["acme/flaky"], color=True)

    summary = await Runner(config, github, logger, stream=io.StringIO()).run()
    assert summary.passed == 1
    output = summary.results[0].output
    assert output
    assert "--local chrome --color" in output

    # The second run updates the existing clone, and the fake test runner
    # remembers its earlier runs there, so it passes right away.
    summary = await Runner(config, github, logger, stream=io.StringIO()).run()
    assert summary.passed == 1
    assert summary.results[0].attempts == 1


@pytest.mark.asyncio
async def test_install_dependencies(
    github: MockGitHub, logger: BoundLogger, tmp_path: Path
) -> None:
    await make_acme(github, tmp_path)
    install = tmp_path / "install.sh"
    install.write_text("#!/bin/sh\nls > installed\n")
    install.chmod(0o755)
    config = make_config(
        tmp_path,
        test=["acme/a", "acme/untested"],
        require=["acme/b"],
        install_dependencies=True,
        install_command=[str(install)],
    )

    summary = await Runner(config, github, logger, stream=io.StringIO()).run()
    assert (summary.passed, summary.failed, summary.skipped) == (1, 0, 1)

    # Every repo was cloned before the install ran.
    repos = tmp_path / "repos"
    installed = (repos / "installed").read_text().split()
    assert {"a", "b", "untested", "bower.json"} <= set(installed)
    manifest = json.loads((repos / "bower.json").read_text())
    assert manifest["dependencies"] == {
        "polymer": "Polymer/polymer#^2.0.0",
        "web-component-tester": "*",
    }


@pytest.mark.asyncio
async def test_clone_failure(
    github: MockGitHub, logger: BoundLogger, tmp_path: Path
) -> None:
    await make_acme(github, tmp_path)
    github.add_repo("acme", "gone", clone_url=str(tmp_path / "nowhere"))
    config = make_config(tmp_path, test=["acme/a", "acme/gone"])

    summary = await Runner(config, github, logger, stream=io.StringIO()).run()
    assert (summary.passed, summary.failed) == (1, 1)
    (failure,) = summary.failures
    assert failure.entry.name == "gone"
    assert failure.output
    assert failure.output.startswith("Could not clone or update acme/gone")


@pytest.mark.asyncio
async def test_fatal_errors(
    github: MockGitHub, logger: BoundLogger, tmp_path: Path
) -> None:
    await make_acme(github, tmp_path)

    config = make_config(tmp_path, test=["acme"])
    with pytest.raises(MalformedRepoRefError):
        await Runner(config, github, logger, stream=io.StringIO()).run()

    config = make_config(tmp_path, test=["acme/missing"])
    with pytest.raises(RepoNotFoundError):
        await Runner(config, github, logger, stream=io.StringIO()).run()

    # Nothing was cloned.
    assert not (tmp_path / "repos").exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("install_dependencies", [False, True])
async def test_progress(
    github: MockGitHub, tmp_path: Path, install_dependencies: bool
) -> None:
    await make_acme(github, tmp_path)
    install = tmp_path / "install.sh"
    install.write_text("#!/bin/sh\n")
    install.chmod(0o755)
    config = make_config(
        tmp_path,
        test=["acme/a", "acme/flaky"],
        require=["acme/b"],
        install_dependencies=install_dependencies,
        install_command=[str(install)],
    )
    capture = LogCapture()
    logger = structlog.wrap_logger(None, processors=[capture])

    await Runner(config, github, logger, stream=io.StringIO()).run()
    progress = [e for e in capture.entries if e["event"] == "Progress"]
    cloned = [e for e in progress if e["phase"] == "clone"]
    tested = [e for e in progress if e["phase"] == "test"]
    assert [e["completed"] for e in cloned] == [1, 2, 3]
    assert {e["total"] for e in cloned} == {3}
    assert [e["completed"] for e in tested] == [1, 2]
    assert {e["total"] for e in tested} == {2}
