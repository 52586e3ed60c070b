"""Tests for running test processes."""

from __future__ import annotations

from pathlib import Path

import pytest

from tattoo.exceptions import InvocationError
from tattoo.storage.process import Process


@pytest.mark.asyncio
async def test_run(tmp_path: Path) -> None:
    script = tmp_path / "script.sh"
    script.write_text("#!/bin/sh\necho out\necho err >&2\npwd\nexit 3\n")
    script.chmod(0o755)

    result = await Process().run(str(script), cwd=tmp_path)
    assert result.returncode == 3
    lines = result.output.splitlines()
    assert lines[:2] == ["out", "err"]
    assert Path(lines[2]).resolve() == tmp_path.resolve()


@pytest.mark.asyncio
async def test_success() -> None:
    result = await Process().run("true")
    assert result.returncode == 0
    assert result.output == ""


@pytest.mark.asyncio
async def test_cannot_start(tmp_path: Path) -> None:
    with pytest.raises(InvocationError, match="Could not start"):
        await Process().run(str(tmp_path / "missing"), "--flag")
