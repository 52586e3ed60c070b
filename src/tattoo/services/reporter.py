"""Summarize test results for humans and write the rerun script."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import TextIO

import click

from ..models.results import RunSummary, SuiteResult

__all__ = ["ResultReporter"]


class ResultReporter:
    """Print a run summary and write a script to rerun the failures.

    Parameters
    ----------
    stream
        Where to print the summary.
    command
        Test command, as run in each failed repository by the script.
    rerun_script
        Path of the rerun script. It is overwritten on every run, so that
        it never refers to failures from an earlier run.
    verbose
        Whether to print the output of failed test runs.
    """

    def __init__(
        self,
        stream: TextIO,
        command: list[str],
        rerun_script: Path,
        *,
        verbose: bool = False,
    ) -> None:
        self._stream = stream
        self._command = command
        self._rerun_script = rerun_script
        self._verbose = verbose

    def summarize(self, results: list[SuiteResult]) -> RunSummary:
        """Count the results of a run."""
        summary = RunSummary()
        for result in results:
            summary.add(result)
        return summary

    def report(self, summary: RunSummary) -> None:
        """Print the summary and write the rerun script."""
        for result in summary.failures:
            directory = result.entry.local_dir
            self._echo(f"Tests for: {directory} status: {result.status}")
            if self._verbose and result.output:
                self._echo(result.output)
        self._echo(
            f"{summary.passed} / {summary.total} tests passed."
            f" {summary.skipped} skipped."
        )
        self.write_rerun_script(summary)

    def write_rerun_script(self, summary: RunSummary) -> None:
        """Write a bash script that reruns the tests of every failure."""
        lines = ["#!/bin/bash"]
        for result in summary.failures:
            lines.append(f"pushd {shlex.quote(str(result.entry.local_dir))}")
            lines.append(shlex.join(self._command))
            lines.append("popd")
        self._rerun_script.write_text("\n".join(lines) + "\n")
        self._rerun_script.chmod(0o700)

    def _echo(self, message: str) -> None:
        click.echo(message, file=self._stream)
