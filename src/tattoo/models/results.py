"""Models for the outcome of testing workspace repositories."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from .workspace import WorkspaceEntry

__all__ = ["RunSummary", "SuiteResult", "SuiteStatus"]


class SuiteStatus(StrEnum):
    """Classification of one repository's test run."""

    passed = "PASSED"
    failed = "FAILED"
    skipped = "SKIPPED"


@dataclass(frozen=True)
class SuiteResult:
    """The authoritative outcome of testing one workspace entry."""

    entry: WorkspaceEntry
    """The entry that was tested."""

    status: SuiteStatus
    """Whether it passed, failed, or was skipped."""

    output: str | None = None
    """Combined output of the last attempt, or why it could not run."""

    attempts: int = 0
    """How many times the test runner was invoked."""


@dataclass
class RunSummary:
    """Counts of outcomes across a run."""

    passed: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[SuiteResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of repositories whose test suite ran."""
        return self.passed + self.failed

    @property
    def failures(self) -> list[SuiteResult]:
        return [r for r in self.results if r.status == SuiteStatus.failed]

    def add(self, result: SuiteResult) -> None:
        """Count one result."""
        self.results.append(result)
        match result.status:
            case SuiteStatus.passed:
                self.passed += 1
            case SuiteStatus.failed:
                self.failed += 1
            case SuiteStatus.skipped:
                self.skipped += 1
