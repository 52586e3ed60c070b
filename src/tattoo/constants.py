"""Global constants for tattoo."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

__all__ = [
    "BOWERRC_FILE",
    "BOWER_MANIFEST",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_INSTALL_COMMAND",
    "DEFAULT_WCT_COMMAND",
    "DEFAULT_WCT_FLAGS",
    "DEFAULT_WORKSPACE_DIR",
    "FLAKE_RETRIES",
    "GITHUB_PAGE_SIZE",
    "GITHUB_TOKEN_FILE",
    "RERUN_SCRIPT",
    "SCM_CONCURRENCY",
    "SCM_DELAY",
    "TEST_CONCURRENCY",
    "TEST_DELAY",
    "TEST_DIR_NAME",
    "WCT_PACKAGE",
]

BOWERRC_FILE = ".bowerrc"
"""Bower configuration written to the workspace root before installing."""

BOWER_MANIFEST = "bower.json"
"""Name of the bower dependency manifest in each repository."""

DEFAULT_CONFIG_FILE = Path("tattoo_config.yaml")
"""Config file read if present. JSON content is accepted too."""

DEFAULT_INSTALL_COMMAND = ["bower", "install"]
"""Command run in the workspace root to install merged dependencies."""

DEFAULT_WCT_COMMAND = "wct"
"""The web-component-tester executable."""

DEFAULT_WCT_FLAGS = ["--local chrome"]
"""Flags passed to wct if none are configured."""

DEFAULT_WORKSPACE_DIR = Path("repos")
"""Directory the repositories are cloned into and tested from."""

FLAKE_RETRIES = 2
"""Additional attempts given to a failing test run before it counts."""

GITHUB_PAGE_SIZE = 50
"""Page size used when listing the repositories of an owner."""

GITHUB_TOKEN_FILE = Path("github-token")
"""File consulted for a GitHub token if none is configured."""

RERUN_SCRIPT = Path("rerun.sh")
"""Shell script regenerated each run to re-test the failed repositories."""

SCM_CONCURRENCY = 20
"""Maximum concurrent GitHub API and git network operations."""

SCM_DELAY = timedelta(milliseconds=100)
"""Minimum delay between starting GitHub API and git network operations."""

TEST_CONCURRENCY = 1
"""Maximum concurrent test runner invocations."""

TEST_DELAY = timedelta(milliseconds=100)
"""Minimum delay between starting test runner invocations."""

TEST_DIR_NAME = "test"
"""Directory whose presence marks a repository as having a test suite."""

WCT_PACKAGE = "web-component-tester"
"""Bower package always installed so that wct can find its client code."""
