"""Configuration definition."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Self

import yaml
from pydantic import AliasChoices, Field, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict
from safir.logging import LogLevel, Profile
from safir.pydantic import HumanTimedelta

from .constants import (
    DEFAULT_INSTALL_COMMAND,
    DEFAULT_WCT_COMMAND,
    DEFAULT_WCT_FLAGS,
    DEFAULT_WORKSPACE_DIR,
    FLAKE_RETRIES,
    GITHUB_TOKEN_FILE,
    RERUN_SCRIPT,
    SCM_CONCURRENCY,
    SCM_DELAY,
    TEST_CONCURRENCY,
    TEST_DELAY,
    TEST_DIR_NAME,
)
from .exceptions import ConfigurationError

__all__ = ["Configuration"]

_TOKEN_HELP = (
    "No GitHub token found. Create a personal access token at"
    " https://github.com/settings/tokens and pass it with --github-token,"
    " set it as githubToken in the config file, set GITHUB_TOKEN, or save"
    f" it in a file named {GITHUB_TOKEN_FILE} in the current directory."
)


class Configuration(BaseSettings):
    """Configuration for a tattoo run."""

    model_config = SettingsConfigDict(
        alias_generator=to_camel,
        case_sensitive=True,
        extra="forbid",
        populate_by_name=True,
    )

    require: list[str] = Field(
        [],
        title="Required repos",
        description=(
            "Repos to clone into the workspace without testing them, as"
            " owner/repo or owner/repo#ref. The repo name may contain *"
            " wildcards."
        ),
        examples=[["PolymerElements/*", "Polymer/polymer#2.0-preview"]],
        validation_alias=AliasChoices("TATTOO_REQUIRE", "require"),
    )

    exclude: list[str] = Field(
        [],
        title="Excluded repos",
        description=(
            "Patterns of repos to drop from the required repos. Any ref is"
            " ignored when matching."
        ),
        examples=[["PolymerElements/style-guide"]],
        validation_alias=AliasChoices("TATTOO_EXCLUDE", "exclude"),
    )

    test: list[str] = Field(
        [],
        title="Repos to test",
        description=(
            "Repos whose tests are run. They are cloned whether or not they"
            " are also required."
        ),
        examples=[["PolymerElements/paper-*"]],
        validation_alias=AliasChoices("TATTOO_TEST", "test"),
    )

    skip_test: list[str] = Field(
        [],
        title="Repos not to test",
        description="Patterns of repos to drop from the repos to test.",
        validation_alias=AliasChoices("TATTOO_SKIP_TEST", "skipTest"),
    )

    wct_flags: list[str] = Field(
        [],
        title="web-component-tester flags",
        description=(
            "Flags for every test run. An entry may hold several"
            " shell-quoted words. If empty, the tests run in a local"
            " Chrome."
        ),
        examples=[["--local chrome", "--verbose"]],
        validation_alias=AliasChoices("TATTOO_WCT_FLAGS", "wctFlags"),
    )

    wct_command: str = Field(
        DEFAULT_WCT_COMMAND,
        title="web-component-tester command",
        description="Executable run in each repo to test it.",
        validation_alias=AliasChoices("TATTOO_WCT_COMMAND", "wctCommand"),
    )

    github_token: str | None = Field(
        None,
        title="GitHub token",
        description=(
            "Token for the GitHub API and for cloning. If not set, it is"
            " read from the github-token file in the current directory."
        ),
        validation_alias=AliasChoices(
            "TATTOO_GITHUB_TOKEN", "GITHUB_TOKEN", "githubToken"
        ),
    )

    fresh: bool = Field(
        False,
        title="Start from an empty workspace",
        description="Delete the workspace directory before cloning.",
        validation_alias=AliasChoices("TATTOO_FRESH", "fresh"),
    )

    latest_release: bool = Field(
        False,
        title="Test latest releases",
        description=(
            "Check out the newest version tag of repos that do not name a"
            " ref, instead of their default branch."
        ),
        validation_alias=AliasChoices(
            "TATTOO_LATEST_RELEASE", "latestRelease"
        ),
    )

    color: bool = Field(
        False,
        title="Color output",
        description="Pass --color to web-component-tester.",
        validation_alias=AliasChoices("TATTOO_COLOR", "color"),
    )

    verbose: bool = Field(
        False,
        title="Verbose output",
        description="Print failed test output and log debug messages.",
        validation_alias=AliasChoices("TATTOO_VERBOSE", "verbose"),
    )

    workspace_dir: Path = Field(
        DEFAULT_WORKSPACE_DIR,
        title="Workspace directory",
        description="Directory the repos are cloned into and tested in.",
        validation_alias=AliasChoices(
            "TATTOO_WORKSPACE_DIR", "workspaceDir"
        ),
    )

    test_dir_name: str = Field(
        TEST_DIR_NAME,
        title="Test directory name",
        description="Repos without a directory of this name are skipped.",
        validation_alias=AliasChoices("TATTOO_TEST_DIR_NAME", "testDirName"),
    )

    flake_retries: int = Field(
        FLAKE_RETRIES,
        title="Flaky test retries",
        description="Additional attempts given to a failed test run.",
        ge=0,
        validation_alias=AliasChoices("TATTOO_FLAKE_RETRIES", "flakeRetries"),
    )

    scm_concurrency: int = Field(
        SCM_CONCURRENCY,
        title="GitHub and git concurrency",
        description="Maximum concurrent GitHub API calls and git operations.",
        ge=1,
        validation_alias=AliasChoices(
            "TATTOO_SCM_CONCURRENCY", "scmConcurrency"
        ),
    )

    scm_delay: HumanTimedelta = Field(
        SCM_DELAY,
        title="GitHub and git delay",
        description=(
            "Minimum time between starting GitHub API calls and git"
            " operations."
        ),
        examples=["100ms", "1s"],
        validation_alias=AliasChoices("TATTOO_SCM_DELAY", "scmDelay"),
    )

    test_concurrency: int = Field(
        TEST_CONCURRENCY,
        title="Test concurrency",
        description="Maximum concurrent test runs.",
        ge=1,
        validation_alias=AliasChoices(
            "TATTOO_TEST_CONCURRENCY", "testConcurrency"
        ),
    )

    test_delay: HumanTimedelta = Field(
        TEST_DELAY,
        title="Test delay",
        description="Minimum time between starting test runs.",
        validation_alias=AliasChoices("TATTOO_TEST_DELAY", "testDelay"),
    )

    install_dependencies: bool = Field(
        False,
        title="Install bower dependencies",
        description=(
            "Merge the bower.json files of the repos to test and install"
            " the result into the workspace before testing. All clones then"
            " finish before the first test starts."
        ),
        validation_alias=AliasChoices(
            "TATTOO_INSTALL_DEPENDENCIES", "installDependencies"
        ),
    )

    install_command: list[str] = Field(
        DEFAULT_INSTALL_COMMAND,
        title="Install command",
        description="Command run in the workspace to install dependencies.",
        min_length=1,
        validation_alias=AliasChoices(
            "TATTOO_INSTALL_COMMAND", "installCommand"
        ),
    )

    rerun_script: Path = Field(
        RERUN_SCRIPT,
        title="Rerun script",
        description="Script written after each run to rerun failed tests.",
        validation_alias=AliasChoices("TATTOO_RERUN_SCRIPT", "rerunScript"),
    )

    profile: Profile = Field(
        Profile.development,
        title="Application logging profile",
        validation_alias=AliasChoices("TATTOO_PROFILE", "profile"),
    )

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Log level of the application's logger",
        validation_alias=AliasChoices("TATTOO_LOG_LEVEL", "logLevel"),
    )

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Configuration object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML or JSON. If it does not
            exist, the defaults are used.

        Returns
        -------
        Configuration
            The corresponding `Configuration` object.

        Raises
        ------
        ConfigurationError
            Raised if the file cannot be parsed or is not valid.
        """
        if not path.exists():
            return cls()
        try:
            with path.open("r") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} does not contain a mapping")
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config in {path}: {e}") from e

    def merge_options(
        self,
        *,
        require: Iterable[str] = (),
        exclude: Iterable[str] = (),
        test: Iterable[str] = (),
        skip_test: Iterable[str] = (),
        wct_flags: Iterable[str] = (),
        github_token: str | None = None,
        workspace_dir: Path | None = None,
        fresh: bool = False,
        latest_release: bool = False,
        color: bool = False,
        verbose: bool = False,
    ) -> Self:
        """Return a copy with command-line options applied on top.

        Lists given on the command line are appended to the ones from the
        file, a string option replaces the file value when given, and a
        flag is on when it is on in either place.
        """
        update = {
            "require": [*self.require, *require],
            "exclude": [*self.exclude, *exclude],
            "test": [*self.test, *test],
            "skip_test": [*self.skip_test, *skip_test],
            "wct_flags": [*self.wct_flags, *wct_flags],
            "github_token": github_token or self.github_token,
            "workspace_dir": workspace_dir or self.workspace_dir,
            "fresh": fresh or self.fresh,
            "latest_release": latest_release or self.latest_release,
            "color": color or self.color,
            "verbose": verbose or self.verbose,
        }
        if update["verbose"]:
            update["log_level"] = LogLevel.DEBUG
        return self.model_copy(update=update)

    @property
    def effective_wct_flags(self) -> list[str]:
        """Flags actually passed to web-component-tester."""
        flags = list(self.wct_flags) or list(DEFAULT_WCT_FLAGS)
        if self.color and "--color" not in flags:
            flags.append("--color")
        return flags

    def get_github_token(self, token_file: Path = GITHUB_TOKEN_FILE) -> str:
        """Return the GitHub token, falling back on the token file.

        Raises
        ------
        ConfigurationError
            Raised if there is no token anywhere.
        """
        if self.github_token:
            return self.github_token
        if token_file.is_file():
            token = token_file.read_text().strip()
            if token:
                return token
        raise ConfigurationError(_TOKEN_HELP)
