"""Command-line interface for tattoo."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import structlog
from httpx import AsyncClient
from safir.asyncio import run_with_asyncio
from safir.logging import configure_logging

from . import __version__
from .config import Configuration
from .constants import DEFAULT_CONFIG_FILE
from .exceptions import ConfigurationError, RemoteLookupError
from .services.runner import Runner
from .storage.github import GitHubStorage

__all__ = ["main"]


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, message="%(version)s")
@click.option(
    "-c",
    "--config-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    envvar="TATTOO_CONFIG_FILE",
    help="YAML or JSON file with default options",
)
@click.option(
    "-r",
    "--require",
    multiple=True,
    help="Repo to clone without testing, as owner/repo[#ref]",
)
@click.option(
    "-e",
    "--exclude",
    multiple=True,
    help="Pattern of required repos to leave out",
)
@click.option(
    "-t",
    "--test",
    multiple=True,
    help="Repo to clone and test, as owner/repo[#ref]",
)
@click.option(
    "-s",
    "--skip-test",
    multiple=True,
    help="Pattern of repos to clone but not test",
)
@click.option(
    "-w",
    "--wct-flags",
    multiple=True,
    help="Flags to pass to web-component-tester",
)
@click.option(
    "-g",
    "--github-token",
    default=None,
    help="GitHub token, or put it in a file named github-token",
)
@click.option(
    "-d",
    "--workspace-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to clone repos into",
)
@click.option(
    "-f", "--fresh", is_flag=True, help="Delete the workspace before cloning"
)
@click.option(
    "-l",
    "--latest-release",
    is_flag=True,
    help="Test the newest release tag instead of the default branch",
)
@click.option("--color", is_flag=True, help="Color the test runner output")
@click.option(
    "-v", "--verbose", is_flag=True, help="Show output of failed tests"
)
@run_with_asyncio
async def main(
    config_file: Path,
    require: tuple[str, ...],
    exclude: tuple[str, ...],
    test: tuple[str, ...],
    skip_test: tuple[str, ...],
    wct_flags: tuple[str, ...],
    github_token: str | None,
    workspace_dir: Path | None,
    fresh: bool,
    latest_release: bool,
    color: bool,
    verbose: bool,
) -> None:
    """Test web components across many GitHub repos at once.

    Repos are cloned into a workspace directory side by side and
    web-component-tester is run in each repo to test. Repo names may
    contain * wildcards, which match against all repos of the owner.
    """
    try:
        config = Configuration.from_file(config_file).merge_options(
            require=require,
            exclude=exclude,
            test=test,
            skip_test=skip_test,
            wct_flags=wct_flags,
            github_token=github_token,
            workspace_dir=workspace_dir,
            fresh=fresh,
            latest_release=latest_release,
            color=color,
            verbose=verbose,
        )
        token = config.get_github_token()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    configure_logging(
        name="tattoo", profile=config.profile, log_level=config.log_level
    )
    logger = structlog.get_logger("tattoo")

    async with AsyncClient() as http_client:
        github = GitHubStorage.create(http_client, token)
        runner = Runner(config, github, logger, token=token, stream=sys.stdout)
        try:
            summary = await runner.run()
        except (ConfigurationError, RemoteLookupError) as e:
            raise click.ClickException(str(e)) from e

    if summary.failed:
        raise click.exceptions.Exit(1)
