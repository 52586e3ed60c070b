"""A very simple async git client.

Every command is a separate ``git`` subprocess run with its working
directory set to the repository, so that many working copies can be
cloned and updated concurrently from one event loop without touching the
process-wide current directory.
"""

from __future__ import annotations

import asyncio
import os
from base64 import b64encode
from pathlib import Path
from shlex import join

from structlog.stdlib import BoundLogger

from ..exceptions import SubprocessError

__all__ = ["Git"]


class Git:
    """A very basic async Git client based on asyncio.subprocess.

    Parameters
    ----------
    repo
        Filesystem path for the git working copy.
    token
        GitHub token to authenticate network operations with, if any.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        repo: Path | None = None,
        token: str | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self.repo = repo
        self._token = token
        self._logger = logger

    async def _exec(
        self,
        cmd: str,
        *args: str,
        env: dict[str, str] | None = None,
        secret_env: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> str:
        """Execute a non-interactive subprocess and return its stdout.

        The environment will be included in the exception on failure, and
        logged if debugging is turned on, so secrets must be passed in
        ``secret_env`` instead, which is added to the environment of the
        process but never reported.
        """
        l_args = [cmd]
        l_args.extend(args)
        cmd_and_args = join(l_args)

        full_env = None
        if env is not None or secret_env is not None:
            full_env = {**(env or {}), **(secret_env or {})}
        proc = await asyncio.subprocess.create_subprocess_exec(
            cmd,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=full_env,
        )
        stdout, stderr = await proc.communicate()  # Waits for process exit

        stdout_text = stdout.decode() if stdout else ""
        stderr_text = stderr.decode() if stderr else ""
        if proc.returncode != 0:
            raise SubprocessError(
                f"Subprocess '{cmd_and_args}' failed",
                returncode=proc.returncode,
                stdout=stdout_text,
                stderr=stderr_text,
                cwd=cwd,
                env=env,
            )
        if self._logger:
            self._logger.debug(
                f"'{cmd_and_args}' exited",
                returncode=proc.returncode,
                stdout=stdout_text,
                stderr=stderr_text,
                cwd=str(cwd),
            )
        return stdout_text

    async def git(self, *args: str) -> str:
        """Run an arbitrary git command with arbitrary string arguments.

        Constrain the environment of the subprocess: only pass HOME, LANG,
        PATH, and any GIT_ variables, and never prompt for credentials.

        If self.repo is set, use that as the working directory. If a token
        was given, send it as an HTTP authorization header through git's
        environment-based configuration, so that it never appears on a
        command line.
        """
        env = {
            "PATH": os.environ.get("PATH", "/bin:/usr/bin"),
            "HOME": os.environ.get("HOME", "/"),
            "LANG": os.environ.get("LANG", "C.UTF-8"),
        }
        for var in os.environ:
            if var.startswith("GIT_"):
                env[var] = os.environ[var]
        env["GIT_TERMINAL_PROMPT"] = "0"

        secret_env = None
        if self._token:
            basic = b64encode(f"x-access-token:{self._token}".encode())
            header = f"Authorization: Basic {basic.decode()}"
            secret_env = {
                "GIT_CONFIG_COUNT": "1",
                "GIT_CONFIG_KEY_0": "http.extraHeader",
                "GIT_CONFIG_VALUE_0": header,
            }

        cwd = self.repo if self.repo and self.repo.is_dir() else None
        return await self._exec(
            "git", *args, cwd=cwd, env=env, secret_env=secret_env
        )

    def is_working_copy(self) -> bool:
        """Whether self.repo is the top of a git working copy."""
        return self.repo is not None and (self.repo / ".git").exists()

    async def init(self, *args: str) -> None:
        """Run `git init` with arbitrary arguments.

        If self.repo is None, and this is run, it will set self.repo
        from the last argument as a side effect.  If there are no
        arguments, self.repo becomes the current working directory.
        """
        await self.git("init", *args)
        if self.repo is None:
            if len(args) == 0:
                self.repo = Path()
            else:
                self.repo = Path(args[-1])

    async def add(self, *args: str) -> None:
        """Run `git add` with arbitrary arguments."""
        await self.git("add", *args)

    async def commit(self, *args: str) -> None:
        """Run `git commit` with arbitrary arguments."""
        await self.git("commit", *args)

    async def tag(self, *args: str) -> str:
        """Run `git tag` with arbitrary arguments."""
        return await self.git("tag", *args)

    async def clone(self, url: str, path: Path) -> None:
        """Clone a repository into ``path`` and make it self.repo.

        Parameters
        ----------
        url
            URL or path of the repository to clone.
        path
            Directory to clone into. It must not exist or be empty.
        """
        await self.git("clone", url, str(path.resolve()))
        self.repo = path

    async def fetch(self, *args: str) -> None:
        """Run `git fetch` with arbitrary arguments."""
        await self.git("fetch", *args)

    async def checkout(self, *args: str) -> None:
        """Run `git checkout` with arbitrary arguments."""
        await self.git("checkout", *args)

    async def merge(self, *args: str) -> None:
        """Run `git merge` with arbitrary arguments."""
        await self.git("merge", *args)

    async def head_commit(self) -> str:
        """Return the commit ID of HEAD."""
        output = await self.git("rev-parse", "HEAD")
        return output.strip()

    async def upstream(self) -> str | None:
        """Return the upstream of the current branch, if it has one."""
        try:
            output = await self.git(
                "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"
            )
        except SubprocessError:
            return None
        return output.strip() or None

    async def version_tags(self) -> list[str]:
        """Return tags that look like versions, newest version first."""
        output = await self.tag("--list", "--sort=-v:refname")
        return [
            tag
            for tag in output.splitlines()
            if tag.lstrip("v")[:1].isdigit()
        ]
