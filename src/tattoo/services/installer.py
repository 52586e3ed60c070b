"""Install the bower dependencies of the test targets into the workspace."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from structlog.stdlib import BoundLogger

from ..constants import BOWER_MANIFEST, BOWERRC_FILE, WCT_PACKAGE
from ..exceptions import InvocationError
from ..models.workspace import Workspace
from ..storage.process import Process

__all__ = ["DependencyInstaller"]


class DependencyInstaller:
    """Merge bower manifests and install them at the workspace root.

    The workspace root is used as the bower components directory, so that
    the installed packages and the cloned repositories sit side by side
    and resolve each other as siblings. Packages that are themselves
    workspace entries are not installed, since the cloned working copy
    must be the one under test.

    Parameters
    ----------
    process
        Runner for the install command.
    command
        Install command and its arguments.
    logger
        Logger to use.
    """

    def __init__(
        self, process: Process, command: list[str], logger: BoundLogger
    ) -> None:
        self._process = process
        self._command = command
        self._logger = logger

    def merge_manifests(self, workspace: Workspace) -> dict[str, str]:
        """Collect the dependencies of every test target.

        Returns
        -------
        dict of str to str
            Package name to version range. Where targets disagree,
            the first target in workspace order wins.
        """
        local = {e.name.lower() for e in workspace}
        merged: dict[str, str] = {}
        for entry in workspace.test_targets():
            manifest = self._read_manifest(entry.local_dir / BOWER_MANIFEST)
            for section in ("dependencies", "devDependencies"):
                for name, version in manifest.get(section, {}).items():
                    if name.lower() in local:
                        continue
                    merged.setdefault(name, str(version))
        merged.setdefault(WCT_PACKAGE, "*")
        return merged

    async def install(self, workspace: Workspace) -> bool:
        """Write the merged manifest and run the install command.

        Returns
        -------
        bool
            Whether the install succeeded. Failure is logged and left to
            the caller, since the tests may still be able to run.
        """
        root = workspace.root_dir
        manifest = {
            "name": "tattoo-workspace",
            "private": True,
            "dependencies": self.merge_manifests(workspace),
        }
        (root / BOWER_MANIFEST).write_text(json.dumps(manifest, indent=2))
        (root / BOWERRC_FILE).write_text(json.dumps({"directory": "."}))

        logger = self._logger.bind(dir=str(root))
        logger.info(
            "Installing dependencies", count=len(manifest["dependencies"])
        )
        try:
            result = await self._process.run(*self._command, cwd=root)
        except InvocationError as e:
            logger.error("Could not run install command", error=str(e))
            return False
        if result.returncode != 0:
            logger.error(
                "Dependency install failed",
                returncode=result.returncode,
                output=result.output,
            )
            return False
        return True

    def _read_manifest(self, path: Path) -> dict[str, Any]:
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            self._logger.warning(
                "Ignoring unreadable manifest", path=str(path), error=str(e)
            )
            return {}
        return data if isinstance(data, dict) else {}
