"""Sequential Storybook builds.

Packages are built strictly one after another: yarn workspaces share a
lockfile and caches, so concurrent builds are never attempted.  A failed
build aborts the whole run.
"""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from storybook_publisher.core.process import CommandResult, run_command
from storybook_publisher.models.builds import BuildResult, PackageRef

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., CommandResult]


class BuildFailedError(RuntimeError):
    """Raised when a package's build command exits non-zero."""

    def __init__(self, package: PackageRef, result: CommandResult) -> None:
        self.package = package
        self.result = result
        output = (result.stderr or result.stdout or "").strip()
        message = (
            f"Storybook build for {package.name} failed: "
            f"{result.command!r} exited with {result.exit_code}"
        )
        if output:
            message += f"\n{output[-2000:]}"
        super().__init__(message)


class StorybookBuilder:
    """Builds the Storybook for each package in turn.

    Parameters
    ----------
    build_command:
        Command that builds one package's Storybook.
    output_dir:
        Name of the build output directory removed before each build.
    focus_command:
        Optional command template run first (``{package}`` is replaced by
        the package name), e.g. ``yarn workspaces focus {package}``.
    stream:
        Stream build output to the console instead of capturing it.
    runner:
        Command runner, ``run_command`` by default.
    """

    def __init__(
        self,
        build_command: str = "yarn run build-storybook",
        *,
        output_dir: str = "storybook-static",
        focus_command: str | None = "yarn workspaces focus {package}",
        stream: bool = False,
        runner: CommandRunner = run_command,
    ) -> None:
        self.build_command = build_command
        self.output_dir = output_dir
        self.focus_command = focus_command
        self.stream = stream
        self._runner = runner

    def commands_for(self, package: PackageRef) -> list[str]:
        commands: list[str] = []
        if self.focus_command:
            commands.append(self.focus_command.format(package=package.name))
        commands.append(self.build_command)
        return commands

    def build(self, package: PackageRef) -> BuildResult:
        """Clear stale output, then run the build commands in the package dir."""
        logger.info("Building storybook for %s", package.name)
        started = time.monotonic()

        stale = Path(package.path) / self.output_dir
        if stale.exists():
            logger.debug("Removing stale build output %s", stale)
            shutil.rmtree(stale)

        commands = self.commands_for(package)
        for command in commands:
            result = self._runner(command, package.path, stream=self.stream)
            if not result.ok:
                raise BuildFailedError(package, result)

        return BuildResult(
            package=package,
            commands=commands,
            duration_seconds=time.monotonic() - started,
        )

    def build_all(self, packages: Iterable[PackageRef]) -> list[BuildResult]:
        """Build every package sequentially; the first failure aborts."""
        return [self.build(package) for package in packages]
