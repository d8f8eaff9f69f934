"""External command execution.

Commands always receive their working directory explicitly; nothing here
changes the process-wide current directory.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when an external command cannot run or exits non-zero."""

    def __init__(self, message: str, result: CommandResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class CommandResult(BaseModel):
    """Structured result of one external command."""

    model_config = ConfigDict(frozen=True)

    args: list[str]
    cwd: Path
    exit_code: int
    stdout: str | None = None
    stderr: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command(self) -> str:
        return shlex.join(self.args)


def _split(command: str | Sequence[str]) -> list[str]:
    return shlex.split(command) if isinstance(command, str) else list(command)


def run_command(
    command: str | Sequence[str],
    cwd: Path,
    *,
    stream: bool = False,
) -> CommandResult:
    """Run *command* in *cwd* and return its result.

    With ``stream=True`` the child inherits this process's stdout and stderr,
    so build output shows up live; otherwise both are captured on the result.
    A non-zero exit is reported on the result, not raised.

    Raises ``CommandError`` if the executable cannot be started.
    """
    args = _split(command)
    logger.debug("Running %s in %s", shlex.join(args), cwd)
    try:
        completed = subprocess.run(
            args,
            cwd=cwd,
            capture_output=not stream,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise CommandError(f"Cannot run {shlex.join(args)!r} in {cwd}: {exc}") from exc

    return CommandResult(
        args=args,
        cwd=Path(cwd),
        exit_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def capture_output(command: str | Sequence[str], cwd: Path) -> str:
    """Run *command* in *cwd* and return its stripped stdout.

    Raises ``CommandError`` on a non-zero exit.
    """
    result = run_command(command, cwd)
    if not result.ok:
        raise CommandError(
            f"{result.command!r} exited with {result.exit_code}: "
            f"{(result.stderr or '').strip()}",
            result,
        )
    return (result.stdout or "").strip()
