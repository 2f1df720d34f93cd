"""Run host commands with consistent logging."""

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from stagehand.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def powershell_argv(script: str) -> list[str]:
    """argv that runs a PowerShell script non-interactively."""
    return [
        "powershell.exe",
        "-NoLogo",
        "-NoProfile",
        "-NonInteractive",
        "-ExecutionPolicy",
        "Bypass",
        "-Command",
        script,
    ]


def run_cmd(
    argv: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> CmdResult:
    """Run a command and capture its output.

    Never raises for a nonzero exit; callers decide what failure means.

    Args:
        argv: Command and arguments
        env: Extra environment variables layered over the current environment
        timeout: Seconds before the command is killed

    Raises:
        OSError: If the executable cannot be started
        subprocess.TimeoutExpired: If the timeout elapses
    """
    argv_list = list(argv)
    logger.info(
        "Running command",
        argv=subprocess.list2cmdline(argv_list),
        env_keys=sorted(env or {}),
    )

    p = subprocess.run(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=dict(os.environ, **(env or {})),
        timeout=timeout,
        check=False,
    )

    if p.stdout:
        logger.debug("Command stdout", output=p.stdout.strip())
    if p.stderr:
        logger.debug("Command stderr", output=p.stderr.strip())

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)
