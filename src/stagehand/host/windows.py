"""Windows implementations of the auto-resume trigger and reboot.

winreg only exists on Windows, so it is imported inside the methods that
need it; the rest of the package stays importable on any platform.
"""

import subprocess

from stagehand.core.logging import get_logger
from stagehand.host.commands import run_cmd

logger = get_logger(__name__)

RUN_ONCE_KEY = r"Software\Microsoft\Windows\CurrentVersion\RunOnce"

# schtasks rejects /TR values longer than this
_SCHTASKS_TR_LIMIT = 261


class RunOnceScheduler:
    """Auto-resume via an HKLM RunOnce value.

    Windows deletes a RunOnce value before running it (no "!" prefix), so
    the trigger fires at most once, at the next interactive logon.
    """

    def __init__(self, value_name: str) -> None:
        self._value_name = value_name

    def schedule(self, command: list[str]) -> None:
        import winreg

        cmdline = subprocess.list2cmdline(command)
        with winreg.CreateKeyEx(
            winreg.HKEY_LOCAL_MACHINE, RUN_ONCE_KEY, 0, winreg.KEY_SET_VALUE
        ) as key:
            winreg.SetValueEx(key, self._value_name, 0, winreg.REG_SZ, cmdline)
        logger.info("RunOnce trigger registered", value=self._value_name, command=cmdline)

    def cancel(self) -> None:
        import winreg

        try:
            with winreg.OpenKey(
                winreg.HKEY_LOCAL_MACHINE, RUN_ONCE_KEY, 0, winreg.KEY_SET_VALUE
            ) as key:
                winreg.DeleteValue(key, self._value_name)
        except FileNotFoundError:
            # Already consumed by Windows at logon
            return
        logger.info("RunOnce trigger removed", value=self._value_name)

    def is_scheduled(self) -> bool:
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, RUN_ONCE_KEY) as key:
                winreg.QueryValueEx(key, self._value_name)
        except FileNotFoundError:
            return False
        return True


class ScheduledTaskScheduler:
    """Auto-resume via a Task Scheduler task that runs at boot as SYSTEM.

    Unlike RunOnce, the task persists after it fires; the resume launcher
    deletes it when it consumes the checkpoint.
    """

    def __init__(self, task_name: str) -> None:
        self._task_name = task_name

    def schedule(self, command: list[str]) -> None:
        cmdline = subprocess.list2cmdline(command)
        if len(cmdline) > _SCHTASKS_TR_LIMIT:
            raise OSError(
                f"Resume command is {len(cmdline)} characters; schtasks accepts at most "
                f"{_SCHTASKS_TR_LIMIT}. Shorten the resume target or settings path."
            )
        result = run_cmd(
            [
                "schtasks.exe",
                "/Create",
                "/F",
                "/TN",
                self._task_name,
                "/TR",
                cmdline,
                "/SC",
                "ONSTART",
                "/RU",
                "SYSTEM",
                "/RL",
                "HIGHEST",
            ]
        )
        if not result.ok:
            raise OSError(
                f"schtasks /Create failed ({result.returncode}): {result.stderr.strip()}"
            )

    def cancel(self) -> None:
        if not self.is_scheduled():
            return
        result = run_cmd(["schtasks.exe", "/Delete", "/TN", self._task_name, "/F"])
        if not result.ok:
            raise OSError(
                f"schtasks /Delete failed ({result.returncode}): {result.stderr.strip()}"
            )

    def is_scheduled(self) -> bool:
        return run_cmd(["schtasks.exe", "/Query", "/TN", self._task_name]).ok


class ShutdownReboot:
    """Reboot through shutdown.exe, recorded as a planned installation restart."""

    def __init__(self, delay_seconds: int = 5) -> None:
        self._delay_seconds = delay_seconds

    def reboot(self, reason: str) -> None:
        result = run_cmd(
            [
                "shutdown.exe",
                "/r",
                "/t",
                str(self._delay_seconds),
                "/d",
                "p:4:2",
                "/c",
                reason[:512],
            ]
        )
        if not result.ok:
            raise OSError(f"shutdown /r failed ({result.returncode}): {result.stderr.strip()}")
