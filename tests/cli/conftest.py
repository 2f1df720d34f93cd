"""Fixtures for CLI tests: settings files under tmp_path."""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

# Portable no-op command; the commands module runs real subprocesses
OK_COMMAND = [sys.executable, "-c", "pass"]


@pytest.fixture
def write_settings(tmp_path: Path) -> Callable[..., Path]:
    """write_settings(**overrides) -> path of a settings YAML in tmp_path.

    The checkpoint store lives in tmp_path and entry-point modules are off,
    so installed plugins cannot leak into a test run.
    """

    def _write(name: str = "settings.yaml", **overrides: Any) -> Path:
        data: dict[str, Any] = {
            "entrypoint_modules": False,
            "checkpoint": {"path": str(tmp_path / "state" / "checkpoint.db")},
            "logging": {"level": "ERROR"},
        }
        data.update(overrides)
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


@pytest.fixture
def reboot_settings(write_settings: Callable[..., Path]) -> Path:
    """Configure (1,10), Checkpoint1 (1,39) -> 70, InstallSoftware (2,70)."""
    return write_settings(
        role="MGR",
        steps=[
            {"name": "Configure", "section": 1, "priority": 10, "command": OK_COMMAND},
            {"name": "Checkpoint1", "section": 1, "priority": 39, "reboot": {"next_priority": 70}},
            {"name": "InstallSoftware", "section": 2, "priority": 70, "command": OK_COMMAND},
            {"name": "ManagerTools", "section": 2, "priority": 80, "tags": ["MGR"], "command": OK_COMMAND},
        ],
    )
