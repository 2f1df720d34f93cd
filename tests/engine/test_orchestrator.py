# tests/engine/test_orchestrator.py
"""Tests for the full run lifecycle: fresh run, checkpoint, resume."""

from datetime import UTC, datetime

import pytest
from structlog.testing import capture_logs

from stagehand.contracts import (
    Checkpoint,
    ExecutionError,
    RegistrationError,
    RunState,
    RunStatus,
    StagehandError,
    StepDefinition,
)
from stagehand.engine.orchestrator import Orchestrator
from stagehand.plugins.hookspecs import hookimpl
from stagehand.plugins.manager import StepRegistry

TARGET = "C:/provision/stagehand.exe"


def _scenario_registry(calls) -> StepRegistry:
    registry = StepRegistry()
    registry.register(StepDefinition("Configure", 1, 10, calls.action("Configure")))
    registry.register(
        StepDefinition("Checkpoint1", 1, 39, calls.checkpointing("Checkpoint1", next_priority=70))
    )
    registry.register(StepDefinition("InstallSoftware", 2, 70, calls.action("InstallSoftware")))
    return registry


def _orchestrator(registry, store, host, **kwargs) -> Orchestrator:
    return Orchestrator(registry, store, host, host, resume_target=TARGET, **kwargs)


class TestFreshRun:
    """Runs with no pending checkpoint."""

    def test_runs_everything_for_role(self, calls, store, host) -> None:
        registry = StepRegistry()
        registry.register(StepDefinition("Configure", 1, 10, calls.action("Configure")))
        registry.register(
            StepDefinition("ManagerTools", 2, 40, calls.action("ManagerTools"), tags=frozenset({"MGR"}))
        )
        registry.register(StepDefinition("Wallpaper", 2, 50, calls.action("Wallpaper")))
        orchestrator = _orchestrator(registry, store, host)

        result = orchestrator.run(role="STAFF")

        assert result.status == RunStatus.COMPLETED
        assert result.role == "STAFF"
        assert not result.resumed
        assert calls.names == ["Configure", "Wallpaper"]
        assert orchestrator.state == RunState.COMPLETED
        assert host.reboots == []

    def test_default_role_from_settings(self, calls, store, host) -> None:
        registry = StepRegistry()
        registry.register(StepDefinition("Only", 1, 10, calls.action("Only"), tags=frozenset({"KIOSK"})))

        result = _orchestrator(registry, store, host, default_role="KIOSK").run()

        assert result.role == "KIOSK"
        assert calls.names == ["Only"]

    def test_no_role_fails(self, store, host) -> None:
        orchestrator = _orchestrator(StepRegistry(), store, host)

        with pytest.raises(StagehandError, match="No role given"):
            orchestrator.run()
        assert orchestrator.state == RunState.FAILED

    def test_failing_step_marks_run_failed(self, calls, store, host) -> None:
        registry = StepRegistry()
        registry.register(StepDefinition("Broken", 1, 10, calls.action("Broken", False)))
        orchestrator = _orchestrator(registry, store, host)

        with pytest.raises(ExecutionError):
            orchestrator.run(role="MGR")
        assert orchestrator.state == RunState.FAILED

    def test_orchestrator_is_single_use(self, store, host) -> None:
        orchestrator = _orchestrator(StepRegistry(), store, host)
        orchestrator.run(role="MGR")

        with pytest.raises(RuntimeError, match="Illegal run state transition"):
            orchestrator.run(role="MGR")

    def test_summary(self, calls, store, host) -> None:
        result = _orchestrator(_scenario_registry(calls), store, host).run(role="MGR")

        summary = result.summary()
        assert summary.status == "rebooting"
        assert summary.checkpoint == "Checkpoint1"
        assert summary.executed == ["Configure", "Checkpoint1"]


class TestCheckpointAndResume:
    """Across simulated reboots: one Orchestrator per process."""

    def test_scenario_fresh_run_pauses_at_checkpoint(self, calls, store, host) -> None:
        orchestrator = _orchestrator(_scenario_registry(calls), store, host)

        result = orchestrator.run(role="MGR")

        assert result.status == RunStatus.REBOOTING
        assert result.checkpoint_name == "Checkpoint1"
        assert calls.names == ["Configure", "Checkpoint1"]
        assert orchestrator.state == RunState.REBOOTING
        assert host.scheduled is not None
        assert "--resume-only" in host.scheduled
        assert host.scheduled[host.scheduled.index("--role") + 1] == "MGR"

    def test_scenario_resume_runs_only_remaining_steps(self, calls, store, host) -> None:
        _orchestrator(_scenario_registry(calls), store, host).run(role="MGR")
        calls.names.clear()

        # Next boot: fresh process, same store and host
        second = _orchestrator(_scenario_registry(calls), store, host)
        result = second.run(role="MGR", resume_only=True)

        assert result.status == RunStatus.COMPLETED
        assert result.resumed
        assert calls.names == ["InstallSoftware"]
        assert result.skipped == 2
        assert store.read() is None
        assert not host.is_scheduled()

    def test_duplicate_resume_runs_remaining_steps_once(self, calls, store, host) -> None:
        _orchestrator(_scenario_registry(calls), store, host).run(role="MGR")
        calls.names.clear()

        _orchestrator(_scenario_registry(calls), store, host).run(role="MGR", resume_only=True)
        duplicate = _orchestrator(_scenario_registry(calls), store, host)
        result = duplicate.run(role="MGR", resume_only=True)

        assert calls.names == ["InstallSoftware"]
        assert result.status == RunStatus.COMPLETED
        assert result.executed == []
        assert duplicate.state == RunState.COMPLETED

    def test_checkpoint_role_wins(self, calls, store, host) -> None:
        _orchestrator(_scenario_registry(calls), store, host).run(role="MGR")

        with capture_logs() as logs:
            result = _orchestrator(_scenario_registry(calls), store, host).run(role="STAFF")

        assert result.role == "MGR"
        mismatch = [e for e in logs if e.get("checkpoint_role") == "MGR"]
        assert mismatch and mismatch[0]["requested_role"] == "STAFF"
        assert mismatch[0]["log_level"] == "warning"

    def test_multiple_checkpoints(self, calls, store, host) -> None:
        def registry() -> StepRegistry:
            r = StepRegistry()
            r.register(StepDefinition("A", 1, 10, calls.action("A")))
            r.register(StepDefinition("Reboot1", 1, 20, calls.checkpointing("Reboot1", next_priority=0, section=2)))
            r.register(StepDefinition("B", 2, 10, calls.action("B")))
            r.register(StepDefinition("Reboot2", 2, 20, calls.checkpointing("Reboot2", next_priority=30)))
            r.register(StepDefinition("C", 2, 30, calls.action("C")))
            return r

        statuses = [_orchestrator(registry(), store, host).run(role="MGR").status for _ in range(3)]

        assert statuses == [RunStatus.REBOOTING, RunStatus.REBOOTING, RunStatus.COMPLETED]
        assert calls.names == ["A", "Reboot1", "B", "Reboot2", "C"]
        assert len(host.reboots) == 2

    def test_trigger_failure_leaves_no_checkpoint(self, calls, store, host) -> None:
        from stagehand.contracts import CheckpointPersistError

        host.fail_schedule = True
        orchestrator = _orchestrator(_scenario_registry(calls), store, host)

        with pytest.raises(CheckpointPersistError):
            orchestrator.run(role="MGR")

        assert orchestrator.state == RunState.FAILED
        assert host.reboots == []
        assert store.read() is None

    def test_registration_error_keeps_checkpoint(self, store, host) -> None:
        store.write(
            Checkpoint("Checkpoint1", 1, 70, "MGR", TARGET, datetime.now(UTC))
        )

        class Broken:
            name = "broken"

            @hookimpl
            def stagehand_get_steps(self, settings):
                return [StepDefinition("", 1, 10, lambda ctx: None)]

        registry = StepRegistry()
        registry.register_module(Broken())
        orchestrator = _orchestrator(registry, store, host)

        with pytest.raises(RegistrationError):
            orchestrator.run(role="MGR")

        assert orchestrator.state == RunState.FAILED
        assert store.read() is not None

    def test_registration_error_logged_critical(self, store, host) -> None:
        class BadPriority:
            name = "badpriority"

            @hookimpl
            def stagehand_get_steps(self, settings):
                return [StepDefinition("Bad", 1, "ten", lambda ctx: None)]

        registry = StepRegistry()
        registry.register_module(BadPriority())

        with capture_logs() as logs:
            orchestrator = _orchestrator(registry, store, host)
            with pytest.raises(RegistrationError):
                orchestrator.run(role="MGR")

        critical = [e for e in logs if e["log_level"] == "critical"]
        assert len(critical) == 1
        assert critical[0]["event"] == "Step registration failed"
        assert "Bad" in critical[0]["error"]
        assert orchestrator.state == RunState.FAILED

    def test_resume_only_without_checkpoint_is_noop(self, calls, store, host) -> None:
        orchestrator = _orchestrator(_scenario_registry(calls), store, host)

        result = orchestrator.run(role="MGR", resume_only=True)

        assert result.status == RunStatus.COMPLETED
        assert calls.names == []
        assert orchestrator.state == RunState.COMPLETED
