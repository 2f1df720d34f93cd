"""Tests for Stagehand CLI basics, plan, status and cancel."""

from collections.abc import Callable
from pathlib import Path

from typer.testing import CliRunner

from stagehand.cli import app

# Stderr output is combined into result.output
runner = CliRunner()


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "stagehand version" in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "plan", "status", "cancel", "validate", "vault"):
            assert command in result.output

    def test_resume_only_is_hidden(self) -> None:
        result = runner.invoke(app, ["run", "--help"])
        assert result.exit_code == 0
        assert "--resume-only" not in result.output
        assert "--simulate" in result.output


class TestPlanCommand:
    """stagehand plan."""

    def test_fresh_plan_for_role(self, write_settings: Callable[..., Path]) -> None:
        settings = write_settings(
            steps=[
                {"name": "Wallpaper", "section": 2, "priority": 50, "powershell": "x"},
                {"name": "Configure", "section": 1, "priority": 10, "powershell": "x"},
                {"name": "ManagerTools", "section": 2, "priority": 40, "tags": ["MGR"], "powershell": "x"},
            ]
        )

        result = runner.invoke(app, ["plan", "-s", str(settings), "--role", "STAFF"])

        assert result.exit_code == 0, result.output
        assert "Plan for role STAFF: 2 of 3 registered steps" in result.output
        assert result.output.index("Configure") < result.output.index("Wallpaper")
        assert "ManagerTools" not in result.output
        assert "skip" not in result.output

    def test_plan_requires_role(self, write_settings: Callable[..., Path]) -> None:
        result = runner.invoke(app, ["plan", "-s", str(write_settings())])
        assert result.exit_code == 1
        assert "No role given" in result.output

    def test_plan_marks_steps_a_checkpoint_would_skip(self, reboot_settings: Path) -> None:
        assert runner.invoke(app, ["run", "-s", str(reboot_settings), "--simulate"]).exit_code == 0

        result = runner.invoke(app, ["plan", "-s", str(reboot_settings), "--role", "STAFF"])

        assert result.exit_code == 0, result.output
        # Checkpoint role wins
        assert "Plan for role MGR" in result.output
        assert "Pending checkpoint 'Checkpoint1' resumes at (1, 70)" in result.output
        lines = {line.split("] ")[1].split(" (")[0]: line for line in result.output.splitlines() if "] " in line}
        assert lines["Configure"].strip().startswith("skip")
        assert lines["Checkpoint1"].strip().startswith("skip")
        assert lines["InstallSoftware"].strip().startswith("run")

        # plan does not consume the checkpoint
        status = runner.invoke(app, ["status", "-s", str(reboot_settings)])
        assert "Pending checkpoint: Checkpoint1" in status.output


class TestStatusCommand:
    """stagehand status."""

    def test_no_checkpoint(self, write_settings: Callable[..., Path]) -> None:
        result = runner.invoke(app, ["status", "-s", str(write_settings())])
        assert result.exit_code == 0
        assert "No pending checkpoint." in result.output

    def test_pending_checkpoint(self, reboot_settings: Path) -> None:
        runner.invoke(app, ["run", "-s", str(reboot_settings), "--simulate"])

        result = runner.invoke(app, ["status", "-s", str(reboot_settings)])

        assert result.exit_code == 0
        assert "Pending checkpoint: Checkpoint1" in result.output
        assert "Role: MGR" in result.output
        assert "section 1, priority 70" in result.output

    def test_corrupt_checkpoint(self, write_settings: Callable[..., Path], tmp_path: Path) -> None:
        settings = write_settings()
        db = tmp_path / "state" / "checkpoint.db"
        db.parent.mkdir(parents=True)
        db.write_bytes(b"this is not a sqlite database" * 100)

        result = runner.invoke(app, ["status", "-s", str(settings)])

        assert result.exit_code == 1
        assert "corrupt" in result.output
        assert "stagehand cancel" in result.output


class TestCancelCommand:
    """stagehand cancel."""

    def test_cancel_pending_checkpoint(self, reboot_settings: Path) -> None:
        runner.invoke(app, ["run", "-s", str(reboot_settings), "--simulate"])

        result = runner.invoke(app, ["cancel", "-s", str(reboot_settings), "--simulate", "--yes"])

        assert result.exit_code == 0, result.output
        assert "Pending checkpoint removed." in result.output
        status = runner.invoke(app, ["status", "-s", str(reboot_settings)])
        assert "No pending checkpoint." in status.output

    def test_cancel_with_nothing_pending(self, write_settings: Callable[..., Path]) -> None:
        result = runner.invoke(app, ["cancel", "-s", str(write_settings()), "--simulate", "-y"])
        assert result.exit_code == 0
        assert "Nothing to cancel." in result.output

    def test_cancel_declined(self, reboot_settings: Path) -> None:
        runner.invoke(app, ["run", "-s", str(reboot_settings), "--simulate"])

        result = runner.invoke(app, ["cancel", "-s", str(reboot_settings), "--simulate"], input="n\n")

        assert result.exit_code == 1
        status = runner.invoke(app, ["status", "-s", str(reboot_settings)])
        assert "Pending checkpoint: Checkpoint1" in status.output

    def test_cancel_clears_corrupt_record(self, write_settings: Callable[..., Path], tmp_path: Path) -> None:
        settings = write_settings()
        db = tmp_path / "state" / "checkpoint.db"
        db.parent.mkdir(parents=True)
        db.write_bytes(b"this is not a sqlite database" * 100)

        result = runner.invoke(app, ["cancel", "-s", str(settings), "--simulate", "--yes"])

        assert result.exit_code == 0, result.output
        status = runner.invoke(app, ["status", "-s", str(settings)])
        assert "No pending checkpoint." in status.output


class TestVaultCommands:
    """stagehand vault ..."""

    def test_generate_key_then_encrypt(self, monkeypatch) -> None:
        from stagehand.core.security.vault import Vault

        keygen = runner.invoke(app, ["vault", "generate-key"])
        assert keygen.exit_code == 0
        key = keygen.output.strip().splitlines()[-1]

        monkeypatch.setenv("STAGEHAND_VAULT_KEY", key)
        encrypted = runner.invoke(app, ["vault", "encrypt", "--value", "s3cret"])

        assert encrypted.exit_code == 0, encrypted.output
        assert Vault(key).decrypt_text(encrypted.output.strip().splitlines()[-1]) == "s3cret"

    def test_encrypt_prompts_for_secret(self, monkeypatch) -> None:
        from stagehand.core.security.vault import Vault, generate_key

        key = generate_key()
        monkeypatch.setenv("CUSTOM_KEY", key)

        result = runner.invoke(app, ["vault", "encrypt", "--key-env", "CUSTOM_KEY"], input="pw\npw\n")

        assert result.exit_code == 0, result.output
        token = result.output.strip().splitlines()[-1]
        assert Vault(key).decrypt_text(token) == "pw"

    def test_encrypt_without_key(self, monkeypatch) -> None:
        monkeypatch.delenv("STAGEHAND_VAULT_KEY", raising=False)
        result = runner.invoke(app, ["vault", "encrypt", "--value", "x"])
        assert result.exit_code == 1
        assert "STAGEHAND_VAULT_KEY" in result.output
