"""
Tests for CLI commands — install, plan, themes, backups, and global options.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from deskboot.core.execution.backup import BackupManager
from deskboot.main import cli


@pytest.fixture
def workspace(tmp_path: Path, fake_home: Path, monkeypatch) -> Path:
    """Isolated HOME and cwd (the run log lands in the cwd)."""
    cwd = tmp_path / "work"
    cwd.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.delenv("DESKBOOT_LOG_LEVEL", raising=False)
    monkeypatch.chdir(cwd)
    return cwd


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Wayfire" in result.output
        for command in ("install", "plan", "themes", "backups"):
            assert command in result.output

    def test_short_help(self):
        result = CliRunner().invoke(cli, ["-h"])
        assert result.exit_code == 0

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_unknown_flag_is_usage_error(self):
        result = CliRunner().invoke(cli, ["install", "--colour"])
        assert result.exit_code == 2


class TestThemesCommand:
    def test_lists_catalog(self):
        result = CliRunner().invoke(cli, ["themes"])
        assert result.exit_code == 0
        assert "tokyonight" in result.output
        assert "(default)" in result.output
        assert "gruvbox" in result.output


class TestPlanCommand:
    def test_json(self, workspace: Path):
        result = CliRunner().invoke(cli, ["plan", "--json", "--partial", "--theme", "kanagawa"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["options"]["theme"] == "kanagawa"
        assert data["options"]["full_install"] is False
        assert "gtk-theme" not in [s["name"] for s in data["steps"]]

    def test_text(self, workspace: Path):
        result = CliRunner().invoke(cli, ["plan"])
        assert result.exit_code == 0
        assert "system-packages" in result.output
        assert "fatal, retry, confirm" in result.output

    def test_unknown_theme_exits_2(self, workspace: Path):
        result = CliRunner().invoke(cli, ["plan", "--theme", "nord"])
        assert result.exit_code == 2
        assert "Unknown theme" in result.output

    def test_config_file_used(self, workspace: Path):
        config = workspace / "deskboot.yml"
        config.write_text("theme: gruvbox\nskip_wallpapers: true\n")
        result = CliRunner().invoke(cli, ["plan", "--json"])
        data = json.loads(result.output)
        assert data["options"]["theme"] == "gruvbox"
        assert "wallpapers" not in [s["name"] for s in data["steps"]]

    def test_invalid_config_exits_2(self, workspace: Path):
        config = workspace / "bad.yml"
        config.write_text("bogus_key: 1\n")
        result = CliRunner().invoke(cli, ["--config", str(config), "plan"])
        assert result.exit_code == 2
        assert "bogus_key" in result.output


class TestInstallCommand:
    def test_dry_run_changes_nothing(self, workspace: Path, fake_home: Path):
        result = CliRunner().invoke(cli, ["install", "--dry-run", "--yes"])
        assert result.exit_code == 0, result.output
        assert "Dry-run summary" in result.output
        assert not (fake_home / ".config").exists()
        assert not (fake_home / ".cache").exists()
        assert not list(fake_home.glob("deskboot-backup-*"))

    def test_dry_run_writes_run_log(self, workspace: Path):
        CliRunner().invoke(cli, ["--quiet", "install", "--dry-run", "--yes", "--partial"])
        logs = list(workspace.glob("deskboot-*.log"))
        assert len(logs) == 1
        text = logs[0].read_text()
        assert "[dry-run]" in text
        assert "pacman -Syu" in text

    def test_declined_confirmation_aborts(self, workspace: Path):
        result = CliRunner().invoke(cli, ["install", "--dry-run", "--partial"], input="n\n")
        assert result.exit_code == 1
        assert "Aborted" in result.output


class TestBackupsCommands:
    def _retained_backup(self, fake_home: Path) -> Path:
        target = fake_home / ".config" / "wf-shell.ini"
        target.parent.mkdir(parents=True)
        target.write_text("before")
        manager = BackupManager(fake_home)
        manager.snapshot(target)
        manager.write_manifest()
        target.write_text("after")
        return manager.run_dir

    def test_list_empty(self, workspace: Path):
        result = CliRunner().invoke(cli, ["backups", "list"])
        assert result.exit_code == 0
        assert "No backups found" in result.output

    def test_list_json(self, workspace: Path, fake_home: Path):
        run_dir = self._retained_backup(fake_home)
        result = CliRunner().invoke(cli, ["backups", "list", "--json"])
        data = json.loads(result.output)
        assert data["backups"] == [{"path": str(run_dir), "records": 1}]

    def test_restore(self, workspace: Path, fake_home: Path):
        run_dir = self._retained_backup(fake_home)
        result = CliRunner().invoke(cli, ["backups", "restore", str(run_dir), "--yes"])
        assert result.exit_code == 0, result.output
        assert (fake_home / ".config" / "wf-shell.ini").read_text() == "before"

    def test_restore_cancelled(self, workspace: Path, fake_home: Path):
        run_dir = self._retained_backup(fake_home)
        result = CliRunner().invoke(cli, ["backups", "restore", str(run_dir)], input="n\n")
        assert result.exit_code == 1
        assert (fake_home / ".config" / "wf-shell.ini").read_text() == "after"

    def test_restore_without_manifest(self, workspace: Path, tmp_path: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = CliRunner().invoke(cli, ["backups", "restore", str(empty), "--yes"])
        assert result.exit_code == 1
        assert "manifest" in result.output
