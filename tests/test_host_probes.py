"""
Tests for host probes — read-only predicates, never raising on missing tools.
"""

import os
import pwd
from pathlib import Path

from deskboot.services import host_probes


class TestFilesystemProbes:
    def test_path_exists(self, tmp_path: Path):
        assert host_probes.path_exists(tmp_path)
        assert not host_probes.path_exists(tmp_path / "missing")

    def test_any_match(self, tmp_path: Path):
        (tmp_path / "Tokyonight-Dark").mkdir()
        assert host_probes.any_match(tmp_path, "Tokyonight*")
        assert not host_probes.any_match(tmp_path, "Gruvbox*")
        assert not host_probes.any_match(tmp_path / "missing", "*")

    def test_file_contains_line(self, tmp_path: Path):
        env = tmp_path / "environment"
        env.write_text("LANG=en_US.UTF-8\n  WAYFIRE_SOCKET=/tmp/s  \n")
        assert host_probes.file_contains_line(env, "WAYFIRE_SOCKET=/tmp/s")
        assert not host_probes.file_contains_line(env, "WAYFIRE_SOCKET")
        assert not host_probes.file_contains_line(tmp_path / "missing", "x")

    def test_files_identical(self, tmp_path: Path):
        a, b, c = tmp_path / "a", tmp_path / "b", tmp_path / "c"
        a.write_text("same")
        b.write_text("same")
        c.write_text("other")
        assert host_probes.files_identical(a, b)
        assert not host_probes.files_identical(a, c)
        assert not host_probes.files_identical(a, tmp_path / "missing")


class TestCommandProbes:
    def test_command_available(self):
        assert host_probes.command_available("sh")
        assert not host_probes.command_available("deskboot-no-such-program")

    def test_packages_without_pacman(self, monkeypatch):
        monkeypatch.setattr(host_probes, "command_available", lambda name: False)
        assert not host_probes.packages_installed(["git"])

    def test_no_packages_is_installed(self):
        assert host_probes.packages_installed([])

    def test_packages_query_exit_status(self, monkeypatch):
        monkeypatch.setattr(host_probes, "command_available", lambda name: True)
        seen = []

        def fake_run(argv):
            seen.append(argv)
            return 1 if "fish" in argv else 0

        monkeypatch.setattr(host_probes, "_quiet_run", fake_run)
        assert host_probes.packages_installed(["git"])
        assert not host_probes.packages_installed(["git", "fish"])
        assert seen[0] == ["pacman", "-Q", "git"]

    def test_quiet_run_missing_program(self):
        assert host_probes._quiet_run(["deskboot-no-such-program"]) is None

    def test_service_enabled_without_systemctl(self, monkeypatch):
        monkeypatch.setattr(host_probes, "command_available", lambda name: False)
        assert not host_probes.service_enabled("swayosd-libinput-backend.service")

    def test_login_shell_of_current_user(self):
        assert host_probes.login_shell() == pwd.getpwuid(os.getuid()).pw_shell

    def test_login_shell_unknown_user(self):
        assert host_probes.login_shell("deskboot-no-such-user") == ""
