"""
Tests for CommandRunner — real subprocesses, timeouts, dry-run simulation.
"""

import time
from pathlib import Path

import pytest

from deskboot.core.errors import CommandFailed, CommandNotFound, CommandTimedOut
from deskboot.core.execution.command_runner import CommandRunner
from deskboot.core.models.command import CommandSpec


class TestCommandSpec:
    def test_of_stringifies_arguments(self, tmp_path: Path):
        spec = CommandSpec.of("ls", tmp_path)
        assert spec.argv == ("ls", str(tmp_path))
        assert spec.program == "ls"

    def test_empty_argv_rejected(self):
        with pytest.raises(ValueError):
            CommandSpec(argv=())

    def test_display_quotes_arguments(self):
        spec = CommandSpec.of("echo", "two words", privileged=True)
        assert spec.display() == "sudo echo 'two words'"

    def test_display_includes_env_and_cwd(self):
        spec = CommandSpec.of("meson", "setup", "build", cwd="/src", env={"PKG_CONFIG_PATH": "/opt/lib"})
        assert spec.display() == "(cd /src && PKG_CONFIG_PATH=/opt/lib meson setup build)"


class TestExecute:
    def test_success_captures_output(self, ctx):
        result = CommandRunner().execute(CommandSpec.of("echo", "hello"), ctx)
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert not result.simulated

    def test_non_zero_exit_raises(self, ctx):
        with pytest.raises(CommandFailed) as exc:
            CommandRunner().execute(CommandSpec.of("false"), ctx)
        assert exc.value.exit_code == 1
        assert exc.value.argv == ("false",)

    def test_stderr_tail_in_message(self, ctx):
        spec = CommandSpec.of("sh", "-c", "echo boom >&2; exit 3")
        with pytest.raises(CommandFailed) as exc:
            CommandRunner().execute(spec, ctx)
        assert exc.value.exit_code == 3
        assert "boom" in str(exc.value)

    def test_timeout_kills_process(self, ctx):
        with pytest.raises(CommandTimedOut) as exc:
            CommandRunner().execute(CommandSpec.of("sleep", "5"), ctx, timeout=0.2)
        assert exc.value.timeout == 0.2

    def test_spec_timeout_used_when_no_override(self, ctx):
        with pytest.raises(CommandTimedOut):
            CommandRunner(default_timeout=30).execute(CommandSpec.of("sleep", "5", timeout=0.2), ctx)

    def test_explicit_zero_timeout_is_honoured(self, ctx):
        with pytest.raises(CommandTimedOut) as exc:
            CommandRunner(default_timeout=30).execute(CommandSpec.of("sleep", "5", timeout=0), ctx)
        assert exc.value.timeout == 0

    def test_call_timeout_beats_spec_timeout(self, ctx):
        with pytest.raises(CommandTimedOut) as exc:
            CommandRunner().execute(CommandSpec.of("sleep", "5", timeout=30), ctx, timeout=0)
        assert exc.value.timeout == 0

    def test_timeout_stops_descendants(self, ctx, tmp_path: Path):
        marker = tmp_path / "MARKER"
        spec = CommandSpec.of(
            "sh", "-c", 'sh -c "sleep 1; touch MARKER"; true', cwd=str(tmp_path),
        )
        with pytest.raises(CommandTimedOut):
            CommandRunner().execute(spec, ctx, timeout=0.3)
        time.sleep(1.5)
        assert not marker.exists()

    def test_missing_program(self, ctx):
        with pytest.raises(CommandNotFound):
            CommandRunner().execute(CommandSpec.of("deskboot-no-such-program"), ctx)

    def test_cwd_env_and_input(self, ctx, tmp_path: Path):
        spec = CommandSpec.of(
            "sh", "-c", 'cat > out.txt; echo "$GREETING" >> out.txt',
            cwd=str(tmp_path), env={"GREETING": "hi"}, input_text="piped\n",
        )
        CommandRunner().execute(spec, ctx)
        assert (tmp_path / "out.txt").read_text() == "piped\nhi\n"

    def test_every_invocation_is_logged(self, ctx):
        CommandRunner().execute(CommandSpec.of("true"), ctx)
        assert any(entry.message == "$ true" for entry in ctx.log)


class TestDryRun:
    def test_never_spawns(self, dry_ctx, tmp_path: Path):
        marker = tmp_path / "marker"
        result = CommandRunner().execute(CommandSpec.of("touch", str(marker)), dry_ctx)
        assert result.simulated
        assert result.ok
        assert not marker.exists()

    def test_failing_command_simulates_success(self, dry_ctx):
        result = CommandRunner().execute(CommandSpec.of("false"), dry_ctx)
        assert result.ok

    def test_logs_command_text(self, dry_ctx):
        CommandRunner().execute(CommandSpec.of("pacman", "-S", "git", privileged=True), dry_ctx)
        assert dry_ctx.log[-1].message == "[dry-run] sudo pacman -S git"
