"""
Host probes — read-only predicates over the machine's state.

Used as step preconditions ("already installed?") and postconditions
("did it work?").  Probes never mutate anything and never raise on a
missing tool: a host without ``pacman`` simply has no packages.
They are queries, not provisioning commands, so they run even under
dry-run and do not go through the CommandRunner.
"""

from __future__ import annotations

import filecmp
import logging
import os
import pwd
import shutil
import subprocess
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

_PROBE_TIMEOUT = 30


def _quiet_run(argv: list[str]) -> int | None:
    """Run a query command, returning its exit status (None if it can't run)."""
    try:
        proc = subprocess.run(
            argv,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=_PROBE_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Probe %s could not run: %s", argv[0], e)
        return None
    return proc.returncode


def command_available(name: str) -> bool:
    """Whether ``name`` resolves on PATH."""
    return shutil.which(name) is not None


def packages_installed(packages: Iterable[str]) -> bool:
    """Whether every package is installed according to ``pacman -Q``."""
    names = list(packages)
    if not names:
        return True
    if not command_available("pacman"):
        return False
    return _quiet_run(["pacman", "-Q", *names]) == 0


def path_exists(path: Path) -> bool:
    return path.exists()


def any_match(directory: Path, pattern: str) -> bool:
    """Whether ``directory`` contains an entry matching the glob ``pattern``."""
    if not directory.is_dir():
        return False
    return any(directory.glob(pattern))


def file_contains_line(path: Path, line: str) -> bool:
    """Whether ``path`` has ``line`` as one of its (stripped) lines."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    wanted = line.strip()
    return any(existing.strip() == wanted for existing in text.splitlines())


def files_identical(source: Path, dest: Path) -> bool:
    """Whether ``dest`` exists and is byte-identical to ``source``."""
    if not (source.is_file() and dest.is_file()):
        return False
    return filecmp.cmp(source, dest, shallow=False)


def login_shell(user: str | None = None) -> str:
    """Login shell of ``user`` (default: the current user) from the passwd db."""
    try:
        entry = pwd.getpwnam(user) if user else pwd.getpwuid(os.getuid())
    except KeyError:
        return ""
    return entry.pw_shell


def service_enabled(unit: str) -> bool:
    """Whether a systemd unit is enabled (``systemctl is-enabled``)."""
    if not command_available("systemctl"):
        return False
    return _quiet_run(["systemctl", "is-enabled", "--quiet", unit]) == 0
