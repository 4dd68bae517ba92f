"""
Backup manager — snapshot paths before mutation, restore them on abort.

Snapshots are timestamped copies under a per-run directory:

    <backup_root>/deskboot-backup-YYYYmmdd-HHMMSS/<absolute source path>

The per-run directory is created lazily on the first real snapshot and
is never deleted automatically: it stays behind as the user's safety net.
``discard_all()`` only clears the in-memory bookkeeping.

Ordering (snapshot happens-before the first mutation of a path) is the
orchestrator's job, not this module's.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from deskboot.core.errors import BackupFailed, PathNotFound, RestoreFailed
from deskboot.core.models.backup import BackupManifest, BackupRecord

logger = logging.getLogger(__name__)

BACKUP_DIR_PREFIX = "deskboot-backup-"
MANIFEST_FILE = "manifest.json"

PrivilegedRestore = Callable[[BackupRecord], None]


def _lexists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif _lexists(path):
        path.unlink()


class BackupManager:
    """Per-run backup table plus the copies on disk.

    Args:
        backup_root: Directory under which the per-run directory is created.
        dry_run: Record simulated snapshots without copying anything.
        now: Timestamp used for the per-run directory name.
    """

    def __init__(
        self,
        backup_root: Path,
        *,
        dry_run: bool = False,
        now: datetime | None = None,
    ):
        self.backup_root = Path(backup_root)
        self.dry_run = dry_run
        stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
        self._run_dir_name = f"{BACKUP_DIR_PREFIX}{stamp}"
        self._run_dir: Path | None = None
        self._records: dict[Path, BackupRecord] = {}

    @classmethod
    def from_manifest(cls, backup_dir: Path, manifest: BackupManifest) -> BackupManager:
        """Rebuild the table of a retained run so it can be restored again."""
        manager = cls(backup_dir.parent)
        manager._run_dir = backup_dir
        for record in manifest.records:
            manager._records[cls._key(record.source_path)] = record
        return manager

    # ── Table ───────────────────────────────────────────────────

    @property
    def records(self) -> dict[Path, BackupRecord]:
        """Mapping of source path → record (a copy)."""
        return dict(self._records)

    @property
    def run_dir(self) -> Path | None:
        """Per-run backup directory, once something was snapshotted."""
        return self._run_dir

    def has_backup(self, path: Path) -> bool:
        return self._key(path) in self._records

    def backup_for(self, path: Path) -> BackupRecord | None:
        return self._records.get(self._key(path))

    @staticmethod
    def _key(path: Path) -> Path:
        return Path(os.path.abspath(os.path.expanduser(str(path))))

    def _ensure_run_dir(self) -> Path:
        if self._run_dir is None:
            candidate = self.backup_root / self._run_dir_name
            n = 1
            while candidate.exists():
                candidate = self.backup_root / f"{self._run_dir_name}-{n}"
                n += 1
            if not self.dry_run:
                candidate.mkdir(parents=True)
                logger.info("Backup directory: %s", candidate)
            self._run_dir = candidate
        return self._run_dir

    # ── Snapshot ────────────────────────────────────────────────

    def snapshot(self, path: Path, *, privileged: bool = False) -> BackupRecord:
        """Copy ``path`` into the per-run backup directory.

        Raises:
            PathNotFound: ``path`` does not exist (nothing recorded).
            BackupFailed: The copy failed.
        """
        source = self._key(path)
        existing = self._records.get(source)
        if existing is not None:
            return existing

        if not _lexists(source):
            raise PathNotFound(str(source))

        run_dir = self._ensure_run_dir()
        dest = run_dir / source.relative_to(source.anchor)
        is_dir = source.is_dir() and not source.is_symlink()

        if self.dry_run:
            record = BackupRecord(
                source_path=source, backup_path=dest,
                is_dir=is_dir, privileged=privileged, simulated=True,
            )
            self._records[source] = record
            logger.info("[dry-run] Would back up %s → %s", source, dest)
            return record

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if is_dir:
                shutil.copytree(source, dest, symlinks=True)
            else:
                shutil.copy2(source, dest, follow_symlinks=False)
        except (OSError, shutil.Error) as e:
            raise BackupFailed(f"Backup of {source} failed: {e}", str(source)) from e

        record = BackupRecord(
            source_path=source, backup_path=dest,
            is_dir=is_dir, privileged=privileged,
        )
        self._records[source] = record
        logger.info("Backed up %s → %s", source, dest)
        return record

    # ── Restore ─────────────────────────────────────────────────

    def restore_all(
        self,
        privileged_restore: PrivilegedRestore | None = None,
    ) -> list[RestoreFailed]:
        """Copy every backup back over its source, best-effort.

        A failing record is logged and collected; the remaining records
        are still restored.  The table is cleared afterwards.

        Args:
            privileged_restore: Callback used for records that need root.

        Returns:
            The failures (empty when everything was restored).
        """
        failures: list[RestoreFailed] = []
        for record in reversed(list(self._records.values())):
            if record.simulated:
                logger.info("[dry-run] Would restore %s", record.source_path)
                continue
            try:
                if record.privileged and privileged_restore is not None:
                    privileged_restore(record)
                else:
                    restore_record(record)
                logger.info("Restored %s", record.source_path)
            except Exception as e:
                failure = RestoreFailed(
                    f"Restore of {record.source_path} failed: {e}",
                    str(record.source_path),
                )
                logger.error("%s", failure)
                failures.append(failure)
        self._records.clear()
        return failures

    def discard_all(self) -> None:
        """Forget every record; the copies on disk are kept."""
        if self._records:
            logger.debug("Discarding %d backup record(s)", len(self._records))
        self._records.clear()

    # ── Manifest ────────────────────────────────────────────────

    def write_manifest(self) -> Path | None:
        """Write ``manifest.json`` into the per-run directory.

        Returns:
            The manifest path, or None when nothing was copied.
        """
        real = [r for r in self._records.values() if not r.simulated]
        if not real or self._run_dir is None:
            return None
        manifest = BackupManifest(records=real)
        path = self._run_dir / MANIFEST_FILE
        path.write_text(
            json.dumps(manifest.model_dump(mode="json"), indent=2) + "\n",
            encoding="utf-8",
        )
        logger.debug("Backup manifest written: %s", path)
        return path


def restore_record(record: BackupRecord) -> None:
    """Replace ``record.source_path`` with its backup copy.

    The copy is staged next to the source and renamed into place, so
    a failed copy never leaves the source deleted.
    """
    backup = Path(record.backup_path)
    source = Path(record.source_path)
    if not _lexists(backup):
        raise FileNotFoundError(f"backup copy missing: {backup}")

    source.parent.mkdir(parents=True, exist_ok=True)
    staged = source.with_name(f".{source.name}.deskboot-restore")
    _remove(staged)
    if record.is_dir:
        shutil.copytree(backup, staged, symlinks=True)
    else:
        shutil.copy2(backup, staged, follow_symlinks=False)
    _remove(source)
    staged.rename(source)


# ── Retained backup directories ─────────────────────────────────


def list_backup_dirs(backup_root: Path) -> list[Path]:
    """Per-run backup directories under ``backup_root``, newest first."""
    if not backup_root.is_dir():
        return []
    dirs = [
        p for p in backup_root.iterdir()
        if p.is_dir() and p.name.startswith(BACKUP_DIR_PREFIX)
    ]
    return sorted(dirs, key=lambda p: p.name, reverse=True)


def load_manifest(backup_dir: Path) -> BackupManifest:
    """Load ``manifest.json`` from a retained backup directory.

    Raises:
        FileNotFoundError: No manifest in ``backup_dir``.
        ValueError: The manifest is not valid.
    """
    path = backup_dir / MANIFEST_FILE
    if not path.is_file():
        raise FileNotFoundError(f"No {MANIFEST_FILE} in {backup_dir}")
    try:
        return BackupManifest.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid manifest {path}: {e}") from e
