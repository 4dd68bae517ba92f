"""
Backup models — what was snapshotted, where, and when.

A BackupRecord is created strictly before the mutation of its source
path.  The manifest is written into the per-run backup directory so
that a later ``deskboot backups restore`` can replay it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class BackupRecord(BaseModel):
    """A recorded mapping from an original path to its snapshot."""

    source_path: Path
    backup_path: Path
    created_at: str = Field(default_factory=_now_iso)
    is_dir: bool = False
    privileged: bool = False    # restoring needs root
    simulated: bool = False     # dry-run: nothing was copied


class BackupManifest(BaseModel):
    """Serialized form of one run's backup table (manifest.json)."""

    schema_version: int = 1
    created_at: str = Field(default_factory=_now_iso)
    records: list[BackupRecord] = Field(default_factory=list)
