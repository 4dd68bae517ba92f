"""
Domain models — Pydantic types for provisioning runs.

All models are re-exported here for convenient access:

    from deskboot.core.models import CommandSpec, PlanOptions, RunReport
"""

from deskboot.core.models.backup import BackupManifest, BackupRecord
from deskboot.core.models.command import CommandResult, CommandSpec
from deskboot.core.models.options import BootstrapConfig, PlanOptions, RetrySettings
from deskboot.core.models.run import (
    Criticality,
    LogEntry,
    RunReport,
    RunStatus,
    StepOutcome,
    StepState,
)

__all__ = [
    # backup.py
    "BackupManifest",
    "BackupRecord",
    # options.py
    "BootstrapConfig",
    # command.py
    "CommandResult",
    "CommandSpec",
    # run.py
    "Criticality",
    "LogEntry",
    "PlanOptions",
    "RetrySettings",
    "RunReport",
    "RunStatus",
    "StepOutcome",
    "StepState",
]
