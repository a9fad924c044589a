"""Core backup operations for lvm-net-backup.

This module contains the backup workflow, organized into focused modules.
"""

from .operations import check_preconditions, run_backup, transfer_snapshot
from .result import BackupResult, Step, StepStatus
from .rotation import get_strategy, plan_rotation
from .snapshot import RemoteSnapshot

__all__ = [
    "run_backup",
    "check_preconditions",
    "transfer_snapshot",
    "RemoteSnapshot",
    "BackupResult",
    "Step",
    "StepStatus",
    "get_strategy",
    "plan_rotation",
]
