"""Remote snapshot as a scoped resource.

Entering the context creates the snapshot, leaving it always removes it,
whether the creation worked or not and whatever happened in between.
A failed removal raises CleanupFailed: a snapshot left behind blocks the
next run and keeps consuming space in the volume group.
"""

import logging
from typing import Optional

from .. import __util__
from ..sshutil.shell import RemoteShell, exec_remote
from .volume import LogicalVolume

logger = logging.getLogger(__name__)


class RemoteSnapshot:
    """The `<lv>-backupsnap` snapshot of a remote logical volume."""

    def __init__(
        self,
        shell: RemoteShell,
        volume: LogicalVolume,
        size: str,
        dry_run: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        self.shell = shell
        self.volume = volume
        self.size = size
        self.dry_run = dry_run
        self.timeout = timeout
        self.error: Optional[__util__.SnapshotCreateFailed] = None

    def __repr__(self) -> str:
        return f"RemoteSnapshot({self.shell.hostname}:{self.volume.snapshot_device})"

    @property
    def name(self) -> str:
        return self.volume.snapshot_name

    def create(self) -> None:
        """Create the snapshot.

        Raises:
            SnapshotCreateFailed: If lvcreate exits non-zero
        """
        status = exec_remote(
            self.shell,
            self.volume.create_snapshot_cmd(self.size),
            dry_run=self.dry_run,
            timeout=self.timeout,
        )
        if status != 0:
            raise __util__.SnapshotCreateFailed(f"Can't create snapshot {self.name} !")
        logger.info("Snapshot %s created", self.volume.snapshot_device)

    def remove(self) -> None:
        """Force-remove the snapshot.

        Raises:
            CleanupFailed: If lvremove exits non-zero
        """
        status = exec_remote(
            self.shell,
            self.volume.remove_snapshot_cmd(),
            dry_run=self.dry_run,
            timeout=self.timeout,
        )
        if status != 0:
            raise __util__.CleanupFailed(f"Can't remove snapshot {self.name} !")
        logger.info("Snapshot %s removed", self.volume.snapshot_device)

    def __enter__(self) -> "RemoteSnapshot":
        # lvcreate can fail after a partial volume exists: removal runs on exit regardless
        try:
            self.create()
        except __util__.SnapshotCreateFailed as e:
            logger.error("[ERROR] %s", e)
            self.error = e
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.remove()
        return False
