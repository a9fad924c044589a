# pyright: standard

"""lvm-net-backup: lvm_net_backup/core/volume.py
Build the remote commands that act on a logical volume and its snapshot.
"""

import shlex
from dataclasses import dataclass

SNAPSHOT_SUFFIX = "-backupsnap"


@dataclass(frozen=True)
class LogicalVolume:
    """A logical volume `lv` in the volume group `vg` of the remote host."""

    vg: str
    lv: str
    sudo: bool = True

    @property
    def vg_device(self) -> str:
        return f"/dev/{self.vg}"

    @property
    def device(self) -> str:
        return f"/dev/{self.vg}/{self.lv}"

    @property
    def snapshot_name(self) -> str:
        return f"{self.lv}{SNAPSHOT_SUFFIX}"

    @property
    def snapshot_device(self) -> str:
        return f"/dev/{self.vg}/{self.snapshot_name}"

    def _privileged(self, command: list[str]) -> str:
        if self.sudo:
            command = ["sudo"] + command
        return shlex.join(command)

    def test_vg_cmd(self) -> str:
        return shlex.join(["test", "-e", self.vg_device])

    def test_lv_cmd(self) -> str:
        return shlex.join(["test", "-e", self.device])

    def create_snapshot_cmd(self, size: str) -> str:
        """lvcreate a copy-on-write snapshot holding at most `size` of changes."""
        return self._privileged(
            ["lvcreate", "-s", "-L", size, "-n", self.snapshot_name, self.device]
        )

    def remove_snapshot_cmd(self) -> str:
        return self._privileged(["lvremove", "-f", self.snapshot_device])

    def read_snapshot_cmd(self, compressor: str = "gzip") -> str:
        """Dump the raw snapshot device, compressed on the remote side.

        The pipeline runs in bash with pipefail so a failing dd is not hidden
        by the exit status of the compressor.
        """
        dd = self._privileged(["dd", f"if={self.snapshot_device}", "bs=4M"])
        return shlex.join(["bash", "-o", "pipefail", "-c", f"{dd} | {compressor}"])
