"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults, and
the request object a single backup run is built from.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

ROTATION_POLICIES = ("current", "day", "month", "year", "disabled")

DEFAULT_SSH_PORT = 22
DEFAULT_SNAPSHOT_SIZE = "1G"
DEFAULT_ROTATION = "current"
DEFAULT_CHUNK_SIZE = 1024 * 1024


@dataclass
class SSHConfig:
    """SSH connection settings.

    Attributes:
        port: SSH port of the remote host
        config_file: ssh_config file passed to ssh with -F
        identity_file: Private key passed to ssh with -i
        sudo: Whether LVM and dd commands are run through sudo remotely
        command_timeout: Seconds before a remote command is killed (None waits forever)
    """

    port: int = DEFAULT_SSH_PORT
    config_file: Optional[str] = None
    identity_file: Optional[str] = None
    sudo: bool = True
    command_timeout: Optional[float] = None


@dataclass
class SnapshotConfig:
    """Snapshot settings.

    Attributes:
        size: Copy-on-write space reserved for the snapshot (lvcreate -L)
    """

    size: str = DEFAULT_SNAPSHOT_SIZE


@dataclass
class TransferConfig:
    """Transfer settings.

    Attributes:
        timeout: Seconds before the image transfer is killed (None waits forever)
        chunk_size: Bytes read from ssh and written locally at a time
    """

    timeout: Optional[float] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE


@dataclass
class Config:
    """Root configuration object."""

    ssh: SSHConfig = field(default_factory=SSHConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    rotation: str = DEFAULT_ROTATION


@dataclass(frozen=True)
class BackupRequest:
    """Everything one backup run needs, fixed once parsed."""

    dest: Path
    host: str
    vg: str
    lv: str
    port: int = DEFAULT_SSH_PORT
    rotation: str = DEFAULT_ROTATION
    dry_run: bool = False
    force: bool = False
    snapshot_size: str = DEFAULT_SNAPSHOT_SIZE
    ssh_config: Optional[str] = None
    identity_file: Optional[str] = None
    sudo: bool = True
    command_timeout: Optional[float] = None
    transfer_timeout: Optional[float] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self):
        for name in ("dest", "host", "vg", "lv"):
            if not str(getattr(self, name) or "").strip():
                raise ValueError(f"{name} must not be empty")
        if (
            isinstance(self.port, bool)
            or not isinstance(self.port, int)
            or not 0 < self.port < 65536
        ):
            raise ValueError(f"Invalid ssh port: {self.port!r}")
        if self.rotation not in ROTATION_POLICIES:
            raise ValueError(
                f"Unknown rotation policy '{self.rotation}', "
                f"expected one of: {', '.join(ROTATION_POLICIES)}"
            )
        object.__setattr__(self, "dest", Path(self.dest))
