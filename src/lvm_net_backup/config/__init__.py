"""Configuration system for lvm-net-backup.

This module provides TOML-based configuration loading, validation,
and schema definitions for default backup settings.
"""

from .loader import ConfigError, find_config_file, load_config
from .schema import (
    ROTATION_POLICIES,
    BackupRequest,
    Config,
    SnapshotConfig,
    SSHConfig,
    TransferConfig,
)

__all__ = [
    "ROTATION_POLICIES",
    "BackupRequest",
    "Config",
    "SSHConfig",
    "SnapshotConfig",
    "TransferConfig",
    "load_config",
    "find_config_file",
    "ConfigError",
]
