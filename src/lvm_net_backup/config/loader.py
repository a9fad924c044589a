"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from .schema import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_ROTATION,
    DEFAULT_SNAPSHOT_SIZE,
    DEFAULT_SSH_PORT,
    ROTATION_POLICIES,
    Config,
    SnapshotConfig,
    SSHConfig,
    TransferConfig,
)


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "lvm-net-backup" / "config.toml",
    Path("/etc/lvm-net-backup/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _parse_timeout(value: Any, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{name}' must be a number of seconds")
    if value <= 0:
        raise ConfigError(f"'{name}' must be positive")
    return float(value)


def _parse_ssh(data: dict[str, Any]) -> SSHConfig:
    """Parse ssh configuration from dict."""
    port = data.get("port", DEFAULT_SSH_PORT)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError(f"Invalid ssh port: {port!r}")

    sudo = data.get("sudo", True)
    if not isinstance(sudo, bool):
        raise ConfigError(f"'ssh.sudo' must be true or false, not {sudo!r}")

    return SSHConfig(
        port=port,
        config_file=data.get("config_file"),
        identity_file=data.get("identity_file"),
        sudo=sudo,
        command_timeout=_parse_timeout(
            data.get("command_timeout"), "ssh.command_timeout"
        ),
    )


def _parse_snapshot(data: dict[str, Any]) -> SnapshotConfig:
    """Parse snapshot configuration from dict."""
    return SnapshotConfig(size=str(data.get("size", DEFAULT_SNAPSHOT_SIZE)))


def _parse_transfer(data: dict[str, Any]) -> TransferConfig:
    """Parse transfer configuration from dict."""
    chunk_size = data.get("chunk_size", DEFAULT_CHUNK_SIZE)
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise ConfigError(f"Invalid transfer chunk_size: {chunk_size!r}")

    return TransferConfig(
        timeout=_parse_timeout(data.get("timeout"), "transfer.timeout"),
        chunk_size=chunk_size,
    )


def _table(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table, not {value!r}")
    return value


def _parse_rotation(data: dict[str, Any]) -> str:
    """Parse the rotation policy from the [backup] table."""
    rotation = data.get("rotation", DEFAULT_ROTATION)
    if rotation not in ROTATION_POLICIES:
        raise ConfigError(
            f"Unknown rotation policy '{rotation}', "
            f"expected one of: {', '.join(ROTATION_POLICIES)}"
        )
    return rotation


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if config.ssh.config_file and not Path(config.ssh.config_file).expanduser().exists():
        warnings.append(f"ssh config file '{config.ssh.config_file}' does not exist")

    if (
        config.ssh.identity_file
        and not Path(config.ssh.identity_file).expanduser().exists()
    ):
        warnings.append(f"ssh identity file '{config.ssh.identity_file}' does not exist")

    if not config.ssh.sudo:
        warnings.append(
            "sudo is disabled, the remote user needs direct access to LVM devices"
        )

    if config.rotation != "disabled":
        warnings.append(
            f"Rotation policy '{config.rotation}' is reported only, no backup is deleted"
        )

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    config = Config(
        ssh=_parse_ssh(_table(data, "ssh")),
        snapshot=_parse_snapshot(_table(data, "snapshot")),
        transfer=_parse_transfer(_table(data, "transfer")),
        rotation=_parse_rotation(_table(data, "backup")),
    )

    # Validate and collect warnings
    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# lvm-net-backup configuration
# Command line flags override every value below

[ssh]
port = 22
# config_file = "~/.ssh/backup_config"     # passed to ssh -F
# identity_file = "~/.ssh/backup_key"      # passed to ssh -i
sudo = true                                # run lvcreate/lvremove/dd through sudo
# command_timeout = 60                     # seconds, unset waits forever

[snapshot]
size = "1G"         # copy-on-write space reserved for the snapshot

[transfer]
# timeout = 14400   # seconds, unset waits forever
chunk_size = 1048576

[backup]
# current | day | month | year | disabled
rotation = "current"
"""
