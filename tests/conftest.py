"""Pytest configuration and shared fixtures."""

import pytest

from lvm_net_backup.config import BackupRequest


class FakeShell:
    """Stand-in for RemoteShell recording every remote command.

    Commands containing one of `failures` exit with status 1, all others
    with 0. `stream` writes `payload` and returns `stream_status`, or
    raises `stream_error` when set.
    """

    def __init__(
        self,
        hostname="shiva",
        failures=(),
        payload=b"\x1f\x8bcompressed-image",
        stream_status=0,
        stream_error=None,
    ):
        self.hostname = hostname
        self.port = 22
        self.failures = list(failures)
        self.payload = payload
        self.stream_status = stream_status
        self.stream_error = stream_error
        self.commands = []
        self.streamed = []
        self.stream_timeouts = []

    def describe(self, command):
        return f"ssh -p {self.port} {self.hostname} {command}"

    def run(self, command, timeout=None):
        self.commands.append(command)
        return 1 if any(f in command for f in self.failures) else 0

    def stream(self, command, fileobj, chunk_size=1024 * 1024, timeout=None):
        self.streamed.append(command)
        self.stream_timeouts.append(timeout)
        if self.stream_error is not None:
            raise self.stream_error
        fileobj.write(self.payload)
        return self.stream_status


@pytest.fixture
def fake_shell():
    """A remote shell on which every command succeeds."""
    return FakeShell()


@pytest.fixture
def make_shell():
    """Factory for fake remote shells, see FakeShell for the options."""
    return FakeShell


@pytest.fixture
def dest_dir(tmp_path):
    """An existing, empty backup destination directory."""
    dest = tmp_path / "data"
    dest.mkdir()
    return dest


@pytest.fixture
def make_request(dest_dir):
    """Factory for the shiva/vg_shiva_domU/hpc-disk request."""

    def _make(**overrides):
        values = {
            "dest": dest_dir,
            "host": "shiva",
            "vg": "vg_shiva_domU",
            "lv": "hpc-disk",
            "force": True,
        }
        values.update(overrides)
        return BackupRequest(**values)

    return _make


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[ssh]
port = 2222
config_file = "/nonexistent/ssh_config"
sudo = true
command_timeout = 60

[snapshot]
size = "5G"

[transfer]
timeout = 7200
chunk_size = 65536

[backup]
rotation = "disabled"
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[snapshot]
size = "2G"
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path
