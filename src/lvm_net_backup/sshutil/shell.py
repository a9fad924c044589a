"""Remote command execution over plain ssh.

Every remote step of a backup goes through a `RemoteShell`: short commands
whose exit status is all that matters, and one long-running command whose
stdout is streamed into a local file.
"""

import shlex
import subprocess
import tempfile
import threading
from typing import IO, List, Optional, cast

from lvm_net_backup.__logger__ import logger

# Exit status reported for a command killed by its timeout, as timeout(1) does
TIMEOUT_EXIT_STATUS = 124
# Exit status reported when the ssh client itself cannot be started
NOT_FOUND_EXIT_STATUS = 127


class RemoteShell:
    def __init__(
        self,
        hostname: str,
        port: Optional[int] = None,
        config_file: Optional[str] = None,
        identity_file: Optional[str] = None,
    ):
        self.hostname = hostname
        self.port = port
        self.config_file = config_file
        self.identity_file = identity_file

    def __repr__(self) -> str:
        return f"RemoteShell({self.hostname}:{self.port or 22})"

    def _ssh_base_cmd(self) -> List[str]:
        cmd = ["ssh"]

        if self.port:
            cmd.extend(["-p", str(self.port)])

        if self.config_file:
            cmd.extend(["-F", str(self.config_file)])

        if self.identity_file:
            cmd.extend(["-i", str(self.identity_file)])

        # Backups run unattended, never stop on an unknown host key
        cmd.extend(["-o", "StrictHostKeyChecking=no"])

        cmd.append(self.hostname)
        return cmd

    def describe(self, command: str) -> str:
        """Render the full local command line used to run `command` remotely."""
        return shlex.join(self._ssh_base_cmd() + [command])

    def run(self, command: str, timeout: Optional[float] = None) -> int:
        """Run `command` on the remote host and return its exit status.

        Stdout is discarded; stderr is kept for debug output.
        """
        cmd = self._ssh_base_cmd() + [command]
        try:
            proc = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.error(
                "[ERROR] Remote command timed out after %ss: %s", timeout, command
            )
            return TIMEOUT_EXIT_STATUS
        except FileNotFoundError as e:
            logger.error("[ERROR] Cannot run ssh: %s", e)
            return NOT_FOUND_EXIT_STATUS

        if proc.stderr:
            logger.debug(
                "stderr of '%s': %s",
                command,
                proc.stderr.decode("utf-8", "replace").strip(),
            )
        return proc.returncode

    def stream(
        self,
        command: str,
        fileobj: IO[bytes],
        chunk_size: int = 1024 * 1024,
        timeout: Optional[float] = None,
    ) -> int:
        """Run `command` remotely and copy its stdout into `fileobj`.

        Data is passed through in chunks of `chunk_size` bytes, nothing is
        buffered beyond one chunk. Returns the exit status of the remote
        command. OSError raised while writing `fileobj` is propagated after
        the ssh process has been killed.
        """
        cmd = self._ssh_base_cmd() + [command]
        timed_out = threading.Event()

        with tempfile.TemporaryFile() as stderr:
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=stderr,
                )
            except FileNotFoundError as e:
                logger.error("[ERROR] Cannot run ssh: %s", e)
                return NOT_FOUND_EXIT_STATUS

            def _expire():
                timed_out.set()
                proc.kill()

            timer = None
            if timeout:
                timer = threading.Timer(timeout, _expire)
                timer.daemon = True
                timer.start()

            stdout = cast(IO[bytes], proc.stdout)
            try:
                for chunk in iter(lambda: stdout.read(chunk_size), b""):
                    fileobj.write(chunk)
            except OSError:
                proc.kill()
                raise
            finally:
                if timer is not None:
                    timer.cancel()
                stdout.close()
                returncode = proc.wait()

            stderr.seek(0)
            errors = stderr.read().decode("utf-8", "replace").strip()
            if errors:
                logger.debug("stderr of '%s': %s", command, errors)

        if timed_out.is_set():
            logger.error(
                "[ERROR] Transfer timed out after %ss: %s", timeout, command
            )
            return TIMEOUT_EXIT_STATUS
        return returncode


def exec_remote(
    shell: RemoteShell,
    command: str,
    dry_run: bool = False,
    timeout: Optional[float] = None,
) -> int:
    """Echo `command`, then run it unless in dry-run mode.

    Returns the exit status, 0 for a command that was only printed.
    """
    if dry_run:
        logger.info("[DRY-RUN] %s", shell.describe(command))
        return 0
    logger.info("[CMD] %s", shell.describe(command))
    return shell.run(command, timeout=timeout)
