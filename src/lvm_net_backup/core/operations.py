"""Core backup operations: preflight, snapshot, transfer, cleanup, rotation.

A run goes strictly in this order. Preflight failures abort before anything
is changed on the remote host. Once the snapshot step has run, failures are
recorded in the BackupResult and the snapshot is removed anyway; only a
failed removal aborts from there on.
"""

import contextlib
import logging
import time
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

from filelock import FileLock, Timeout

from .. import __util__, encode_volume_name
from ..config import BackupRequest
from ..sshutil.shell import RemoteShell, exec_remote
from .artifact import artifact_path, list_artifacts
from .result import BackupResult, Step, StepStatus
from .rotation import plan_rotation
from .snapshot import RemoteSnapshot
from .volume import LogicalVolume

logger = logging.getLogger(__name__)


def build_shell(request: BackupRequest) -> RemoteShell:
    """Create the ssh collaborator described by `request`."""
    return RemoteShell(
        request.host,
        port=request.port,
        config_file=request.ssh_config,
        identity_file=request.identity_file,
    )


def check_preconditions(
    request: BackupRequest, shell: RemoteShell, volume: LogicalVolume
) -> None:
    """Check destination, connection, volume group and logical volume.

    The destination directory is checked before any ssh command is run.

    Raises:
        PreconditionFailed: On the first failing check
    """
    if not request.dest.is_dir():
        raise __util__.PreconditionFailed(
            f"Can't find destination directory {request.dest} !"
        )

    checks = [
        ("true", f"Connection to {request.host} failed !"),
        (volume.test_vg_cmd(), f"Can't find VG {request.vg} on {request.host} !"),
        (
            volume.test_lv_cmd(),
            f"Can't find LV {request.vg}/{request.lv} on {request.host} !",
        ),
    ]
    for command, failure in checks:
        status = exec_remote(
            shell, command, dry_run=request.dry_run, timeout=request.command_timeout
        )
        if status != 0:
            raise __util__.PreconditionFailed(failure)

    logger.info("Preflight checks passed for %s:%s", request.host, volume.device)


def lock_path(request: BackupRequest) -> Path:
    """Lock file guarding runs that would use the same snapshot name."""
    name = encode_volume_name(request.host, request.vg, request.lv)
    return request.dest / f".{name}.lock"


@contextlib.contextmanager
def backup_lock(request: BackupRequest) -> Iterator[None]:
    """Hold the run lock of `request`, without waiting for it.

    Nothing is locked in dry-run mode, which must not create files.

    Raises:
        PreconditionFailed: If another run holds the lock
    """
    if request.dry_run:
        yield
        return

    path = lock_path(request)
    lock = FileLock(path)
    try:
        lock.acquire(timeout=0)
    except Timeout:
        raise __util__.PreconditionFailed(
            f"Another backup of {request.host}:{request.vg}/{request.lv} "
            f"is running (lock {path})"
        ) from None

    try:
        yield
    finally:
        lock.release()


def _stream_snapshot(
    request: BackupRequest,
    shell: RemoteShell,
    volume: LogicalVolume,
    destination: Path,
) -> None:
    failure = f"Can't retrieve {volume.snapshot_name} into {destination} !"
    command = volume.read_snapshot_cmd()

    started = time.monotonic()
    try:
        logger.info("[CMD] mkdir -p %s", destination.parent)
        destination.parent.mkdir(parents=True, exist_ok=True)

        logger.info("[CMD] %s > %s", shell.describe(command), destination)
        with open(destination, "wb") as f:
            status = shell.stream(
                command,
                f,
                chunk_size=request.chunk_size,
                timeout=request.transfer_timeout,
            )
    except OSError as e:
        raise __util__.TransferFailed(f"{failure} ({e})") from e

    if status != 0:
        raise __util__.TransferFailed(f"{failure} (exit status {status})")

    logger.info(
        "Wrote %s (%d bytes) in %.1fs",
        destination,
        destination.stat().st_size,
        time.monotonic() - started,
    )


def transfer_snapshot(
    request: BackupRequest,
    shell: RemoteShell,
    volume: LogicalVolume,
    destination: Path,
    result: BackupResult,
) -> None:
    """Stream the compressed snapshot image into `destination`.

    Skipped when an earlier step failed; only printed in dry-run mode.
    A failure is recorded in `result`, never raised. A partial file is
    left in place.
    """
    if result.failed:
        logger.error("[ERROR] Can't backup !")
        result.record(
            Step.TRANSFER, StepStatus.SKIPPED, "skipped after an earlier failure"
        )
        return

    if request.dry_run:
        logger.info("[DRY-RUN] mkdir -p %s", destination.parent)
        logger.info(
            "[DRY-RUN] %s > %s", shell.describe(volume.read_snapshot_cmd()), destination
        )
        result.record(Step.TRANSFER, StepStatus.DRY_RUN, str(destination))
        return

    try:
        _stream_snapshot(request, shell, volume, destination)
    except __util__.TransferFailed as e:
        logger.error("[ERROR] %s", e)
        result.record(Step.TRANSFER, StepStatus.FAILED, str(e))
        return

    result.record(Step.TRANSFER, StepStatus.OK, str(destination))


def report_rotation(request: BackupRequest, result: BackupResult) -> None:
    """Log which older images the rotation policy would remove.

    Rotation is not enforced: no file is deleted.
    """
    artifacts = list_artifacts(request.dest, request.host, request.vg, request.lv)

    try:
        kept, expired = plan_rotation(artifacts, request.rotation)
    except __util__.RotationNotImplemented as e:
        logger.warning("Rotation skipped: %s", e)
        result.record(Step.ROTATION, StepStatus.SKIPPED, str(e))
        return

    for artifact in expired:
        logger.info("Rotation '%s' would remove %s", request.rotation, artifact.path)
    if expired:
        logger.warning(
            "Rotation is not enforced, %d old backup(s) left in place", len(expired)
        )

    result.record(
        Step.ROTATION,
        StepStatus.OK,
        f"{len(kept)} kept, {len(expired)} eligible for removal",
    )


def run_backup(
    request: BackupRequest,
    shell: Optional[RemoteShell] = None,
    today: Optional[date] = None,
) -> BackupResult:
    """Back up the remote logical volume described by `request`.

    Args:
        request: What to back up and where
        shell: ssh collaborator, built from `request` when omitted
        today: Date used in the image file name, defaults to today

    Returns:
        BackupResult of the run

    Raises:
        PreconditionFailed: Before any remote change was made
        CleanupFailed: If the snapshot could not be removed
    """
    shell = shell or build_shell(request)
    volume = LogicalVolume(request.vg, request.lv, sudo=request.sudo)
    destination = artifact_path(
        request.dest, request.host, request.vg, request.lv, today or date.today()
    )
    result = BackupResult(artifact=destination)

    logger.info(__util__.log_heading(f"Started at {time.ctime()}"))

    check_preconditions(request, shell, volume)
    result.record(Step.PREFLIGHT, StepStatus.OK)

    with backup_lock(request):
        with RemoteSnapshot(
            shell,
            volume,
            request.snapshot_size,
            dry_run=request.dry_run,
            timeout=request.command_timeout,
        ) as snapshot:
            if snapshot.error is not None:
                result.record(Step.SNAPSHOT, StepStatus.FAILED, str(snapshot.error))
            else:
                result.record(
                    Step.SNAPSHOT,
                    StepStatus.DRY_RUN if request.dry_run else StepStatus.OK,
                    volume.snapshot_device,
                )

            transfer_snapshot(request, shell, volume, destination, result)

        result.record(
            Step.CLEANUP,
            StepStatus.DRY_RUN if request.dry_run else StepStatus.OK,
            volume.snapshot_device,
        )

    if not (result.failed or request.dry_run):
        report_rotation(request, result)

    result.completed_at = time.time()
    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    return result
