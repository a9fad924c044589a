"""Tests for the backup workflow."""

from datetime import date

import pytest
from filelock import FileLock

from lvm_net_backup.__util__ import CleanupFailed, PreconditionFailed
from lvm_net_backup.core.artifact import artifact_path
from lvm_net_backup.core.operations import lock_path, run_backup
from lvm_net_backup.core.result import Step, StepStatus
from lvm_net_backup.sshutil.shell import TIMEOUT_EXIT_STATUS

TODAY = date(2026, 10, 17)

PREFLIGHT_COMMANDS = [
    "true",
    "test -e /dev/vg_shiva_domU",
    "test -e /dev/vg_shiva_domU/hpc-disk",
]
CREATE = "sudo lvcreate -s -L 1G -n hpc-disk-backupsnap /dev/vg_shiva_domU/hpc-disk"
REMOVE = "sudo lvremove -f /dev/vg_shiva_domU/hpc-disk-backupsnap"


def _count(shell, fragment):
    return sum(1 for c in shell.commands if fragment in c)


class TestSuccessfulBackup:
    """A run where every remote command succeeds."""

    def test_end_to_end(self, make_request, fake_shell, dest_dir):
        result = run_backup(make_request(), shell=fake_shell, today=TODAY)

        expected = dest_dir / "shiva_vg_shiva_domU_hpc-disk_2026_10_17.dd.gz"
        assert result.exit_code == 0
        assert result.artifact == expected
        assert expected.read_bytes() == fake_shell.payload

        assert fake_shell.commands == PREFLIGHT_COMMANDS + [CREATE, REMOVE]
        assert len(fake_shell.streamed) == 1
        assert "dd if=/dev/vg_shiva_domU/hpc-disk-backupsnap" in fake_shell.streamed[0]
        assert "gzip" in fake_shell.streamed[0]

    def test_steps_recorded_in_order(self, make_request, fake_shell):
        result = run_backup(make_request(), shell=fake_shell, today=TODAY)

        assert [o.step for o in result.outcomes] == [
            Step.PREFLIGHT,
            Step.SNAPSHOT,
            Step.TRANSFER,
            Step.CLEANUP,
            Step.ROTATION,
        ]
        assert all(o.status is StepStatus.OK for o in result.outcomes)
        assert result.completed_at >= result.started_at

    def test_custom_snapshot_size(self, make_request, fake_shell):
        run_backup(make_request(snapshot_size="10G"), shell=fake_shell, today=TODAY)
        assert any("lvcreate -s -L 10G" in c for c in fake_shell.commands)


class TestPreconditions:
    """Failures before anything is changed remotely."""

    def test_missing_destination(self, make_request, fake_shell, tmp_path):
        request = make_request(dest=tmp_path / "does-not-exist")
        with pytest.raises(PreconditionFailed, match="destination directory"):
            run_backup(request, shell=fake_shell, today=TODAY)
        assert fake_shell.commands == []

    def test_connection_failure(self, make_request, make_shell):
        shell = make_shell(failures=["true"])
        with pytest.raises(PreconditionFailed, match="Connection to shiva failed"):
            run_backup(make_request(), shell=shell, today=TODAY)
        assert shell.commands == ["true"]

    def test_missing_volume_group(self, make_request, make_shell):
        shell = make_shell(failures=["test -e /dev/vg_shiva_domU"])
        with pytest.raises(PreconditionFailed, match="Can't find VG vg_shiva_domU"):
            run_backup(make_request(), shell=shell, today=TODAY)
        assert _count(shell, "lvcreate") == 0

    def test_missing_logical_volume(self, make_request, make_shell, dest_dir):
        shell = make_shell(failures=["test -e /dev/vg_shiva_domU/hpc-disk"])
        with pytest.raises(
            PreconditionFailed, match="Can't find LV vg_shiva_domU/hpc-disk on shiva"
        ):
            run_backup(make_request(), shell=shell, today=TODAY)

        assert shell.commands == PREFLIGHT_COMMANDS
        assert shell.streamed == []
        assert list(dest_dir.iterdir()) == []

    def test_concurrent_run_is_refused(self, make_request, fake_shell):
        request = make_request()
        held = FileLock(lock_path(request))
        held.acquire()
        try:
            with pytest.raises(PreconditionFailed, match="Another backup"):
                run_backup(request, shell=fake_shell, today=TODAY)
        finally:
            held.release()

        assert _count(fake_shell, "lvcreate") == 0


class TestRecordedFailures:
    """Failures after the snapshot step: recorded, snapshot still removed."""

    def test_snapshot_create_failure(self, make_request, make_shell, dest_dir):
        shell = make_shell(failures=["lvcreate"])
        result = run_backup(make_request(), shell=shell, today=TODAY)

        assert result.exit_code == 1
        assert _count(shell, "lvremove") == 1
        assert shell.streamed == []
        assert result.outcome(Step.SNAPSHOT).status is StepStatus.FAILED
        assert result.outcome(Step.TRANSFER).status is StepStatus.SKIPPED
        assert result.outcome(Step.CLEANUP).status is StepStatus.OK
        assert result.outcome(Step.ROTATION) is None
        assert list(dest_dir.glob("*.dd.gz")) == []

    def test_snapshot_create_failure_logged(self, make_request, make_shell, caplog):
        run_backup(make_request(), shell=make_shell(failures=["lvcreate"]), today=TODAY)
        errors = [r.getMessage() for r in caplog.records if r.levelname == "ERROR"]
        assert errors == [
            "[ERROR] Can't create snapshot hpc-disk-backupsnap !",
            "[ERROR] Can't backup !",
        ]

    def test_transfer_failure(self, make_request, make_shell):
        shell = make_shell(stream_status=1)
        result = run_backup(make_request(), shell=shell, today=TODAY)

        assert result.exit_code == 1
        assert shell.commands[-1] == REMOVE
        transfer = result.outcome(Step.TRANSFER)
        assert transfer.status is StepStatus.FAILED
        assert "hpc-disk-backupsnap" in transfer.message
        assert str(result.artifact) in transfer.message
        assert result.outcome(Step.CLEANUP).status is StepStatus.OK

    def test_transfer_failure_leaves_partial_file(self, make_request, make_shell):
        shell = make_shell(stream_status=1, payload=b"partial")
        result = run_backup(make_request(), shell=shell, today=TODAY)
        assert result.artifact.read_bytes() == b"partial"

    def test_transfer_timeout(self, make_request, make_shell):
        shell = make_shell(stream_status=TIMEOUT_EXIT_STATUS, payload=b"partial")
        result = run_backup(make_request(transfer_timeout=30), shell=shell, today=TODAY)

        assert shell.stream_timeouts == [30]
        assert result.exit_code == 1
        transfer = result.outcome(Step.TRANSFER)
        assert transfer.status is StepStatus.FAILED
        assert "exit status 124" in transfer.message
        assert shell.commands[-1] == REMOVE
        assert result.outcome(Step.CLEANUP).status is StepStatus.OK

    def test_local_write_error(self, make_request, make_shell):
        shell = make_shell(stream_error=OSError("No space left on device"))
        result = run_backup(make_request(), shell=shell, today=TODAY)

        assert result.exit_code == 1
        assert "No space left" in result.outcome(Step.TRANSFER).message
        assert _count(shell, "lvremove") == 1


class TestCleanupFailure:
    """A failed snapshot removal stops the run."""

    def test_after_successful_transfer(self, make_request, make_shell):
        shell = make_shell(failures=["lvremove"])
        with pytest.raises(CleanupFailed, match="Can't remove snapshot hpc-disk-backupsnap"):
            run_backup(make_request(), shell=shell, today=TODAY)
        assert len(shell.streamed) == 1

    def test_after_failed_transfer(self, make_request, make_shell):
        shell = make_shell(failures=["lvremove"], stream_status=1)
        with pytest.raises(CleanupFailed):
            run_backup(make_request(), shell=shell, today=TODAY)

    def test_after_failed_create(self, make_request, make_shell):
        shell = make_shell(failures=["lvcreate", "lvremove"])
        with pytest.raises(CleanupFailed):
            run_backup(make_request(), shell=shell, today=TODAY)
        assert _count(shell, "lvremove") == 1


class TestDryRun:
    """Dry-run performs no mutation."""

    def test_nothing_executed(self, make_request, fake_shell, dest_dir):
        result = run_backup(make_request(dry_run=True), shell=fake_shell, today=TODAY)

        assert result.exit_code == 0
        assert fake_shell.commands == []
        assert fake_shell.streamed == []
        assert list(dest_dir.iterdir()) == []

    def test_steps_reported_as_dry_run(self, make_request, fake_shell):
        result = run_backup(make_request(dry_run=True), shell=fake_shell, today=TODAY)

        for step in (Step.SNAPSHOT, Step.TRANSFER, Step.CLEANUP):
            assert result.outcome(step).status is StepStatus.DRY_RUN

    def test_no_rotation_report(self, make_request, fake_shell, dest_dir):
        artifact_path(
            dest_dir, "shiva", "vg_shiva_domU", "hpc-disk", date(2026, 10, 16)
        ).write_bytes(b"old")
        result = run_backup(make_request(dry_run=True), shell=fake_shell, today=TODAY)
        assert result.outcome(Step.ROTATION) is None

    def test_missing_destination_still_checked(self, make_request, fake_shell, tmp_path):
        request = make_request(dest=tmp_path / "missing", dry_run=True)
        with pytest.raises(PreconditionFailed):
            run_backup(request, shell=fake_shell, today=TODAY)


class TestRotationReport:
    """Rotation is planned and logged, never applied."""

    def _old_backup(self, dest_dir, day):
        path = artifact_path(dest_dir, "shiva", "vg_shiva_domU", "hpc-disk", day)
        path.write_bytes(b"old")
        return path

    def test_current_keeps_old_files(self, make_request, fake_shell, dest_dir):
        old = self._old_backup(dest_dir, date(2026, 10, 16))
        result = run_backup(make_request(), shell=fake_shell, today=TODAY)

        rotation = result.outcome(Step.ROTATION)
        assert rotation.status is StepStatus.OK
        assert rotation.message == "1 kept, 1 eligible for removal"
        assert old.exists()

    def test_unimplemented_policy_is_skipped(self, make_request, fake_shell, dest_dir):
        self._old_backup(dest_dir, date(2026, 9, 1))
        result = run_backup(make_request(rotation="month"), shell=fake_shell, today=TODAY)

        assert result.exit_code == 0
        assert result.outcome(Step.ROTATION).status is StepStatus.SKIPPED
        assert len(list(dest_dir.glob("*.dd.gz"))) == 2
