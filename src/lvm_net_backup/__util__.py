"""lvm-net-backup: lvm_net_backup/__util__.py
Exceptions, exit codes and small helpers shared by all modules.
"""

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_DECLINED = 3
EXIT_INTERRUPTED = 130


class AbortError(Exception):
    """Raised when the backup cannot go on."""


class MissingParameter(AbortError):
    """A required command line parameter was not given."""


class UserDeclined(AbortError):
    """The user did not confirm the run. Not an error."""


class PreconditionFailed(AbortError):
    """A local or remote check failed before anything was changed remotely."""


class SnapshotCreateFailed(AbortError):
    """The remote snapshot could not be created."""


class TransferFailed(AbortError):
    """The snapshot could not be copied into the local image file."""


class CleanupFailed(AbortError):
    """The remote snapshot could not be removed."""


class RotationNotImplemented(AbortError):
    """The selected rotation policy has no retention rule yet."""


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"{'-' * 10} [ {caption} ] {'-' * 10}"
