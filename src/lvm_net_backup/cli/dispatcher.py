"""CLI entry point: parse flags, confirm, run the backup.

Exit codes:
    0  backup completed
    1  missing parameters, failed check or step, failed snapshot removal
    3  the user did not confirm
"""

import argparse
import logging
import sys
from typing import Callable, Optional

from .. import __util__, __version__
from ..__logger__ import create_logger
from ..config import (
    ROTATION_POLICIES,
    BackupRequest,
    Config,
    ConfigError,
    find_config_file,
    load_config,
)
from ..config.loader import generate_example_config
from ..core.operations import run_backup
from ..core.result import BackupResult
from .common import add_verbosity_args, get_log_level

logger = logging.getLogger(__name__)

# (attribute, flag) of every parameter without a default
REQUIRED_PARAMETERS = (
    ("dest", "--dest"),
    ("host", "--ssh"),
    ("vg", "--vg"),
    ("lv", "--lv"),
)

EPILOG = """\
rotation policies (reported only, no backup is deleted yet):
  current   only keep the last backup (1)
  day       keep the last day, month and year backup (4)
  month     keep the last month and last year backup (3)
  year      keep the last year backup (2)
  disabled  keep all the backups

example:
  lvm-net-backup --dest /data --ssh shiva --vg vg_shiva_domU --lv hpc-disk -f

  Creates the snapshot hpc-disk-backupsnap of /dev/vg_shiva_domU/hpc-disk on
  shiva, streams it through gzip into
  /data/shiva_vg_shiva_domU_hpc-disk_<YYYY>_<MM>_<DD>.dd.gz and removes the
  snapshot.
"""


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lvm-net-backup",
        description=(
            "Backup an LVM snapshot of a remote host over SSH into a local gzip image"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file with default settings",
    )
    parser.add_argument(
        "--example-config",
        action="store_true",
        help="Print an example configuration file and exit",
    )

    required = parser.add_argument_group("Arguments")
    required.add_argument(
        "--dest",
        metavar="DIR",
        help="Local directory where the backup image is written",
    )
    required.add_argument(
        "--ssh",
        dest="host",
        metavar="HOST",
        help="Hostname of the remote server",
    )
    required.add_argument(
        "--ssh_port",
        dest="port",
        metavar="PORT",
        type=int,
        help="Port of the ssh server (default: 22)",
    )
    required.add_argument(
        "--vg",
        metavar="VG",
        help="LVM volume group on the remote server",
    )
    required.add_argument(
        "--lv",
        metavar="LV",
        help="LVM logical volume to back up, in the volume group VG",
    )

    options = parser.add_argument_group("Options")
    options.add_argument(
        "--rotation",
        choices=ROTATION_POLICIES,
        help="Rotation policy (default: current)",
    )
    options.add_argument(
        "--ssh_config",
        metavar="FILE",
        help="ssh client configuration file (ssh -F)",
    )
    options.add_argument(
        "--snapshot-size",
        metavar="SIZE",
        help="Copy-on-write space reserved for the snapshot (default: 1G)",
    )
    options.add_argument(
        "--dry-run",
        action="store_true",
        help="Test mode, does nothing, print commands",
    )
    options.add_argument(
        "-f",
        dest="force",
        action="store_true",
        help="Force, do not ask for confirmation",
    )

    return parser


def find_missing_parameters(args: argparse.Namespace) -> list[str]:
    """Return the flags of required parameters that are unset or blank."""
    return [
        flag
        for attr, flag in REQUIRED_PARAMETERS
        if not str(getattr(args, attr, None) or "").strip()
    ]


def load_defaults(args: argparse.Namespace) -> tuple[Config, list[str]]:
    """Load the configuration file, or built-in defaults if there is none.

    Raises:
        ConfigError: If the file is missing or invalid
    """
    config_path = find_config_file(getattr(args, "config", None))
    if config_path is None:
        return Config(), []

    logger.info("Loading configuration from: %s", config_path)
    return load_config(config_path)


def build_request(args: argparse.Namespace, config: Config) -> BackupRequest:
    """Merge command line flags over configuration defaults.

    Raises:
        ValueError: If a merged value is invalid, such as the ssh port
    """
    return BackupRequest(
        dest=args.dest,
        host=args.host,
        vg=args.vg,
        lv=args.lv,
        port=args.port if args.port is not None else config.ssh.port,
        rotation=args.rotation or config.rotation,
        dry_run=args.dry_run,
        force=args.force,
        snapshot_size=args.snapshot_size or config.snapshot.size,
        ssh_config=args.ssh_config or config.ssh.config_file,
        identity_file=config.ssh.identity_file,
        sudo=config.ssh.sudo,
        command_timeout=config.ssh.command_timeout,
        transfer_timeout=config.transfer.timeout,
        chunk_size=config.transfer.chunk_size,
    )


def report_request(request: BackupRequest) -> None:
    """Log the settings the run will use."""
    logger.info("--dest       = %s", request.dest)
    logger.info("--ssh        = %s", request.host)
    logger.info("--ssh_port   = %s", request.port)
    logger.info("--vg         = %s", request.vg)
    logger.info("--lv         = %s", request.lv)
    logger.info("--rotation   = %s", request.rotation)
    if request.ssh_config:
        logger.info("--ssh_config = %s", request.ssh_config)
    logger.info("snapshot size = %s", request.snapshot_size)
    logger.info("FORCE=%s DRY_RUN=%s", request.force, request.dry_run)


def confirm(ask: Optional[Callable[[str], str]] = None) -> None:
    """Ask the user to confirm the run.

    Raises:
        UserDeclined: On any answer but y/Y, or end of input
    """
    ask = ask or input
    try:
        answer = ask("[INTERACTIVE] Confirm ? Y/N [N] ")
    except EOFError:
        answer = ""

    if answer.strip().lower() != "y":
        raise __util__.UserDeclined("Exiting now !")
    logger.info("Continue")


def _log_summary(request: BackupRequest, result: BackupResult) -> None:
    if result.failed:
        logger.error(
            "Backup of %s:%s/%s finished with %d error(s) in %.1fs",
            request.host,
            request.vg,
            request.lv,
            len(result.errors),
            result.duration,
        )
    elif request.dry_run:
        logger.info("Dry run complete, nothing was changed")
    else:
        logger.info("Backup written to %s in %.1fs", result.artifact, result.duration)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for lvm-net-backup CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"lvm-net-backup {__version__}")
        return __util__.EXIT_SUCCESS

    if args.example_config:
        print(generate_example_config())
        return __util__.EXIT_SUCCESS

    create_logger(get_log_level(args))

    try:
        config, warnings = load_defaults(args)
    except ConfigError as e:
        logger.error("[ERROR] Configuration error: %s", e)
        return __util__.EXIT_FAILURE

    for warning in warnings:
        logger.warning("Config: %s", warning)

    try:
        missing = find_missing_parameters(args)
        if missing:
            for flag in missing:
                logger.error("[ERROR] %s parameter undefined", flag)
            parser.print_help()
            raise __util__.MissingParameter("Missing parameters, read the manual above !")

        try:
            request = build_request(args, config)
        except ValueError as e:
            logger.error("[ERROR] %s", e)
            return __util__.EXIT_FAILURE
        report_request(request)

        if not request.force:
            confirm()

        result = run_backup(request)

    except __util__.UserDeclined as e:
        logger.info("%s", e)
        return __util__.EXIT_DECLINED
    except __util__.AbortError as e:
        logger.critical("[FAIL] %s", e)
        return __util__.EXIT_FAILURE
    except KeyboardInterrupt:
        logger.error("[ERROR] Interrupted by user")
        return __util__.EXIT_INTERRUPTED

    _log_summary(request, result)
    return result.exit_code
