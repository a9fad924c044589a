"""Output options of the command line."""

import argparse

# (flag, log level), the first flag set wins
LEVEL_FLAGS = (
    ("debug", "DEBUG"),
    ("verbose", "DEBUG"),
    ("quiet", "WARNING"),
)


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add -v/-q/--debug to `parser`, -v and -q exclude each other."""
    group = parser.add_argument_group("Output options")
    exclusive = group.add_mutually_exclusive_group()
    exclusive.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Also log the stderr of every remote command",
    )
    exclusive.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings, errors and failures",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Log everything, even with --quiet",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Log level picked by the output options, INFO when none is set."""
    for flag, level in LEVEL_FLAGS:
        if getattr(args, flag, False):
            return level
    return "INFO"
