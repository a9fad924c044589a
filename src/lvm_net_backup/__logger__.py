# pyright: standard

"""lvm-net-backup: lvm_net_backup/__logger__.py
A common logger for displaying through rich.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Initialize basic console and handler
cons = Console()
rich_handler = RichHandler(console=cons, show_path=False)
# Create a logger directly
logger = logging.Logger("lvm-net-backup", logging.INFO)


def create_logger(level: str = "INFO") -> None:
    """Route every logger of the package through a rich handler at `level`."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console()
    rich_handler = RichHandler(console=cons, show_path=False)

    logger.handlers.clear()
    logger.propagate = False
    logger.addHandler(rich_handler)
    logger.setLevel(level)

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=level,
        handlers=[rich_handler],
        force=True,
    )
