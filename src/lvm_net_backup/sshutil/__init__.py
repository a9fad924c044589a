"""SSH helpers for lvm-net-backup."""

from .shell import RemoteShell, exec_remote

__all__ = ["RemoteShell", "exec_remote"]
