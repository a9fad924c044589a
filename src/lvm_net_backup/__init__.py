"""lvm-net-backup: lvm_net_backup/__init__.py."""

__version__ = "0.1.0"


def encode_volume_name(host: str, vg: str, lv: str) -> str:
    """Join host, volume group and logical volume into one file-name token."""
    return f"{host}_{vg}_{lv}"
