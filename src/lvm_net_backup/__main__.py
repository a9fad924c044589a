"""lvm-net-backup: lvm_net_backup/__main__.py.

Backup an LVM logical volume of a remote host into a local compressed image,
going through a temporary snapshot created and removed over SSH.
"""

import sys

from .cli.dispatcher import main

if __name__ == "__main__":
    sys.exit(main())
