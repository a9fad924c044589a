"""Command line interface of lvm-net-backup."""
