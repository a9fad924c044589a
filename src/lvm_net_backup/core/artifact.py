"""Naming and discovery of local backup image files.

Images live flat in the destination directory:
    <dest>/<host>_<vg>_<lv>_<YYYY>_<MM>_<DD>.dd.gz
"""

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from .. import encode_volume_name

ARTIFACT_EXTENSION = ".dd.gz"
DATE_FORMAT = "%Y_%m_%d"

_DATE_RE = re.compile(r"^(\d{4})_(\d{2})_(\d{2})$")


@dataclass(frozen=True, order=True)
class BackupArtifact:
    """A backup image file found on disk, ordered by date then path."""

    date: date
    path: Path


def artifact_name(host: str, vg: str, lv: str, day: date) -> str:
    """File name of the image of host/vg/lv taken on `day`."""
    stamp = day.strftime(DATE_FORMAT)
    return f"{encode_volume_name(host, vg, lv)}_{stamp}{ARTIFACT_EXTENSION}"


def artifact_path(dest: Path, host: str, vg: str, lv: str, day: date) -> Path:
    return Path(dest) / artifact_name(host, vg, lv, day)


def parse_artifact_date(name: str, host: str, vg: str, lv: str) -> date | None:
    """Return the date encoded in `name` if it is an image of host/vg/lv."""
    prefix = f"{encode_volume_name(host, vg, lv)}_"
    if not name.startswith(prefix) or not name.endswith(ARTIFACT_EXTENSION):
        return None

    match = _DATE_RE.match(name[len(prefix) : -len(ARTIFACT_EXTENSION)])
    if match is None:
        return None

    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError:
        return None


def list_artifacts(dest: Path, host: str, vg: str, lv: str) -> list[BackupArtifact]:
    """List the images of host/vg/lv in `dest`, oldest first."""
    dest = Path(dest)
    if not dest.is_dir():
        return []

    artifacts = []
    for entry in dest.iterdir():
        if not entry.is_file():
            continue
        day = parse_artifact_date(entry.name, host, vg, lv)
        if day is not None:
            artifacts.append(BackupArtifact(day, entry))

    return sorted(artifacts)
