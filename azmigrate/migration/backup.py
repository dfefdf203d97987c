"""Configuration backups written before any destructive step."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from azmigrate.migration.models import ResourceSnapshot
from azmigrate.utils.paths import BackupPaths

logger = logging.getLogger(__name__)


def write_backup(snapshot: ResourceSnapshot, backup_dir: str | Path) -> Path:
    """Durably write a configuration backup and confirm it.

    The file is written to a temporary sibling, fsynced, renamed into place
    and read back. An existing backup with the same name is rotated aside
    rather than overwritten.

    Returns:
        Path of the confirmed backup file

    Raises:
        OSError: If the file cannot be written or does not read back intact
    """
    paths = BackupPaths(backup_dir)
    paths.backup_dir.mkdir(parents=True, exist_ok=True)
    target = paths.config_backup(snapshot.resource.name)
    payload = snapshot.to_dict()

    if target.exists():
        timestamp = snapshot.captured_at.strftime("%Y%m%d%H%M%S")
        counter = 0
        rotated = paths.rotated_backup(snapshot.resource.name, timestamp)
        while rotated.exists():
            counter += 1
            rotated = paths.rotated_backup(
                snapshot.resource.name, timestamp, counter
            )
        logger.warning(f"Backup {target} already exists, moving it to {rotated}")
        os.replace(target, rotated)

    fd, tmp_path = tempfile.mkstemp(
        dir=paths.backup_dir, prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    if load_backup(target) != json.loads(json.dumps(payload)):
        raise OSError(f"Backup {target} did not read back intact")

    logger.info(
        f"Wrote configuration backup of {snapshot.resource.name} to {target}"
    )
    return target


def load_backup(path: str | Path) -> dict[str, Any]:
    with open(path) as f:
        return json.load(f)
