import datetime
import json
from pathlib import Path
from typing import Any

from azmigrate.utils.paths import BackupPaths


def load_metadata(backup_dir: str | Path) -> dict[str, dict]:
    """Load the migration ledger. Missing ledger reads as empty."""
    path = BackupPaths(backup_dir).ledger
    if not path.exists():
        return {"migrations": {}}
    with open(path) as f:
        return json.load(f)


def write_metadata(metadata: dict[str, dict], backup_dir: str | Path):
    paths = BackupPaths(backup_dir)
    paths.backup_dir.mkdir(parents=True, exist_ok=True)
    with open(paths.ledger, "w+") as f:
        json.dump(metadata, f, indent=2)


class MigrationLedger:
    """JSON record of every attempted migration, keyed by resource id.

    Lets an operator see which resources were completed and which were left
    half-migrated, and where their backups are.
    """

    def __init__(self, backup_dir: str | Path):
        self.backup_dir = backup_dir

    def record(
        self,
        resource_id: str,
        kind: str,
        status: str,
        step: str | None = None,
        error: str | None = None,
        **details: Any,
    ) -> dict[str, Any]:
        metadata = load_metadata(self.backup_dir)
        migrations = metadata.setdefault("migrations", {})
        entry = {
            "kind": kind,
            "status": status,
            "recordedAt": datetime.datetime.now(
                datetime.timezone.utc
            ).isoformat(),
        }
        if step:
            entry["step"] = step
        if error:
            entry["error"] = error
        entry.update({k: v for k, v in details.items() if v is not None})
        migrations[resource_id] = entry
        write_metadata(metadata, self.backup_dir)
        return entry

    def get(self, resource_id: str) -> dict[str, Any] | None:
        return load_metadata(self.backup_dir).get("migrations", {}).get(
            resource_id
        )
