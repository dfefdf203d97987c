from pathlib import Path

from azmigrate.cloud.azure.defaults import BACKUP_SUFFIX, LEDGER_FILE


class BackupPaths:
    def __init__(self, backup_dir: str | Path):
        self.backup_dir = Path(backup_dir)

    def config_backup(self, resource_name: str) -> Path:
        return self.backup_dir / f"{resource_name}{BACKUP_SUFFIX}"

    def rotated_backup(
        self, resource_name: str, timestamp: str, counter: int = 0
    ) -> Path:
        stem = BACKUP_SUFFIX.removesuffix(".json")
        if counter:
            timestamp = f"{timestamp}-{counter}"
        return self.backup_dir / f"{resource_name}{stem}.{timestamp}.json"

    @property
    def ledger(self) -> Path:
        return self.backup_dir / LEDGER_FILE
