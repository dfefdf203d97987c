"""Migration abort taxonomy."""

from enum import Enum
from pathlib import Path


class MigrationStep(str, Enum):
    PRECONDITIONS = "preconditions"
    BACKUP = "backup"
    STOP = "stop"
    FREEZE_DISKS = "freeze disks"
    DETACH = "detach"
    DELETE = "delete"
    REBUILD_NETWORK = "rebuild network"
    RECREATE = "recreate"
    REWIRE = "rewire"


class MigrationError(Exception):
    """A migration aborted.

    Carries enough context for an operator to find the backup file and
    reconcile by hand: which resource, which step, which kind of abort.
    """

    def __init__(
        self,
        resource: str,
        step: MigrationStep,
        message: str,
        backup_path: Path | None = None,
    ):
        self.resource = resource
        self.step = step
        self.message = message
        self.backup_path = backup_path
        super().__init__(str(self))

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        text = (
            f"{self.kind} migrating {self.resource} "
            f"at step '{self.step.value}': {self.message}"
        )
        if self.backup_path:
            text += f" (configuration backup: {self.backup_path})"
        return text


class PreconditionNotMet(MigrationError):
    """Resource is not in the state the migration needs."""


class UnsupportedConfiguration(MigrationError):
    """Resource uses a feature this migration cannot handle safely."""


class ZoneUnsupported(MigrationError):
    """Target zone is not offered for the resource size and region."""


class BackupFailed(MigrationError):
    """Configuration backup could not be durably written."""


class ProviderError(MigrationError):
    """A provider call failed before deletion; the original is intact."""


class PostDeletionFailure(MigrationError):
    """Failure after the original was deleted.

    Not retried. Recovery is manual, from the configuration backup.
    """
