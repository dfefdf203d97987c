"""Migration steps, one resource at a time and per load balancer batch."""

from azmigrate.migration.batch import (
    BatchPlan,
    BatchResult,
    LoadBalancerZoneMigration,
)
from azmigrate.migration.migrator import ResourceMigrator
from azmigrate.migration.models import (
    DependentAttachment,
    DiskCopy,
    MigrationRequest,
    MigrationResult,
    ResourceSnapshot,
    ZoneAssignment,
)
from azmigrate.migration.rewire import LoadBalancerRewirer
from azmigrate.migration.zones import ZoneAssigner

__all__ = [
    # Orchestration
    "LoadBalancerZoneMigration",
    "ResourceMigrator",
    "LoadBalancerRewirer",
    "ZoneAssigner",
    # Records
    "BatchPlan",
    "BatchResult",
    "DependentAttachment",
    "DiskCopy",
    "MigrationRequest",
    "MigrationResult",
    "ResourceSnapshot",
    "ZoneAssignment",
]
