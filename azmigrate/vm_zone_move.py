"""Entry point for `azmigrate-vm`: move one VM into an availability zone."""

import logging

from azmigrate.cli import confirm_destruction, run
from azmigrate.cloud.azure.api import AzureApi
from azmigrate.config import MigrateConfigs
from azmigrate.migration import MigrationRequest, ResourceMigrator
from azmigrate.parser import create_vm_parser

logger = logging.getLogger(__name__)


def move_vm(
    configs: MigrateConfigs, cloud: AzureApi, migrator: ResourceMigrator
) -> None:
    assert configs.zone is not None  # --zone is required by the parser
    request = MigrationRequest.for_vm(
        configs.target, configs.azure.resource_group, configs.zone
    )
    plan = migrator.check(request)
    disks = ", ".join(d.name for d in plan.vm.disks)
    logger.info(
        f"Preconditions passed for {request.label}: {plan.vm.size} in "
        f"{plan.vm.location}, disks [{disks}], "
        f"{len(plan.attachments)} network interface(s)"
    )
    if configs.check_only:
        return

    confirm_destruction(
        configs, f"delete and recreate VM {request.label} in zone {request.zone}"
    )
    result = migrator.migrate(request)
    logger.info(
        f"VM {request.label} now runs in zone {result.zone}; "
        f"configuration backup at {result.backup_path}"
    )


def main() -> int:
    return run(create_vm_parser, move_vm)


if __name__ == "__main__":
    exit(main())
