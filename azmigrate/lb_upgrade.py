"""Entry point for `azmigrate-lb`: upgrade a Basic load balancer."""

import logging

from azmigrate.cli import confirm_destruction, run
from azmigrate.cloud.azure.api import AzureApi
from azmigrate.config import MigrateConfigs
from azmigrate.migration import MigrationRequest, ResourceMigrator
from azmigrate.parser import create_lb_parser

logger = logging.getLogger(__name__)


def upgrade_load_balancer(
    configs: MigrateConfigs, cloud: AzureApi, migrator: ResourceMigrator
) -> None:
    request = MigrationRequest.for_load_balancer(
        configs.target, configs.azure.resource_group, configs.zone
    )
    plan = migrator.check(request)
    logger.info(
        f"Preconditions passed for {request.label}: "
        f"{len(plan.frontend_addresses)} public frontend(s), "
        f"{len(plan.attachments)} backend member(s)"
    )
    for frontend, address in plan.frontend_addresses.items():
        logger.warning(
            f"Frontend {frontend} will lose address "
            f"{address.ip_address or 'unallocated'} ({address.name})"
        )
    if configs.check_only:
        return

    confirm_destruction(
        configs, f"delete and recreate load balancer {request.label} as Standard"
    )
    result = migrator.migrate(request)
    logger.info(
        f"Load balancer {request.label} is now Standard SKU; "
        f"configuration backup at {result.backup_path}"
    )


def main() -> int:
    return run(create_lb_parser, upgrade_load_balancer)


if __name__ == "__main__":
    exit(main())
