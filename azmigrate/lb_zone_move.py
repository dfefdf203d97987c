"""Entry point for `azmigrate-lb-vms`: zone every VM behind a load balancer."""

import logging

from azmigrate.cli import confirm_destruction, run
from azmigrate.cloud.azure.api import AzureApi
from azmigrate.config import MigrateConfigs
from azmigrate.migration import LoadBalancerZoneMigration, ResourceMigrator
from azmigrate.parser import create_lb_vms_parser

logger = logging.getLogger(__name__)


def move_backends(
    configs: MigrateConfigs, cloud: AzureApi, migrator: ResourceMigrator
) -> None:
    batch = LoadBalancerZoneMigration(cloud, migrator)
    rg = configs.azure.resource_group
    plan = batch.plan(configs.target, rg)
    for assignment in plan.assignments:
        logger.info(f"  {assignment.resource.name} -> zone {assignment.zone}")
    if not plan.load_balancer.standard:
        logger.info(f"{plan.load_balancer.name} will be upgraded to Standard SKU")
    if configs.check_only:
        return

    confirm_destruction(
        configs,
        f"delete and recreate {len(plan.vms)} VMs behind load balancer "
        f"{rg}/{configs.target}",
    )
    result = batch.run(configs.target, rg)
    logger.info(
        f"Migrated {len(result.results)} VMs and rewired "
        f"{len(result.rewired)} IP configurations"
    )


def main() -> int:
    return run(create_lb_vms_parser, move_backends)


if __name__ == "__main__":
    exit(main())
