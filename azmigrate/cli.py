"""Shared runner for the migration console scripts."""

import argparse
import logging
import traceback
from collections.abc import Callable

from azmigrate.cloud.azure.api import AzureApi
from azmigrate.config import MigrateConfigs
from azmigrate.errors import MigrationError
from azmigrate.migration import ResourceMigrator
from azmigrate.parser import confirm
from azmigrate.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)

Execute = Callable[[MigrateConfigs, AzureApi, ResourceMigrator], None]


class Declined(Exception):
    """The operator answered no at the confirmation prompt."""


def confirm_destruction(configs: MigrateConfigs, what: str):
    """Prompt before the first deletion unless --yes was given."""
    if configs.assume_yes:
        logger.info(f"--yes given; will {what}")
        return
    try:
        confirm(what)
    except ValueError as e:
        raise Declined(str(e)) from e


def run(
    create_parser: Callable[[], argparse.ArgumentParser],
    execute: Execute,
    argv: list[str] | None = None,
) -> int:
    """Parse arguments, connect to Azure and run one migration script.

    Returns:
        Process exit status: 0 on success, 1 on any abort
    """
    args = create_parser().parse_args(argv)
    configs = MigrateConfigs.from_args(args)
    setup_logging(configs.azure.show_logs)
    logger.debug(f"Configs: {configs.to_dict()}")

    try:
        AzureApi.check_dependencies()
        cloud = AzureApi(
            configs.azure.subscription, show_logs=configs.azure.show_logs
        )
        cloud.check_login()
        migrator = ResourceMigrator(cloud, backup_dir=configs.azure.backup_dir)
        execute(configs, cloud, migrator)
        return 0
    except Declined as e:
        logger.info(str(e))
        return 1
    except MigrationError as e:
        logger.error(f"Aborted: {e}")
        if e.backup_path:
            logger.error(f"Reconcile by hand from {e.backup_path}")
        return 1
    except Exception as e:
        logger.error(f"Failed: {str(e)}\n{traceback.format_exc()}")
        return 1
