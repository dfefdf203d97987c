"""Configuration dataclasses for migration runs."""

from azmigrate.config.azure_config import AzureConfigs
from azmigrate.config.migrate_config import MigrateConfigs

__all__ = [
    "AzureConfigs",
    "MigrateConfigs",
]
