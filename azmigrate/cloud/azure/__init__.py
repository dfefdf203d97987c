"""
Azure migration utilities.

This package contains all Azure-specific functionality including:
- defaults: Default constants for Azure migrations
- api: Azure CLI / ARM implementation of CloudApi
- arm_client: ARM REST client
- templates: ARM request bodies for recreated resources
"""

from azmigrate.cloud.azure.defaults import (
    BACKUP_SUFFIX,
    DEFAULT_BACKUP_DIR,
    LEDGER_FILE,
    STANDARD_TIER,
    STATIC_ALLOCATION,
    VALID_ZONES,
    validate_zone,
)

__all__ = [
    # Default constants
    "BACKUP_SUFFIX",
    "DEFAULT_BACKUP_DIR",
    "LEDGER_FILE",
    "STANDARD_TIER",
    "STATIC_ALLOCATION",
    "VALID_ZONES",
    "validate_zone",
]
