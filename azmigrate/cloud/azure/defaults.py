"""
Default values for Azure migrations.
"""

# Control plane
ARM_ENDPOINT = "https://management.azure.com"
COMPUTE_API_VERSION = "2024-03-01"
NETWORK_API_VERSION = "2023-11-01"

# Long-running ARM operations
POLL_INTERVAL_SECONDS = 5
POLL_TIMEOUT_SECONDS = 1800

# Snapshots are only used as a copy source, so locally redundant is enough
DEFAULT_SNAPSHOT_SKU = "Standard_LRS"

# Zonal public IPs and Standard load balancers
STANDARD_TIER = "Standard"
STATIC_ALLOCATION = "Static"

# Backups
DEFAULT_BACKUP_DIR = "."
BACKUP_SUFFIX = "-configbackup.json"
LEDGER_FILE = "migrations.json"

# Valid Azure availability zones
VALID_ZONES = {1, 2, 3}


def validate_zone(zone: int) -> None:
    """Validate that the zone is a valid Azure availability zone.

    Args:
        zone: The availability zone to validate

    Raises:
        ValueError: If the zone is not valid
    """
    if zone not in VALID_ZONES:
        valid_zones = ", ".join(str(z) for z in sorted(VALID_ZONES))
        msg = (
            f"Invalid availability zone: {zone}. "
            f"Valid availability zones are: {valid_zones}"
        )
        raise ValueError(msg)
