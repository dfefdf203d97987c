#!/usr/bin/env python3
"""
Argument parsers for the migration scripts.
"""

import argparse

from azmigrate.cloud.azure.defaults import DEFAULT_BACKUP_DIR, VALID_ZONES

__all__ = [
    "create_base_parser",
    "create_vm_parser",
    "create_lb_parser",
    "create_lb_vms_parser",
    "confirm",
]


def create_base_parser(description: str) -> argparse.ArgumentParser:
    """Create the argument parser shared by every migration script.

    Args:
        description: Description for the parser

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--subscription",
        type=str,
        required=True,
        help="Subscription id or name every call is made against",
    )
    parser.add_argument(
        "-g",
        "--resource-group",
        type=str,
        required=True,
        dest="resource_group",
        help="Resource group of the resource to migrate",
    )

    # Backups
    parser.add_argument(
        "--backup-dir",
        type=str,
        default=DEFAULT_BACKUP_DIR,
        help=(
            "Directory for configuration backups and the migration ledger "
            f"(default: {DEFAULT_BACKUP_DIR})"
        ),
    )

    # Run mode
    parser.add_argument(
        "--check",
        action="store_true",
        default=False,
        help="Only check preconditions; change nothing",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        default=False,
        help="Do not ask for confirmation before deleting anything",
    )

    # Logging
    parser.add_argument(
        "-v",
        "--logs",
        action="store_true",
        help="If flagged, print debug logs and az CLI output as they run",
        default=False,
    )
    return parser


def _zone_argument(
    parser: argparse.ArgumentParser, required: bool, help_text: str
):
    parser.add_argument(
        "--zone",
        type=int,
        choices=sorted(VALID_ZONES),
        required=required,
        help=help_text,
    )


def create_vm_parser() -> argparse.ArgumentParser:
    parser = create_base_parser(
        "Move a virtual machine into an availability zone.\n\n"
        "The VM is deallocated, its disks are copied into the zone, and it "
        "is deleted and recreated\nwith the same name, size, disks and "
        "network interfaces. Original disks and snapshots are kept."
    )
    parser.add_argument(
        "--vm-name",
        type=str,
        required=True,
        help="Name of the VM to move",
    )
    _zone_argument(parser, required=True, help_text="Target availability zone")
    return parser


def create_lb_parser() -> argparse.ArgumentParser:
    parser = create_base_parser(
        "Upgrade a Basic load balancer to the Standard SKU.\n\n"
        "Public frontend addresses are replaced with Standard static ones; "
        "the address values change."
    )
    parser.add_argument(
        "--lb-name",
        type=str,
        required=True,
        help="Name of the load balancer to upgrade",
    )
    _zone_argument(
        parser,
        required=False,
        help_text="Pin new frontend addresses to this zone (default: none)",
    )
    return parser


def create_lb_vms_parser() -> argparse.ArgumentParser:
    parser = create_base_parser(
        "Spread every VM behind a load balancer across availability zones.\n\n"
        "VMs are assigned zones round-robin in backend pool order, migrated "
        "one at a time,\nand reattached to the load balancer's pools and NAT "
        "rules. A Basic load balancer\nis upgraded to Standard on the way."
    )
    parser.add_argument(
        "--lb-name",
        type=str,
        required=True,
        help="Name of the load balancer whose backends are moved",
    )
    return parser


def confirm(what: str) -> bool:
    """Ask user for confirmation.

    Args:
        what: Description of the action

    Returns:
        True if user confirms, raises ValueError otherwise
    """
    inp = input(f"Are you sure you want to {what}? [y/N]\n")
    if not inp.strip().lower() == "y":
        raise ValueError(f"Aborting; will not {what}")
    return True
