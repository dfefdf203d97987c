"""Azure connection configuration dataclass."""

import argparse
from dataclasses import dataclass
from typing import Any

from azmigrate.cloud.azure.defaults import DEFAULT_BACKUP_DIR


@dataclass
class AzureConfigs:
    subscription: str
    resource_group: str
    backup_dir: str = DEFAULT_BACKUP_DIR
    show_logs: bool = False

    @staticmethod
    def from_args(args: argparse.Namespace) -> "AzureConfigs":
        if not args.subscription:
            raise ValueError("--subscription is required")
        if not args.resource_group:
            raise ValueError("--resource-group is required")
        return AzureConfigs(
            subscription=args.subscription,
            resource_group=args.resource_group,
            backup_dir=args.backup_dir or DEFAULT_BACKUP_DIR,
            show_logs=args.logs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscription": self.subscription,
            "resource_group": self.resource_group,
            "backup_dir": self.backup_dir,
            "show_logs": self.show_logs,
        }
