"""Migration run configuration dataclass."""

import argparse
from dataclasses import dataclass
from typing import Any

from azmigrate.cloud.azure.defaults import validate_zone
from azmigrate.config.azure_config import AzureConfigs


@dataclass
class MigrateConfigs:
    azure: AzureConfigs
    target: str
    zone: int | None = None
    check_only: bool = False
    assume_yes: bool = False

    @staticmethod
    def from_args(args: argparse.Namespace) -> "MigrateConfigs":
        # --vm-name or --lb-name, depending on the script
        target = getattr(args, "vm_name", None) or getattr(args, "lb_name", None)
        if not target:
            raise ValueError("args must name the VM or load balancer to migrate")

        zone = getattr(args, "zone", None)
        if zone is not None:
            zone = int(zone)
            validate_zone(zone)

        return MigrateConfigs(
            azure=AzureConfigs.from_args(args),
            target=target,
            zone=zone,
            check_only=args.check,
            assume_yes=args.yes,
        )

    def to_dict(self) -> dict[str, Any]:
        kwargs = {}
        if self.zone is not None:
            kwargs["zone"] = self.zone
        return {
            "azure": self.azure.to_dict(),
            "target": self.target,
            **kwargs,
            "check_only": self.check_only,
            "assume_yes": self.assume_yes,
        }
