#!/usr/bin/env python3
"""
Azure API functionality.
Azure CLI and ARM wrapper used by the migrations.
"""

import json
import logging
import subprocess
from typing import Any

from azmigrate.cloud.azure.arm_client import ArmClient
from azmigrate.cloud.azure.defaults import (
    ARM_ENDPOINT,
    COMPUTE_API_VERSION,
    DEFAULT_SNAPSHOT_SKU,
    NETWORK_API_VERSION,
)
from azmigrate.cloud.azure.templates import (
    load_balancer_document,
    network_interface_document,
    virtual_machine_document,
    with_ip_config_memberships,
)
from azmigrate.cloud.cloud_api import CloudApi, CloudApiError
from azmigrate.cloud.specs import (
    IpConfigChanges,
    LoadBalancerSpec,
    NicSpec,
    PublicAddressSpec,
    VmSpec,
)
from azmigrate.resources import (
    Resource,
    ResourceDescriptor,
    ResourceKind,
    RunState,
    parse_resource,
)

logger = logging.getLogger(__name__)

# `az` command group and extra delete flags for each kind
CLI_GROUPS: dict[ResourceKind, tuple[list[str], list[str]]] = {
    ResourceKind.VIRTUAL_MACHINE: (["vm"], ["--yes"]),
    ResourceKind.DISK: (["disk"], ["--yes"]),
    ResourceKind.SNAPSHOT: (["snapshot"], []),
    ResourceKind.NETWORK_INTERFACE: (["network", "nic"], []),
    ResourceKind.PUBLIC_IP_ADDRESS: (["network", "public-ip"], []),
    ResourceKind.LOAD_BALANCER: (["network", "lb"], []),
}


def api_version(kind: ResourceKind) -> str:
    if kind.provider == "Microsoft.Compute":
        return COMPUTE_API_VERSION
    return NETWORK_API_VERSION


class AzureApi(CloudApi):
    """Azure implementation of CloudApi."""

    def __init__(
        self,
        subscription: str,
        show_logs: bool = False,
        arm: ArmClient | None = None,
    ):
        super().__init__(subscription, show_logs=show_logs)
        self.arm = arm or ArmClient(token_provider=self.get_access_token)

    @staticmethod
    def check_dependencies():
        """Check if required tools are installed."""
        tools = ["az"]
        for tool in tools:
            try:
                subprocess.run(
                    [tool, "--version"], capture_output=True, check=True
                )
            except (subprocess.CalledProcessError, FileNotFoundError) as e:
                raise RuntimeError(
                    f"Error: '{tool}' command not found. Please install {tool}."
                ) from e

    def az(self, *args: str) -> subprocess.CompletedProcess:
        """Run an `az` command against this subscription."""
        cmd = ["az", *args, "--subscription", self.subscription]
        return self.run_command(cmd, show_logs=self.show_logs)

    def az_json(self, *args: str) -> Any:
        result = self.az(*args, "-o", "json")
        output = result.stdout.strip()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise CloudApiError(
                f"az {' '.join(args[:2])} returned invalid JSON: {e}"
            ) from e

    def az_created_id(self, *args: str, key: str | None = None) -> ResourceDescriptor:
        """Run a create command and parse the id of what it created."""
        result = self.az_json(*args)
        if key is not None and isinstance(result, dict):
            result = result.get(key)
        resource_id = result.get("id") if isinstance(result, dict) else None
        if not resource_id:
            raise CloudApiError(f"az {' '.join(args[:2])} returned no resource id")
        return ResourceDescriptor.parse(resource_id)

    def check_login(self) -> None:
        """Check that the CLI is logged in with access to the subscription."""
        try:
            self.az("account", "show", "-o", "none")
        except CloudApiError as e:
            raise RuntimeError(
                f"Not logged in to Azure for subscription {self.subscription}. "
                "Please run 'az login' first."
            ) from e

    def get_access_token(self) -> str:
        result = self.az(
            "account",
            "get-access-token",
            "--resource",
            f"{ARM_ENDPOINT}/",
            "--query",
            "accessToken",
            "-o",
            "tsv",
        )
        return result.stdout.strip()

    def get_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> Resource | None:
        descriptor = self.descriptor(kind, name, resource_group)
        document = self.arm.get(descriptor.id, api_version(kind))
        if document is None:
            return None
        return parse_resource(kind, document)

    def get_resource_status(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> RunState:
        if kind != ResourceKind.VIRTUAL_MACHINE:
            raise ValueError(f"Run state is not tracked for {kind.value}")
        result = self.az(
            "vm",
            "get-instance-view",
            "--resource-group",
            resource_group,
            "--name",
            name,
            "--query",
            "instanceView.statuses[?starts_with(code, 'PowerState/')].code",
            "-o",
            "tsv",
        )
        codes = result.stdout.strip().splitlines()
        return RunState.from_power_state(codes[0] if codes else None)

    def list_supported_zones(self, size: str, region: str) -> set[int]:
        """Zones offered for a VM size in a region, minus restricted ones."""
        skus = self.az_json(
            "vm",
            "list-skus",
            "--location",
            region,
            "--size",
            size,
            "--resource-type",
            "virtualMachines",
            "--zone",
            "--all",
        )
        zones: set[int] = set()
        for sku in skus or []:
            # --size is a prefix match
            if sku.get("name", "").lower() != size.lower():
                continue
            for info in sku.get("locationInfo") or []:
                if info.get("location", "").lower() == region.lower():
                    zones |= {int(z) for z in info.get("zones") or []}
            for restriction in sku.get("restrictions") or []:
                if restriction.get("type") == "Location":
                    return set()
                if restriction.get("type") == "Zone":
                    restricted = (restriction.get("restrictionInfo") or {}).get(
                        "zones"
                    ) or []
                    zones -= {int(z) for z in restricted}
        logger.info(f"{size} in {region} supports zones {sorted(zones)}")
        return zones

    def create_snapshot_from_disk(
        self, disk: ResourceDescriptor, name: str, location: str
    ) -> ResourceDescriptor:
        logger.info(f"Creating snapshot {name} of disk {disk.name}")
        return self.az_created_id(
            "snapshot",
            "create",
            "--resource-group",
            disk.resource_group,
            "--name",
            name,
            "--location",
            location,
            "--source",
            disk.id,
            "--sku",
            DEFAULT_SNAPSHOT_SKU,
            "--incremental",
            "false",
        )

    def create_zonal_disk_from_snapshot(
        self,
        snapshot: ResourceDescriptor,
        zone: int,
        name: str,
        location: str,
        sku: str | None = None,
    ) -> ResourceDescriptor:
        logger.info(f"Creating disk {name} in zone {zone} from {snapshot.name}")
        args = [
            "disk",
            "create",
            "--resource-group",
            snapshot.resource_group,
            "--name",
            name,
            "--location",
            location,
            "--source",
            snapshot.id,
            "--zone",
            str(zone),
        ]
        if sku:
            args += ["--sku", sku]
        return self.az_created_id(*args)

    def stop_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> None:
        if kind != ResourceKind.VIRTUAL_MACHINE:
            raise ValueError(f"Cannot stop {kind.value}")
        logger.info(f"Deallocating VM {name}. This takes a few minutes...")
        self.az(
            "vm", "deallocate", "--resource-group", resource_group, "--name", name
        )

    def delete_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> None:
        group, extra = CLI_GROUPS[kind]
        logger.info(
            f"Deleting {kind.resource_type} {name} "
            f"from resource group {resource_group}"
        )
        self.az(
            *group,
            "delete",
            "--resource-group",
            resource_group,
            "--name",
            name,
            *extra,
        )

    def create_network_interface(self, spec: NicSpec) -> ResourceDescriptor:
        logger.info(f"Creating network interface {spec.name}")
        descriptor = self.descriptor(
            ResourceKind.NETWORK_INTERFACE, spec.name, spec.resource_group
        )
        document = self.arm.put(
            descriptor.id,
            NETWORK_API_VERSION,
            network_interface_document(spec),
        )
        return ResourceDescriptor.parse(document.get("id", descriptor.id))

    def create_public_address(
        self,
        spec: PublicAddressSpec,
        tier: str,
        allocation: str,
        zone: int | None = None,
    ) -> ResourceDescriptor:
        """Create a public IP address and return its id."""
        logger.info(
            f"Creating {tier} {allocation} public IP address: {spec.name}"
        )
        args = [
            "network",
            "public-ip",
            "create",
            "--resource-group",
            spec.resource_group,
            "--name",
            spec.name,
            "--location",
            spec.location,
            "--version",
            spec.version,
            "--sku",
            tier,
            "--allocation-method",
            allocation,
        ]
        if zone is not None:
            args += ["--zone", str(zone)]
        if spec.dns_label:
            args += ["--dns-name", spec.dns_label]
        if spec.idle_timeout:
            args += ["--idle-timeout", str(spec.idle_timeout)]
        if spec.tags:
            args += ["--tags", *(f"{k}={v}" for k, v in spec.tags.items())]
        return self.az_created_id(*args, key="publicIp")

    def create_resource(
        self, kind: ResourceKind, spec: VmSpec | LoadBalancerSpec
    ) -> ResourceDescriptor:
        if kind == ResourceKind.VIRTUAL_MACHINE and isinstance(spec, VmSpec):
            body = virtual_machine_document(spec)
        elif kind == ResourceKind.LOAD_BALANCER and isinstance(
            spec, LoadBalancerSpec
        ):
            body = load_balancer_document(spec)
        else:
            raise ValueError(
                f"Cannot create {kind.value} from {type(spec).__name__}"
            )

        descriptor = self.descriptor(kind, spec.name, spec.resource_group)
        logger.info(f"Creating {kind.resource_type} {spec.name}")
        document = self.arm.put(descriptor.id, api_version(kind), body)
        return ResourceDescriptor.parse(document.get("id", descriptor.id))

    def update_network_interface_ip_config(
        self, ip_config: ResourceDescriptor, changes: IpConfigChanges
    ) -> None:
        nic = ip_config.parent
        document = self.arm.get(nic.id, NETWORK_API_VERSION)
        if document is None:
            raise CloudApiError(f"Network interface {nic.name} not found")
        try:
            body = with_ip_config_memberships(
                document, ip_config.leaf_name, changes
            )
        except KeyError as e:
            raise CloudApiError(
                f"{nic.name} has no IP configuration {ip_config.leaf_name}"
            ) from e
        logger.info(
            f"Updating {nic.name}/{ip_config.leaf_name}: "
            f"{len(changes.backend_pool_ids)} backend pool(s), "
            f"{len(changes.nat_rule_ids)} NAT rule(s)"
        )
        self.arm.put(nic.id, NETWORK_API_VERSION, body)
