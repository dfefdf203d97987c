"""Records passed between the migration steps."""

import copy
import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from azmigrate.cloud.azure.defaults import validate_zone
from azmigrate.resources import (
    Document,
    IpConfiguration,
    LoadBalancer,
    NetworkInterface,
    PublicAddress,
    ResourceDescriptor,
    ResourceKind,
    VirtualMachine,
    VmDisk,
)


@dataclass(frozen=True)
class MigrationRequest:
    """Operator intent for one resource.

    `load_balancer` is set when the VM is migrated as part of that load
    balancer's batch; its backend pool and NAT rule memberships are then
    restored by the rewirer instead of refusing the migration.
    """

    name: str
    resource_group: str
    kind: ResourceKind
    zone: int | None = None
    standard_sku: bool = False
    load_balancer: ResourceDescriptor | None = None

    def __post_init__(self):
        if self.kind == ResourceKind.VIRTUAL_MACHINE:
            if self.zone is None:
                raise ValueError(f"VM migration of {self.name} needs a zone")
            validate_zone(self.zone)
        elif self.kind == ResourceKind.LOAD_BALANCER:
            if not self.standard_sku:
                raise ValueError(
                    f"Load balancer migration of {self.name} "
                    "must target the Standard SKU"
                )
            if self.zone is not None:
                validate_zone(self.zone)
        else:
            raise ValueError(f"Cannot migrate {self.kind.value}")

    @property
    def label(self) -> str:
        return f"{self.resource_group}/{self.name}"

    @classmethod
    def for_vm(
        cls,
        name: str,
        resource_group: str,
        zone: int,
        load_balancer: ResourceDescriptor | None = None,
    ) -> "MigrationRequest":
        return cls(
            name=name,
            resource_group=resource_group,
            kind=ResourceKind.VIRTUAL_MACHINE,
            zone=zone,
            load_balancer=load_balancer,
        )

    @classmethod
    def for_load_balancer(
        cls, name: str, resource_group: str, zone: int | None = None
    ) -> "MigrationRequest":
        return cls(
            name=name,
            resource_group=resource_group,
            kind=ResourceKind.LOAD_BALANCER,
            zone=zone,
            standard_sku=True,
        )


@dataclass(frozen=True)
class ResourceSnapshot:
    """Point-in-time capture of a resource's full configuration."""

    resource: ResourceDescriptor
    document: Document
    dependents: tuple[Document, ...]
    captured_at: datetime.datetime

    @classmethod
    def capture(
        cls,
        resource: ResourceDescriptor,
        document: Document,
        dependents: list[Document] | None = None,
    ) -> "ResourceSnapshot":
        return cls(
            resource=resource,
            document=copy.deepcopy(document),
            dependents=tuple(copy.deepcopy(d) for d in dependents or []),
            captured_at=datetime.datetime.now(datetime.timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "resourceId": self.resource.id,
            "capturedAt": self.captured_at.isoformat(),
            "resource": self.document,
            "dependents": list(self.dependents),
        }


@dataclass(frozen=True)
class ZoneAssignment:
    resource: ResourceDescriptor
    zone: int


@dataclass
class DependentAttachment:
    """What a NIC's IP configuration was attached to before deletion."""

    nic: ResourceDescriptor
    index: int
    location: str
    ip_config_name: str
    subnet_id: str | None
    nsg_id: str | None
    private_ip: str | None
    allocation: str
    public_address: PublicAddress | None
    backend_pool_ids: list[str] = field(default_factory=list)
    nat_rule_ids: list[str] = field(default_factory=list)
    accelerated_networking: bool = False
    ip_forwarding: bool = False
    dns_servers: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def static(self) -> bool:
        return self.allocation.lower() == "static"

    @property
    def pinned_private_ip(self) -> str | None:
        """The address to reuse, or None to let the allocator pick."""
        return self.private_ip if self.static else None

    @property
    def load_balanced(self) -> bool:
        return bool(self.backend_pool_ids or self.nat_rule_ids)

    @classmethod
    def capture(
        cls,
        nic: NetworkInterface,
        index: int,
        public_address: PublicAddress | None = None,
    ) -> "DependentAttachment":
        # One IP configuration per interface
        ip_config: IpConfiguration = nic.ip_configurations[0]
        return cls(
            nic=nic.descriptor,
            index=index,
            location=nic.location,
            ip_config_name=ip_config.name,
            subnet_id=ip_config.subnet_id,
            nsg_id=nic.nsg_id,
            private_ip=ip_config.private_ip,
            allocation=ip_config.allocation,
            public_address=public_address,
            backend_pool_ids=list(ip_config.backend_pool_ids),
            nat_rule_ids=list(ip_config.nat_rule_ids),
            accelerated_networking=nic.accelerated_networking,
            ip_forwarding=nic.ip_forwarding,
            dns_servers=list(nic.dns_servers),
            tags=dict(nic.tags),
        )


@dataclass
class DiskCopy:
    """A zonal copy of one VM disk."""

    source: VmDisk
    snapshot: ResourceDescriptor
    disk: ResourceDescriptor

    @property
    def lun(self) -> int | None:
        return self.source.lun

    @property
    def caching(self) -> str | None:
        return self.source.caching


@dataclass
class VmPlan:
    """Everything read about a VM before anything is changed."""

    request: MigrationRequest
    vm: VirtualMachine
    interfaces: list[NetworkInterface]
    attachments: list[DependentAttachment]

    @property
    def zone(self) -> int:
        assert self.request.zone is not None
        return self.request.zone


@dataclass
class LoadBalancerPlan:
    request: MigrationRequest
    load_balancer: LoadBalancer
    frontend_addresses: dict[str, PublicAddress]
    members: list[NetworkInterface]
    attachments: list[DependentAttachment]


@dataclass
class MigrationResult:
    request: MigrationRequest
    resource: ResourceDescriptor
    backup_path: Path
    zone: int | None = None
    disks: list[DiskCopy] = field(default_factory=list)
    attachments: list[DependentAttachment] = field(default_factory=list)
    interfaces: list[ResourceDescriptor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.request.kind.value,
            "resourceId": self.resource.id,
            "zone": self.zone,
            "backup": str(self.backup_path),
            "disks": [disk_copy.disk.id for disk_copy in self.disks],
            "interfaces": [nic.id for nic in self.interfaces],
        }
