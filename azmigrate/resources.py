"""
Transient mirrors of Azure resources.

Everything here is parsed once from the provider's native ARM document at
the adapter boundary. Downstream code reads named fields and never splits
resource identifiers itself.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Document = dict[str, Any]


class ResourceKind(str, Enum):
    """ARM resource types touched by a migration."""

    VIRTUAL_MACHINE = "Microsoft.Compute/virtualMachines"
    DISK = "Microsoft.Compute/disks"
    SNAPSHOT = "Microsoft.Compute/snapshots"
    NETWORK_INTERFACE = "Microsoft.Network/networkInterfaces"
    PUBLIC_IP_ADDRESS = "Microsoft.Network/publicIPAddresses"
    LOAD_BALANCER = "Microsoft.Network/loadBalancers"

    @property
    def provider(self) -> str:
        return self.value.split("/")[0]

    @property
    def resource_type(self) -> str:
        return self.value.split("/")[1]

    @classmethod
    def from_type(cls, provider: str, resource_type: str) -> "ResourceKind":
        wanted = f"{provider}/{resource_type}".lower()
        for kind in cls:
            if kind.value.lower() == wanted:
                return kind
        raise ValueError(f"Unsupported resource type: {provider}/{resource_type}")


class RunState(str, Enum):
    """VM power state, as reported by `PowerState/<state>` status codes."""

    RUNNING = "running"
    STARTING = "starting"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DEALLOCATING = "deallocating"
    DEALLOCATED = "deallocated"
    UNKNOWN = "unknown"

    @classmethod
    def from_power_state(cls, code: str | None) -> "RunState":
        if not code:
            return cls.UNKNOWN
        state = code.strip().split("/")[-1].lower()
        try:
            return cls(state)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ResourceDescriptor:
    """Structured ARM resource identity."""

    subscription: str
    resource_group: str
    provider: str
    resource_type: str
    name: str
    sub_resource_path: tuple[tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, resource_id: str) -> "ResourceDescriptor":
        """Parse an ARM resource id.

        Format:
            /subscriptions/{sub}/resourceGroups/{rg}/providers/{ns}/{type}/{name}
            [/{childType}/{childName}]...

        Raises:
            ValueError: If the id does not follow that format
        """
        if not resource_id:
            raise ValueError("Empty resource id")
        parts = [p for p in resource_id.strip().split("/") if p]
        if (
            len(parts) < 8
            or len(parts) % 2 != 0
            or parts[0].lower() != "subscriptions"
            or parts[2].lower() != "resourcegroups"
            or parts[4].lower() != "providers"
        ):
            raise ValueError(f"Malformed resource id: {resource_id}")

        children = parts[8:]
        sub_path = tuple(
            (children[i], children[i + 1]) for i in range(0, len(children), 2)
        )
        return cls(
            subscription=parts[1],
            resource_group=parts[3],
            provider=parts[5],
            resource_type=parts[6],
            name=parts[7],
            sub_resource_path=sub_path,
        )

    @classmethod
    def for_kind(
        cls,
        subscription: str,
        resource_group: str,
        kind: ResourceKind,
        name: str,
    ) -> "ResourceDescriptor":
        return cls(
            subscription=subscription,
            resource_group=resource_group,
            provider=kind.provider,
            resource_type=kind.resource_type,
            name=name,
        )

    @property
    def id(self) -> str:
        resource_id = (
            f"/subscriptions/{self.subscription}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/{self.provider}/{self.resource_type}/{self.name}"
        )
        for child_type, child_name in self.sub_resource_path:
            resource_id += f"/{child_type}/{child_name}"
        return resource_id

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.from_type(self.provider, self.resource_type)

    @property
    def parent(self) -> "ResourceDescriptor":
        return ResourceDescriptor(
            subscription=self.subscription,
            resource_group=self.resource_group,
            provider=self.provider,
            resource_type=self.resource_type,
            name=self.name,
        )

    @property
    def leaf_name(self) -> str:
        if self.sub_resource_path:
            return self.sub_resource_path[-1][1]
        return self.name

    def child(self, child_type: str, child_name: str) -> "ResourceDescriptor":
        return ResourceDescriptor(
            subscription=self.subscription,
            resource_group=self.resource_group,
            provider=self.provider,
            resource_type=self.resource_type,
            name=self.name,
            sub_resource_path=(
                *self.sub_resource_path,
                (child_type, child_name),
            ),
        )

    def same_resource(self, other: "ResourceDescriptor") -> bool:
        """ARM ids compare case-insensitively."""
        return self.id.lower() == other.id.lower()

    def __str__(self) -> str:
        return self.id


def _ref_id(ref: Document | None) -> str | None:
    if not ref:
        return None
    return ref.get("id")


def _ref_ids(refs: list[Document] | None) -> list[str]:
    return [ref["id"] for ref in refs or [] if ref.get("id")]


def _properties(doc: Document) -> Document:
    return doc.get("properties") or {}


@dataclass
class VmDisk:
    name: str
    lun: int | None
    caching: str | None
    managed_disk_id: str | None
    storage_account_type: str | None
    os_type: str | None = None
    encrypted: bool = False
    write_accelerator: bool = False

    @property
    def managed(self) -> bool:
        return self.managed_disk_id is not None

    @property
    def descriptor(self) -> ResourceDescriptor:
        if self.managed_disk_id is None:
            raise ValueError(f"Disk {self.name} is not a managed disk")
        return ResourceDescriptor.parse(self.managed_disk_id)

    @classmethod
    def from_document(cls, doc: Document) -> "VmDisk":
        managed = doc.get("managedDisk") or {}
        encryption = doc.get("encryptionSettings") or {}
        return cls(
            name=doc.get("name", ""),
            lun=doc.get("lun"),
            caching=doc.get("caching"),
            managed_disk_id=managed.get("id"),
            storage_account_type=managed.get("storageAccountType"),
            os_type=doc.get("osType"),
            encrypted=bool(encryption.get("enabled")),
            write_accelerator=bool(doc.get("writeAcceleratorEnabled")),
        )


@dataclass
class NicReference:
    id: str

    @property
    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor.parse(self.id)


# Extension types installed by Azure Disk Encryption
DISK_ENCRYPTION_EXTENSIONS = {
    "azurediskencryption",
    "azurediskencryptionforlinux",
}


@dataclass
class VirtualMachine:
    descriptor: ResourceDescriptor
    location: str
    size: str
    zones: list[str]
    tags: dict[str, str]
    os_disk: VmDisk
    data_disks: list[VmDisk]
    network_interfaces: list[NicReference]
    availability_set_id: str | None
    extension_types: list[str]
    document: Document = field(repr=False)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def disks(self) -> list[VmDisk]:
        """OS disk first, then data disks in their original order."""
        return [self.os_disk, *self.data_disks]

    @property
    def encrypted(self) -> bool:
        if any(disk.encrypted for disk in self.disks):
            return True
        return any(
            ext.lower() in DISK_ENCRYPTION_EXTENSIONS
            for ext in self.extension_types
        )

    @property
    def unmanaged_disks(self) -> list[VmDisk]:
        return [disk for disk in self.disks if not disk.managed]

    @classmethod
    def from_document(cls, doc: Document) -> "VirtualMachine":
        props = _properties(doc)
        storage = props.get("storageProfile") or {}
        network = props.get("networkProfile") or {}
        nics = [
            NicReference(id=nic["id"]) for nic in network.get("networkInterfaces") or []
        ]
        extensions = []
        for ext in doc.get("resources") or []:
            ext_type = _properties(ext).get("type")
            if ext_type:
                extensions.append(ext_type)
        return cls(
            descriptor=ResourceDescriptor.parse(doc["id"]),
            location=doc.get("location", ""),
            size=(props.get("hardwareProfile") or {}).get("vmSize", ""),
            zones=[str(z) for z in doc.get("zones") or []],
            tags=dict(doc.get("tags") or {}),
            os_disk=VmDisk.from_document(storage.get("osDisk") or {}),
            data_disks=[
                VmDisk.from_document(d) for d in storage.get("dataDisks") or []
            ],
            network_interfaces=nics,
            availability_set_id=_ref_id(props.get("availabilitySet")),
            extension_types=extensions,
            document=doc,
        )


@dataclass
class IpConfiguration:
    name: str
    id: str
    subnet_id: str | None
    private_ip: str | None
    allocation: str
    public_ip_id: str | None
    backend_pool_ids: list[str]
    nat_rule_ids: list[str]

    @property
    def load_balanced(self) -> bool:
        return bool(self.backend_pool_ids or self.nat_rule_ids)

    @property
    def static(self) -> bool:
        return self.allocation.lower() == "static"

    @classmethod
    def from_document(cls, doc: Document) -> "IpConfiguration":
        props = _properties(doc)
        return cls(
            name=doc.get("name", ""),
            id=doc.get("id", ""),
            subnet_id=_ref_id(props.get("subnet")),
            private_ip=props.get("privateIPAddress"),
            allocation=props.get("privateIPAllocationMethod") or "Dynamic",
            public_ip_id=_ref_id(props.get("publicIPAddress")),
            backend_pool_ids=_ref_ids(
                props.get("loadBalancerBackendAddressPools")
            ),
            nat_rule_ids=_ref_ids(props.get("loadBalancerInboundNatRules")),
        )


@dataclass
class NetworkInterface:
    descriptor: ResourceDescriptor
    location: str
    tags: dict[str, str]
    nsg_id: str | None
    ip_configurations: list[IpConfiguration]
    accelerated_networking: bool
    ip_forwarding: bool
    dns_servers: list[str]
    virtual_machine_id: str | None
    document: Document = field(repr=False)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @classmethod
    def from_document(cls, doc: Document) -> "NetworkInterface":
        props = _properties(doc)
        dns = props.get("dnsSettings") or {}
        return cls(
            descriptor=ResourceDescriptor.parse(doc["id"]),
            location=doc.get("location", ""),
            tags=dict(doc.get("tags") or {}),
            nsg_id=_ref_id(props.get("networkSecurityGroup")),
            ip_configurations=[
                IpConfiguration.from_document(c)
                for c in props.get("ipConfigurations") or []
            ],
            accelerated_networking=bool(
                props.get("enableAcceleratedNetworking")
            ),
            ip_forwarding=bool(props.get("enableIPForwarding")),
            dns_servers=list(dns.get("dnsServers") or []),
            virtual_machine_id=_ref_id(props.get("virtualMachine")),
            document=doc,
        )


@dataclass
class PublicAddress:
    descriptor: ResourceDescriptor
    location: str
    sku: str
    allocation: str
    version: str
    zones: list[str]
    dns_label: str | None
    idle_timeout: int | None
    tags: dict[str, str]
    ip_address: str | None
    document: Document = field(repr=False)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @classmethod
    def from_document(cls, doc: Document) -> "PublicAddress":
        props = _properties(doc)
        return cls(
            descriptor=ResourceDescriptor.parse(doc["id"]),
            location=doc.get("location", ""),
            sku=(doc.get("sku") or {}).get("name", "Basic"),
            allocation=props.get("publicIPAllocationMethod") or "Dynamic",
            version=props.get("publicIPAddressVersion") or "IPv4",
            zones=[str(z) for z in doc.get("zones") or []],
            dns_label=(props.get("dnsSettings") or {}).get("domainNameLabel"),
            idle_timeout=props.get("idleTimeoutInMinutes"),
            tags=dict(doc.get("tags") or {}),
            ip_address=props.get("ipAddress"),
            document=doc,
        )


@dataclass
class Frontend:
    name: str
    public_ip_id: str | None
    subnet_id: str | None
    private_ip: str | None


@dataclass
class BackendPool:
    name: str
    id: str
    ip_configuration_ids: list[str]


@dataclass
class NatRule:
    name: str
    id: str
    backend_ip_configuration_id: str | None
    frontend_port: int | None
    protocol: str | None


@dataclass
class LoadBalancer:
    descriptor: ResourceDescriptor
    location: str
    sku: str
    frontends: list[Frontend]
    backend_pools: list[BackendPool]
    nat_rules: list[NatRule]
    probe_names: list[str]
    rule_names: list[str]
    document: Document = field(repr=False)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def standard(self) -> bool:
        return self.sku.lower() == "standard"

    def backend_pool(self, name: str) -> BackendPool | None:
        for pool in self.backend_pools:
            if pool.name == name:
                return pool
        return None

    def nat_rule(self, name: str) -> NatRule | None:
        for rule in self.nat_rules:
            if rule.name == name:
                return rule
        return None

    def member_ip_configuration_ids(self) -> list[str]:
        """Backend pool and NAT rule members, in discovery order."""
        seen: set[str] = set()
        members = []
        candidates = [
            ip_id for pool in self.backend_pools for ip_id in pool.ip_configuration_ids
        ]
        candidates += [
            rule.backend_ip_configuration_id
            for rule in self.nat_rules
            if rule.backend_ip_configuration_id
        ]
        for ip_id in candidates:
            if ip_id.lower() in seen:
                continue
            seen.add(ip_id.lower())
            members.append(ip_id)
        return members

    @classmethod
    def from_document(cls, doc: Document) -> "LoadBalancer":
        props = _properties(doc)
        frontends = []
        for fe in props.get("frontendIPConfigurations") or []:
            fe_props = _properties(fe)
            frontends.append(
                Frontend(
                    name=fe.get("name", ""),
                    public_ip_id=_ref_id(fe_props.get("publicIPAddress")),
                    subnet_id=_ref_id(fe_props.get("subnet")),
                    private_ip=fe_props.get("privateIPAddress"),
                )
            )
        pools = [
            BackendPool(
                name=pool.get("name", ""),
                id=pool.get("id", ""),
                ip_configuration_ids=_ref_ids(
                    _properties(pool).get("backendIPConfigurations")
                ),
            )
            for pool in props.get("backendAddressPools") or []
        ]
        nat_rules = []
        for rule in props.get("inboundNatRules") or []:
            rule_props = _properties(rule)
            nat_rules.append(
                NatRule(
                    name=rule.get("name", ""),
                    id=rule.get("id", ""),
                    backend_ip_configuration_id=_ref_id(
                        rule_props.get("backendIPConfiguration")
                    ),
                    frontend_port=rule_props.get("frontendPort"),
                    protocol=rule_props.get("protocol"),
                )
            )
        return cls(
            descriptor=ResourceDescriptor.parse(doc["id"]),
            location=doc.get("location", ""),
            sku=(doc.get("sku") or {}).get("name", "Basic"),
            frontends=frontends,
            backend_pools=pools,
            nat_rules=nat_rules,
            probe_names=[p.get("name", "") for p in props.get("probes") or []],
            rule_names=[
                r.get("name", "") for r in props.get("loadBalancingRules") or []
            ],
            document=doc,
        )


Resource = VirtualMachine | NetworkInterface | PublicAddress | LoadBalancer

_PARSERS = {
    ResourceKind.VIRTUAL_MACHINE: VirtualMachine.from_document,
    ResourceKind.NETWORK_INTERFACE: NetworkInterface.from_document,
    ResourceKind.PUBLIC_IP_ADDRESS: PublicAddress.from_document,
    ResourceKind.LOAD_BALANCER: LoadBalancer.from_document,
}


def parse_resource(kind: ResourceKind, doc: Document) -> Resource:
    """Parse a native ARM document into its mirror type."""
    try:
        parser = _PARSERS[kind]
    except KeyError:
        raise ValueError(f"No resource mirror for {kind.value}") from None
    return parser(doc)
