"""Provider-neutral create specs passed to CloudApi."""

from dataclasses import dataclass, field

from azmigrate.resources import Document


@dataclass
class PublicAddressSpec:
    name: str
    resource_group: str
    location: str
    version: str = "IPv4"
    dns_label: str | None = None
    idle_timeout: int | None = None
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class NicSpec:
    name: str
    resource_group: str
    location: str
    ip_config_name: str
    subnet_id: str
    nsg_id: str | None = None
    # None leaves the address to the provider's allocator
    private_ip: str | None = None
    public_ip_id: str | None = None
    accelerated_networking: bool = False
    ip_forwarding: bool = False
    dns_servers: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    backend_pool_ids: list[str] = field(default_factory=list)
    nat_rule_ids: list[str] = field(default_factory=list)

    @property
    def allocation(self) -> str:
        return "Static" if self.private_ip else "Dynamic"


@dataclass
class DiskAttachmentSpec:
    disk_id: str
    name: str
    lun: int | None = None
    caching: str | None = None
    os_type: str | None = None
    write_accelerator: bool = False


@dataclass
class VmSpec:
    name: str
    resource_group: str
    location: str
    size: str
    zone: int
    os_disk: DiskAttachmentSpec
    data_disks: list[DiskAttachmentSpec]
    # Ordered; the first interface is the primary one
    nic_ids: list[str]
    tags: dict[str, str] = field(default_factory=dict)
    base_document: Document = field(default_factory=dict, repr=False)


@dataclass
class LoadBalancerSpec:
    name: str
    resource_group: str
    location: str
    sku: str = "Standard"
    # Frontend name -> new public IP id
    frontend_public_ip_ids: dict[str, str] = field(default_factory=dict)
    base_document: Document = field(default_factory=dict, repr=False)


@dataclass
class IpConfigChanges:
    backend_pool_ids: list[str] = field(default_factory=list)
    nat_rule_ids: list[str] = field(default_factory=list)
