"""Rebuild network interfaces and public addresses for zonal resources."""

import logging

from azmigrate.cloud.azure.defaults import STANDARD_TIER, STATIC_ALLOCATION
from azmigrate.cloud.cloud_api import CloudApi
from azmigrate.cloud.specs import NicSpec, PublicAddressSpec
from azmigrate.migration.models import DependentAttachment
from azmigrate.resources import PublicAddress, ResourceDescriptor

logger = logging.getLogger(__name__)


def upgrade_public_address(
    cloud: CloudApi, address: PublicAddress, zone: int | None
) -> ResourceDescriptor:
    """Replace a public IP with a Standard one.

    Zonal addresses require static allocation, so the new address is Static
    even when the old one was Dynamic. The address value itself changes.
    """
    logger.info(
        f"Replacing {address.sku} public IP {address.name} "
        f"({address.ip_address or 'unallocated'}) with a Standard static one"
    )
    cloud.delete_public_address(address.descriptor)
    spec = PublicAddressSpec(
        name=address.name,
        resource_group=address.descriptor.resource_group,
        location=address.location,
        version=address.version,
        dns_label=address.dns_label,
        idle_timeout=address.idle_timeout,
        tags=dict(address.tags),
    )
    return cloud.create_public_address(
        spec, STANDARD_TIER, STATIC_ALLOCATION, zone
    )


def rebuild_interface(
    cloud: CloudApi, attachment: DependentAttachment, zone: int
) -> ResourceDescriptor:
    """Delete and recreate one interface with the same attachments.

    Backend pool and NAT rule memberships are left to the rewirer.
    """
    nic = attachment.nic
    logger.info(f"Rebuilding network interface {nic.name}")
    cloud.delete_network_interface(nic)

    public_ip_id = None
    if attachment.public_address is not None:
        public_ip_id = upgrade_public_address(
            cloud, attachment.public_address, zone
        ).id

    if attachment.static:
        logger.info(f"Keeping static private address {attachment.private_ip}")
    spec = NicSpec(
        name=nic.name,
        resource_group=nic.resource_group,
        location=attachment.location,
        ip_config_name=attachment.ip_config_name,
        subnet_id=attachment.subnet_id or "",
        nsg_id=attachment.nsg_id,
        private_ip=attachment.pinned_private_ip,
        public_ip_id=public_ip_id,
        accelerated_networking=attachment.accelerated_networking,
        ip_forwarding=attachment.ip_forwarding,
        dns_servers=list(attachment.dns_servers),
        tags=dict(attachment.tags),
    )
    return cloud.create_network_interface(spec)
