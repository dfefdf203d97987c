"""
ARM request bodies for recreated resources.

Create specs carry the fields a migration changes; everything else is
passed through from the original resource document after read-only and
back-reference properties are removed.
"""

import copy
from typing import Any

from azmigrate.cloud.specs import (
    DiskAttachmentSpec,
    IpConfigChanges,
    LoadBalancerSpec,
    NicSpec,
    VmSpec,
)
from azmigrate.resources import Document

READ_ONLY_KEYS = {"etag", "provisioningState", "resourceGuid"}

# Dropped because the recreated VM replaces them, or because they cannot be
# combined with attached disks and zones
VM_REPLACED_PROPERTIES = {
    "vmId",
    "instanceView",
    "timeCreated",
    "availabilitySet",
    "osProfile",
    "virtualMachineScaleSet",
    "proximityPlacementGroup",
    "hardwareProfile",
    "storageProfile",
    "networkProfile",
}

FRONTEND_BACKREFERENCES = {
    "inboundNatRules",
    "inboundNatPools",
    "loadBalancingRules",
    "outboundRules",
}
POOL_BACKREFERENCES = {
    "backendIPConfigurations",
    "loadBalancerBackendAddresses",
    "loadBalancingRules",
    "outboundRule",
    "outboundRules",
    "inboundNatRules",
}


def strip_read_only(value: Any) -> Any:
    """Deep copy of a document without read-only bookkeeping keys."""
    if isinstance(value, dict):
        return {
            k: strip_read_only(v)
            for k, v in value.items()
            if k not in READ_ONLY_KEYS
        }
    if isinstance(value, list):
        return [strip_read_only(v) for v in value]
    return copy.deepcopy(value)


def _compact(doc: Document) -> Document:
    return {k: v for k, v in doc.items() if v is not None}


def _os_disk(disk: DiskAttachmentSpec) -> Document:
    return _compact(
        {
            "name": disk.name,
            "createOption": "Attach",
            "osType": disk.os_type,
            "caching": disk.caching,
            "managedDisk": {"id": disk.disk_id},
            "writeAcceleratorEnabled": disk.write_accelerator or None,
        }
    )


def _data_disk(disk: DiskAttachmentSpec) -> Document:
    return _compact(
        {
            "lun": disk.lun,
            "name": disk.name,
            "createOption": "Attach",
            "caching": disk.caching,
            "managedDisk": {"id": disk.disk_id},
            "writeAcceleratorEnabled": disk.write_accelerator or None,
        }
    )


def _identity(identity: Document) -> Document:
    # principalId / tenantId are assigned by the platform
    result: Document = {"type": identity.get("type")}
    user_assigned = identity.get("userAssignedIdentities")
    if user_assigned:
        result["userAssignedIdentities"] = {key: {} for key in user_assigned}
    return result


def virtual_machine_document(spec: VmSpec) -> Document:
    base = strip_read_only(spec.base_document)
    properties = {
        k: v
        for k, v in (base.get("properties") or {}).items()
        if k not in VM_REPLACED_PROPERTIES
    }
    properties["hardwareProfile"] = {"vmSize": spec.size}
    properties["storageProfile"] = {
        "osDisk": _os_disk(spec.os_disk),
        "dataDisks": [_data_disk(d) for d in spec.data_disks],
    }
    properties["networkProfile"] = {
        "networkInterfaces": [
            {"id": nic_id, "properties": {"primary": index == 0}}
            for index, nic_id in enumerate(spec.nic_ids)
        ]
    }

    document: Document = {
        "location": spec.location,
        "tags": dict(spec.tags),
        "zones": [str(spec.zone)],
        "properties": properties,
    }
    # Marketplace images must keep their plan when the OS disk is attached
    if base.get("plan"):
        document["plan"] = base["plan"]
    if base.get("identity"):
        document["identity"] = _identity(base["identity"])
    return document


def _without(props: Document, keys: set[str]) -> Document:
    return {k: v for k, v in props.items() if k not in keys}


def load_balancer_document(spec: LoadBalancerSpec) -> Document:
    base = strip_read_only(spec.base_document)
    properties = dict(base.get("properties") or {})

    frontends = []
    for frontend in properties.get("frontendIPConfigurations") or []:
        fe_props = _without(
            frontend.get("properties") or {}, FRONTEND_BACKREFERENCES
        )
        new_ip = spec.frontend_public_ip_ids.get(frontend.get("name"))
        if new_ip:
            fe_props["publicIPAddress"] = {"id": new_ip}
        frontends.append({**frontend, "properties": fe_props})
    properties["frontendIPConfigurations"] = frontends

    properties["backendAddressPools"] = [
        {
            **pool,
            "properties": _without(
                pool.get("properties") or {}, POOL_BACKREFERENCES
            ),
        }
        for pool in properties.get("backendAddressPools") or []
    ]
    # Members are rebound from the NIC side after creation
    properties["inboundNatRules"] = [
        {
            **rule,
            "properties": _without(
                rule.get("properties") or {}, {"backendIPConfiguration"}
            ),
        }
        for rule in properties.get("inboundNatRules") or []
    ]
    properties["probes"] = [
        {
            **probe,
            "properties": _without(
                probe.get("properties") or {}, {"loadBalancingRules"}
            ),
        }
        for probe in properties.get("probes") or []
    ]

    return {
        "location": spec.location,
        "tags": dict(base.get("tags") or {}),
        "sku": {"name": spec.sku, "tier": "Regional"},
        "properties": properties,
    }


def network_interface_document(spec: NicSpec) -> Document:
    ip_properties: Document = {
        "subnet": {"id": spec.subnet_id},
        "privateIPAllocationMethod": spec.allocation,
        "primary": True,
    }
    if spec.private_ip:
        ip_properties["privateIPAddress"] = spec.private_ip
    if spec.public_ip_id:
        ip_properties["publicIPAddress"] = {"id": spec.public_ip_id}
    if spec.backend_pool_ids:
        ip_properties["loadBalancerBackendAddressPools"] = [
            {"id": pool_id} for pool_id in spec.backend_pool_ids
        ]
    if spec.nat_rule_ids:
        ip_properties["loadBalancerInboundNatRules"] = [
            {"id": rule_id} for rule_id in spec.nat_rule_ids
        ]

    properties: Document = {
        "ipConfigurations": [
            {"name": spec.ip_config_name, "properties": ip_properties}
        ],
        "enableAcceleratedNetworking": spec.accelerated_networking,
        "enableIPForwarding": spec.ip_forwarding,
    }
    if spec.nsg_id:
        properties["networkSecurityGroup"] = {"id": spec.nsg_id}
    if spec.dns_servers:
        properties["dnsSettings"] = {"dnsServers": list(spec.dns_servers)}

    return {
        "location": spec.location,
        "tags": dict(spec.tags),
        "properties": properties,
    }


def with_ip_config_memberships(
    document: Document, ip_config_name: str, changes: IpConfigChanges
) -> Document:
    """Copy of a NIC document with one IP configuration's backend pool and
    NAT rule memberships replaced.

    Raises:
        KeyError: If the NIC has no IP configuration with that name
    """
    updated = strip_read_only(document)
    for ip_config in (updated.get("properties") or {}).get(
        "ipConfigurations"
    ) or []:
        if ip_config.get("name") != ip_config_name:
            continue
        props = ip_config.setdefault("properties", {})
        props["loadBalancerBackendAddressPools"] = [
            {"id": pool_id} for pool_id in changes.backend_pool_ids
        ]
        props["loadBalancerInboundNatRules"] = [
            {"id": rule_id} for rule_id in changes.nat_rule_ids
        ]
        return updated
    raise KeyError(f"No IP configuration named {ip_config_name}")
