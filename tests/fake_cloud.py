"""In-memory CloudApi that records every call."""

import copy
from collections.abc import Callable
from typing import Any

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
    Document,
    Resource,
    ResourceDescriptor,
    ResourceKind,
    RunState,
    parse_resource,
)

from tests.builders import SUB

MUTATIONS = {
    "create_snapshot_from_disk",
    "create_zonal_disk_from_snapshot",
    "stop_resource",
    "delete_resource",
    "create_network_interface",
    "create_public_address",
    "create_resource",
    "update_network_interface_ip_config",
}


class FakeCloudApi(CloudApi):
    """Stores ARM documents by id and enforces the provider constraints the
    migrations depend on:

    - a NIC cannot be deleted while its VM exists
    - a load balancer cannot be deleted while NICs reference it
    - a public IP cannot be deleted while something references it
    - creates fail when a referenced resource does not exist
    """

    def __init__(self, subscription: str = SUB):
        super().__init__(subscription)
        self.documents: dict[str, Document] = {}
        self.run_states: dict[str, RunState] = {}
        self.zone_catalog: dict[tuple[str, str], set[int]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.zone_queries: list[tuple[str, str]] = []
        self._failures: dict[str, tuple[Callable[..., bool], Exception | None]] = {}
        self._next_address = 10

    # Test helpers

    def add(self, *documents: Document) -> "FakeCloudApi":
        for document in documents:
            self.documents[document["id"].lower()] = copy.deepcopy(document)
        return self

    def document(self, resource_id: str) -> Document | None:
        return self.documents.get(resource_id.lower())

    def exists(self, resource_id: str) -> bool:
        return resource_id.lower() in self.documents

    def fail(
        self,
        method: str,
        when: Callable[..., bool] = lambda *args: True,
        error: Exception | None = None,
    ):
        """Make `method` raise `error` whenever `when(*args)` holds.

        `error` defaults to a CloudApiError.
        """
        self._failures[method] = (when, error)

    @property
    def mutations(self) -> list[tuple[str, Any]]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    def called(self, method: str) -> list[Any]:
        return [args for name, args in self.calls if name == method]

    def _call(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method not in self._failures:
            return
        when, error = self._failures[method]
        if when(*args):
            raise error or CloudApiError(f"{method} failed (injected)")

    def _references(self, target_id: str) -> list[str]:
        needle = target_id.lower()
        return [
            doc["id"]
            for key, doc in self.documents.items()
            if key != needle and needle in str(doc).lower()
        ]

    def _with_lb_backreferences(self, document: Document) -> Document:
        lb = copy.deepcopy(document)
        props = lb.setdefault("properties", {})
        pools = {p["id"].lower(): p for p in props.get("backendAddressPools") or []}
        rules = {r["id"].lower(): r for r in props.get("inboundNatRules") or []}
        for pool in pools.values():
            pool.setdefault("properties", {})["backendIPConfigurations"] = []
        for rule in rules.values():
            rule.setdefault("properties", {}).pop("backendIPConfiguration", None)

        for doc in self.documents.values():
            if "/networkinterfaces/" not in doc["id"].lower():
                continue
            for ip_config in doc["properties"].get("ipConfigurations") or []:
                ip_props = ip_config.get("properties") or {}
                for ref in ip_props.get("loadBalancerBackendAddressPools") or []:
                    pool = pools.get(ref["id"].lower())
                    if pool is not None:
                        pool["properties"]["backendIPConfigurations"].append(
                            {"id": ip_config["id"]}
                        )
                for ref in ip_props.get("loadBalancerInboundNatRules") or []:
                    rule = rules.get(ref["id"].lower())
                    if rule is not None:
                        rule["properties"]["backendIPConfiguration"] = {
                            "id": ip_config["id"]
                        }
        return lb

    def _store(self, kind: ResourceKind, name: str, rg: str, doc: Document) -> str:
        descriptor = self.descriptor(kind, name, rg)
        if self.exists(descriptor.id):
            raise CloudApiError(f"{descriptor.id} already exists")
        doc = copy.deepcopy(doc)
        doc["id"] = descriptor.id
        doc["name"] = name
        doc["type"] = kind.value
        doc.setdefault("properties", {})["provisioningState"] = "Succeeded"
        self.documents[descriptor.id.lower()] = doc
        return descriptor.id

    def _require(self, resource_id: str) -> None:
        if not self.exists(ResourceDescriptor.parse(resource_id).parent.id):
            raise CloudApiError(f"Referenced resource {resource_id} not found")

    # CloudApi

    @staticmethod
    def check_dependencies():
        pass

    def get_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> Resource | None:
        self.calls.append(("get_resource", (kind, name)))
        document = self.document(self.descriptor(kind, name, resource_group).id)
        if document is None:
            return None
        if kind == ResourceKind.LOAD_BALANCER:
            document = self._with_lb_backreferences(document)
        return parse_resource(kind, copy.deepcopy(document))

    def get_resource_status(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> RunState:
        self._call("get_resource_status", kind, name)
        resource_id = self.descriptor(kind, name, resource_group).id.lower()
        return self.run_states.get(resource_id, RunState.RUNNING)

    def list_supported_zones(self, size: str, region: str) -> set[int]:
        self._call("list_supported_zones", size, region)
        self.zone_queries.append((size, region))
        return set(self.zone_catalog.get((size, region), {1, 2, 3}))

    def create_snapshot_from_disk(
        self, disk: ResourceDescriptor, name: str, location: str
    ) -> ResourceDescriptor:
        self._call("create_snapshot_from_disk", disk, name)
        self._require(disk.id)
        snapshot_id = self._store(
            ResourceKind.SNAPSHOT,
            name,
            disk.resource_group,
            {
                "location": location,
                "properties": {"creationData": {"sourceResourceId": disk.id}},
            },
        )
        return ResourceDescriptor.parse(snapshot_id)

    def create_zonal_disk_from_snapshot(
        self,
        snapshot: ResourceDescriptor,
        zone: int,
        name: str,
        location: str,
        sku: str | None = None,
    ) -> ResourceDescriptor:
        self._call("create_zonal_disk_from_snapshot", snapshot, zone, name, sku)
        self._require(snapshot.id)
        disk = self._store(
            ResourceKind.DISK,
            name,
            snapshot.resource_group,
            {
                "location": location,
                "zones": [str(zone)],
                "sku": {"name": sku},
                "properties": {"creationData": {"sourceResourceId": snapshot.id}},
            },
        )
        return ResourceDescriptor.parse(disk)

    def stop_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> None:
        self._call("stop_resource", kind, name)
        resource_id = self.descriptor(kind, name, resource_group).id
        if not self.exists(resource_id):
            raise CloudApiError(f"{resource_id} not found")
        self.run_states[resource_id.lower()] = RunState.DEALLOCATED

    def delete_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> None:
        self._call("delete_resource", kind, name)
        resource_id = self.descriptor(kind, name, resource_group).id
        document = self.document(resource_id)
        if document is None:
            raise CloudApiError(f"{resource_id} not found")

        if kind == ResourceKind.NETWORK_INTERFACE:
            owner = (document["properties"].get("virtualMachine") or {}).get("id")
            if owner and self.exists(owner):
                raise CloudApiError(f"{name} is attached to {owner}")
        if kind == ResourceKind.LOAD_BALANCER:
            members = [
                ref
                for ref in self._references(resource_id)
                if "/networkinterfaces/" in ref.lower()
            ]
            if members:
                raise CloudApiError(f"{name} is in use by {members}")
        if kind == ResourceKind.PUBLIC_IP_ADDRESS:
            users = self._references(resource_id)
            if users:
                raise CloudApiError(f"{name} is in use by {users}")
        del self.documents[resource_id.lower()]

    def create_network_interface(self, spec: NicSpec) -> ResourceDescriptor:
        self._call("create_network_interface", spec)
        if spec.public_ip_id:
            self._require(spec.public_ip_id)
        document = network_interface_document(spec)
        nic = self.descriptor(
            ResourceKind.NETWORK_INTERFACE, spec.name, spec.resource_group
        )
        for ip_config in document["properties"]["ipConfigurations"]:
            ip_config["id"] = nic.child("ipConfigurations", ip_config["name"]).id
            props = ip_config["properties"]
            if "privateIPAddress" not in props:
                props["privateIPAddress"] = f"10.0.0.{self._next_address}"
                self._next_address += 1
        return ResourceDescriptor.parse(
            self._store(
                ResourceKind.NETWORK_INTERFACE,
                spec.name,
                spec.resource_group,
                document,
            )
        )

    def create_public_address(
        self,
        spec: PublicAddressSpec,
        tier: str,
        allocation: str,
        zone: int | None = None,
    ) -> ResourceDescriptor:
        self._call("create_public_address", spec, tier, allocation, zone)
        props: Document = {
            "publicIPAllocationMethod": allocation,
            "publicIPAddressVersion": spec.version,
            "ipAddress": f"20.0.0.{self._next_address}",
        }
        self._next_address += 1
        if spec.dns_label:
            props["dnsSettings"] = {"domainNameLabel": spec.dns_label}
        if spec.idle_timeout:
            props["idleTimeoutInMinutes"] = spec.idle_timeout
        document: Document = {
            "location": spec.location,
            "tags": dict(spec.tags),
            "sku": {"name": tier},
            "properties": props,
        }
        if zone is not None:
            document["zones"] = [str(zone)]
        return ResourceDescriptor.parse(
            self._store(
                ResourceKind.PUBLIC_IP_ADDRESS,
                spec.name,
                spec.resource_group,
                document,
            )
        )

    def create_resource(
        self, kind: ResourceKind, spec: VmSpec | LoadBalancerSpec
    ) -> ResourceDescriptor:
        self._call("create_resource", kind, spec)
        if isinstance(spec, VmSpec):
            document = virtual_machine_document(spec)
            for disk in [spec.os_disk, *spec.data_disks]:
                self._require(disk.disk_id)
            for nic in spec.nic_ids:
                self._require(nic)
            vm = self._store(kind, spec.name, spec.resource_group, document)
            for nic in spec.nic_ids:
                self.document(nic)["properties"]["virtualMachine"] = {"id": vm}
            self.run_states[vm.lower()] = RunState.RUNNING
            return ResourceDescriptor.parse(vm)

        document = load_balancer_document(spec)
        for ip in spec.frontend_public_ip_ids.values():
            self._require(ip)
        return ResourceDescriptor.parse(
            self._store(kind, spec.name, spec.resource_group, document)
        )

    def update_network_interface_ip_config(
        self, ip_config: ResourceDescriptor, changes: IpConfigChanges
    ) -> None:
        self._call("update_network_interface_ip_config", ip_config, changes)
        nic = ip_config.parent
        document = self.document(nic.id)
        if document is None:
            raise CloudApiError(f"{nic.id} not found")
        for member in changes.backend_pool_ids + changes.nat_rule_ids:
            self._require(member)
        try:
            updated = with_ip_config_memberships(
                document, ip_config.leaf_name, changes
            )
        except KeyError as e:
            raise CloudApiError(str(e)) from e
        self.documents[nic.id.lower()] = updated
