"""
One-resource migrations to zone-aware configurations.

Each migration reads and validates the resource, writes a configuration
backup, tears the resource down, recreates it with zone-aware properties
and rewires its dependents. Nothing is retried or rolled back: once the
original is deleted, recovery is manual from the backup.
"""

import datetime
import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from azmigrate.cloud.azure.defaults import DEFAULT_BACKUP_DIR, STANDARD_TIER
from azmigrate.cloud.cloud_api import CloudApi, CloudApiError
from azmigrate.cloud.specs import (
    DiskAttachmentSpec,
    IpConfigChanges,
    LoadBalancerSpec,
    VmSpec,
)
from azmigrate.errors import (
    BackupFailed,
    MigrationError,
    MigrationStep,
    PostDeletionFailure,
    PreconditionNotMet,
    ProviderError,
    UnsupportedConfiguration,
    ZoneUnsupported,
)
from azmigrate.migration.backup import write_backup
from azmigrate.migration.models import (
    DependentAttachment,
    DiskCopy,
    LoadBalancerPlan,
    MigrationRequest,
    MigrationResult,
    ResourceSnapshot,
    VmPlan,
)
from azmigrate.migration.network import rebuild_interface, upgrade_public_address
from azmigrate.migration.rewire import LoadBalancerRewirer
from azmigrate.resources import (
    Document,
    LoadBalancer,
    NetworkInterface,
    PublicAddress,
    ResourceDescriptor,
    ResourceKind,
    RunState,
    VirtualMachine,
)
from azmigrate.utils.metadata import MigrationLedger

logger = logging.getLogger(__name__)


def zonal_disk_name(name: str, zone: int) -> str:
    """Name of the zonal copy of a disk; repeated moves do not stack suffixes."""
    return f"{re.sub(r'-zone[0-9]$', '', name)}-zone{zone}"


class ResourceMigrator:
    def __init__(
        self,
        cloud: CloudApi,
        backup_dir: str | Path = DEFAULT_BACKUP_DIR,
        ledger: MigrationLedger | None = None,
    ):
        self.cloud = cloud
        self.backup_dir = Path(backup_dir)
        self.ledger = ledger or MigrationLedger(self.backup_dir)
        self.rewirer = LoadBalancerRewirer(cloud)

    def check(self, request: MigrationRequest) -> VmPlan | LoadBalancerPlan:
        """Run the preconditions without changing anything."""
        if request.kind == ResourceKind.VIRTUAL_MACHINE:
            return self._check_vm(request)
        return self._check_load_balancer(request)

    def migrate(self, request: MigrationRequest) -> MigrationResult:
        """Migrate one resource.

        Raises:
            MigrationError: A subclass naming the step and kind of abort
        """
        logger.info(f"Migrating {request.kind.resource_type} {request.label}")
        try:
            if request.kind == ResourceKind.VIRTUAL_MACHINE:
                result = self._migrate_vm(request)
            else:
                result = self._migrate_load_balancer(request)
        except MigrationError as e:
            logger.error(str(e))
            self._record_failure(request, e)
            raise

        details = result.to_dict()
        del details["kind"], details["resourceId"]
        self._record(result.resource.id, request, "succeeded", **details)
        logger.info(f"Migrated {request.label} to {result.resource.id}")
        return result

    @contextmanager
    def _step(
        self,
        label: str,
        step: MigrationStep,
        deleted: bool,
        backup_path: Path | None = None,
    ) -> Iterator[None]:
        """Classify provider failures by whether the original still exists.

        Once the original is deleted, any unexpected error is also reported
        as a PostDeletionFailure so the step and backup path reach the ledger.
        """
        try:
            yield
        except CloudApiError as e:
            error_cls = PostDeletionFailure if deleted else ProviderError
            raise error_cls(label, step, str(e), backup_path=backup_path) from e
        except MigrationError:
            raise
        except Exception as e:
            if not deleted:
                raise
            raise PostDeletionFailure(
                label, step, f"{type(e).__name__}: {e}", backup_path=backup_path
            ) from e

    def _backup(
        self,
        label: str,
        resource: ResourceDescriptor,
        document: Document,
        dependents: list[Document],
    ) -> Path:
        snapshot = ResourceSnapshot.capture(resource, document, dependents)
        try:
            return write_backup(snapshot, self.backup_dir)
        except (OSError, TypeError, ValueError) as e:
            raise BackupFailed(
                label,
                MigrationStep.BACKUP,
                f"could not write configuration backup to {self.backup_dir}: {e}",
            ) from e

    # Virtual machines

    def _check_vm(self, request: MigrationRequest) -> VmPlan:
        label = request.label
        preconditions = MigrationStep.PRECONDITIONS

        with self._step(label, preconditions, deleted=False):
            vm = self.cloud.get_resource(
                ResourceKind.VIRTUAL_MACHINE, request.name, request.resource_group
            )
        if not isinstance(vm, VirtualMachine):
            raise PreconditionNotMet(label, preconditions, "VM not found")

        with self._step(label, preconditions, deleted=False):
            state = self.cloud.get_resource_status(
                ResourceKind.VIRTUAL_MACHINE, request.name, request.resource_group
            )
        if state != RunState.RUNNING:
            raise PreconditionNotMet(
                label,
                preconditions,
                f"VM is {state.value}; start it so its disk configuration "
                "can be read",
            )
        if str(request.zone) in vm.zones:
            raise PreconditionNotMet(
                label, preconditions, f"VM is already in zone {request.zone}"
            )

        if vm.unmanaged_disks:
            names = ", ".join(d.name for d in vm.unmanaged_disks)
            raise UnsupportedConfiguration(
                label, preconditions, f"unmanaged disks are not supported: {names}"
            )
        if vm.encrypted:
            raise UnsupportedConfiguration(
                label, preconditions, "encrypted disks are not supported"
            )
        if not vm.network_interfaces:
            raise UnsupportedConfiguration(
                label, preconditions, "VM has no network interfaces"
            )
        if vm.availability_set_id:
            availability_set = ResourceDescriptor.parse(vm.availability_set_id)
            logger.warning(
                f"{label} is in availability set {availability_set.name}; "
                "the zonal VM will not be a member of it"
            )

        interfaces = []
        attachments = []
        for index, ref in enumerate(vm.network_interfaces):
            with self._step(label, preconditions, deleted=False):
                nic = self.cloud.get_resource_by_id(ref.descriptor)
            if not isinstance(nic, NetworkInterface):
                raise PreconditionNotMet(
                    label,
                    preconditions,
                    f"network interface {ref.descriptor.name} not found",
                )
            self._check_interface(label, nic, request.load_balancer)

            public_address = None
            public_ip_id = nic.ip_configurations[0].public_ip_id
            if public_ip_id:
                with self._step(label, preconditions, deleted=False):
                    public_address = self.cloud.get_resource_by_id(
                        ResourceDescriptor.parse(public_ip_id)
                    )
                if not isinstance(public_address, PublicAddress):
                    raise PreconditionNotMet(
                        label,
                        preconditions,
                        f"public IP {public_ip_id} not found",
                    )
            interfaces.append(nic)
            attachments.append(
                DependentAttachment.capture(nic, index, public_address)
            )

        with self._step(label, preconditions, deleted=False):
            supported = self.cloud.list_supported_zones(vm.size, vm.location)
        if request.zone not in supported:
            raise ZoneUnsupported(
                label,
                preconditions,
                f"zone {request.zone} is not offered for {vm.size} in "
                f"{vm.location} (supported: {sorted(supported) or 'none'})",
            )

        return VmPlan(
            request=request,
            vm=vm,
            interfaces=interfaces,
            attachments=attachments,
        )

    @staticmethod
    def _check_interface(
        label: str,
        nic: NetworkInterface,
        load_balancer: ResourceDescriptor | None,
    ) -> None:
        preconditions = MigrationStep.PRECONDITIONS
        if len(nic.ip_configurations) != 1:
            raise UnsupportedConfiguration(
                label,
                preconditions,
                f"{nic.name} has {len(nic.ip_configurations)} IP configurations; "
                "only one per interface is supported",
            )
        ip_config = nic.ip_configurations[0]
        if not ip_config.subnet_id:
            raise UnsupportedConfiguration(
                label, preconditions, f"{nic.name} is not attached to a subnet"
            )
        if not ip_config.load_balanced:
            return

        if ip_config.public_ip_id:
            raise UnsupportedConfiguration(
                label,
                preconditions,
                f"{nic.name} has a public IP while it is a load balancer "
                "backend; remove the public IP first",
            )
        if load_balancer is None:
            raise UnsupportedConfiguration(
                label,
                preconditions,
                f"{nic.name} is a load balancer backend; migrate it together "
                "with its load balancer",
            )
        for member_id in ip_config.backend_pool_ids + ip_config.nat_rule_ids:
            owner = ResourceDescriptor.parse(member_id).parent
            if not owner.same_resource(load_balancer):
                raise UnsupportedConfiguration(
                    label,
                    preconditions,
                    f"{nic.name} is also a backend of {owner.name}",
                )

    def _freeze_disks(self, plan: VmPlan, backup_path: Path) -> list[DiskCopy]:
        """Snapshot each disk and copy it into the target zone.

        OS disk first, then data disks in their original order, so LUN
        ordering is preserved.
        """
        vm = plan.vm
        timestamp = datetime.datetime.now(datetime.timezone.utc).strftime(
            "%Y%m%d%H%M%S"
        )
        copies: list[DiskCopy] = []
        for disk in vm.disks:
            source = disk.descriptor
            try:
                snapshot = self.cloud.create_snapshot_from_disk(
                    source, f"{source.name}-snapshot-{timestamp}", vm.location
                )
                zonal = self.cloud.create_zonal_disk_from_snapshot(
                    snapshot,
                    plan.zone,
                    zonal_disk_name(source.name, plan.zone),
                    vm.location,
                    disk.storage_account_type,
                )
            except CloudApiError as e:
                made = ", ".join(c.disk.name for c in copies) or "none"
                raise ProviderError(
                    plan.request.label,
                    MigrationStep.FREEZE_DISKS,
                    f"copying disk {source.name} failed: {e}. VM is intact "
                    f"but deallocated; zonal copies made so far: {made}",
                    backup_path=backup_path,
                ) from e
            copies.append(DiskCopy(source=disk, snapshot=snapshot, disk=zonal))
        return copies

    def _migrate_vm(self, request: MigrationRequest) -> MigrationResult:
        plan = self._check_vm(request)
        vm = plan.vm
        label = request.label
        zone = plan.zone

        dependents = [nic.document for nic in plan.interfaces]
        dependents += [
            a.public_address.document
            for a in plan.attachments
            if a.public_address is not None
        ]
        backup_path = self._backup(label, vm.descriptor, vm.document, dependents)

        with self._step(label, MigrationStep.STOP, False, backup_path):
            self.cloud.stop_resource(
                ResourceKind.VIRTUAL_MACHINE, vm.name, request.resource_group
            )

        disks = self._freeze_disks(plan, backup_path)

        with self._step(label, MigrationStep.DELETE, True, backup_path):
            self.cloud.delete_resource(
                ResourceKind.VIRTUAL_MACHINE, vm.name, request.resource_group
            )
        logger.info(
            f"Deleted VM {vm.name}; original disks and snapshots are kept"
        )

        interfaces: list[ResourceDescriptor] = []
        with self._step(label, MigrationStep.REBUILD_NETWORK, True, backup_path):
            for attachment in plan.attachments:
                interfaces.append(
                    rebuild_interface(self.cloud, attachment, zone)
                )

        os_copy, data_copies = disks[0], disks[1:]
        spec = VmSpec(
            name=vm.name,
            resource_group=request.resource_group,
            location=vm.location,
            size=vm.size,
            zone=zone,
            os_disk=DiskAttachmentSpec(
                disk_id=os_copy.disk.id,
                name=os_copy.disk.name,
                caching=os_copy.caching,
                os_type=os_copy.source.os_type,
                write_accelerator=os_copy.source.write_accelerator,
            ),
            data_disks=[
                DiskAttachmentSpec(
                    disk_id=c.disk.id,
                    name=c.disk.name,
                    lun=c.lun,
                    caching=c.caching,
                    write_accelerator=c.source.write_accelerator,
                )
                for c in data_copies
            ],
            nic_ids=[nic.id for nic in interfaces],
            tags=dict(vm.tags),
            base_document=vm.document,
        )
        with self._step(label, MigrationStep.RECREATE, True, backup_path):
            new_vm = self.cloud.create_resource(
                ResourceKind.VIRTUAL_MACHINE, spec
            )

        return MigrationResult(
            request=request,
            resource=new_vm,
            backup_path=backup_path,
            zone=zone,
            disks=disks,
            attachments=plan.attachments,
            interfaces=interfaces,
        )

    # Load balancers

    def _check_load_balancer(self, request: MigrationRequest) -> LoadBalancerPlan:
        label = request.label
        preconditions = MigrationStep.PRECONDITIONS

        with self._step(label, preconditions, deleted=False):
            lb = self.cloud.get_resource(
                ResourceKind.LOAD_BALANCER, request.name, request.resource_group
            )
        if not isinstance(lb, LoadBalancer):
            raise PreconditionNotMet(label, preconditions, "load balancer not found")
        if lb.standard:
            raise PreconditionNotMet(
                label, preconditions, "load balancer is already Standard SKU"
            )

        frontend_addresses: dict[str, PublicAddress] = {}
        for frontend in lb.frontends:
            if not frontend.public_ip_id:
                continue
            with self._step(label, preconditions, deleted=False):
                address = self.cloud.get_resource_by_id(
                    ResourceDescriptor.parse(frontend.public_ip_id)
                )
            if not isinstance(address, PublicAddress):
                raise PreconditionNotMet(
                    label,
                    preconditions,
                    f"frontend public IP {frontend.public_ip_id} not found",
                )
            frontend_addresses[frontend.name] = address

        members = []
        attachments = []
        for index, member_id in enumerate(lb.member_ip_configuration_ids()):
            member = ResourceDescriptor.parse(member_id)
            if member.parent.resource_type.lower() != "networkinterfaces":
                raise UnsupportedConfiguration(
                    label,
                    preconditions,
                    f"backend member {member_id} is not a network interface",
                )
            with self._step(label, preconditions, deleted=False):
                nic = self.cloud.get_resource_by_id(member)
            if not isinstance(nic, NetworkInterface):
                raise PreconditionNotMet(
                    label,
                    preconditions,
                    f"backend interface {member.name} not found",
                )
            if len(nic.ip_configurations) != 1:
                raise UnsupportedConfiguration(
                    label,
                    preconditions,
                    f"{nic.name} has {len(nic.ip_configurations)} IP "
                    "configurations; only one per interface is supported",
                )
            if nic.ip_configurations[0].public_ip_id:
                raise UnsupportedConfiguration(
                    label,
                    preconditions,
                    f"backend interface {nic.name} has its own public IP",
                )
            members.append(nic)
            attachments.append(DependentAttachment.capture(nic, index))

        return LoadBalancerPlan(
            request=request,
            load_balancer=lb,
            frontend_addresses=frontend_addresses,
            members=members,
            attachments=attachments,
        )

    def _detach_members(self, plan: LoadBalancerPlan, backup_path: Path) -> None:
        """Drop every member's pool and NAT rule links to this load balancer."""
        lb = plan.load_balancer
        detached: list[str] = []

        def elsewhere(ids: list[str]) -> list[str]:
            return [
                i
                for i in ids
                if not ResourceDescriptor.parse(i).parent.same_resource(
                    lb.descriptor
                )
            ]

        for attachment in plan.attachments:
            changes = IpConfigChanges(
                backend_pool_ids=elsewhere(attachment.backend_pool_ids),
                nat_rule_ids=elsewhere(attachment.nat_rule_ids),
            )
            ip_config = attachment.nic.child(
                "ipConfigurations", attachment.ip_config_name
            )
            try:
                self.cloud.update_network_interface_ip_config(ip_config, changes)
            except CloudApiError as e:
                raise ProviderError(
                    plan.request.label,
                    MigrationStep.DETACH,
                    f"detaching {attachment.nic.name} failed: {e}. Load "
                    "balancer is intact; already detached: "
                    f"{', '.join(detached) or 'none'}",
                    backup_path=backup_path,
                ) from e
            detached.append(attachment.nic.name)

    def _migrate_load_balancer(self, request: MigrationRequest) -> MigrationResult:
        plan = self._check_load_balancer(request)
        lb = plan.load_balancer
        label = request.label

        dependents = [a.document for a in plan.frontend_addresses.values()]
        dependents += [nic.document for nic in plan.members]
        backup_path = self._backup(label, lb.descriptor, lb.document, dependents)

        self._detach_members(plan, backup_path)

        with self._step(label, MigrationStep.DELETE, True, backup_path):
            self.cloud.delete_resource(
                ResourceKind.LOAD_BALANCER, lb.name, request.resource_group
            )

        new_addresses: dict[str, str] = {}
        upgraded: dict[str, str] = {}
        with self._step(label, MigrationStep.REBUILD_NETWORK, True, backup_path):
            for frontend, address in plan.frontend_addresses.items():
                key = address.descriptor.id.lower()
                if key not in upgraded:
                    upgraded[key] = upgrade_public_address(
                        self.cloud, address, request.zone
                    ).id
                new_addresses[frontend] = upgraded[key]

        spec = LoadBalancerSpec(
            name=lb.name,
            resource_group=request.resource_group,
            location=lb.location,
            sku=STANDARD_TIER,
            frontend_public_ip_ids=new_addresses,
            base_document=lb.document,
        )
        logger.info(
            f"Recreating {lb.name} as {STANDARD_TIER} with rules "
            f"{', '.join(lb.rule_names) or 'none'} and probes "
            f"{', '.join(lb.probe_names) or 'none'}"
        )
        with self._step(label, MigrationStep.RECREATE, True, backup_path):
            new_lb = self.cloud.create_resource(ResourceKind.LOAD_BALANCER, spec)

        with self._step(label, MigrationStep.REWIRE, True, backup_path):
            current = self.cloud.get_resource(
                ResourceKind.LOAD_BALANCER, lb.name, request.resource_group
            )
        if not isinstance(current, LoadBalancer):
            raise PostDeletionFailure(
                label,
                MigrationStep.REWIRE,
                "recreated load balancer could not be read back",
                backup_path=backup_path,
            )
        interfaces = [a.nic for a in plan.attachments]
        self.rewirer.rewire(current, plan.attachments, interfaces, backup_path)

        logger.warning(
            f"{lb.name} is now Standard SKU: inbound traffic is blocked unless "
            "an NSG allows it, and backends no longer get default outbound "
            "access"
        )
        for nic in plan.members:
            if not nic.nsg_id:
                logger.warning(
                    f"{nic.name} has no NSG of its own; check its subnet NSG "
                    "allows the load-balanced traffic"
                )

        return MigrationResult(
            request=request,
            resource=new_lb,
            backup_path=backup_path,
            zone=request.zone,
            attachments=plan.attachments,
            interfaces=interfaces,
        )

    # Ledger

    def _record(
        self,
        resource_id: str,
        request: MigrationRequest,
        status: str,
        **details,
    ) -> None:
        try:
            self.ledger.record(resource_id, request.kind.value, status, **details)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not update migration ledger: {e}")

    def _record_failure(
        self, request: MigrationRequest, error: MigrationError
    ) -> None:
        status = "failed" if isinstance(error, PostDeletionFailure) else "aborted"
        resource_id = ResourceDescriptor.for_kind(
            self.cloud.subscription,
            request.resource_group,
            request.kind,
            request.name,
        ).id
        self._record(
            resource_id,
            request,
            status,
            step=error.step.value,
            error=error.kind,
            message=error.message,
            backup=str(error.backup_path) if error.backup_path else None,
        )
