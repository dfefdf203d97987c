"""Move every VM behind a load balancer into availability zones."""

import logging
from dataclasses import dataclass, field

from azmigrate.cloud.cloud_api import CloudApi, CloudApiError
from azmigrate.errors import (
    MigrationError,
    MigrationStep,
    PostDeletionFailure,
    PreconditionNotMet,
    ProviderError,
    UnsupportedConfiguration,
)
from azmigrate.migration.migrator import ResourceMigrator
from azmigrate.migration.models import (
    DependentAttachment,
    MigrationRequest,
    MigrationResult,
    VmPlan,
    ZoneAssignment,
)
from azmigrate.migration.rewire import LoadBalancerRewirer
from azmigrate.migration.zones import ZoneAssigner
from azmigrate.resources import (
    LoadBalancer,
    NetworkInterface,
    ResourceDescriptor,
    ResourceKind,
    VirtualMachine,
)

logger = logging.getLogger(__name__)


@dataclass
class BatchPlan:
    load_balancer: LoadBalancer
    vms: list[VirtualMachine]
    assignments: list[ZoneAssignment]
    plans: list[VmPlan]


@dataclass
class BatchResult:
    load_balancer: ResourceDescriptor
    assignments: list[ZoneAssignment]
    results: list[MigrationResult] = field(default_factory=list)
    upgrade: MigrationResult | None = None
    rewired: list[ResourceDescriptor] = field(default_factory=list)


class LoadBalancerZoneMigration:
    """Batch zone move for the backends of one load balancer.

    Every VM is read, assigned a zone and preflighted before the first one
    is touched. Migrations then run strictly one after another, the load
    balancer is upgraded to Standard if it is still Basic, and the backend
    pool and NAT rule memberships are restored once every interface exists
    again.
    """

    def __init__(
        self,
        cloud: CloudApi,
        migrator: ResourceMigrator,
        assigner: ZoneAssigner | None = None,
        rewirer: LoadBalancerRewirer | None = None,
    ):
        self.cloud = cloud
        self.migrator = migrator
        self.assigner = assigner or ZoneAssigner(cloud)
        self.rewirer = rewirer or LoadBalancerRewirer(cloud)

    def _read_load_balancer(self, name: str, resource_group: str) -> LoadBalancer:
        label = f"{resource_group}/{name}"
        try:
            lb = self.cloud.get_resource(
                ResourceKind.LOAD_BALANCER, name, resource_group
            )
        except CloudApiError as e:
            raise ProviderError(label, MigrationStep.PRECONDITIONS, str(e)) from e
        if not isinstance(lb, LoadBalancer):
            raise PreconditionNotMet(
                label, MigrationStep.PRECONDITIONS, "load balancer not found"
            )
        return lb

    def discover_vms(self, lb: LoadBalancer) -> list[VirtualMachine]:
        """Backend VMs in pool order, then NAT rule order, each once."""
        label = f"{lb.descriptor.resource_group}/{lb.name}"
        preconditions = MigrationStep.PRECONDITIONS
        seen: set[str] = set()
        vms = []
        for member_id in lb.member_ip_configuration_ids():
            member = ResourceDescriptor.parse(member_id)
            if member.parent.resource_type.lower() != "networkinterfaces":
                raise UnsupportedConfiguration(
                    label,
                    preconditions,
                    f"backend member {member_id} is not a VM network interface",
                )
            try:
                nic = self.cloud.get_resource_by_id(member)
            except CloudApiError as e:
                raise ProviderError(label, preconditions, str(e)) from e
            if not isinstance(nic, NetworkInterface):
                raise PreconditionNotMet(
                    label, preconditions, f"backend interface {member.name} not found"
                )
            if not nic.virtual_machine_id:
                raise UnsupportedConfiguration(
                    label,
                    preconditions,
                    f"backend interface {nic.name} is not attached to a VM",
                )
            if nic.virtual_machine_id.lower() in seen:
                continue
            seen.add(nic.virtual_machine_id.lower())

            try:
                vm = self.cloud.get_resource_by_id(
                    ResourceDescriptor.parse(nic.virtual_machine_id)
                )
            except CloudApiError as e:
                raise ProviderError(label, preconditions, str(e)) from e
            if not isinstance(vm, VirtualMachine):
                raise PreconditionNotMet(
                    label,
                    preconditions,
                    f"VM {nic.virtual_machine_id} not found",
                )
            vms.append(vm)

        if not vms:
            raise PreconditionNotMet(
                label, preconditions, f"{lb.name} has no backend VMs"
            )
        logger.info(
            f"Found {len(vms)} backend VMs behind {lb.name}: "
            f"{', '.join(vm.name for vm in vms)}"
        )
        return vms

    def plan(self, name: str, resource_group: str) -> BatchPlan:
        """Read, assign and preflight the whole batch without changing it.

        Any preflight failure aborts the whole batch.
        """
        lb = self._read_load_balancer(name, resource_group)
        vms = self.discover_vms(lb)
        assignments = self.assigner.assign_zones(vms)

        plans = []
        for vm, assignment in zip(vms, assignments):
            request = MigrationRequest.for_vm(
                vm.name,
                vm.descriptor.resource_group,
                assignment.zone,
                load_balancer=lb.descriptor,
            )
            plans.append(self.migrator.check(request))

        if not lb.standard:
            self.migrator.check(
                MigrationRequest.for_load_balancer(name, resource_group)
            )
        return BatchPlan(
            load_balancer=lb, vms=vms, assignments=assignments, plans=plans
        )

    def run(self, name: str, resource_group: str) -> BatchResult:
        """Migrate every backend VM, then upgrade and rewire the load balancer.

        Raises:
            MigrationError: Before the first VM is deleted, whatever the
                failing step raised; afterwards, PostDeletionFailure for the
                whole batch naming the VMs already migrated
        """
        plan = self.plan(name, resource_group)
        lb = plan.load_balancer
        label = f"{resource_group}/{name}"
        result = BatchResult(
            load_balancer=lb.descriptor, assignments=plan.assignments
        )

        try:
            for vm_plan in plan.plans:
                result.results.append(self.migrator.migrate(vm_plan.request))

            if not lb.standard:
                logger.info(f"Upgrading {lb.name} to Standard SKU")
                result.upgrade = self.migrator.migrate(
                    MigrationRequest.for_load_balancer(name, resource_group)
                )

            result.rewired = self._rewire(plan, result)
        except MigrationError as e:
            if not result.results and not isinstance(e, PostDeletionFailure):
                raise
            done = ", ".join(r.request.name for r in result.results) or "none"
            raise PostDeletionFailure(
                label,
                e.step,
                f"{e}. Already migrated: {done}",
                backup_path=e.backup_path,
            ) from e

        logger.info(
            f"Moved {len(result.results)} VMs behind {lb.name} into zones "
            f"{sorted({a.zone for a in plan.assignments})}"
        )
        return result

    def _rewire(
        self, plan: BatchPlan, result: BatchResult
    ) -> list[ResourceDescriptor]:
        lb = plan.load_balancer
        label = f"{lb.descriptor.resource_group}/{lb.name}"
        try:
            current = self.cloud.get_resource(
                ResourceKind.LOAD_BALANCER, lb.name, lb.descriptor.resource_group
            )
        except CloudApiError as e:
            raise PostDeletionFailure(label, MigrationStep.REWIRE, str(e)) from e
        if not isinstance(current, LoadBalancer):
            raise PostDeletionFailure(
                label, MigrationStep.REWIRE, f"{lb.name} could not be read back"
            )

        attachments: list[DependentAttachment] = []
        interfaces: list[ResourceDescriptor] = []
        for migrated in result.results:
            attachments.extend(migrated.attachments)
            interfaces.extend(migrated.interfaces)
        return self.rewirer.rewire(current, attachments, interfaces)
