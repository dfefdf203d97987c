"""Reconnect recreated interfaces to a shared load balancer."""

import logging
from collections.abc import Sequence
from pathlib import Path

from azmigrate.cloud.cloud_api import CloudApi, CloudApiError
from azmigrate.cloud.specs import IpConfigChanges
from azmigrate.errors import MigrationStep, PostDeletionFailure
from azmigrate.migration.models import DependentAttachment
from azmigrate.resources import LoadBalancer, ResourceDescriptor

logger = logging.getLogger(__name__)


class LoadBalancerRewirer:
    """Rebinds backend pool and NAT rule memberships by name.

    Resource ids change on recreation but names do not, so an old pool or
    NAT rule is matched to the load balancer's current one with the same
    name, and a NAT rule bound to IP configuration X is bound to the new
    interface's IP configuration named X. Must run after every affected
    interface has been recreated, since pools and rules are shared by the
    whole batch.
    """

    def __init__(self, cloud: CloudApi):
        self.cloud = cloud

    def rewire(
        self,
        load_balancer: LoadBalancer,
        attachments: Sequence[DependentAttachment],
        interfaces: Sequence[ResourceDescriptor],
        backup_path: Path | None = None,
    ) -> list[ResourceDescriptor]:
        """Attach new interfaces to the load balancer's pools and NAT rules.

        Args:
            load_balancer: Current state of the (possibly recreated) LB
            attachments: Memberships captured from the original interfaces
            interfaces: The recreated interfaces
            backup_path: Backup to name in errors

        Returns:
            The IP configurations that were updated

        Raises:
            ValueError: If an attachment has no recreated interface yet
            PostDeletionFailure: If a pool or rule is gone or an update fails
        """
        new_interfaces = {nic.name.lower(): nic for nic in interfaces}
        pending = [a for a in attachments if a.load_balanced]
        missing = [
            a.nic.name for a in pending if a.nic.name.lower() not in new_interfaces
        ]
        if missing:
            raise ValueError(
                f"Interfaces not recreated yet: {', '.join(missing)}; "
                "rewiring must run after every migration in the batch"
            )

        updated = []
        for attachment in pending:
            nic = new_interfaces[attachment.nic.name.lower()]
            changes = IpConfigChanges(
                backend_pool_ids=[
                    self._current_id(load_balancer, pool_id, backup_path)
                    for pool_id in attachment.backend_pool_ids
                ],
                nat_rule_ids=[
                    self._current_id(load_balancer, rule_id, backup_path)
                    for rule_id in attachment.nat_rule_ids
                ],
            )
            ip_config = nic.child("ipConfigurations", attachment.ip_config_name)
            pools = ", ".join(
                ResourceDescriptor.parse(i).leaf_name
                for i in changes.backend_pool_ids
            )
            rules = ", ".join(
                ResourceDescriptor.parse(i).leaf_name
                for i in changes.nat_rule_ids
            )
            logger.info(
                f"Rewiring {nic.name}/{attachment.ip_config_name} to "
                f"{load_balancer.name}: pools [{pools}], NAT rules [{rules}]"
            )
            try:
                self.cloud.update_network_interface_ip_config(ip_config, changes)
            except CloudApiError as e:
                raise PostDeletionFailure(
                    load_balancer.name,
                    MigrationStep.REWIRE,
                    f"could not rewire {nic.name}: {e}",
                    backup_path=backup_path,
                ) from e
            updated.append(ip_config)
        return updated

    @staticmethod
    def _current_id(
        load_balancer: LoadBalancer,
        old_id: str,
        backup_path: Path | None,
    ) -> str:
        """Map an old pool or NAT rule id to the load balancer's current one.

        Memberships of other load balancers are kept as they are.
        """
        old = ResourceDescriptor.parse(old_id)
        if not old.parent.same_resource(load_balancer.descriptor):
            return old_id

        child_type = old.sub_resource_path[0][0] if old.sub_resource_path else ""
        if child_type.lower() == "backendaddresspools":
            current = load_balancer.backend_pool(old.leaf_name)
        elif child_type.lower() == "inboundnatrules":
            current = load_balancer.nat_rule(old.leaf_name)
        else:
            raise ValueError(f"Unexpected load balancer member {old_id}")

        if current is None:
            raise PostDeletionFailure(
                load_balancer.name,
                MigrationStep.REWIRE,
                f"{load_balancer.name} has no {child_type} named {old.leaf_name}",
                backup_path=backup_path,
            )
        return current.id
