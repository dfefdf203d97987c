#!/usr/bin/env python3
"""
Base Cloud API abstraction.
Defines the control-plane capabilities a migration consumes.
"""

import logging
import subprocess
from abc import ABC, abstractmethod

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
)

logger = logging.getLogger(__name__)


class CloudApiError(RuntimeError):
    """A control-plane call failed."""

    def __init__(self, message: str, cmd: list[str] | None = None):
        self.cmd = cmd
        super().__init__(message)


class CloudApi(ABC):
    """Abstract base class for a subscription-bound control plane.

    Instances are constructed once per run with an explicit subscription
    and passed to every operation; there is no ambient session.
    """

    def __init__(self, subscription: str, show_logs: bool = False):
        self.subscription = subscription
        self.show_logs = show_logs

    @staticmethod
    def run_command(
        cmd: list[str],
        show_logs: bool = False,
    ) -> subprocess.CompletedProcess:
        """Execute a CLI command."""
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
            )
            if show_logs and result.stdout:
                logger.debug(result.stdout)
            return result
        except subprocess.CalledProcessError as e:
            logger.info(f"Command failed: {' '.join(cmd)}")
            logger.info(f"Error: {e.stderr}")
            raise CloudApiError(
                f"Command failed: {' '.join(cmd)}: {(e.stderr or '').strip()}",
                cmd=cmd,
            ) from e
        except FileNotFoundError as e:
            raise CloudApiError(f"Command not found: {cmd[0]}", cmd=cmd) from e

    def descriptor(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> ResourceDescriptor:
        return ResourceDescriptor.for_kind(
            self.subscription, resource_group, kind, name
        )

    def get_resource_by_id(self, descriptor: ResourceDescriptor) -> Resource | None:
        """Fetch the top-level resource a (possibly nested) id belongs to."""
        parent = descriptor.parent
        return self.get_resource(parent.kind, parent.name, parent.resource_group)

    @staticmethod
    @abstractmethod
    def check_dependencies():
        """Check if required tools are installed."""
        raise NotImplementedError

    @abstractmethod
    def get_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> Resource | None:
        """Read a resource. Returns None if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def get_resource_status(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> RunState:
        """Read the run state of a resource."""
        raise NotImplementedError

    @abstractmethod
    def list_supported_zones(self, size: str, region: str) -> set[int]:
        """Zones the capability catalog offers for a size in a region."""
        raise NotImplementedError

    @abstractmethod
    def create_snapshot_from_disk(
        self, disk: ResourceDescriptor, name: str, location: str
    ) -> ResourceDescriptor:
        """Take a full storage-level snapshot of a managed disk."""
        raise NotImplementedError

    @abstractmethod
    def create_zonal_disk_from_snapshot(
        self,
        snapshot: ResourceDescriptor,
        zone: int,
        name: str,
        location: str,
        sku: str | None = None,
    ) -> ResourceDescriptor:
        """Create a managed disk pinned to a zone from a snapshot."""
        raise NotImplementedError

    @abstractmethod
    def stop_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_resource(
        self, kind: ResourceKind, name: str, resource_group: str
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_network_interface(self, spec: NicSpec) -> ResourceDescriptor:
        raise NotImplementedError

    def delete_network_interface(self, nic: ResourceDescriptor) -> None:
        self.delete_resource(
            ResourceKind.NETWORK_INTERFACE, nic.name, nic.resource_group
        )

    @abstractmethod
    def create_public_address(
        self,
        spec: PublicAddressSpec,
        tier: str,
        allocation: str,
        zone: int | None = None,
    ) -> ResourceDescriptor:
        raise NotImplementedError

    def delete_public_address(self, address: ResourceDescriptor) -> None:
        self.delete_resource(
            ResourceKind.PUBLIC_IP_ADDRESS, address.name, address.resource_group
        )

    @abstractmethod
    def create_resource(
        self, kind: ResourceKind, spec: VmSpec | LoadBalancerSpec
    ) -> ResourceDescriptor:
        """Create a VM or load balancer from a composed spec."""
        raise NotImplementedError

    @abstractmethod
    def update_network_interface_ip_config(
        self, ip_config: ResourceDescriptor, changes: IpConfigChanges
    ) -> None:
        """Replace the backend pool and NAT rule memberships of an
        IP configuration."""
        raise NotImplementedError
