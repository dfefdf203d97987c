"""Availability zone lookup and round-robin assignment."""

import logging
from collections.abc import Sequence

from azmigrate.cloud.cloud_api import CloudApi, CloudApiError
from azmigrate.errors import MigrationStep, ProviderError, ZoneUnsupported
from azmigrate.migration.models import ZoneAssignment
from azmigrate.resources import VirtualMachine

logger = logging.getLogger(__name__)


class ZoneAssigner:
    def __init__(self, cloud: CloudApi):
        self.cloud = cloud
        self._catalog: dict[tuple[str, str], list[int]] = {}

    def supported_zones(self, size: str, region: str) -> list[int]:
        """Sorted zones offered for a size in a region.

        The catalog is queried once per (size, region) pair.
        """
        key = (size.lower(), region.lower())
        if key not in self._catalog:
            try:
                zones = self.cloud.list_supported_zones(size, region)
            except CloudApiError as e:
                raise ProviderError(
                    f"{size} in {region}",
                    MigrationStep.PRECONDITIONS,
                    f"could not read the zone catalog: {e}",
                ) from e
            self._catalog[key] = sorted(zones)
        return self._catalog[key]

    def assign_zones(
        self, resources: Sequence[VirtualMachine]
    ) -> list[ZoneAssignment]:
        """Spread a batch across zones, round-robin in input order.

        The i-th resource gets the (i mod Z)-th of the Z zones supported by
        every size/region in the batch, so callers must pass a stable order
        to get a stable mapping.

        Raises:
            ZoneUnsupported: If the batch has no zone in common
            ValueError: If a resource appears twice
        """
        if not resources:
            return []

        seen: set[str] = set()
        for vm in resources:
            if vm.descriptor.id.lower() in seen:
                raise ValueError(f"{vm.name} appears twice in the batch")
            seen.add(vm.descriptor.id.lower())

        zones: set[int] | None = None
        for vm in resources:
            supported = set(self.supported_zones(vm.size, vm.location))
            zones = supported if zones is None else zones & supported
        ordered = sorted(zones or set())

        if not ordered:
            pairs = sorted({(vm.size, vm.location) for vm in resources})
            raise ZoneUnsupported(
                ", ".join(vm.name for vm in resources),
                MigrationStep.PRECONDITIONS,
                f"no availability zone supports {pairs}",
            )

        assignments = [
            ZoneAssignment(resource=vm.descriptor, zone=ordered[i % len(ordered)])
            for i, vm in enumerate(resources)
        ]
        for assignment in assignments:
            logger.info(
                f"Assigned {assignment.resource.name} to zone {assignment.zone}"
            )
        return assignments
