import pytest

from azmigrate.errors import ProviderError, ZoneUnsupported
from azmigrate.migration.zones import ZoneAssigner
from azmigrate.resources import VirtualMachine

from tests.builders import LOCATION, SIZE, vm_document


def vms(*names, size=SIZE):
    return [VirtualMachine.from_document(vm_document(n, size=size)) for n in names]


@pytest.fixture
def assigner(cloud):
    return ZoneAssigner(cloud)


def test_round_robin_over_three_zones(assigner):
    assignments = assigner.assign_zones(vms("a", "b", "c", "d", "e"))
    assert [a.resource.name for a in assignments] == ["a", "b", "c", "d", "e"]
    assert [a.zone for a in assignments] == [1, 2, 3, 1, 2]


def test_round_robin_over_two_zones(cloud, assigner):
    cloud.zone_catalog[(SIZE, LOCATION)] = {1, 2}
    assignments = assigner.assign_zones(vms("a", "b", "c", "d"))
    assert [a.zone for a in assignments] == [1, 2, 1, 2]


def test_uses_only_supported_zones(cloud, assigner):
    cloud.zone_catalog[(SIZE, LOCATION)] = {3, 2}
    assignments = assigner.assign_zones(vms("a", "b", "c"))
    assert [a.zone for a in assignments] == [2, 3, 2]


def test_assignment_is_stable(cloud):
    batch = vms("a", "b", "c", "d", "e")
    first = ZoneAssigner(cloud).assign_zones(batch)
    second = ZoneAssigner(cloud).assign_zones(batch)
    assert first == second


def test_catalog_queried_once_per_size_and_region(cloud, assigner):
    assigner.assign_zones(vms("a", "b", "c", "d"))
    assigner.assign_zones(vms("e", "f"))
    assert cloud.zone_queries == [(SIZE, LOCATION)]


def test_mixed_sizes_use_common_zones(cloud, assigner):
    cloud.zone_catalog[("Standard_E4s_v5", LOCATION)] = {2, 3}
    batch = vms("a", "b") + vms("c", size="Standard_E4s_v5")
    assignments = assigner.assign_zones(batch)
    assert [a.zone for a in assignments] == [2, 3, 2]
    assert len(cloud.zone_queries) == 2


def test_no_supported_zone_fails_whole_batch(cloud, assigner):
    cloud.zone_catalog[(SIZE, LOCATION)] = set()
    with pytest.raises(ZoneUnsupported) as exc:
        assigner.assign_zones(vms("a", "b"))
    assert "a, b" in exc.value.resource


def test_empty_batch(cloud, assigner):
    assert assigner.assign_zones([]) == []
    assert cloud.zone_queries == []


def test_duplicates_are_rejected(assigner):
    with pytest.raises(ValueError):
        assigner.assign_zones(vms("a", "b", "a"))


def test_catalog_failure_is_a_provider_error(cloud, assigner):
    cloud.fail("list_supported_zones")
    with pytest.raises(ProviderError):
        assigner.supported_zones(SIZE, LOCATION)
