import pytest

from azmigrate.resources import (
    LoadBalancer,
    ResourceDescriptor,
    ResourceKind,
    RunState,
    VirtualMachine,
    parse_resource,
)

from tests.builders import (
    NSG_ID,
    SUBNET_ID,
    ip_config_id,
    lb_document,
    nat_rule_id,
    nic_document,
    pool_id,
    public_ip_document,
    vm_document,
)


class TestResourceDescriptor:
    def test_parse_top_level_id(self):
        descriptor = ResourceDescriptor.parse(
            "/subscriptions/sub-1/resourceGroups/rg-app/providers/"
            "Microsoft.Compute/virtualMachines/vm1"
        )
        assert descriptor.subscription == "sub-1"
        assert descriptor.resource_group == "rg-app"
        assert descriptor.provider == "Microsoft.Compute"
        assert descriptor.resource_type == "virtualMachines"
        assert descriptor.name == "vm1"
        assert descriptor.sub_resource_path == ()
        assert descriptor.kind == ResourceKind.VIRTUAL_MACHINE

    def test_parse_nested_id(self):
        descriptor = ResourceDescriptor.parse(ip_config_id("vm1-nic", "ipconfig1"))
        assert descriptor.name == "vm1-nic"
        assert descriptor.sub_resource_path == (("ipConfigurations", "ipconfig1"),)
        assert descriptor.leaf_name == "ipconfig1"
        assert descriptor.parent.kind == ResourceKind.NETWORK_INTERFACE
        assert descriptor.parent.leaf_name == "vm1-nic"

    def test_segments_are_case_insensitive(self):
        descriptor = ResourceDescriptor.parse(
            "/SUBSCRIPTIONS/sub-1/resourcegroups/RG/PROVIDERS/"
            "Microsoft.Network/loadBalancers/lb"
        )
        assert descriptor.resource_group == "RG"
        assert descriptor.kind == ResourceKind.LOAD_BALANCER

    def test_id_round_trips(self):
        resource_id = pool_id("lb-app", "pool")
        assert ResourceDescriptor.parse(resource_id).id == resource_id

    def test_child_appends_path(self):
        nic = ResourceDescriptor.parse(nic_document("vm1-nic")["id"])
        child = nic.child("ipConfigurations", "ipconfig1")
        assert child.id == ip_config_id("vm1-nic")
        assert child.parent == nic

    def test_same_resource_ignores_case(self):
        a = ResourceDescriptor.parse(pool_id("lb-app", "pool"))
        b = ResourceDescriptor.parse(pool_id("lb-app", "pool").upper())
        assert a.same_resource(b)

    @pytest.mark.parametrize(
        "resource_id",
        [
            "",
            "vm1",
            "/subscriptions/sub-1/resourceGroups/rg",
            "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Compute",
            "/subscriptions/sub-1/groups/rg/providers/Microsoft.Compute/"
            "virtualMachines/vm1",
            "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Network/"
            "loadBalancers/lb/backendAddressPools",
        ],
    )
    def test_malformed_ids_are_rejected(self, resource_id):
        with pytest.raises(ValueError):
            ResourceDescriptor.parse(resource_id)

    def test_unknown_kind(self):
        descriptor = ResourceDescriptor.parse(
            "/subscriptions/s/resourceGroups/rg/providers/"
            "Microsoft.Compute/virtualMachineScaleSets/ss"
        )
        with pytest.raises(ValueError):
            descriptor.kind


class TestRunState:
    @pytest.mark.parametrize(
        "code,state",
        [
            ("PowerState/running", RunState.RUNNING),
            ("PowerState/deallocated", RunState.DEALLOCATED),
            ("PowerState/Stopped", RunState.STOPPED),
            ("PowerState/hibernated", RunState.UNKNOWN),
            (None, RunState.UNKNOWN),
            ("", RunState.UNKNOWN),
        ],
    )
    def test_from_power_state(self, code, state):
        assert RunState.from_power_state(code) == state


class TestVirtualMachine:
    def test_parses_disks_in_order(self):
        vm = VirtualMachine.from_document(vm_document("vm1", data_luns=(0, 2, 5)))
        assert vm.name == "vm1"
        assert vm.size == "Standard_D2s_v3"
        assert vm.os_disk.lun is None
        assert vm.os_disk.os_type == "Linux"
        assert vm.os_disk.storage_account_type == "Premium_LRS"
        assert [d.lun for d in vm.data_disks] == [0, 2, 5]
        assert [d.caching for d in vm.data_disks] == ["ReadOnly", "ReadOnly", "None"]
        assert vm.disks[0] is vm.os_disk
        assert vm.unmanaged_disks == []
        assert not vm.encrypted

    def test_nic_order(self):
        vm = VirtualMachine.from_document(
            vm_document("vm1", nics=["a-nic", "b-nic", "c-nic"])
        )
        assert [n.descriptor.name for n in vm.network_interfaces] == [
            "a-nic",
            "b-nic",
            "c-nic",
        ]

    def test_unmanaged_disk(self):
        vm = VirtualMachine.from_document(vm_document("vm1", managed=False))
        assert vm.unmanaged_disks == [vm.os_disk]
        with pytest.raises(ValueError):
            vm.os_disk.descriptor

    def test_encryption_settings(self):
        vm = VirtualMachine.from_document(vm_document("vm1", encrypted=True))
        assert vm.encrypted

    def test_encryption_extension(self):
        vm = VirtualMachine.from_document(
            vm_document("vm1", extensions=("AzureDiskEncryptionForLinux",))
        )
        assert vm.encrypted

    def test_zones(self):
        vm = VirtualMachine.from_document(vm_document("vm1", zones=["2"]))
        assert vm.zones == ["2"]


class TestNetwork:
    def test_network_interface(self):
        nic = parse_resource(
            ResourceKind.NETWORK_INTERFACE,
            nic_document(
                "vm1-nic",
                vm="vm1",
                allocation="Static",
                private_ip="10.0.0.7",
                public_ip="vm1-pip",
                pools=[pool_id("lb-app", "pool")],
                nat_rules=[nat_rule_id("lb-app", "ssh")],
            ),
        )
        assert nic.name == "vm1-nic"
        assert nic.nsg_id == NSG_ID
        assert nic.accelerated_networking
        assert nic.virtual_machine_id.endswith("/virtualMachines/vm1")
        ip_config = nic.ip_configurations[0]
        assert ip_config.name == "ipconfig1"
        assert ip_config.subnet_id == SUBNET_ID
        assert ip_config.static
        assert ip_config.private_ip == "10.0.0.7"
        assert ip_config.public_ip_id.endswith("/publicIPAddresses/vm1-pip")
        assert ip_config.load_balanced
        assert ip_config.nat_rule_ids == [nat_rule_id("lb-app", "ssh")]

    def test_public_address(self):
        address = parse_resource(
            ResourceKind.PUBLIC_IP_ADDRESS,
            public_ip_document("pip", dns_label="app"),
        )
        assert address.sku == "Basic"
        assert address.allocation == "Dynamic"
        assert address.version == "IPv4"
        assert address.dns_label == "app"
        assert address.idle_timeout == 4
        assert address.ip_address == "52.0.0.1"

    def test_load_balancer_members_in_discovery_order(self):
        document = lb_document("lb-app", nat_rules={"ssh-b": 50002, "ssh-c": 50003})
        props = document["properties"]
        props["backendAddressPools"][0]["properties"]["backendIPConfigurations"] = [
            {"id": ip_config_id("a-nic")},
            {"id": ip_config_id("b-nic")},
        ]
        props["inboundNatRules"][0]["properties"]["backendIPConfiguration"] = {
            "id": ip_config_id("b-nic").upper()
        }
        props["inboundNatRules"][1]["properties"]["backendIPConfiguration"] = {
            "id": ip_config_id("c-nic")
        }
        lb = LoadBalancer.from_document(document)
        assert not lb.standard
        assert lb.frontends[0].public_ip_id.endswith("/pip-lb")
        assert lb.backend_pool("pool").id == pool_id("lb-app", "pool")
        assert lb.nat_rule("ssh-c").frontend_port == 50003
        assert lb.nat_rule("missing") is None
        assert lb.probe_names == ["http"]
        assert lb.member_ip_configuration_ids() == [
            ip_config_id("a-nic"),
            ip_config_id("b-nic"),
            ip_config_id("c-nic"),
        ]
        assert lb.descriptor.name == "lb-app"


def test_parse_resource_rejects_kinds_without_mirror():
    with pytest.raises(ValueError):
        parse_resource(ResourceKind.SNAPSHOT, {"id": "x"})
