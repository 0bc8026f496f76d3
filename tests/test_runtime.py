"""Tests for runtime.json translation: namespaces, resources, devices."""

import os
import stat
from types import SimpleNamespace

import pytest

from ocigen.cgroups import (DEFAULT_ALLOWED_DEVICES, parse_device_cgroup_rule,
                            translate_devices, translate_resources)
from ocigen.namespaces import (NAMESPACE_KINDS, build_namespaces,
                               plan_namespace, plan_namespaces)
from ocigen.oci import (OCICPU, OCIDevice, OCIDeviceRule, OCIMemory,
                        OCINamespace, OCIRlimit)
from ocigen.runtime import translate_hostname, translate_runtime
from ocigen.snapshot import ContainerSnapshot, DaemonInfo, TranslationError


def _fake_stat(mode, rdev, uid=0, gid=0):
    def fake(path):
        return SimpleNamespace(st_mode=mode, st_rdev=rdev, st_uid=uid, st_gid=gid)

    return fake


def _types(namespaces):
    return [ns.type for ns in namespaces]


class TestNamespaces:
    """Test namespace planning."""

    def test_default_container(self, snapshot, info):
        """Test namespaces of a default container."""
        runtime = translate_runtime(snapshot, info, [])
        assert _types(runtime.linux.namespaces) == ["pid", "network", "ipc", "uts", "mount"]

    def test_host_network_omits_network(self, inspect_data, info):
        """Test that host networking has no network entry."""
        inspect_data["HostConfig"]["NetworkMode"] = "host"
        runtime = translate_runtime(ContainerSnapshot.from_inspect(inspect_data), info, [])
        assert "network" not in _types(runtime.linux.namespaces)

    def test_isolated_network_has_exactly_one(self, snapshot, info):
        """Test that isolated networking has one network entry."""
        runtime = translate_runtime(snapshot, info, [])
        assert _types(runtime.linux.namespaces).count("network") == 1

    def test_host_pid_ipc_uts(self, inspect_data, info):
        """Test that host modes omit their entries."""
        host = inspect_data["HostConfig"]
        host["PidMode"] = host["IpcMode"] = host["UTSMode"] = "host"
        runtime = translate_runtime(ContainerSnapshot.from_inspect(inspect_data), info, [])
        assert _types(runtime.linux.namespaces) == ["network", "mount"]

    def test_none_network_is_isolated(self, inspect_data, info):
        """Test that none networking is isolated."""
        inspect_data["HostConfig"]["NetworkMode"] = "none"
        runtime = translate_runtime(ContainerSnapshot.from_inspect(inspect_data), info, [])
        assert OCINamespace(type="network") in runtime.linux.namespaces

    def test_join_other_container(self, inspect_data, info):
        """Test joining another container's namespace."""
        inspect_data["HostConfig"]["NetworkMode"] = "container:db"
        snapshot = ContainerSnapshot.from_inspect(inspect_data)
        runtime = translate_runtime(snapshot, info, [], peer_pids={"db": 77})
        assert OCINamespace(type="network", path="/proc/77/ns/net") in runtime.linux.namespaces

    def test_join_unknown_container_gets_new_namespace(self):
        """Test that an unknown peer gets a new namespace."""
        assert plan_namespace("ipc", "container:gone") == OCINamespace(type="ipc")

    def test_plan_covers_every_kind(self, snapshot, info):
        """Test that the plan lists every kind."""
        plan = plan_namespaces(snapshot, info)
        assert set(plan) == set(NAMESPACE_KINDS)
        assert plan["user"] is None
        assert plan["cgroup"] is None

    def test_user_namespace_with_remap(self, snapshot):
        """Test the user namespace with daemon remapping."""
        info = DaemonInfo(security_options=("name=userns",))
        assert "user" in _types(build_namespaces(plan_namespaces(snapshot, info)))

    def test_userns_host_mode(self, inspect_data):
        """Test that userns host mode disables remapping."""
        inspect_data["HostConfig"]["UsernsMode"] = "host"
        snapshot = ContainerSnapshot.from_inspect(inspect_data)
        info = DaemonInfo(security_options=("name=userns",))
        assert "user" not in _types(build_namespaces(plan_namespaces(snapshot, info)))

    def test_private_cgroupns(self, inspect_data, info):
        """Test the private cgroup namespace."""
        inspect_data["HostConfig"]["CgroupnsMode"] = "private"
        snapshot = ContainerSnapshot.from_inspect(inspect_data)
        assert _types(build_namespaces(plan_namespaces(snapshot, info)))[-1] == "cgroup"


class TestResources:
    """Test resource limit translation."""

    def test_unset_limits_are_omitted(self, snapshot):
        """Test that unset limits are omitted."""
        resources = translate_resources(snapshot, [])
        assert resources.memory is None
        assert resources.cpu is None
        assert resources.blockIO is None
        assert resources.pids is None
        assert resources.disableOOMKiller is None

    def test_set_limits(self, inspect_data):
        """Test that set limits are carried over."""
        host = inspect_data["HostConfig"]
        host.update(
            CpuShares=512,
            CpuQuota=50000,
            CpuPeriod=100000,
            CpusetCpus="0-1",
            Memory=268435456,
            MemorySwap=-1,
            MemorySwappiness=0,
            BlkioWeight=300,
            PidsLimit=100,
            OomKillDisable=True,
        )
        resources = translate_resources(ContainerSnapshot.from_inspect(inspect_data), [])

        assert resources.cpu == OCICPU(shares=512, quota=50000, period=100000, cpus="0-1")
        assert resources.memory == OCIMemory(limit=268435456, swappiness=0)
        assert resources.blockIO.blkioWeight == 300
        assert resources.pids.limit == 100
        assert resources.disableOOMKiller is True

    @pytest.mark.parametrize("value", [0, -1, None])
    def test_sentinels_never_coerced(self, inspect_data, value):
        """Test that sentinel values stay unset."""
        inspect_data["HostConfig"]["Memory"] = value
        inspect_data["HostConfig"]["PidsLimit"] = value
        resources = translate_resources(ContainerSnapshot.from_inspect(inspect_data), [])
        assert resources.memory is None
        assert resources.pids is None

    def test_rlimits_sysctl_oom(self, inspect_data, info):
        """Test rlimits, sysctls and OOM score."""
        host = inspect_data["HostConfig"]
        host["Ulimits"] = [{"Name": "nofile", "Soft": 1024, "Hard": 4096}]
        host["Sysctls"] = {"net.core.somaxconn": "1024"}
        host["OomScoreAdj"] = -500
        runtime = translate_runtime(ContainerSnapshot.from_inspect(inspect_data), info, [])

        assert runtime.linux.rlimits == [OCIRlimit(type="RLIMIT_NOFILE", hard=4096, soft=1024)]
        assert runtime.linux.sysctl == {"net.core.somaxconn": "1024"}
        assert runtime.linux.oomScoreAdj == -500


class TestDevices:
    """Test device translation."""

    def test_default_rules(self, snapshot):
        """Test the default device rules."""
        nodes, rules = translate_devices(snapshot)
        assert nodes == []
        assert rules[0] == OCIDeviceRule(allow=False, access="rwm")
        assert rules[1:] == DEFAULT_ALLOWED_DEVICES

    def test_device_cgroup_rules_in_order(self, inspect_data):
        """Test that device cgroup rules keep their order."""
        inspect_data["HostConfig"]["DeviceCgroupRules"] = ["c 1:3 mr", "b *:* rwm", "bogus"]
        _, rules = translate_devices(ContainerSnapshot.from_inspect(inspect_data))
        assert rules[-2:] == [
            OCIDeviceRule(allow=True, type="c", major=1, minor=3, access="mr"),
            OCIDeviceRule(allow=True, type="b", access="rwm"),
        ]

    @pytest.mark.parametrize("rule", ["c 1:3", "x 1:3 rwm", "c a:b rwm", ""])
    def test_malformed_rule(self, rule):
        """Test that malformed rules are rejected."""
        assert parse_device_cgroup_rule(rule) is None

    def test_device_node(self, inspect_data):
        """Test translating a host device node."""
        inspect_data["HostConfig"]["Devices"] = [
            {"PathOnHost": "/dev/fuse", "PathInContainer": "/dev/fuse", "CgroupPermissions": "rw"}
        ]
        snapshot = ContainerSnapshot.from_inspect(inspect_data)
        fake = _fake_stat(stat.S_IFCHR | 0o666, os.makedev(10, 229))

        nodes, rules = translate_devices(snapshot, stat_func=fake)

        assert nodes == [
            OCIDevice(path="/dev/fuse", type="c", major=10, minor=229, fileMode=0o666, uid=0, gid=0)
        ]
        assert rules[-1] == OCIDeviceRule(allow=True, type="c", major=10, minor=229, access="rw")

    def test_missing_device_is_fatal(self, inspect_data):
        """Test that a missing device is an error."""
        inspect_data["HostConfig"]["Devices"] = [{"PathOnHost": "/dev/nope"}]
        snapshot = ContainerSnapshot.from_inspect(inspect_data)

        def missing(path):
            raise FileNotFoundError(2, "No such file or directory", path)

        with pytest.raises(TranslationError, match="/dev/nope"):
            translate_devices(snapshot, stat_func=missing)

    def test_regular_file_is_not_a_device(self, inspect_data, tmp_path):
        """Test that a regular file is not a device."""
        path = tmp_path / "file"
        path.write_text("")
        inspect_data["HostConfig"]["Devices"] = [{"PathOnHost": str(path)}]
        with pytest.raises(TranslationError, match="not a device"):
            translate_devices(ContainerSnapshot.from_inspect(inspect_data))

    def test_privileged(self, inspect_data, info):
        """Test privileged device access and paths."""
        inspect_data["HostConfig"]["Privileged"] = True
        runtime = translate_runtime(ContainerSnapshot.from_inspect(inspect_data), info, [])
        assert runtime.linux.resources.devices == [OCIDeviceRule(allow=True, access="rwm")]
        assert runtime.linux.maskedPaths == []
        assert runtime.linux.readonlyPaths == []


class TestRuntimeSpec:
    """Test runtime.json assembly."""

    def test_hostname_from_name_when_default(self, snapshot):
        """Test that the default hostname becomes the name."""
        assert translate_hostname(snapshot) == "web"

    def test_explicit_hostname(self, inspect_data):
        """Test that an explicit hostname is kept."""
        inspect_data["Config"]["Hostname"] = "api.local"
        assert translate_hostname(ContainerSnapshot.from_inspect(inspect_data)) == "api.local"

    def test_capabilities_and_paths(self, snapshot, info):
        """Test capabilities and masked paths."""
        runtime = translate_runtime(snapshot, info, ["CAP_KILL"])
        assert runtime.linux.capabilities == ["CAP_KILL"]
        assert runtime.linux.maskedPaths == ["/proc/kcore", "/proc/keys"]
        assert runtime.linux.readonlyPaths == ["/proc/bus", "/proc/sys"]

    def test_hooks_start_empty(self, snapshot, info):
        """Test that hooks start empty."""
        hooks = translate_runtime(snapshot, info, []).hooks
        assert hooks.prestart == hooks.poststart == hooks.poststop == []

    def test_host_uts_has_no_hostname(self, inspect_data, info):
        """Test that sharing the host UTS namespace leaves the hostname empty."""
        inspect_data["HostConfig"]["UTSMode"] = "host"
        runtime = translate_runtime(ContainerSnapshot.from_inspect(inspect_data), info, [])
        assert "uts" not in _types(runtime.linux.namespaces)
        assert runtime.hostname == ""
