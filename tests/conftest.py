"""Shared fixtures: realistic docker inspect / info documents."""

import copy

import pytest

CONTAINER_ID = "4c01db0b339cf4a1b5fa6b0b6c6d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7c8d"

INSPECT = {
    "Id": CONTAINER_ID,
    "Name": "/web",
    "Path": "sleep",
    "Args": ["10"],
    "State": {"Status": "running", "Pid": 4242},
    "ResolvConfPath": f"/var/lib/docker/containers/{CONTAINER_ID}/resolv.conf",
    "HostnamePath": f"/var/lib/docker/containers/{CONTAINER_ID}/hostname",
    "HostsPath": f"/var/lib/docker/containers/{CONTAINER_ID}/hosts",
    "GraphDriver": {
        "Name": "overlay2",
        "Data": {"MergedDir": "/var/lib/docker/overlay2/abc/merged"},
    },
    "Mounts": [
        {
            "Type": "bind",
            "Source": "/tmp",
            "Destination": "/tmp",
            "Mode": "",
            "RW": True,
            "Propagation": "rprivate",
        }
    ],
    "Config": {
        "Hostname": CONTAINER_ID[:12],
        "User": "",
        "Env": ["A=1", "PATH=/usr/bin:/bin", "A=2"],
        "Cmd": ["sleep", "10"],
        "Entrypoint": None,
        "WorkingDir": "",
        "Tty": False,
    },
    "HostConfig": {
        "NetworkMode": "default",
        "PidMode": "",
        "IpcMode": "private",
        "UTSMode": "",
        "UsernsMode": "",
        "CgroupnsMode": "host",
        "Privileged": False,
        "ReadonlyRootfs": False,
        "CapAdd": None,
        "CapDrop": None,
        "SecurityOpt": None,
        "GroupAdd": None,
        "CpuShares": 0,
        "CpuQuota": 0,
        "CpuPeriod": 0,
        "CpusetCpus": "",
        "CpusetMems": "",
        "Memory": 0,
        "MemoryReservation": 0,
        "MemorySwap": 0,
        "KernelMemory": 0,
        "MemorySwappiness": None,
        "BlkioWeight": 0,
        "PidsLimit": None,
        "OomKillDisable": False,
        "OomScoreAdj": 0,
        "Devices": [],
        "DeviceCgroupRules": None,
        "Ulimits": None,
        "MaskedPaths": ["/proc/kcore", "/proc/keys"],
        "ReadonlyPaths": ["/proc/bus", "/proc/sys"],
    },
}

INFO = {
    "ID": "ABCD:EFGH",
    "OSType": "linux",
    "Architecture": "x86_64",
    "SecurityOptions": ["name=seccomp,profile=default"],
}


@pytest.fixture
def inspect_data():
    """A fresh, mutable docker inspect object."""
    return copy.deepcopy(INSPECT)


@pytest.fixture
def info_data():
    """A fresh, mutable docker info object."""
    return copy.deepcopy(INFO)


@pytest.fixture
def snapshot(inspect_data):
    from ocigen.snapshot import ContainerSnapshot

    return ContainerSnapshot.from_inspect(inspect_data)


@pytest.fixture
def info(info_data):
    from ocigen.snapshot import DaemonInfo

    return DaemonInfo.from_info(info_data)


@pytest.fixture
def fake_which():
    """Executable lookup that knows a fixed set of commands."""
    known = {
        "netns": "/usr/local/bin/netns",
        "foo": "/usr/bin/foo",
        "bar": "/usr/bin/bar",
        "cleanup": "/usr/sbin/cleanup",
    }
    return known.get
