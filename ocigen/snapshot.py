#!/usr/bin/env python3
"""
Container Snapshot Model for ocigen.

Wraps the two documents read from the daemon:

- ContainerSnapshot: `docker inspect <container>` (one container object)
- DaemonInfo:        `docker info`

Both are parsed once into frozen dataclasses, so every translator sees the
same read-only view of the container. Only the top-level substructures the
translation cannot do without (Config, HostConfig) are required; any other
missing field falls back to an empty default.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ocigen.capabilities import DEFAULT_TEMPLATE


class TranslationError(Exception):
    """Exception raised when daemon data cannot be translated."""

    pass


def _tuple(value: Any) -> Tuple:
    """Turn a daemon list field (which may be null or a bare string) into a tuple."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _require(data: Dict[str, Any], key: str, subject: str) -> Dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise TranslationError(f"{subject} has no {key} section")
    return value


@dataclass(frozen=True)
class MountRecord:
    """A mount as reported by the daemon."""

    destination: str
    source: str = ""
    type: str = ""
    name: str = ""
    mode: str = ""
    rw: bool = True
    propagation: str = ""

    @classmethod
    def from_inspect(cls, data: Dict[str, Any]) -> "MountRecord":
        return cls(
            destination=data.get("Destination") or "",
            source=data.get("Source") or "",
            type=data.get("Type") or "",
            name=data.get("Name") or "",
            mode=data.get("Mode") or "",
            rw=data.get("RW", True),
            propagation=data.get("Propagation") or "",
        )


@dataclass(frozen=True)
class DeviceMapping:
    """A host device exposed to the container (--device)."""

    path_on_host: str
    path_in_container: str
    cgroup_permissions: str = "rwm"

    @classmethod
    def from_inspect(cls, data: Dict[str, Any]) -> "DeviceMapping":
        host = data.get("PathOnHost") or ""
        return cls(
            path_on_host=host,
            path_in_container=data.get("PathInContainer") or host,
            cgroup_permissions=data.get("CgroupPermissions") or "rwm",
        )


@dataclass(frozen=True)
class Ulimit:
    name: str
    soft: int
    hard: int


@dataclass(frozen=True)
class ResourceLimits:
    """Resource limits as the daemon records them (0/None/-1 mean unset)."""

    cpu_shares: Optional[int] = None
    cpu_quota: Optional[int] = None
    cpu_period: Optional[int] = None
    cpuset_cpus: str = ""
    cpuset_mems: str = ""
    memory: Optional[int] = None
    memory_reservation: Optional[int] = None
    memory_swap: Optional[int] = None
    kernel_memory: Optional[int] = None
    memory_swappiness: Optional[int] = None
    blkio_weight: Optional[int] = None
    pids_limit: Optional[int] = None
    oom_kill_disable: Optional[bool] = None
    oom_score_adj: Optional[int] = None

    @classmethod
    def from_host_config(cls, host: Dict[str, Any]) -> "ResourceLimits":
        return cls(
            cpu_shares=host.get("CpuShares"),
            cpu_quota=host.get("CpuQuota"),
            cpu_period=host.get("CpuPeriod"),
            cpuset_cpus=host.get("CpusetCpus") or "",
            cpuset_mems=host.get("CpusetMems") or "",
            memory=host.get("Memory"),
            memory_reservation=host.get("MemoryReservation"),
            memory_swap=host.get("MemorySwap"),
            kernel_memory=host.get("KernelMemory"),
            memory_swappiness=host.get("MemorySwappiness"),
            blkio_weight=host.get("BlkioWeight"),
            pids_limit=host.get("PidsLimit"),
            oom_kill_disable=host.get("OomKillDisable"),
            oom_score_adj=host.get("OomScoreAdj"),
        )


@dataclass(frozen=True)
class NamespaceModes:
    """Namespace modes ("", "host", "private", "container:<id>", ...)."""

    network: str = ""
    pid: str = ""
    ipc: str = ""
    uts: str = ""
    userns: str = ""
    cgroupns: str = ""


@dataclass(frozen=True)
class ContainerSnapshot:
    """Point-in-time read of a container's configuration."""

    id: str
    name: str = ""
    hostname: str = ""
    user: str = ""
    entrypoint: Tuple[str, ...] = ()
    cmd: Tuple[str, ...] = ()
    path: str = ""
    args: Tuple[str, ...] = ()
    env: Tuple[str, ...] = ()
    working_dir: str = ""
    tty: bool = False
    pid: int = 0
    rootfs: str = ""
    readonly_rootfs: bool = False
    mounts: Tuple[MountRecord, ...] = ()
    privileged: bool = False
    cap_add: Tuple[str, ...] = ()
    cap_drop: Tuple[str, ...] = ()
    security_opt: Tuple[str, ...] = ()
    group_add: Tuple[str, ...] = ()
    namespaces: NamespaceModes = field(default_factory=NamespaceModes)
    resources: ResourceLimits = field(default_factory=ResourceLimits)
    devices: Tuple[DeviceMapping, ...] = ()
    device_cgroup_rules: Tuple[str, ...] = ()
    ulimits: Tuple[Ulimit, ...] = ()
    sysctls: Tuple[Tuple[str, str], ...] = ()
    masked_paths: Tuple[str, ...] = ()
    readonly_paths: Tuple[str, ...] = ()
    resolv_conf_path: str = ""
    hostname_path: str = ""
    hosts_path: str = ""

    @classmethod
    def from_inspect(cls, data: Dict[str, Any]) -> "ContainerSnapshot":
        """
        Build a snapshot from a `docker inspect` container object.

        Raises:
            TranslationError: If Config or HostConfig is missing
        """
        if not isinstance(data, dict):
            raise TranslationError("container inspect result is not an object")

        container_id = data.get("Id") or ""
        subject = f"container {container_id[:12] or '?'}"
        config = _require(data, "Config", subject)
        host = _require(data, "HostConfig", subject)

        graph_data = (data.get("GraphDriver") or {}).get("Data") or {}
        rootfs = graph_data.get("MergedDir") or graph_data.get("Dir") or ""

        namespaces = NamespaceModes(
            network=host.get("NetworkMode") or "",
            pid=host.get("PidMode") or "",
            ipc=host.get("IpcMode") or "",
            uts=host.get("UTSMode") or "",
            userns=host.get("UsernsMode") or "",
            cgroupns=host.get("CgroupnsMode") or "",
        )

        ulimits = tuple(
            Ulimit(name=u.get("Name", ""), soft=u.get("Soft", 0), hard=u.get("Hard", 0))
            for u in host.get("Ulimits") or []
        )

        return cls(
            id=container_id,
            name=(data.get("Name") or "").lstrip("/"),
            hostname=config.get("Hostname") or "",
            user=config.get("User") or "",
            entrypoint=_tuple(config.get("Entrypoint")),
            cmd=_tuple(config.get("Cmd")),
            path=data.get("Path") or "",
            args=_tuple(data.get("Args")),
            env=_tuple(config.get("Env")),
            working_dir=config.get("WorkingDir") or "",
            tty=bool(config.get("Tty", False)),
            pid=(data.get("State") or {}).get("Pid") or 0,
            rootfs=rootfs,
            readonly_rootfs=bool(host.get("ReadonlyRootfs", False)),
            mounts=tuple(MountRecord.from_inspect(m) for m in data.get("Mounts") or []),
            privileged=bool(host.get("Privileged", False)),
            cap_add=_tuple(host.get("CapAdd")),
            cap_drop=_tuple(host.get("CapDrop")),
            security_opt=_tuple(host.get("SecurityOpt")),
            group_add=_tuple(host.get("GroupAdd")),
            namespaces=namespaces,
            resources=ResourceLimits.from_host_config(host),
            devices=tuple(DeviceMapping.from_inspect(d) for d in host.get("Devices") or []),
            device_cgroup_rules=_tuple(host.get("DeviceCgroupRules")),
            ulimits=ulimits,
            sysctls=tuple((host.get("Sysctls") or {}).items()),
            masked_paths=_tuple(host.get("MaskedPaths")),
            readonly_paths=_tuple(host.get("ReadonlyPaths")),
            resolv_conf_path=data.get("ResolvConfPath") or "",
            hostname_path=data.get("HostnamePath") or "",
            hosts_path=data.get("HostsPath") or "",
        )


@dataclass(frozen=True)
class DaemonInfo:
    """Daemon-wide information relevant to the translation."""

    execution_driver: str = "native"
    os_type: str = "linux"
    architecture: str = ""
    security_options: Tuple[str, ...] = ()
    default_capabilities: Tuple[str, ...] = tuple(DEFAULT_TEMPLATE)

    @property
    def userns_remap(self) -> bool:
        """Whether the daemon runs containers in remapped user namespaces."""
        return any(opt == "userns" or "name=userns" in opt for opt in self.security_options)

    @classmethod
    def from_info(cls, data: Dict[str, Any]) -> "DaemonInfo":
        if not isinstance(data, dict):
            raise TranslationError("daemon info result is not an object")
        template = data.get("DefaultCapabilities") or DEFAULT_TEMPLATE
        return cls(
            execution_driver=data.get("ExecutionDriver") or "native",
            os_type=data.get("OSType") or "linux",
            architecture=data.get("Architecture") or "",
            security_options=_tuple(data.get("SecurityOptions")),
            default_capabilities=tuple(template),
        )
