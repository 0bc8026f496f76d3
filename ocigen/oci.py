#!/usr/bin/env python3
"""
OCI Bundle Descriptors for ocigen.

An OCI bundle, as produced by ocigen, contains:
    bundle/
    ├── config.json    # process, root filesystem and mounts
    └── runtime.json   # hooks, namespaces, capabilities, resources

config.json:
{
    "version": "0.3.0",
    "platform": { ... },
    "process": { ... },
    "root": { ... },
    "mounts": [ ... ]
}

runtime.json:
{
    "hostname": "...",
    "hooks": { "prestart": [], "poststart": [], "poststop": [] },
    "linux": { ... }
}

Field order in the written JSON is the dataclass field order below, and
fields left as None are omitted, so identical inputs always serialize to
identical bytes.
"""

import json
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional

OCI_VERSION = "0.3.0"

CONFIG_FILENAME = "config.json"
RUNTIME_FILENAME = "runtime.json"


# =============================================================================
# config.json
# =============================================================================


@dataclass
class OCIPlatform:
    """OCI platform the bundle targets."""

    os: str = "linux"
    arch: str = "amd64"


@dataclass
class OCIUser:
    """OCI process user."""

    uid: int = 0
    gid: int = 0
    additionalGids: Optional[List[int]] = None


@dataclass
class OCIProcess:
    """OCI Process configuration."""

    terminal: bool = False
    user: OCIUser = field(default_factory=OCIUser)
    args: List[str] = field(default_factory=list)
    env: List[str] = field(default_factory=list)
    cwd: str = "/"
    noNewPrivileges: Optional[bool] = None


@dataclass
class OCIRoot:
    """OCI Root filesystem configuration."""

    path: str = "rootfs"
    readonly: bool = False


@dataclass
class OCIMount:
    """OCI Mount configuration."""

    destination: str = ""
    type: str = ""
    source: str = ""
    options: List[str] = field(default_factory=list)


@dataclass
class OCISpec:
    """config.json: process, filesystem and mounts."""

    version: str = OCI_VERSION
    platform: OCIPlatform = field(default_factory=OCIPlatform)
    process: OCIProcess = field(default_factory=OCIProcess)
    root: OCIRoot = field(default_factory=OCIRoot)
    mounts: List[OCIMount] = field(default_factory=list)


# =============================================================================
# runtime.json
# =============================================================================


@dataclass
class OCIHook:
    """A single lifecycle hook."""

    path: str = ""
    args: Optional[List[str]] = None


@dataclass
class OCIHooks:
    """Lifecycle hooks keyed by phase."""

    prestart: List[OCIHook] = field(default_factory=list)
    poststart: List[OCIHook] = field(default_factory=list)
    poststop: List[OCIHook] = field(default_factory=list)


@dataclass
class OCINamespace:
    """OCI Linux namespace configuration."""

    type: str = ""
    path: Optional[str] = None


@dataclass
class OCIDeviceRule:
    """Device cgroup rule (allow/deny list entry)."""

    allow: bool = False
    type: Optional[str] = None
    major: Optional[int] = None
    minor: Optional[int] = None
    access: Optional[str] = None


@dataclass
class OCIMemory:
    limit: Optional[int] = None
    reservation: Optional[int] = None
    swap: Optional[int] = None
    kernel: Optional[int] = None
    swappiness: Optional[int] = None


@dataclass
class OCICPU:
    shares: Optional[int] = None
    quota: Optional[int] = None
    period: Optional[int] = None
    cpus: Optional[str] = None
    mems: Optional[str] = None


@dataclass
class OCIBlockIO:
    blkioWeight: Optional[int] = None


@dataclass
class OCIPids:
    limit: Optional[int] = None


@dataclass
class OCILinuxResources:
    """OCI Linux resource limits."""

    devices: List[OCIDeviceRule] = field(default_factory=list)
    disableOOMKiller: Optional[bool] = None
    memory: Optional[OCIMemory] = None
    cpu: Optional[OCICPU] = None
    blockIO: Optional[OCIBlockIO] = None
    pids: Optional[OCIPids] = None


@dataclass
class OCIDevice:
    """Device node to create inside the container."""

    path: str = ""
    type: str = "c"
    major: int = 0
    minor: int = 0
    fileMode: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None


@dataclass
class OCIRlimit:
    type: str = ""
    hard: int = 0
    soft: int = 0


@dataclass
class OCILinuxRuntime:
    """OCI Linux-specific runtime configuration."""

    capabilities: List[str] = field(default_factory=list)
    namespaces: List[OCINamespace] = field(default_factory=list)
    resources: OCILinuxResources = field(default_factory=OCILinuxResources)
    devices: List[OCIDevice] = field(default_factory=list)
    rlimits: List[OCIRlimit] = field(default_factory=list)
    sysctl: Optional[Dict[str, str]] = None
    oomScoreAdj: Optional[int] = None
    maskedPaths: List[str] = field(default_factory=list)
    readonlyPaths: List[str] = field(default_factory=list)


@dataclass
class OCIRuntimeSpec:
    """runtime.json: hooks, namespaces, capabilities and resources."""

    hostname: str = ""
    hooks: OCIHooks = field(default_factory=OCIHooks)
    linux: OCILinuxRuntime = field(default_factory=OCILinuxRuntime)


# =============================================================================
# Serialization
# =============================================================================


def to_dict(obj: Any) -> Any:
    """
    Convert a descriptor (or any nested value) to plain JSON types.

    Unlike dataclasses.asdict, fields set to None are dropped, which is how
    the OCI format expresses "unset".
    """
    if is_dataclass(obj):
        result = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            if value is None:
                continue
            result[f.name] = to_dict(value)
        return result
    if isinstance(obj, (list, tuple)):
        return [to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {k: to_dict(v) for k, v in obj.items()}
    return obj


def dumps(descriptor: Any) -> str:
    """Serialize a descriptor as pretty-printed JSON."""
    return json.dumps(to_dict(descriptor), indent=4) + "\n"
