#!/usr/bin/env python3
"""
Linux Namespace Planning for ocigen.

Namespaces provide isolation for various system resources:
- PID: Process ID isolation (container has its own PID 1)
- Network: Network stack isolation
- IPC: Inter-process communication isolation
- UTS: Hostname and domain name isolation
- Mount: Filesystem mount point isolation
- User: User and group ID isolation (daemon user-namespace remapping)
- Cgroup: Cgroup root isolation

In the OCI runtime config, the *absence* of a namespace entry means the
container shares that namespace with the host. A container started with
--net=host therefore gets no "network" entry at all rather than an entry
marked as shared. Each kind is planned as an Optional entry and the
absent ones are dropped when the list is built.
"""

import logging
from typing import Dict, List, Optional

from ocigen.oci import OCINamespace
from ocigen.snapshot import ContainerSnapshot, DaemonInfo

logger = logging.getLogger(__name__)

# OCI namespace types, in the order they are written
NAMESPACE_KINDS = ("pid", "network", "ipc", "uts", "mount", "user", "cgroup")

# OCI namespace type to /proc/<pid>/ path mapping
NAMESPACE_PATHS = {
    "pid": "ns/pid",
    "network": "ns/net",
    "ipc": "ns/ipc",
    "uts": "ns/uts",
    "mount": "ns/mnt",
    "user": "ns/user",
    "cgroup": "ns/cgroup",
}

HOST_MODE = "host"
CONTAINER_MODE_PREFIX = "container:"


def namespace_path(pid: int, kind: str) -> str:
    """Path of a process's namespace file, e.g. /proc/42/ns/net."""
    return f"/proc/{pid}/{NAMESPACE_PATHS[kind]}"


def plan_namespace(
    kind: str,
    mode: str,
    peer_pids: Optional[Dict[str, int]] = None,
) -> Optional[OCINamespace]:
    """
    Decide the namespace entry for one kind from its daemon mode.

    Args:
        kind: OCI namespace type
        mode: Daemon mode ("", "private", "host", "container:<ref>", ...)
        peer_pids: Container reference -> pid, for joining another
            container's namespace

    Returns:
        None when the host namespace is shared, otherwise the entry
    """
    if mode == HOST_MODE:
        return None

    if mode.startswith(CONTAINER_MODE_PREFIX):
        ref = mode[len(CONTAINER_MODE_PREFIX):]
        pid = (peer_pids or {}).get(ref)
        if pid:
            return OCINamespace(type=kind, path=namespace_path(pid, kind))
        logger.warning(
            "%s namespace joins container %s but its pid is unknown, "
            "using a new namespace",
            kind,
            ref,
        )

    return OCINamespace(type=kind)


def plan_namespaces(
    snapshot: ContainerSnapshot,
    info: DaemonInfo,
    peer_pids: Optional[Dict[str, int]] = None,
) -> Dict[str, Optional[OCINamespace]]:
    """
    Plan every namespace kind for a container.

    Returns:
        Mapping of every kind in NAMESPACE_KINDS to its entry or None
    """
    modes = snapshot.namespaces
    plan: Dict[str, Optional[OCINamespace]] = {
        "pid": plan_namespace("pid", modes.pid, peer_pids),
        "network": plan_namespace("network", modes.network, peer_pids),
        "ipc": plan_namespace("ipc", modes.ipc, peer_pids),
        "uts": plan_namespace("uts", modes.uts, peer_pids),
        "mount": OCINamespace(type="mount"),
        "user": None,
        "cgroup": None,
    }

    if info.userns_remap and modes.userns != HOST_MODE:
        plan["user"] = OCINamespace(type="user")

    if modes.cgroupns == "private":
        plan["cgroup"] = OCINamespace(type="cgroup")

    return plan


def build_namespaces(plan: Dict[str, Optional[OCINamespace]]) -> List[OCINamespace]:
    """Flatten a plan into the OCI namespace list, dropping shared kinds."""
    return [plan[kind] for kind in NAMESPACE_KINDS if plan.get(kind) is not None]
