#!/usr/bin/env python3
"""
Process and Filesystem Translation for ocigen.

Builds config.json (OCISpec) from a ContainerSnapshot:

- process: args, env, cwd, terminal, user
- root:    root filesystem path and read-only flag
- mounts:  runtime default mounts followed by the container's own mounts

Everything except the root filesystem degrades to a safe default when the
daemon did not report it.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ocigen.oci import (OCIMount, OCIPlatform, OCIProcess, OCIRoot, OCISpec,
                        OCIUser)
from ocigen.snapshot import (ContainerSnapshot, DaemonInfo, MountRecord,
                             TranslationError)
from ocigen.utils import lookup_group, lookup_user

logger = logging.getLogger(__name__)

DEFAULT_CWD = "/"

# Mounts every container gets unless it mounts something over them
DEFAULT_MOUNTS = [
    OCIMount(destination="/proc", type="proc", source="proc"),
    OCIMount(
        destination="/dev",
        type="tmpfs",
        source="tmpfs",
        options=["nosuid", "strictatime", "mode=755", "size=65536k"],
    ),
    OCIMount(
        destination="/dev/pts",
        type="devpts",
        source="devpts",
        options=["nosuid", "noexec", "newinstance", "ptmxmode=0666", "mode=0620", "gid=5"],
    ),
    OCIMount(
        destination="/dev/shm",
        type="tmpfs",
        source="shm",
        options=["nosuid", "noexec", "nodev", "mode=1777", "size=65536k"],
    ),
    OCIMount(
        destination="/dev/mqueue",
        type="mqueue",
        source="mqueue",
        options=["nosuid", "noexec", "nodev"],
    ),
    OCIMount(
        destination="/sys",
        type="sysfs",
        source="sysfs",
        options=["nosuid", "noexec", "nodev", "ro"],
    ),
    OCIMount(
        destination="/sys/fs/cgroup",
        type="cgroup",
        source="cgroup",
        options=["nosuid", "noexec", "nodev", "relatime", "ro"],
    ),
]

# Docker architecture names -> OCI (GOARCH) names
ARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armhf": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}

# Network modes that do not get the daemon-managed /etc files
_NO_NETWORK_FILES = ("host", "none")


def translate_args(snapshot: ContainerSnapshot) -> List[str]:
    """Entrypoint followed by cmd, or the daemon-resolved path/args."""
    args = list(snapshot.entrypoint) + list(snapshot.cmd)
    if args:
        return args
    if snapshot.path:
        return [snapshot.path] + list(snapshot.args)
    return []


def translate_env(env: Tuple[str, ...]) -> List[str]:
    """
    Deduplicate KEY=VALUE entries, the last value for a key winning.

    A key keeps the position of its first occurrence.
    """
    merged: Dict[str, str] = {}
    for entry in env:
        key = entry.split("=", 1)[0]
        merged[key] = entry
    return list(merged.values())


def translate_user(snapshot: ContainerSnapshot, rootfs: Optional[str]) -> OCIUser:
    """
    Resolve Config.User ("uid", "uid:gid", "name" or "name:group").

    Names are looked up in the container's own passwd/group files.
    """
    user = OCIUser()
    name, _, group = snapshot.user.partition(":")

    if name:
        if name.isdigit():
            user.uid = int(name)
        else:
            found = lookup_user(rootfs, name)
            if found is None:
                logger.warning("Looking up user %r failed, running as uid 0", name)
            else:
                user.uid, user.gid = found

    if group:
        if group.isdigit():
            user.gid = int(group)
        else:
            gid = lookup_group(rootfs, group)
            if gid is None:
                logger.warning("Looking up group %r failed", group)
            else:
                user.gid = gid

    additional = []
    for extra in snapshot.group_add:
        if extra.isdigit():
            additional.append(int(extra))
            continue
        gid = lookup_group(rootfs, extra)
        if gid is None:
            logger.warning("Looking up additional group %r failed, skipping", extra)
        else:
            additional.append(gid)
    if additional:
        user.additionalGids = additional

    return user


def _no_new_privileges(security_opt: Tuple[str, ...]) -> Optional[bool]:
    for opt in security_opt:
        if opt in ("no-new-privileges", "no-new-privileges:true", "no-new-privileges=true"):
            return True
    return None


def mount_type(record: MountRecord) -> str:
    """Infer the daemon mount type ("bind", "volume", "tmpfs", ...)."""
    if record.type:
        return record.type
    # Daemons before the Type field: named mounts are volumes
    return "volume" if record.name else "bind"


def translate_mount(record: MountRecord) -> OCIMount:
    """Map one daemon mount record to an OCI mount."""
    kind = mount_type(record)

    options: List[str] = []
    if kind in ("bind", "volume"):
        oci_type = "bind"
        source = record.source
        options.append("rbind")
    else:
        oci_type = kind
        source = record.source or kind

    for opt in record.mode.split(","):
        opt = opt.strip()
        if opt and opt not in ("ro", "rw") and opt not in options:
            options.append(opt)

    options.append("rw" if record.rw else "ro")

    if record.propagation and record.propagation not in options:
        options.append(record.propagation)

    return OCIMount(
        destination=record.destination,
        type=oci_type,
        source=source,
        options=options,
    )


def _network_file_mounts(snapshot: ContainerSnapshot) -> List[OCIMount]:
    if snapshot.namespaces.network in _NO_NETWORK_FILES:
        return []
    files = [
        ("/etc/resolv.conf", snapshot.resolv_conf_path),
        ("/etc/hostname", snapshot.hostname_path),
        ("/etc/hosts", snapshot.hosts_path),
    ]
    return [
        OCIMount(destination=dest, type="bind", source=src, options=["rbind", "rprivate", "rw"])
        for dest, src in files
        if src
    ]


def translate_mounts(snapshot: ContainerSnapshot) -> List[OCIMount]:
    """Default mounts not shadowed by the container, then the container's mounts."""
    user_mounts = [translate_mount(m) for m in snapshot.mounts]
    taken = {m.destination for m in user_mounts}

    mounts = []
    for default in DEFAULT_MOUNTS + _network_file_mounts(snapshot):
        if default.destination in taken:
            logger.debug("Skipping default mount %s, overridden by container", default.destination)
            continue
        mounts.append(
            OCIMount(
                destination=default.destination,
                type=default.type,
                source=default.source,
                options=list(default.options),
            )
        )
    return mounts + user_mounts


def translate_platform(info: DaemonInfo) -> OCIPlatform:
    arch = info.architecture
    return OCIPlatform(os=info.os_type or "linux", arch=ARCH_MAP.get(arch, arch or "amd64"))


def translate_process(
    snapshot: ContainerSnapshot,
    info: Optional[DaemonInfo] = None,
    rootfs: Optional[str] = None,
) -> OCISpec:
    """
    Translate a container snapshot into config.json.

    Args:
        snapshot: Container snapshot
        info: Daemon info (platform); defaults to linux/amd64
        rootfs: Root filesystem path to write into config.json instead of the
            daemon's merged directory

    Returns:
        OCISpec

    Raises:
        TranslationError: If no root filesystem path can be determined
    """
    root_path = rootfs or snapshot.rootfs
    if not root_path:
        raise TranslationError(
            f"container {snapshot.id[:12]} has no resolvable root filesystem path "
            f"(GraphDriver.Data.MergedDir); pass one explicitly"
        )

    # Where to look for passwd/group: the real root filesystem if known
    lookup_root = snapshot.rootfs or rootfs

    process = OCIProcess(
        terminal=snapshot.tty,
        user=translate_user(snapshot, lookup_root),
        args=translate_args(snapshot),
        env=translate_env(snapshot.env),
        cwd=snapshot.working_dir or DEFAULT_CWD,
        noNewPrivileges=_no_new_privileges(snapshot.security_opt),
    )

    spec = OCISpec(
        platform=translate_platform(info or DaemonInfo()),
        process=process,
        root=OCIRoot(path=root_path, readonly=snapshot.readonly_rootfs),
        mounts=translate_mounts(snapshot),
    )
    logger.debug(
        "Translated process for %s: %d args, %d mounts",
        snapshot.id[:12],
        len(process.args),
        len(spec.mounts),
    )
    return spec
