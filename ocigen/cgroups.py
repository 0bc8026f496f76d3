#!/usr/bin/env python3
"""
Cgroup Resource Translation for ocigen.

Maps the daemon's HostConfig limits onto linux.resources in runtime.json:

    cpu      CpuShares, CpuQuota, CpuPeriod, CpusetCpus, CpusetMems
    memory   Memory, MemoryReservation, MemorySwap, KernelMemory, MemorySwappiness
    blockIO  BlkioWeight
    pids     PidsLimit
    devices  default allow-list, --device entries, --device-cgroup-rule entries

The daemon records "no limit" as 0, -1 or null. Such values are left out of
the OCI document; they are never replaced with some positive default.
"""

import logging
import os
import re
import stat
from typing import Callable, List, Optional, Tuple

from ocigen.oci import (OCICPU, OCIBlockIO, OCIDevice, OCIDeviceRule,
                        OCILinuxResources, OCIMemory, OCIPids, OCIRlimit)
from ocigen.snapshot import (ContainerSnapshot, DeviceMapping, ResourceLimits,
                             TranslationError)

logger = logging.getLogger(__name__)

# Devices every container may use (mirrors Docker's default allow-list)
DEFAULT_ALLOWED_DEVICES = [
    OCIDeviceRule(allow=True, type="c", access="m"),
    OCIDeviceRule(allow=True, type="b", access="m"),
    OCIDeviceRule(allow=True, type="c", major=1, minor=3, access="rwm"),  # /dev/null
    OCIDeviceRule(allow=True, type="c", major=1, minor=8, access="rwm"),  # /dev/random
    OCIDeviceRule(allow=True, type="c", major=1, minor=7, access="rwm"),  # /dev/full
    OCIDeviceRule(allow=True, type="c", major=5, minor=0, access="rwm"),  # /dev/tty
    OCIDeviceRule(allow=True, type="c", major=1, minor=5, access="rwm"),  # /dev/zero
    OCIDeviceRule(allow=True, type="c", major=1, minor=9, access="rwm"),  # /dev/urandom
    OCIDeviceRule(allow=True, type="c", major=136, access="rwm"),  # /dev/pts/*
    OCIDeviceRule(allow=True, type="c", major=5, minor=2, access="rwm"),  # /dev/ptmx
    OCIDeviceRule(allow=True, type="c", major=10, minor=200, access="rwm"),  # /dev/net/tun
]

# "<type> <major>:<minor> <access>", e.g. "c 1:3 mr" or "b *:* rwm"
_DEVICE_RULE_RE = re.compile(r"^([acb]) ([0-9]+|\*):([0-9]+|\*) ([rwm]{1,3})$")


def _positive(value: Optional[int]) -> Optional[int]:
    """Keep a limit only if it is actually set (> 0)."""
    if value is None or value <= 0:
        return None
    return value


def _empty(obj) -> bool:
    return all(v is None for v in vars(obj).values())


def translate_memory(limits: ResourceLimits) -> Optional[OCIMemory]:
    swappiness = limits.memory_swappiness
    if swappiness is not None and not 0 <= swappiness <= 100:
        swappiness = None

    memory = OCIMemory(
        limit=_positive(limits.memory),
        reservation=_positive(limits.memory_reservation),
        swap=_positive(limits.memory_swap),
        kernel=_positive(limits.kernel_memory),
        swappiness=swappiness,
    )
    return None if _empty(memory) else memory


def translate_cpu(limits: ResourceLimits) -> Optional[OCICPU]:
    cpu = OCICPU(
        shares=_positive(limits.cpu_shares),
        quota=_positive(limits.cpu_quota),
        period=_positive(limits.cpu_period),
        cpus=limits.cpuset_cpus or None,
        mems=limits.cpuset_mems or None,
    )
    return None if _empty(cpu) else cpu


def translate_block_io(limits: ResourceLimits) -> Optional[OCIBlockIO]:
    weight = _positive(limits.blkio_weight)
    return OCIBlockIO(blkioWeight=weight) if weight else None


def translate_pids(limits: ResourceLimits) -> Optional[OCIPids]:
    limit = _positive(limits.pids_limit)
    return OCIPids(limit=limit) if limit else None


def parse_device_cgroup_rule(rule: str) -> Optional[OCIDeviceRule]:
    """
    Parse a --device-cgroup-rule value.

    Args:
        rule: Rule such as "c 1:3 mr"; "*" matches any major/minor

    Returns:
        Allow rule, or None if the rule is malformed
    """
    match = _DEVICE_RULE_RE.match(rule.strip())
    if not match:
        return None
    dev_type, major, minor, access = match.groups()
    return OCIDeviceRule(
        allow=True,
        type=dev_type,
        major=None if major == "*" else int(major),
        minor=None if minor == "*" else int(minor),
        access=access,
    )


def stat_device(
    mapping: DeviceMapping,
    stat_func: Callable[[str], os.stat_result] = os.stat,
) -> OCIDevice:
    """
    Describe a host device node for creation inside the container.

    Raises:
        TranslationError: If the host path is missing or not a device
    """
    try:
        st = stat_func(mapping.path_on_host)
    except OSError as e:
        raise TranslationError(f"stat of device {mapping.path_on_host} failed: {e}")

    if stat.S_ISCHR(st.st_mode):
        dev_type = "c"
    elif stat.S_ISBLK(st.st_mode):
        dev_type = "b"
    else:
        raise TranslationError(f"{mapping.path_on_host} is not a device node")

    return OCIDevice(
        path=mapping.path_in_container,
        type=dev_type,
        major=os.major(st.st_rdev),
        minor=os.minor(st.st_rdev),
        fileMode=stat.S_IMODE(st.st_mode),
        uid=st.st_uid,
        gid=st.st_gid,
    )


def translate_devices(
    snapshot: ContainerSnapshot,
    stat_func: Callable[[str], os.stat_result] = os.stat,
) -> Tuple[List[OCIDevice], List[OCIDeviceRule]]:
    """
    Build the device nodes and the device cgroup rule list.

    Rules are deny-all, the default allow-list, one rule per --device and
    the --device-cgroup-rule entries, in that order.

    Returns:
        (device nodes, cgroup rules)
    """
    if snapshot.privileged:
        return [], [OCIDeviceRule(allow=True, access="rwm")]

    nodes = [stat_device(m, stat_func) for m in snapshot.devices]

    rules = [OCIDeviceRule(allow=False, access="rwm")]
    rules.extend(
        OCIDeviceRule(
            allow=r.allow, type=r.type, major=r.major, minor=r.minor, access=r.access
        )
        for r in DEFAULT_ALLOWED_DEVICES
    )
    for node, mapping in zip(nodes, snapshot.devices):
        rules.append(
            OCIDeviceRule(
                allow=True,
                type=node.type,
                major=node.major,
                minor=node.minor,
                access=mapping.cgroup_permissions,
            )
        )
    for raw in snapshot.device_cgroup_rules:
        rule = parse_device_cgroup_rule(raw)
        if rule is None:
            logger.warning("Ignoring malformed device cgroup rule %r", raw)
            continue
        rules.append(rule)

    return nodes, rules


def translate_resources(
    snapshot: ContainerSnapshot,
    device_rules: List[OCIDeviceRule],
) -> OCILinuxResources:
    """Translate HostConfig limits into linux.resources."""
    limits = snapshot.resources
    return OCILinuxResources(
        devices=device_rules,
        disableOOMKiller=True if limits.oom_kill_disable else None,
        memory=translate_memory(limits),
        cpu=translate_cpu(limits),
        blockIO=translate_block_io(limits),
        pids=translate_pids(limits),
    )


def translate_rlimits(snapshot: ContainerSnapshot) -> List[OCIRlimit]:
    """--ulimit nofile=1024:2048 -> RLIMIT_NOFILE soft 1024 hard 2048."""
    return [
        OCIRlimit(type=f"RLIMIT_{u.name.upper()}", hard=u.hard, soft=u.soft)
        for u in snapshot.ulimits
        if u.name
    ]
