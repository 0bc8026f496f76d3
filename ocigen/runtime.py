#!/usr/bin/env python3
"""
Runtime Translation for ocigen.

Builds runtime.json (OCIRuntimeSpec) from a ContainerSnapshot, the daemon
info and the final capability list. Hooks are left empty here; they are
merged in afterwards by ocigen.hooks.merge_hooks().
"""

import logging
import os
from typing import Callable, Dict, List, Optional

from ocigen.cgroups import translate_devices, translate_resources, translate_rlimits
from ocigen.namespaces import build_namespaces, plan_namespaces
from ocigen.oci import OCIHooks, OCILinuxRuntime, OCIRuntimeSpec
from ocigen.snapshot import ContainerSnapshot, DaemonInfo

logger = logging.getLogger(__name__)


def translate_hostname(snapshot: ContainerSnapshot) -> str:
    """
    The container's hostname.

    Docker defaults the hostname to the short container id; in that case
    the (more useful) container name is used instead.

    Only meaningful with a private UTS namespace; translate_runtime()
    leaves the hostname empty when the host UTS namespace is shared.
    """
    if snapshot.hostname and snapshot.hostname == snapshot.id[:12] and snapshot.name:
        return snapshot.name
    return snapshot.hostname


def translate_runtime(
    snapshot: ContainerSnapshot,
    info: DaemonInfo,
    capabilities: List[str],
    peer_pids: Optional[Dict[str, int]] = None,
    stat_func: Callable[[str], os.stat_result] = os.stat,
) -> OCIRuntimeSpec:
    """
    Translate a container snapshot into runtime.json.

    Args:
        snapshot: Container snapshot
        info: Daemon info
        capabilities: Output of ocigen.capabilities.map_capabilities()
        peer_pids: Pids of containers whose namespaces are joined
        stat_func: Used to describe --device host nodes

    Returns:
        OCIRuntimeSpec with empty hook lists

    Raises:
        TranslationError: If a --device host node cannot be described
    """
    plan = plan_namespaces(snapshot, info, peer_pids)
    devices, device_rules = translate_devices(snapshot, stat_func)

    linux = OCILinuxRuntime(
        capabilities=list(capabilities),
        namespaces=build_namespaces(plan),
        resources=translate_resources(snapshot, device_rules),
        devices=devices,
        rlimits=translate_rlimits(snapshot),
        sysctl=dict(snapshot.sysctls) or None,
        oomScoreAdj=snapshot.resources.oom_score_adj or None,
    )

    if not snapshot.privileged:
        linux.maskedPaths = list(snapshot.masked_paths)
        linux.readonlyPaths = list(snapshot.readonly_paths)

    logger.debug(
        "Translated runtime for %s: namespaces=%s",
        snapshot.id[:12],
        [ns.type for ns in linux.namespaces],
    )

    return OCIRuntimeSpec(
        hostname=translate_hostname(snapshot) if plan["uts"] is not None else "",
        hooks=OCIHooks(),
        linux=linux,
    )
