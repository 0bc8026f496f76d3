#!/usr/bin/env python3
"""
Linux Capability Mapping for ocigen.

Capabilities break up root privileges into distinct units that can be
independently enabled or disabled. A Docker container runs with the
execution driver's default template, adjusted by --cap-add / --cap-drop.

The OCI runtime config wants the final list spelled the kernel way
("CAP_NET_ADMIN"), so the mapper spells known names that way, passes
unknown ones through untouched, applies the deltas and returns a list
whose order is fully determined by its inputs:

    template order, then newly added names in add order, minus drops

A name present in both the add and the drop list is dropped.
"""

from typing import Iterable, Iterator, List, Optional

# All capabilities known to the kernel, in capability-number order
# (from <linux/capability.h>).
ALL_CAPABILITIES = [
    "CAP_CHOWN",
    "CAP_DAC_OVERRIDE",
    "CAP_DAC_READ_SEARCH",
    "CAP_FOWNER",
    "CAP_FSETID",
    "CAP_KILL",
    "CAP_SETGID",
    "CAP_SETUID",
    "CAP_SETPCAP",
    "CAP_LINUX_IMMUTABLE",
    "CAP_NET_BIND_SERVICE",
    "CAP_NET_BROADCAST",
    "CAP_NET_ADMIN",
    "CAP_NET_RAW",
    "CAP_IPC_LOCK",
    "CAP_IPC_OWNER",
    "CAP_SYS_MODULE",
    "CAP_SYS_RAWIO",
    "CAP_SYS_CHROOT",
    "CAP_SYS_PTRACE",
    "CAP_SYS_PACCT",
    "CAP_SYS_ADMIN",
    "CAP_SYS_BOOT",
    "CAP_SYS_NICE",
    "CAP_SYS_RESOURCE",
    "CAP_SYS_TIME",
    "CAP_SYS_TTY_CONFIG",
    "CAP_MKNOD",
    "CAP_LEASE",
    "CAP_AUDIT_WRITE",
    "CAP_AUDIT_CONTROL",
    "CAP_SETFCAP",
    "CAP_MAC_OVERRIDE",
    "CAP_MAC_ADMIN",
    "CAP_SYSLOG",
    "CAP_WAKE_ALARM",
    "CAP_BLOCK_SUSPEND",
    "CAP_AUDIT_READ",
    "CAP_PERFMON",
    "CAP_BPF",
    "CAP_CHECKPOINT_RESTORE",
]

# Docker's native execution driver template, in the driver's own order
DEFAULT_TEMPLATE = [
    "CAP_CHOWN",
    "CAP_DAC_OVERRIDE",
    "CAP_FSETID",
    "CAP_FOWNER",
    "CAP_MKNOD",
    "CAP_NET_RAW",
    "CAP_SETGID",
    "CAP_SETUID",
    "CAP_SETFCAP",
    "CAP_SETPCAP",
    "CAP_NET_BIND_SERVICE",
    "CAP_SYS_CHROOT",
    "CAP_KILL",
    "CAP_AUDIT_WRITE",
]

# Keyword accepted by --cap-add / --cap-drop
ALL_KEYWORD = "ALL"

_KNOWN = frozenset(ALL_CAPABILITIES)


def capability_key(name: str) -> str:
    """Comparison key for a capability name: stripped, upper-cased, CAP_-prefixed."""
    key = name.strip().upper()
    if not key.startswith("CAP_"):
        key = "CAP_" + key
    return key


def normalize_capability(name: str) -> str:
    """
    Normalize a capability name to the kernel spelling.

    Args:
        name: Capability name (e.g., "net_admin", "NET_ADMIN" or "CAP_NET_ADMIN")

    Returns:
        The kernel name for a known capability. Unknown or malformed
        names are returned unchanged.
    """
    key = capability_key(name)
    if key in _KNOWN:
        return key
    return name


class CapabilitySet:
    """
    Ordered, duplicate-free list of capability names.

    Names are compared by capability_key(), so "NET_ADMIN" and
    "CAP_NET_ADMIN" are the same entry. Empty names are ignored.

    Example:
        caps = CapabilitySet(DEFAULT_TEMPLATE)
        caps.add("NET_ADMIN")
        caps.remove("MKNOD")
        caps.names()
    """

    def __init__(self, names: Optional[Iterable[str]] = None):
        self._names: List[str] = []
        for name in names or []:
            self.add(name)

    def _keys(self) -> List[str]:
        return [capability_key(n) for n in self._names]

    def add(self, name: str) -> None:
        """Append a capability unless already present."""
        if not name.strip():
            return
        if capability_key(name) not in self._keys():
            self._names.append(normalize_capability(name))

    def remove(self, name: str) -> None:
        """Remove every occurrence of a capability."""
        if not name.strip():
            return
        key = capability_key(name)
        self._names = [n for n in self._names if capability_key(n) != key]

    def clear(self) -> None:
        self._names = []

    def names(self) -> List[str]:
        """Get a copy of the capability names in order."""
        return list(self._names)

    def __contains__(self, name: str) -> bool:
        return bool(name.strip()) and capability_key(name) in self._keys()

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)


def _is_all(name: str) -> bool:
    return name.strip().upper() == ALL_KEYWORD


def map_capabilities(
    template: Iterable[str],
    add: Optional[Iterable[str]] = None,
    drop: Optional[Iterable[str]] = None,
    privileged: bool = False,
) -> List[str]:
    """
    Compute the final capability list for a container.

    Args:
        template: Default capability template (order preserved)
        add: Capabilities to add (--cap-add); "ALL" adds every known one
        drop: Capabilities to drop (--cap-drop); "ALL" clears the template
        privileged: Start from every known capability instead of the template

    Returns:
        Ordered list of capability names (known ones in kernel spelling)
    """
    add = list(add or [])
    drop = list(drop or [])

    if privileged:
        caps = CapabilitySet(ALL_CAPABILITIES)
    elif any(_is_all(name) for name in drop):
        caps = CapabilitySet()
    else:
        caps = CapabilitySet(template)

    for name in add:
        if _is_all(name):
            for cap in ALL_CAPABILITIES:
                caps.add(cap)
        else:
            caps.add(name)

    # Drops go last so a capability named on both lists ends up dropped
    for name in drop:
        if not _is_all(name):
            caps.remove(name)

    return caps.names()
