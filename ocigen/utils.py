#!/usr/bin/env python3
"""
Utility functions for ocigen.

Provides:
- Daemon address and docker binary configuration
- Safe file reading
- passwd/group lookups inside a container root filesystem

Configuration
=============

ocigen reads two environment variables:

    DOCKER_HOST     Daemon socket to talk to (same meaning as for docker)
    OCIGEN_DOCKER   docker binary to invoke (default: "docker")

Everything else is passed on the command line.
"""

import os
from typing import Iterator, List, Optional, Tuple

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"

DOCKER_HOST = os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST
DOCKER_BINARY = os.environ.get("OCIGEN_DOCKER") or "docker"


def read_file(path: str) -> Optional[str]:
    """Safely read a file's contents."""
    try:
        with open(path, "r") as f:
            return f.read()
    except (IOError, OSError):
        return None


def _colon_records(path: str) -> Iterator[List[str]]:
    """Yield the colon-separated fields of every record in a passwd-style file."""
    content = read_file(path)
    if not content:
        return
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        yield line.split(":")


def lookup_user(rootfs: Optional[str], name: str) -> Optional[Tuple[int, int]]:
    """
    Look up a user name in <rootfs>/etc/passwd.

    Args:
        rootfs: Container root filesystem (None skips the lookup)
        name: User name

    Returns:
        (uid, gid) or None if not found
    """
    if not rootfs:
        return None
    for fields in _colon_records(os.path.join(rootfs, "etc", "passwd")):
        if len(fields) >= 4 and fields[0] == name:
            try:
                return int(fields[2]), int(fields[3])
            except ValueError:
                return None
    return None


def lookup_group(rootfs: Optional[str], name: str) -> Optional[int]:
    """
    Look up a group name in <rootfs>/etc/group.

    Returns:
        gid or None if not found
    """
    if not rootfs:
        return None
    for fields in _colon_records(os.path.join(rootfs, "etc", "group")):
        if len(fields) >= 3 and fields[0] == name:
            try:
                return int(fields[2])
            except ValueError:
                return None
    return None
