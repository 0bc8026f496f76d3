#!/usr/bin/env python3
"""
Docker Daemon Access for ocigen.

Talks to the daemon through the docker CLI:

    docker -H <host> inspect --type container <ref>
    docker -H <host> info --format '{{json .}}'

Each call is made once, synchronously, without retries. Any failure is
reported as a DaemonError naming the operation and the underlying cause.
"""

import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

from ocigen.namespaces import CONTAINER_MODE_PREFIX
from ocigen.snapshot import ContainerSnapshot, DaemonInfo
from ocigen.utils import DOCKER_BINARY, DOCKER_HOST

logger = logging.getLogger(__name__)


class DaemonError(Exception):
    """Exception raised when the daemon cannot provide data."""

    pass


class DockerClient:
    """
    Minimal docker client.

    Example:
        client = DockerClient("unix:///var/run/docker.sock")
        snapshot = client.snapshot("web")
        info = client.daemon_info()
    """

    def __init__(self, host: Optional[str] = None, binary: Optional[str] = None):
        self.host = host or DOCKER_HOST
        self.binary = binary or DOCKER_BINARY

    def _run(self, operation: str, args: List[str]) -> Any:
        """Run a docker command and decode its JSON output."""
        cmd = [self.binary, "-H", self.host] + args
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError:
            raise DaemonError(f"{operation} failed: {self.binary} not found")
        except subprocess.CalledProcessError as e:
            cause = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise DaemonError(f"{operation} failed: {cause}")

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise DaemonError(f"{operation} failed: invalid JSON from daemon: {e}")

    def inspect(self, ref: str) -> Dict[str, Any]:
        """
        Inspect a container by name or ID.

        Returns:
            The raw inspect object

        Raises:
            DaemonError: If the container cannot be inspected
        """
        operation = f"inspecting container ({ref})"
        data = self._run(operation, ["inspect", "--type", "container", ref])
        if isinstance(data, list):
            if not data:
                raise DaemonError(f"{operation} failed: no such container")
            data = data[0]
        if not isinstance(data, dict):
            raise DaemonError(f"{operation} failed: unexpected response")
        return data

    def info(self) -> Dict[str, Any]:
        """
        Get daemon-wide information.

        Raises:
            DaemonError: If the daemon info call fails
        """
        data = self._run("getting daemon info", ["info", "--format", "{{json .}}"])
        if not isinstance(data, dict):
            raise DaemonError("getting daemon info failed: unexpected response")
        return data

    def snapshot(self, ref: str) -> ContainerSnapshot:
        return ContainerSnapshot.from_inspect(self.inspect(ref))

    def daemon_info(self) -> DaemonInfo:
        return DaemonInfo.from_info(self.info())

    def peer_pids(self, snapshot: ContainerSnapshot) -> Dict[str, int]:
        """
        Pids of the containers whose namespaces this container joins.

        Raises:
            DaemonError: If a referenced container cannot be inspected
        """
        modes = snapshot.namespaces
        pids: Dict[str, int] = {}
        for mode in (modes.network, modes.pid, modes.ipc):
            if not mode.startswith(CONTAINER_MODE_PREFIX):
                continue
            ref = mode[len(CONTAINER_MODE_PREFIX):]
            if ref in pids:
                continue
            pid = (self.inspect(ref).get("State") or {}).get("Pid") or 0
            if pid:
                pids[ref] = pid
        return pids
