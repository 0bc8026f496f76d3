"""
ocigen: docker inspect to OCI runtime bundle spec generator.

Converts a container's daemon inspection data into:
- config.json: process, root filesystem and mounts
- runtime.json: hooks, namespaces, capabilities, resource limits

Author: ocigen Contributors
License: MIT
"""

__version__ = "0.1.0"
__all__ = [
    "Bundle",
    "ContainerSnapshot",
    "DaemonInfo",
    "generate",
    "write_bundle",
]

from ocigen.bundle import Bundle, generate, write_bundle  # noqa: E402
from ocigen.snapshot import ContainerSnapshot, DaemonInfo  # noqa: E402
