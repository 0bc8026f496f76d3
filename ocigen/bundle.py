#!/usr/bin/env python3
"""
Bundle Generation for ocigen.

Runs the whole conversion for one container:

    hooks        --hook declarations  -> OCIHooks
    capabilities template + add/drop -> capability list
    process      snapshot             -> config.json
    runtime      snapshot + info      -> runtime.json (+ hooks)

Both documents are built and serialized in memory before anything is
written. Each document is staged in a temporary file inside the bundle
directory and both are moved into place only once both are on disk, so
a failure at any step leaves the existing descriptors untouched.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Union

from ocigen.capabilities import map_capabilities
from ocigen.hooks import compile_hooks, merge_hooks
from ocigen.oci import (CONFIG_FILENAME, RUNTIME_FILENAME, OCIHooks,
                        OCIRuntimeSpec, OCISpec, dumps)
from ocigen.process import translate_process
from ocigen.runtime import translate_runtime
from ocigen.snapshot import ContainerSnapshot, DaemonInfo

logger = logging.getLogger(__name__)

# Permissions of written descriptors
DESCRIPTOR_MODE = 0o644


class BundleError(Exception):
    """Exception raised when a bundle cannot be written."""

    pass


@dataclass
class Bundle:
    """The two descriptors of an OCI bundle."""

    config: OCISpec
    runtime: OCIRuntimeSpec

    def render(self) -> Dict[str, str]:
        """Serialize both documents, keyed by file name."""
        return {
            CONFIG_FILENAME: dumps(self.config),
            RUNTIME_FILENAME: dumps(self.runtime),
        }


def generate(
    snapshot: ContainerSnapshot,
    info: DaemonInfo,
    hooks: Union[Iterable[str], OCIHooks] = (),
    rootfs: Optional[str] = None,
    peer_pids: Optional[Dict[str, int]] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
    stat_func: Callable[[str], os.stat_result] = os.stat,
) -> Bundle:
    """
    Convert a container snapshot into an OCI bundle.

    Args:
        snapshot: Container snapshot
        info: Daemon info
        hooks: Raw "<phase>:<executable> [arg ...]" declarations, or
            hooks already compiled by compile_hooks()
        rootfs: Root filesystem path to use instead of the daemon's
        peer_pids: Pids of containers whose namespaces are joined
        which: Executable lookup for hooks
        stat_func: Device node lookup

    Returns:
        Bundle

    Raises:
        HookError: If a hook declaration is invalid
        TranslationError: If the snapshot cannot be translated
    """
    if isinstance(hooks, OCIHooks):
        compiled = hooks
    else:
        compiled = compile_hooks(hooks, which=which)

    capabilities = map_capabilities(
        info.default_capabilities,
        add=snapshot.cap_add,
        drop=snapshot.cap_drop,
        privileged=snapshot.privileged,
    )

    config = translate_process(snapshot, info, rootfs=rootfs)
    runtime = translate_runtime(
        snapshot, info, capabilities, peer_pids=peer_pids, stat_func=stat_func
    )
    merge_hooks(runtime, compiled)

    return Bundle(config=config, runtime=runtime)


def check_no_file(path: str) -> None:
    """
    Make sure a descriptor is not about to be overwritten.

    Raises:
        BundleError: If the file exists
    """
    if os.path.lexists(path):
        raise BundleError(f"File {path} exists. Remove it first")


def write_bundle(bundle: Bundle, directory: str = ".", force: bool = False) -> List[str]:
    """
    Write config.json and runtime.json into a bundle directory.

    Args:
        bundle: Generated bundle
        directory: Existing bundle directory
        force: Overwrite existing descriptors

    Returns:
        Paths written

    Raises:
        BundleError: If the directory is missing, a descriptor already
            exists (without force), or a write fails. On failure no
            descriptor in the directory has been replaced.
    """
    if not os.path.isdir(directory):
        raise BundleError(f"Bundle directory not found: {directory}")

    documents = bundle.render()
    paths = {name: os.path.join(directory, name) for name in documents}

    if not force:
        for path in paths.values():
            check_no_file(path)

    # Stage both documents next to their targets, then move them into place
    staged: Dict[str, str] = {}
    try:
        for name, content in documents.items():
            staged[name] = _stage(directory, name, content, paths[name])

        for path in paths.values():
            if os.path.isdir(path):
                raise BundleError(f"Writing {path} failed: target is a directory")

        for name, tmp_path in staged.items():
            try:
                os.replace(tmp_path, paths[name])
            except OSError as e:
                raise BundleError(f"Writing {paths[name]} failed: {e}")
            logger.debug("Wrote %s", paths[name])
    finally:
        for tmp_path in staged.values():
            if os.path.lexists(tmp_path):
                os.unlink(tmp_path)

    return list(paths.values())


def _stage(directory: str, name: str, content: str, target: str) -> str:
    """Write a document to a temporary file in the bundle directory."""
    try:
        f = tempfile.NamedTemporaryFile(
            "w", dir=directory, prefix=f".{name}.", suffix=".tmp", delete=False
        )
    except OSError as e:
        raise BundleError(f"Writing {target} failed: {e}")

    try:
        with f:
            f.write(content)
        os.chmod(f.name, DESCRIPTOR_MODE)
    except OSError as e:
        os.unlink(f.name)
        raise BundleError(f"Writing {target} failed: {e}")
    return f.name
