#!/usr/bin/env python3
"""
Lifecycle Hook Compilation for ocigen.

Hooks are declared on the command line as:

    --hook prestart:netns
    --hook poststop:/usr/local/bin/cleanup --verbose

i.e. "<phase>:<executable> [arg ...]" where phase is one of prestart,
poststart or poststop. Parsing is split in two steps:

1. parse_hook()   - pure string handling, no filesystem access
2. resolve_hook() - looks the executable up on $PATH

compile_hooks() runs both steps over every declaration and only returns
once all of them succeeded.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from ocigen.oci import OCIHook, OCIHooks, OCIRuntimeSpec

logger = logging.getLogger(__name__)

HOOK_PHASES = ("prestart", "poststart", "poststop")


class HookError(Exception):
    """Exception raised for invalid hook declarations."""

    pass


@dataclass(frozen=True)
class HookDeclaration:
    """A parsed, not yet resolved, hook declaration."""

    raw: str
    phase: str
    executable: str
    args: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class HookEntry:
    """A hook whose executable has been resolved to an absolute path."""

    phase: str
    path: str
    args: List[str] = field(default_factory=list)

    def to_oci(self) -> OCIHook:
        return OCIHook(path=self.path, args=list(self.args) or None)


def parse_hook(raw: str) -> HookDeclaration:
    """
    Parse a "<phase>:<executable> [arg ...]" declaration.

    Args:
        raw: Declaration as given on the command line

    Returns:
        HookDeclaration

    Raises:
        HookError: If the declaration is malformed or the phase is unknown
    """
    phase, sep, command = raw.partition(":")
    if not sep:
        raise HookError(f"parsing {raw!r} as phase:exec failed")

    if phase not in HOOK_PHASES:
        raise HookError(
            f"unrecognized hook phase {phase!r} in {raw!r}, "
            f"try 'prestart', 'poststart', or 'poststop'"
        )

    parts = command.split()
    if not parts:
        raise HookError(f"no executable given in hook {raw!r}")

    return HookDeclaration(raw=raw, phase=phase, executable=parts[0], args=parts[1:])


def resolve_hook(
    declaration: HookDeclaration,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> HookEntry:
    """
    Resolve a hook's executable on the search path.

    Args:
        declaration: Parsed hook declaration
        which: Path lookup function (shutil.which by default)

    Returns:
        HookEntry with an absolute executable path

    Raises:
        HookError: If the executable cannot be found
    """
    path = which(declaration.executable)
    if not path:
        raise HookError(
            f"looking up exec path for {declaration.executable!r} "
            f"(hook {declaration.raw!r}) failed: executable not found"
        )
    path = os.path.abspath(path)
    logger.debug("Resolved %s hook %s -> %s", declaration.phase, declaration.executable, path)
    return HookEntry(phase=declaration.phase, path=path, args=list(declaration.args))


def compile_hooks(
    raw_hooks: Iterable[str],
    which: Callable[[str], Optional[str]] = shutil.which,
) -> OCIHooks:
    """
    Compile hook declarations into OCI hooks grouped by phase.

    Declaration order is kept within each phase. Any invalid declaration
    aborts the whole compilation.

    Raises:
        HookError: On the first invalid declaration
    """
    entries = [resolve_hook(parse_hook(raw), which=which) for raw in raw_hooks]

    hooks = OCIHooks()
    for entry in entries:
        getattr(hooks, entry.phase).append(entry.to_oci())
    return hooks


def merge_hooks(runtime: OCIRuntimeSpec, hooks: OCIHooks) -> OCIRuntimeSpec:
    """Fill a runtime spec's hook lists with compiled hooks."""
    runtime.hooks = OCIHooks(
        prestart=list(hooks.prestart),
        poststart=list(hooks.poststart),
        poststop=list(hooks.poststop),
    )
    return runtime
