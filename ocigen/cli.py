#!/usr/bin/env python3
"""
Command Line Interface for ocigen.

Usage:
    ocigen [options] <container>

Inspects <container> on the Docker daemon and writes config.json and
runtime.json for an OCI runtime:

    ocigen --bundle /containers/web web
    ocigen --hook prestart:netns --hook poststop:cleanup web
    ocigen -f --rootfs rootfs 4c01db0b339c
"""

import argparse
import logging
import sys
from typing import List, Optional

from ocigen import __version__
from ocigen.oci import CONFIG_FILENAME, RUNTIME_FILENAME
from ocigen.utils import DOCKER_HOST

logger = logging.getLogger(__name__)

BANNER = "docker inspect to OCI bundle spec generator."


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="ocigen",
        description=BANNER,
        epilog="Pass 'help' or 'version' as the container to print usage or version.",
    )

    parser.add_argument(
        "--version", "-v", action="version", version=f"ocigen {__version__}"
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Run in debug mode")
    parser.add_argument(
        "--host",
        default=DOCKER_HOST,
        help="Docker daemon socket to connect to (default: %(default)s)",
    )
    parser.add_argument(
        "--bundle", "-b", default=".", help="Path to the root of the bundle directory"
    )
    parser.add_argument(
        "--rootfs",
        help="Root filesystem path to put in config.json "
        "(default: the container's merged directory)",
    )
    parser.add_argument(
        "--hook",
        action="append",
        default=[],
        metavar="PHASE:EXEC",
        help="Hooks to prefill into the runtime spec (ex. --hook prestart:netns)",
    )
    parser.add_argument(
        "--force", "-f", action="store_true", help="Force overwrite existing files"
    )
    parser.add_argument("container", nargs="?", help="Container name or ID")

    return parser


def setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def convert(args: argparse.Namespace) -> int:
    """Inspect the container, generate the bundle and write it."""
    from ocigen.bundle import generate, write_bundle
    from ocigen.daemon import DockerClient
    from ocigen.hooks import compile_hooks

    # Catch bad hook declarations before talking to the daemon
    hooks = compile_hooks(args.hook)

    client = DockerClient(host=args.host)
    snapshot = client.snapshot(args.container)
    info = client.daemon_info()
    peer_pids = client.peer_pids(snapshot)

    bundle = generate(
        snapshot, info, hooks=hooks, rootfs=args.rootfs, peer_pids=peer_pids
    )
    write_bundle(bundle, args.bundle, force=args.force)

    print(f"{CONFIG_FILENAME} and {RUNTIME_FILENAME} have been saved.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.container:
        print("Pass the container name or ID.\n", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 1

    if args.container == "help":
        parser.print_help()
        return 0

    if args.container == "version":
        print(__version__)
        return 0

    setup_logging(args.debug)

    try:
        return convert(args)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except Exception as e:
        if args.debug:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
