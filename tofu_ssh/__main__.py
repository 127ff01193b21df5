"""Command-line entry point for tofu_ssh."""

import argparse
import asyncio
import logging
import sys

from tofu_ssh.config import Settings, resolve_known_hosts_path
from tofu_ssh.exceptions import HostKeyError, SSHConnectionError
from tofu_ssh.models import CommandOptions, StrictHostKeyChecking
from tofu_ssh.services import CommandClient, set_default_known_hosts_file
from tofu_ssh.utils import configure_logging

logger = logging.getLogger(__name__)

# Exit status used by ssh for its own failures
SSH_FAILURE = 255


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tofu-ssh",
        description="Run a command on a remote host over SSH.",
    )
    parser.add_argument("destination", help="[user@]host")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="remote command")
    parser.add_argument("-p", "--port", type=int, default=22)
    parser.add_argument("-i", "--identity-file", action="append", dest="identity_files")
    parser.add_argument("--known-hosts", help="known_hosts file ('none' to record nothing)")
    parser.add_argument(
        "--strict-host-key-checking",
        choices=[p.value for p in StrictHostKeyChecking],
        help="handling of unknown and changed host keys",
    )
    parser.add_argument(
        "--host-key-algorithms",
        help="comma-separated host key algorithms to offer",
    )
    parser.add_argument("--lock-timeout", type=float, help="seconds to wait for the known_hosts lock")
    parser.add_argument("--log-level", help="logging level")
    return parser


def options_from_args(args: argparse.Namespace, settings: Settings) -> CommandOptions:
    """Merge command-line arguments over environment settings."""
    known_hosts = args.known_hosts or settings.known_hosts_path
    algorithms = settings.host_key_algorithms
    if args.host_key_algorithms:
        algorithms = [a.strip() for a in args.host_key_algorithms.split(",") if a.strip()]

    return CommandOptions(
        port=args.port,
        known_hosts_file=resolve_known_hosts_path(known_hosts) if known_hosts else None,
        strict_host_key_checking=StrictHostKeyChecking.parse(
            args.strict_host_key_checking or settings.strict_host_key_checking
        ),
        host_key_algorithms=algorithms,
        connect_timeout=settings.connect_timeout,
    )


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Run the remote command, relaying its output.

    Returns:
        Remote exit status
    """
    client = CommandClient(client_keys=args.identity_files, settings=settings)
    result = await client.run(args.destination, args.command, options_from_args(args, settings))
    sys.stdout.write(result.output)
    sys.stdout.flush()
    sys.stderr.write(result.error)
    sys.stderr.flush()
    if result.signaled:
        logger.error("Remote command terminated by signal %d", -result.returncode)
        return SSH_FAILURE
    return result.returncode


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.lock_timeout is not None:
        settings.lock_timeout = args.lock_timeout
    configure_logging(args.log_level or settings.log_level)
    set_default_known_hosts_file(resolve_known_hosts_path(None))

    try:
        return asyncio.run(run(args, settings))
    except (HostKeyError, SSHConnectionError, ValueError) as e:
        print(f"tofu-ssh: {e}", file=sys.stderr)
        return SSH_FAILURE


if __name__ == "__main__":
    sys.exit(main())
