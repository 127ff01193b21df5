"""Services for tofu_ssh."""

from tofu_ssh.services.client import Command, CommandClient, VerifyingClient
from tofu_ssh.services.known_hosts import DISCARD, KnownHostsStore
from tofu_ssh.services.lock import CrossProcessLock
from tofu_ssh.services.state import (
    KnownHostsDefault,
    get_default_known_hosts_file,
    reset_state,
    set_default_known_hosts_file,
)
from tofu_ssh.services.terminal import Terminal, open_terminal
from tofu_ssh.services.verifier import HostKeyVerifier

__all__ = [
    "Command",
    "CommandClient",
    "CrossProcessLock",
    "DISCARD",
    "get_default_known_hosts_file",
    "HostKeyVerifier",
    "KnownHostsDefault",
    "KnownHostsStore",
    "open_terminal",
    "reset_state",
    "set_default_known_hosts_file",
    "Terminal",
    "VerifyingClient",
]
