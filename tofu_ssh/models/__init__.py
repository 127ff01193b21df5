"""Data models for tofu_ssh."""

from tofu_ssh.models.command import CommandResult
from tofu_ssh.models.host_key import (
    DEFAULT_SSH_PORT,
    HostKeyRecord,
    PublicKey,
    StrictHostKeyChecking,
    VerificationOutcome,
    format_known_host,
)
from tofu_ssh.models.ssh import CommandOptions, SSHTarget

__all__ = [
    "CommandOptions",
    "CommandResult",
    "DEFAULT_SSH_PORT",
    "format_known_host",
    "HostKeyRecord",
    "PublicKey",
    "SSHTarget",
    "StrictHostKeyChecking",
    "VerificationOutcome",
]
