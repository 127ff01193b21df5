"""SSH command execution with trust-on-first-use host key verification."""

from tofu_ssh.exceptions import (
    CommandNotStartedError,
    CopyNotSupportedError,
    ExitStatusMissingError,
    HostKeyConfigurationError,
    HostKeyError,
    HostKeyRejectedError,
    HostKeyVerificationFailed,
    KnownHostsWriteError,
    LockTimeoutError,
    PromptIOError,
    SSHConnectionError,
)
from tofu_ssh.models import (
    CommandOptions,
    CommandResult,
    HostKeyRecord,
    PublicKey,
    StrictHostKeyChecking,
    VerificationOutcome,
)
from tofu_ssh.services import (
    CommandClient,
    HostKeyVerifier,
    KnownHostsStore,
    get_default_known_hosts_file,
    set_default_known_hosts_file,
)

__all__ = [
    "CommandClient",
    "CommandNotStartedError",
    "CommandOptions",
    "CommandResult",
    "CopyNotSupportedError",
    "ExitStatusMissingError",
    "get_default_known_hosts_file",
    "HostKeyConfigurationError",
    "HostKeyError",
    "HostKeyRecord",
    "HostKeyRejectedError",
    "HostKeyVerificationFailed",
    "HostKeyVerifier",
    "KnownHostsStore",
    "KnownHostsWriteError",
    "LockTimeoutError",
    "PromptIOError",
    "PublicKey",
    "set_default_known_hosts_file",
    "SSHConnectionError",
    "StrictHostKeyChecking",
    "VerificationOutcome",
]
