"""Errors raised by host key verification and the command client.

Every error crosses the transport boundary as an explicit failure; none
are retried automatically.
"""


class HostKeyError(Exception):
    """Base class for host key verification failures."""


class HostKeyConfigurationError(HostKeyError):
    """Verification cannot proceed with the current configuration."""


class LockTimeoutError(HostKeyError):
    """Cross-process lock was not acquired within its timeout."""

    def __init__(self, name: str, timeout: float):
        """Initialize lock timeout error.

        Args:
            name: Name of the lock
            timeout: Seconds waited before giving up
        """
        self.name = name
        self.timeout = timeout
        super().__init__(f"timed out after {timeout:g}s acquiring lock {name!r}")


class PromptIOError(HostKeyError):
    """Reading from or writing to the interactive terminal failed."""


class HostKeyRejectedError(HostKeyError):
    """Strict checking refused an unknown or changed host key."""

    def __init__(self, hostname: str, key_type: str):
        """Initialize policy rejection.

        Args:
            hostname: Host whose key was refused
            key_type: Algorithm of the offered key
        """
        self.hostname = hostname
        self.key_type = key_type
        super().__init__(
            f"no {key_type} host key is known for {hostname} "
            f"and you have requested strict checking"
        )


class HostKeyVerificationFailed(HostKeyError):
    """The user declined the offered host key."""

    def __init__(self, message: str = "Host key verification failed."):
        super().__init__(message)


class KnownHostsWriteError(HostKeyError):
    """Accepted host key could not be persisted."""

    def __init__(self, path: str, original_error: Exception):
        """Initialize persistence error.

        Args:
            path: known_hosts file that could not be written
            original_error: Underlying I/O error
        """
        self.path = path
        self.original_error = original_error
        super().__init__(f"failed to update {path}: {original_error}")


class SSHConnectionError(Exception):
    """Failed to establish an SSH connection."""

    def __init__(self, host_name: str, original_error: Exception):
        """Initialize connection error.

        Args:
            host_name: Name of the SSH host
            original_error: Original exception that caused the failure
        """
        self.host_name = host_name
        self.original_error = original_error
        super().__init__(f"Cannot connect to {host_name}: {original_error}")


class CommandNotStartedError(RuntimeError):
    """Operation requires a started command."""

    def __init__(self) -> None:
        super().__init__("command has not been started")


class CopyNotSupportedError(NotImplementedError):
    """File copy is not provided by this client."""


class ExitStatusMissingError(SSHConnectionError):
    """Remote session closed without reporting how the command ended."""

    def __init__(self, host_name: str):
        super().__init__(
            host_name, RuntimeError("session closed without an exit status or signal")
        )
