"""SSH-related data models."""

import getpass
from dataclasses import dataclass, field

from tofu_ssh.models.host_key import DEFAULT_SSH_PORT, StrictHostKeyChecking


@dataclass
class SSHTarget:
    """Remote login destination."""

    hostname: str
    user: str
    port: int = DEFAULT_SSH_PORT

    @classmethod
    def parse(cls, destination: str, port: int = DEFAULT_SSH_PORT) -> "SSHTarget":
        """Parse a [user@]host destination.

        The local user name is used when none is given.

        Raises:
            ValueError: If the host part is empty
        """
        user, sep, host = destination.partition("@")
        if not sep:
            user, host = "", destination
        if not host:
            raise ValueError(f"Invalid destination {destination!r}: missing host")
        return cls(hostname=host, user=user or getpass.getuser(), port=port)


@dataclass
class CommandOptions:
    """Per-connection options for a remote command."""

    port: int = DEFAULT_SSH_PORT
    known_hosts_file: str | None = None
    strict_host_key_checking: StrictHostKeyChecking = StrictHostKeyChecking.DEFAULT
    host_key_algorithms: list[str] = field(default_factory=list)
    connect_timeout: int | None = None
