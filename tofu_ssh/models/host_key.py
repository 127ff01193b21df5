"""Host key data models."""

import base64
import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncssh

DEFAULT_SSH_PORT = 22


class StrictHostKeyChecking(str, Enum):
    """What to do when an offered host key is unknown or has changed."""

    DISABLED = "no"
    DEFAULT = "default"
    ASK = "ask"
    STRICT = "yes"

    @classmethod
    def parse(cls, value: "str | StrictHostKeyChecking | None") -> "StrictHostKeyChecking":
        """Parse an OpenSSH-style StrictHostKeyChecking value.

        Args:
            value: yes/no/ask/default (or a boolean spelling), case-insensitive

        Returns:
            Matching policy; DEFAULT for None or empty input

        Raises:
            ValueError: If value is not recognised
        """
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        if normalized in ("", "default"):
            return cls.DEFAULT
        if normalized == "ask":
            return cls.ASK
        if normalized in ("yes", "true", "on", "1", "strict"):
            return cls.STRICT
        if normalized in ("no", "false", "off", "0"):
            return cls.DISABLED
        raise ValueError(f"Invalid StrictHostKeyChecking value: {value!r}")

    @property
    def prompts(self) -> bool:
        """Whether unknown keys are confirmed interactively."""
        return self in (StrictHostKeyChecking.DEFAULT, StrictHostKeyChecking.ASK)


class VerificationOutcome(str, Enum):
    """Classification of an offered key against the known_hosts store."""

    MATCHED = "matched"
    UNKNOWN = "unknown"
    CHANGED = "changed"


@dataclass(frozen=True)
class HostKeyRecord:
    """One hostname entry from a known_hosts line."""

    hostname: str
    key_type: str
    key: bytes
    source_file: str
    source_line: int

    @property
    def location(self) -> str:
        """File and line the record was read from."""
        return f"{self.source_file}:{self.source_line}"


@dataclass(frozen=True)
class PublicKey:
    """Host public key offered by a server."""

    key_type: str
    key: bytes

    @property
    def fingerprint(self) -> str:
        """SHA-256 fingerprint in OpenSSH display form."""
        digest = hashlib.sha256(self.key).digest()
        return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")

    @property
    def base64(self) -> str:
        """Key blob encoded for a known_hosts line."""
        return base64.b64encode(self.key).decode("ascii")

    @classmethod
    def from_ssh_key(cls, key: "asyncssh.SSHKey") -> "PublicKey":
        """Build from an asyncssh key object."""
        return cls(key_type=key.get_algorithm(), key=key.public_data)


def format_known_host(hostname: str, port: int = DEFAULT_SSH_PORT) -> str:
    """Format a host the way known_hosts names it.

    Returns:
        hostname for the default port, [hostname]:port otherwise
    """
    if port == DEFAULT_SSH_PORT:
        return hostname
    return f"[{hostname}]:{port}"
