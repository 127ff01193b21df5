"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field

from tofu_ssh.models import StrictHostKeyChecking

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all env vars.
    """

    # Host key verification
    known_hosts_path: str | None = field(default=None)
    strict_host_key_checking: StrictHostKeyChecking = field(
        default=StrictHostKeyChecking.DEFAULT
    )
    host_key_algorithms: list[str] = field(default_factory=list)
    lock_timeout: float = field(default=1.0)

    # Connection
    connect_timeout: int = field(default=30)
    identity_file: str | None = field(default=None)

    # Logging
    log_level: str = field(default="INFO")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            known_hosts_path=os.getenv("TOFU_SSH_KNOWN_HOSTS") or None,
            strict_host_key_checking=cls._get_policy("TOFU_SSH_STRICT_HOST_KEY_CHECKING"),
            host_key_algorithms=cls._get_list("TOFU_SSH_HOST_KEY_ALGORITHMS"),
            lock_timeout=cls._get_float("TOFU_SSH_LOCK_TIMEOUT", 1.0),
            connect_timeout=cls._get_int("TOFU_SSH_CONNECT_TIMEOUT", 30),
            identity_file=os.getenv("TOFU_SSH_IDENTITY_FILE") or None,
            log_level=os.getenv("TOFU_SSH_LOG_LEVEL", "INFO").upper(),
        )

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        """Get non-negative float from environment."""
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = float(value)
        except ValueError:
            logger.warning("Invalid float for %s: %s, using default %g", key, value, default)
            return default
        if parsed < 0:
            logger.warning("Negative value for %s: %s, using default %g", key, value, default)
            return default
        return parsed

    @staticmethod
    def _get_list(key: str) -> list[str]:
        """Get comma-separated list from environment.

        Returns:
            List of non-empty items (empty if not set)
        """
        value = os.getenv(key, "").strip()
        if not value:
            return []
        return [item.strip() for item in value.split(",") if item.strip()]

    @staticmethod
    def _get_policy(key: str) -> StrictHostKeyChecking:
        """Get host key checking policy from environment."""
        value = os.getenv(key)
        try:
            return StrictHostKeyChecking.parse(value)
        except ValueError:
            logger.warning("Invalid policy for %s: %s, using default", key, value)
            return StrictHostKeyChecking.DEFAULT
