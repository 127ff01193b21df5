"""known_hosts path resolution."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DISABLE_VALUE = "none"


def default_known_hosts_path() -> Path:
    """Get the per-user known_hosts file."""
    return Path.home() / ".ssh" / "known_hosts"


def resolve_known_hosts_path(value: str | None) -> str:
    """Resolve a configured known_hosts location.

    Args:
        value: Path, 'none' to persist nothing, or None/empty for the default

    Returns:
        Absolute path, or os.devnull when persistence is disabled
    """
    if value and value.strip().lower() == DISABLE_VALUE:
        logger.warning(
            "known_hosts persistence disabled: every host key will be treated "
            "as unknown and accepted keys are not recorded"
        )
        return os.devnull

    if value and value.strip():
        return str(Path(os.path.expanduser(value.strip())))

    return str(default_known_hosts_path())
