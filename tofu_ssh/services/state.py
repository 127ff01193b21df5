"""Process-wide shared state for tofu_ssh."""

import threading


class KnownHostsDefault:
    """Synchronized holder for the default known_hosts path."""

    def __init__(self, path: str = "") -> None:
        self._lock = threading.Lock()
        self._path = path

    def get(self) -> str:
        """Get the current default path (empty when unset)."""
        with self._lock:
            return self._path

    def set(self, path: str) -> None:
        """Replace the default path."""
        with self._lock:
            self._path = path


_known_hosts_default = KnownHostsDefault()


def get_known_hosts_default() -> KnownHostsDefault:
    """Get the shared default holder."""
    return _known_hosts_default


def get_default_known_hosts_file() -> str:
    """Get the known_hosts file used when a connection names none."""
    return _known_hosts_default.get()


def set_default_known_hosts_file(path: str) -> None:
    """Set the known_hosts file used when a connection names none."""
    _known_hosts_default.set(path)


def reset_state() -> None:
    """Reset shared state for testing.

    Should only be used in test fixtures.
    """
    _known_hosts_default.set("")
