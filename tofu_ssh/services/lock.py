"""Cross-process mutual exclusion for known_hosts updates.

Locking Strategy:
- One advisory ``flock`` on ``<lock_dir>/<name>.lock`` per holder
- Every holder opens its own file description, so threads in one process
  exclude each other exactly like separate processes do
- The kernel drops the lock when the holder exits, so a crashed holder
  never leaves a stale lock behind
- The lock file is opened read-only and created world-readable, so it is
  shared host-wide by every user regardless of who created it
"""

import errno
import fcntl
import logging
import os
import tempfile
import time
from types import TracebackType

from tofu_ssh.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_NAME = "tofu-ssh-client"
DEFAULT_LOCK_TIMEOUT = 1.0
LOCK_FILE_MODE = 0o644


class CrossProcessLock:
    """Named lock shared by every process on the host."""

    def __init__(
        self,
        name: str = DEFAULT_LOCK_NAME,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        poll_interval: float = 0.05,
        lock_dir: str | None = None,
    ) -> None:
        """Initialize lock.

        Args:
            name: Lock name, identical for all cooperating instances
            timeout: Seconds to wait before giving up
            poll_interval: Seconds between acquisition attempts
            lock_dir: Directory holding the lock file (default: temp dir)
        """
        self.name = name
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.path = os.path.join(lock_dir or tempfile.gettempdir(), f"{name}.lock")
        self._fd: int | None = None

    @property
    def locked(self) -> bool:
        """Whether this instance currently holds the lock."""
        return self._fd is not None

    def _open(self) -> int:
        """Open the lock file read-only, creating it if missing.

        ``flock`` needs no write access, so a file created by another
        user works as well. ``O_CREAT`` is only used when the file does
        not exist yet; sticky temp directories refuse it on files owned
        by someone else.
        """
        while True:
            try:
                return os.open(self.path, os.O_RDONLY)
            except FileNotFoundError:
                pass
            try:
                fd = os.open(self.path, os.O_RDONLY | os.O_CREAT | os.O_EXCL, LOCK_FILE_MODE)
            except FileExistsError:
                continue
            try:
                os.fchmod(fd, LOCK_FILE_MODE)
            except OSError:
                os.close(fd)
                raise
            return fd

    def acquire(self) -> None:
        """Acquire the lock, waiting at most ``timeout`` seconds.

        Raises:
            LockTimeoutError: If another holder keeps the lock too long
            RuntimeError: If this instance already holds the lock
        """
        if self._fd is not None:
            raise RuntimeError(f"lock {self.name!r} is already held")

        fd = self._open()
        deadline = time.monotonic() + self.timeout
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError as e:
                    if e.errno not in (errno.EAGAIN, errno.EACCES):
                        raise
                if time.monotonic() >= deadline:
                    logger.warning(
                        "Could not acquire %s within %.2fs", self.path, self.timeout
                    )
                    raise LockTimeoutError(self.name, self.timeout)
                time.sleep(self.poll_interval)
        except BaseException:
            os.close(fd)
            raise

        self._fd = fd
        logger.debug("Acquired lock %s", self.path)

    def release(self) -> None:
        """Release the lock if held."""
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug("Released lock %s", self.path)

    def __enter__(self) -> "CrossProcessLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
