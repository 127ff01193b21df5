"""known_hosts file parsing, matching and persistence.

Line format::

    <hostname>[,<hostname>...] <key-type> <base64-key> [comment]

Blank lines and ``#`` comments are ignored. Malformed lines are skipped.
Hashed hostnames (``|1|...``) and marker lines (``@cert-authority``,
``@revoked``) are loaded as nothing and therefore never match; hashing
support would change how existing files are matched.

The file only ever grows. Each append rewrites the whole file through a
temporary file in the same directory followed by a rename, and the
read-modify-rename sequence runs under a ``CrossProcessLock``.
"""

import base64
import binascii
import logging
import os
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path

from tofu_ssh.models import HostKeyRecord, PublicKey, VerificationOutcome
from tofu_ssh.services.lock import CrossProcessLock

logger = logging.getLogger(__name__)

# Writing here persists nothing.
DISCARD = os.devnull


class KnownHostsStore:
    """Reads and appends host key records in a known_hosts file.

    Nothing is cached between calls; every ``load`` reads the file as it
    is on disk now.
    """

    def __init__(
        self,
        lock_factory: Callable[[], CrossProcessLock] = CrossProcessLock,
        file_mode: int = 0o600,
    ) -> None:
        """Initialize store.

        Args:
            lock_factory: Creates the lock guarding each append
            file_mode: Permissions for the rewritten file
        """
        self._lock_factory = lock_factory
        self._file_mode = file_mode

    def load(self, path: str | Path) -> list[HostKeyRecord]:
        """Load all records from a known_hosts file.

        A missing file is an empty store.

        Raises:
            OSError: If the file exists but cannot be read
        """
        path = str(path)
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            logger.debug("known_hosts %s does not exist, treating as empty", path)
            return []

        records: list[HostKeyRecord] = []
        for line_no, line in enumerate(lines, start=1):
            parsed = parse_line(line, path, line_no)
            if parsed is None:
                continue
            records.extend(parsed)
        return records

    def match(
        self,
        records: Sequence[HostKeyRecord],
        hostname: str,
        key: PublicKey,
    ) -> VerificationOutcome:
        """Classify an offered key against loaded records.

        Returns:
            MATCHED if a record has the same host, type and key bytes,
            UNKNOWN if no record names the host at all, CHANGED otherwise
        """
        known = [r for r in records if r.hostname == hostname]
        if not known:
            return VerificationOutcome.UNKNOWN
        for record in known:
            if record.key_type == key.key_type and record.key == key.key:
                return VerificationOutcome.MATCHED
        return VerificationOutcome.CHANGED

    def known_for(
        self, records: Sequence[HostKeyRecord], hostname: str
    ) -> list[HostKeyRecord]:
        """Return every record naming hostname, in file order."""
        return [r for r in records if r.hostname == hostname]

    def append(self, path: str | Path, hostname: str, key: PublicKey) -> None:
        """Append a host key line, replacing the file atomically.

        Appending to ``DISCARD`` does nothing.

        Raises:
            LockTimeoutError: If the update lock is not acquired in time
            OSError: If reading, writing or renaming fails
        """
        path = str(path)
        if path == DISCARD:
            logger.debug("Not persisting %s key for %s", key.key_type, hostname)
            return

        line = format_line(hostname, key)
        with self._lock_factory():
            try:
                with open(path, "rb") as f:
                    data = f.read()
            except FileNotFoundError:
                data = b""

            if data and not data.endswith(b"\n"):
                data += b"\n"
            data += line.encode("ascii") + b"\n"
            self._atomic_write(path, data)

        logger.info("Added %s key for %s to %s", key.key_type, hostname, path)

    def _atomic_write(self, path: str, data: bytes) -> None:
        """Write data to a sibling temp file and rename it over path."""
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, mode=0o700, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=directory, prefix=f".{os.path.basename(path)}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, self._file_mode)
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise


def format_line(hostname: str, key: PublicKey) -> str:
    """Format a known_hosts line without its trailing newline."""
    return f"{hostname} {key.key_type} {key.base64}"


def parse_line(line: str, source_file: str, source_line: int) -> list[HostKeyRecord] | None:
    """Parse one known_hosts line.

    Returns:
        One record per listed hostname, or None for blank, comment,
        marker and malformed lines
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("@"):
        logger.debug("Ignoring marker line %s:%d", source_file, source_line)
        return None

    fields = line.split()
    if len(fields) < 3:
        logger.debug("Skipping malformed line %s:%d", source_file, source_line)
        return None

    hosts, key_type, key_b64 = fields[0], fields[1], fields[2]
    try:
        key = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError):
        logger.debug("Skipping line with bad key data %s:%d", source_file, source_line)
        return None
    if not key:
        return None

    return [
        HostKeyRecord(
            hostname=host,
            key_type=key_type,
            key=key,
            source_file=source_file,
            source_line=source_line,
        )
        for host in hosts.split(",")
        if host
    ]
