"""Tests for KnownHostsStore."""

import base64
import os
from pathlib import Path

import pytest

from tofu_ssh.models import PublicKey, VerificationOutcome
from tofu_ssh.services.known_hosts import DISCARD, KnownHostsStore, format_line, parse_line

KEY_ONE = b"\x00\x00\x00\x07ssh-rsa first-key-bytes"
KEY_TWO = b"\x00\x00\x00\x07ssh-rsa second-key-bytes"


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def store() -> KnownHostsStore:
    """Store with the default lock."""
    return KnownHostsStore()


class TestLoad:
    """Test known_hosts parsing."""

    def test_missing_file_is_empty(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """A missing file loads as an empty store."""
        assert store.load(tmp_path / "known_hosts") == []

    def test_parses_records_with_location(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """Records carry the file and line they came from."""
        path = tmp_path / "known_hosts"
        path.write_text(
            "# comment\n"
            "\n"
            f"example.com ssh-rsa {b64(KEY_ONE)}\n"
            f"example.com ssh-ed25519 {b64(KEY_TWO)} user@laptop\n"
        )

        records = store.load(path)

        assert [(r.hostname, r.key_type, r.key) for r in records] == [
            ("example.com", "ssh-rsa", KEY_ONE),
            ("example.com", "ssh-ed25519", KEY_TWO),
        ]
        assert records[0].source_file == str(path)
        assert records[0].source_line == 3
        assert records[1].location == f"{path}:4"

    def test_malformed_line_is_skipped(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """A bad line does not stop the well-formed one from loading."""
        path = tmp_path / "known_hosts"
        path.write_text(f"garbage-line\nexample.com ssh-rsa {b64(KEY_ONE)}\n")

        records = store.load(path)

        assert len(records) == 1
        assert records[0].hostname == "example.com"
        assert records[0].source_line == 2

    def test_bad_base64_is_skipped(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """Undecodable key data is treated as malformed."""
        path = tmp_path / "known_hosts"
        path.write_text("example.com ssh-rsa not*base64!\n")

        assert store.load(path) == []

    def test_comma_separated_hosts(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """Each listed hostname becomes its own record."""
        path = tmp_path / "known_hosts"
        path.write_text(f"example.com,192.0.2.10 ssh-rsa {b64(KEY_ONE)}\n")

        records = store.load(path)

        assert [r.hostname for r in records] == ["example.com", "192.0.2.10"]
        assert {r.source_line for r in records} == {1}

    def test_marker_lines_are_ignored(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """@cert-authority and @revoked lines load nothing."""
        path = tmp_path / "known_hosts"
        path.write_text(
            f"@cert-authority *.example.com ssh-rsa {b64(KEY_ONE)}\n"
            f"@revoked example.com ssh-rsa {b64(KEY_TWO)}\n"
        )

        assert store.load(path) == []

    def test_hashed_hostnames_never_match(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """Hashed entries are inert."""
        path = tmp_path / "known_hosts"
        path.write_text(f"|1|c2FsdA==|aGFzaA== ssh-rsa {b64(KEY_ONE)}\n")

        records = store.load(path)
        outcome = store.match(records, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert outcome is VerificationOutcome.UNKNOWN


class TestMatch:
    """Test key classification."""

    @pytest.fixture
    def records(self, store: KnownHostsStore, tmp_path: Path) -> list:
        path = tmp_path / "known_hosts"
        path.write_text(
            f"example.com ssh-rsa {b64(KEY_ONE)}\n"
            f"other.example ssh-ed25519 {b64(KEY_TWO)}\n"
        )
        return store.load(path)

    def test_exact_match(self, store: KnownHostsStore, records: list) -> None:
        """Same host, type and bytes is MATCHED."""
        outcome = store.match(records, "example.com", PublicKey("ssh-rsa", KEY_ONE))
        assert outcome is VerificationOutcome.MATCHED

    def test_unknown_host(self, store: KnownHostsStore, records: list) -> None:
        """No record for the host is UNKNOWN."""
        outcome = store.match(records, "new.example", PublicKey("ssh-rsa", KEY_ONE))
        assert outcome is VerificationOutcome.UNKNOWN

    def test_changed_key(self, store: KnownHostsStore, records: list) -> None:
        """Same host and type with other bytes is CHANGED."""
        outcome = store.match(records, "example.com", PublicKey("ssh-rsa", KEY_TWO))
        assert outcome is VerificationOutcome.CHANGED

    def test_host_known_under_other_type(self, store: KnownHostsStore, records: list) -> None:
        """A host known only under other algorithms is CHANGED."""
        outcome = store.match(records, "example.com", PublicKey("ssh-ed25519", KEY_TWO))
        assert outcome is VerificationOutcome.CHANGED

    def test_matches_offered_type_among_several(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """A match on the offered type wins over other types."""
        path = tmp_path / "multi"
        path.write_text(
            f"example.com ssh-ed25519 {b64(KEY_TWO)}\n"
            f"example.com ssh-rsa {b64(KEY_ONE)}\n"
        )
        records = store.load(path)

        outcome = store.match(records, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert outcome is VerificationOutcome.MATCHED

    def test_hostname_with_port(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """Bracketed host:port entries match only that exact name."""
        path = tmp_path / "ports"
        path.write_text(f"[example.com]:2222 ssh-rsa {b64(KEY_ONE)}\n")
        records = store.load(path)
        key = PublicKey("ssh-rsa", KEY_ONE)

        assert store.match(records, "[example.com]:2222", key) is VerificationOutcome.MATCHED
        assert store.match(records, "example.com", key) is VerificationOutcome.UNKNOWN


class TestAppend:
    """Test known_hosts persistence."""

    def test_append_to_missing_file(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """A missing file is created with exactly the new line."""
        path = tmp_path / "known_hosts"

        store.append(path, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert path.read_text() == f"example.com ssh-rsa {b64(KEY_ONE)}\n"

    def test_append_to_empty_file(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """An empty file gets the line without a leading newline."""
        path = tmp_path / "known_hosts"
        path.write_text("")

        store.append(path, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert path.read_text() == f"example.com ssh-rsa {b64(KEY_ONE)}\n"

    def test_inserts_newline_when_tail_lacks_one(
        self, store: KnownHostsStore, tmp_path: Path
    ) -> None:
        """Existing content without a trailing newline is terminated first."""
        path = tmp_path / "known_hosts"
        existing = f"old.example ssh-rsa {b64(KEY_TWO)}"
        path.write_text(existing)

        store.append(path, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert path.read_text() == existing + f"\nexample.com ssh-rsa {b64(KEY_ONE)}\n"

    def test_preserves_existing_lines(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """Existing content is kept byte for byte."""
        path = tmp_path / "known_hosts"
        existing = f"# managed\nold.example ssh-rsa {b64(KEY_TWO)}\n"
        path.write_text(existing)

        store.append(path, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert path.read_text().startswith(existing)

    def test_file_mode_is_private(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """The rewritten file is readable only by its owner."""
        path = tmp_path / "known_hosts"

        store.append(path, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert (path.stat().st_mode & 0o777) == 0o600

    def test_no_temp_files_left_behind(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """Only the target file remains after an append."""
        path = tmp_path / "known_hosts"

        store.append(path, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert os.listdir(tmp_path) == ["known_hosts"]

    def test_discard_sink_is_noop(self, store: KnownHostsStore) -> None:
        """Appending to the discard sink succeeds without writing."""
        store.append(DISCARD, "example.com", PublicKey("ssh-rsa", KEY_ONE))

    def test_round_trip(self, store: KnownHostsStore, tmp_path: Path) -> None:
        """An appended key matches after reloading."""
        path = tmp_path / "known_hosts"
        key = PublicKey("ssh-ed25519", KEY_ONE)

        store.append(path, "example.com", key)
        records = store.load(path)

        assert store.match(records, "example.com", key) is VerificationOutcome.MATCHED

    def test_lock_held_during_write(self, tmp_path: Path) -> None:
        """The append runs inside the lock."""
        events: list[str] = []

        class RecordingLock:
            def __enter__(self) -> "RecordingLock":
                events.append("acquire")
                return self

            def __exit__(self, *exc: object) -> None:
                events.append("release")

        store = KnownHostsStore(lock_factory=RecordingLock)  # type: ignore[arg-type]
        store.append(tmp_path / "known_hosts", "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert events == ["acquire", "release"]

    def test_lock_released_when_write_fails(self, tmp_path: Path) -> None:
        """A failed write still releases the lock."""
        events: list[str] = []

        class RecordingLock:
            def __enter__(self) -> "RecordingLock":
                events.append("acquire")
                return self

            def __exit__(self, *exc: object) -> None:
                events.append("release")

        target = tmp_path / "is_a_dir"
        target.mkdir()
        store = KnownHostsStore(lock_factory=RecordingLock)  # type: ignore[arg-type]

        with pytest.raises(OSError):
            store.append(target, "example.com", PublicKey("ssh-rsa", KEY_ONE))

        assert events == ["acquire", "release"]


class TestLineFormat:
    """Test line helpers."""

    def test_format_line(self) -> None:
        """Lines are host, type and base64 key."""
        line = format_line("example.com", PublicKey("ssh-rsa", KEY_ONE))
        assert line == f"example.com ssh-rsa {b64(KEY_ONE)}"

    def test_parse_line_ignores_comment_field(self) -> None:
        """Trailing comments are dropped."""
        records = parse_line(f"example.com ssh-rsa {b64(KEY_ONE)} a comment", "f", 7)
        assert records is not None
        assert records[0].key == KEY_ONE
        assert records[0].source_line == 7

    def test_parse_line_too_few_fields(self) -> None:
        """Two fields are malformed."""
        assert parse_line("example.com ssh-rsa", "f", 1) is None
