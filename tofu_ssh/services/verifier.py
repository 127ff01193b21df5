"""SSH host key verification with trust on first use.

Per connection attempt::

    lookup -> MATCHED                          -> accept
           -> UNKNOWN/CHANGED -> policy STRICT -> reject
                              -> policy NO     -> persist -> accept
                              -> policy ASK    -> prompt  -> no  -> reject
                                                          -> yes -> persist -> accept

A persistence failure after acceptance fails the connection.
"""

import logging
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager

from tofu_ssh.exceptions import (
    HostKeyConfigurationError,
    HostKeyError,
    HostKeyRejectedError,
    HostKeyVerificationFailed,
    KnownHostsWriteError,
    PromptIOError,
)
from tofu_ssh.models import HostKeyRecord, PublicKey, StrictHostKeyChecking, VerificationOutcome
from tofu_ssh.services.known_hosts import DISCARD, KnownHostsStore
from tofu_ssh.services.state import KnownHostsDefault, get_known_hosts_default
from tofu_ssh.services.terminal import LineTerminal, open_terminal

logger = logging.getLogger(__name__)

TerminalFactory = Callable[[], AbstractContextManager[LineTerminal | None]]

CHANGED_BANNER = """\
@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@
@    WARNING: REMOTE HOST IDENTIFICATION HAS CHANGED!     @
@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@
IT IS POSSIBLE THAT SOMEONE IS DOING SOMETHING NASTY!
Someone could be eavesdropping on you right now (man-in-the-middle attack)!
It is also possible that a host key has just been changed.
The fingerprint for the {key_type} key sent by the remote host is
{fingerprint}.
Please contact your system administrator.
Add correct host key in {path} to get rid of this message.
"""

CONFIRM_PROMPT = "Are you sure you want to continue connecting (yes/no)? "
RETRY_PROMPT = "Please type 'yes' or 'no': "


def changed_key_warning(
    path: str,
    key: PublicKey,
    known: Sequence[HostKeyRecord],
) -> str:
    """Build the warning shown when a host presents a different key.

    Names the conflicting record of the offered type, or lists every
    known record when the host was only known under other key types.
    """
    head = CHANGED_BANNER.format(
        key_type=key.key_type, fingerprint=key.fingerprint, path=path
    )
    same_type = [r for r in known if r.key_type == key.key_type]
    if same_type:
        offending = same_type[-1]
        return head + f"Offending {offending.key_type} key in {offending.location}"

    tail = "Host was previously using different host key algorithms:"
    for record in known:
        tail += f"\n - {record.key_type} key in {record.location}"
    return head + tail


class HostKeyVerifier:
    """Decides whether an offered host key is trusted.

    The known_hosts file is read fresh on every call.
    """

    def __init__(
        self,
        known_hosts_path: str | None = None,
        policy: StrictHostKeyChecking = StrictHostKeyChecking.DEFAULT,
        store: KnownHostsStore | None = None,
        terminal_factory: TerminalFactory = open_terminal,
        defaults: KnownHostsDefault | None = None,
    ):
        """Initialize host key verifier.

        Args:
            known_hosts_path: known_hosts file for this client; falls back
                to the shared default when empty
            policy: Handling of unknown and changed keys
            store: known_hosts reader/writer
            terminal_factory: Opens the prompt terminal, yielding None when
                no terminal is attached
            defaults: Holder of the shared default known_hosts path
        """
        self.known_hosts_path = known_hosts_path
        self.policy = StrictHostKeyChecking.parse(policy)
        self._store = store or KnownHostsStore()
        self._terminal_factory = terminal_factory
        self._defaults = defaults or get_known_hosts_default()

    def resolve_path(self) -> str:
        """Get the known_hosts file to check against.

        Raises:
            HostKeyConfigurationError: If no file is configured anywhere
        """
        path = self.known_hosts_path or self._defaults.get()
        if not path:
            raise HostKeyConfigurationError("known_hosts file not configured")
        return path

    def verify(self, hostname: str, address: str, key: PublicKey) -> None:
        """Verify a host key offered during the handshake.

        Args:
            hostname: Host as named in known_hosts
            address: Network address of the remote end
            key: Key offered by the server

        Raises:
            HostKeyError: If the key is rejected or cannot be persisted
        """
        path = self.resolve_path()
        try:
            records = self._store.load(path)
        except OSError as e:
            raise HostKeyConfigurationError(f"failed to read {path}: {e}") from e

        outcome = self._store.match(records, hostname, key)
        if outcome is VerificationOutcome.MATCHED:
            logger.debug("Host key for %s matched %s", hostname, path)
            return

        logger.info(
            "Host key for %s is %s (policy=%s)", hostname, outcome.value, self.policy.value
        )
        with self._terminal_factory() as term:
            notify = _notifier(term)

            if outcome is VerificationOutcome.CHANGED:
                warning = changed_key_warning(
                    path, key, self._store.known_for(records, hostname)
                )
                try:
                    notify(warning)
                except PromptIOError as e:
                    raise PromptIOError(
                        f"failed to print host key mismatch warning: {e}"
                    ) from e

            if self.policy is StrictHostKeyChecking.STRICT:
                raise HostKeyRejectedError(hostname, key.key_type)

            if self.policy.prompts:
                self._confirm(term, hostname, address, key)

            self._persist(path, hostname, key)

            if self.policy is StrictHostKeyChecking.DISABLED:
                notify(
                    f"Warning: permanently added '{hostname}' ({key.key_type}) "
                    f"to the list of known hosts."
                )

    def _confirm(
        self,
        term: LineTerminal | None,
        hostname: str,
        address: str,
        key: PublicKey,
    ) -> None:
        """Ask the user to accept the key.

        Raises:
            HostKeyConfigurationError: If there is no terminal to ask on
            HostKeyVerificationFailed: If the user answers no
            PromptIOError: If the terminal fails
        """
        message = (
            f"The authenticity of host '{hostname} ({address})' can't be established.\n"
            f"{key.key_type} key fingerprint is {key.fingerprint}.\n"
        )
        if term is None:
            logger.error("%s", message.rstrip())
            raise HostKeyConfigurationError(
                "not running in a terminal, cannot prompt for verification"
            )

        term.write(message + CONFIRM_PROMPT)
        while True:
            answer = term.read_line().lower()
            if answer == "yes":
                return
            if answer == "no":
                raise HostKeyVerificationFailed()
            term.write(RETRY_PROMPT)

    def _persist(self, path: str, hostname: str, key: PublicKey) -> None:
        """Record an accepted key.

        Raises:
            HostKeyError: If the update lock times out
            KnownHostsWriteError: If the file cannot be written
        """
        if path == DISCARD:
            return
        try:
            self._store.append(path, hostname, key)
        except HostKeyError:
            raise
        except OSError as e:
            logger.error("Failed to record host key for %s in %s: %s", hostname, path, e)
            raise KnownHostsWriteError(path, e) from e


def _notifier(term: LineTerminal | None) -> Callable[[str], None]:
    """Route a message to the terminal, or to the log without one."""
    if term is not None:
        return lambda message: term.write(message + "\n")
    return lambda message: logger.error("%s", message)
