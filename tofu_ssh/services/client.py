"""Remote command execution over asyncssh.

Every host key the server offers is routed through ``HostKeyVerifier``:
the connection is opened with explicitly empty trusted, CA and revoked
key lists, so asyncssh neither consults ``~/.ssh/known_hosts`` nor
trusts anything on its own and asks ``validate_host_public_key``. A
verifier rejection aborts the handshake and is re-raised as the
original ``HostKeyError``.
"""

import asyncio
import logging
import shlex
from functools import partial
from typing import Any

import asyncssh

from tofu_ssh.config import Settings, resolve_known_hosts_path
from tofu_ssh.exceptions import (
    CommandNotStartedError,
    CopyNotSupportedError,
    ExitStatusMissingError,
    HostKeyError,
    SSHConnectionError,
)
from tofu_ssh.models import (
    CommandOptions,
    CommandResult,
    PublicKey,
    SSHTarget,
    format_known_host,
)
from tofu_ssh.services.known_hosts import KnownHostsStore
from tofu_ssh.services.lock import CrossProcessLock
from tofu_ssh.services.verifier import HostKeyVerifier
from tofu_ssh.utils.shell import command_string

logger = logging.getLogger(__name__)

# (trusted host keys, trusted CA keys, revoked keys). An empty tuple would
# make asyncssh fall back to ~/.ssh/known_hosts.
TRUST_NOTHING: tuple[list[Any], list[Any], list[Any]] = ([], [], [])


class VerifyingClient(asyncssh.SSHClient):
    """asyncssh client that delegates host key trust to a verifier."""

    def __init__(self, verifier: HostKeyVerifier) -> None:
        super().__init__()
        self._verifier = verifier
        self.error: HostKeyError | None = None

    def validate_host_public_key(
        self,
        host: str,
        addr: str,
        port: int,
        key: asyncssh.SSHKey,
    ) -> bool:
        """Validate the server's host public key."""
        try:
            self._verifier.verify(
                format_known_host(host, port),
                f"{addr}:{port}",
                PublicKey.from_ssh_key(key),
            )
        except HostKeyError as e:
            logger.warning("Host key for %s rejected: %s", host, e)
            self.error = e
            return False
        return True


class Command:
    """A single remote command on its own SSH connection."""

    def __init__(
        self,
        target: SSHTarget,
        command: str,
        options: CommandOptions,
        verifier: HostKeyVerifier,
        client_keys: list[str] | None = None,
    ) -> None:
        self.target = target
        self.command = command
        self.options = options
        self._verifier = verifier
        self._client_keys = client_keys
        self._stdio: dict[str, Any] = {}
        self._conn: asyncssh.SSHClientConnection | None = None
        self._process: asyncssh.SSHClientProcess | None = None

    def set_stdio(self, stdin: Any = None, stdout: Any = None, stderr: Any = None) -> None:
        """Redirect the remote process streams.

        Accepts anything asyncssh accepts for process redirection. Unset
        streams are captured and returned by ``wait``.
        """
        self._stdio = {
            name: value
            for name, value in (("stdin", stdin), ("stdout", stdout), ("stderr", stderr))
            if value is not None
        }

    @property
    def process(self) -> asyncssh.SSHClientProcess:
        """The running remote process."""
        if self._process is None:
            raise CommandNotStartedError()
        return self._process

    async def _connect(self) -> asyncssh.SSHClientConnection:
        """Open the SSH connection with host key verification.

        Raises:
            HostKeyError: If the host key is rejected
            SSHConnectionError: If the connection fails otherwise
        """
        client = VerifyingClient(self._verifier)
        kwargs: dict[str, Any] = {
            "port": self.target.port,
            "username": self.target.user,
            "known_hosts": TRUST_NOTHING,
            "client_factory": lambda: client,
        }
        if self._client_keys:
            kwargs["client_keys"] = self._client_keys
        if self.options.host_key_algorithms:
            kwargs["server_host_key_algs"] = list(self.options.host_key_algorithms)
        if self.options.connect_timeout:
            kwargs["connect_timeout"] = self.options.connect_timeout

        logger.debug(
            'running (equivalent of): ssh "%s@%s" -p %d %r',
            self.target.user,
            self.target.hostname,
            self.target.port,
            self.command,
        )
        try:
            return await asyncssh.connect(self.target.hostname, **kwargs)
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            if client.error is not None:
                raise client.error from e
            logger.error("Connection to %s failed: %s", self.target.hostname, e)
            raise SSHConnectionError(self.target.hostname, e) from e

    async def start(self) -> None:
        """Connect and start the command (a shell when command is empty)."""
        if self._process is not None:
            return
        if self._conn is None:
            self._conn = await self._connect()
        try:
            self._process = await self._conn.create_process(
                self.command or None, **self._stdio
            )
        except (asyncssh.Error, OSError) as e:
            await self.close()
            raise SSHConnectionError(self.target.hostname, e) from e

    async def wait(self) -> CommandResult:
        """Wait for the command to exit, then close the connection.

        Raises:
            ExitStatusMissingError: If the channel closed without an exit
                status or signal
        """
        process = self.process
        try:
            completed = await process.wait(check=False)
        finally:
            await self.close()

        if completed.returncode is None:
            logger.error("%s closed the session without an exit status", self.target.hostname)
            raise ExitStatusMissingError(self.target.hostname)
        return CommandResult(
            output=_decode(completed.stdout),
            error=_decode(completed.stderr),
            returncode=completed.returncode,
        )

    async def run(self) -> CommandResult:
        """Start the command and wait for it."""
        await self.start()
        return await self.wait()

    def kill(self) -> None:
        """Send SIGKILL to the remote command."""
        self.process.kill()

    async def close(self) -> None:
        """Close the process and connection. Safe to call repeatedly."""
        process, self._process = self._process, None
        conn, self._conn = self._conn, None
        if process is not None:
            process.close()
        if conn is not None:
            conn.close()
            await conn.wait_closed()


class CommandClient:
    """Runs non-interactive commands on remote hosts."""

    def __init__(
        self,
        client_keys: list[str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize client.

        Args:
            client_keys: Private key files to authenticate with; asyncssh
                defaults are used when empty
            settings: Defaults for options a command does not set
        """
        self.settings = settings or Settings.from_env()
        if client_keys is None and self.settings.identity_file:
            client_keys = [self.settings.identity_file]
        self.client_keys = client_keys

    def default_options(self) -> CommandOptions:
        """Build options from settings.

        Without a configured known_hosts file the shared default applies.
        """
        known_hosts = None
        if self.settings.known_hosts_path:
            known_hosts = resolve_known_hosts_path(self.settings.known_hosts_path)
        return CommandOptions(
            known_hosts_file=known_hosts,
            strict_host_key_checking=self.settings.strict_host_key_checking,
            host_key_algorithms=list(self.settings.host_key_algorithms),
            connect_timeout=self.settings.connect_timeout,
        )

    def verifier_for(self, options: CommandOptions) -> HostKeyVerifier:
        """Create the host key verifier for one connection."""
        store = KnownHostsStore(
            lock_factory=partial(CrossProcessLock, timeout=self.settings.lock_timeout)
        )
        return HostKeyVerifier(
            known_hosts_path=options.known_hosts_file,
            policy=options.strict_host_key_checking,
            store=store,
        )

    def command(
        self,
        destination: str,
        command: list[str],
        options: CommandOptions | None = None,
    ) -> Command:
        """Prepare a command for ``[user@]host``.

        Args:
            destination: Remote login, user defaults to the local user
            command: Argument vector, joined with shell quoting
            options: Connection options (defaults from settings)
        """
        options = options or self.default_options()
        target = SSHTarget.parse(destination, port=options.port)
        return Command(
            target=target,
            command=command_string(command),
            options=options,
            verifier=self.verifier_for(options),
            client_keys=self.client_keys,
        )

    async def run(
        self,
        destination: str,
        command: list[str],
        options: CommandOptions | None = None,
    ) -> CommandResult:
        """Run a command and collect its output."""
        return await self.command(destination, command, options).run()

    def copy(self, args: list[str], options: CommandOptions | None = None) -> None:
        """File copy is not available with this client."""
        raise CopyNotSupportedError(
            f"scp {' '.join(shlex.quote(a) for a in args)} is not implemented"
        )


def _decode(stream: str | bytes | None) -> str:
    """Normalize captured process output to text."""
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream
