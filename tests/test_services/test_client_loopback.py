"""End-to-end host key handling against a local asyncssh server."""

import base64
import io
from pathlib import Path

import asyncssh
import pytest

from tofu_ssh.config import Settings
from tofu_ssh.exceptions import HostKeyRejectedError
from tofu_ssh.models import CommandOptions, StrictHostKeyChecking
from tofu_ssh.services.client import CommandClient


class NoAuthServer(asyncssh.SSHServer):
    """Server that lets every user in without credentials."""

    def begin_auth(self, username: str) -> bool:
        return False


def say_hello(process: asyncssh.SSHServerProcess) -> None:
    process.stdout.write("hello\n")
    process.exit(0)


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Home directory, agent and stdin detached from the real user."""
    home = tmp_path / "home"
    (home / ".ssh").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)
    monkeypatch.setattr("sys.stdin", io.StringIO())
    return home


async def start_server(host_key: asyncssh.SSHKey) -> asyncssh.SSHAcceptor:
    return await asyncssh.listen(
        "127.0.0.1",
        0,
        server_host_keys=[host_key],
        server_factory=NoAuthServer,
        process_factory=say_hello,
    )


def known_line(port: int, host_key: asyncssh.SSHKey) -> str:
    data = base64.b64encode(host_key.public_data).decode("ascii")
    return f"[127.0.0.1]:{port} ssh-ed25519 {data}\n"


class TestLoopback:
    """Test verification through a real SSH handshake."""

    @pytest.mark.asyncio
    async def test_unknown_host_recorded_when_checking_disabled(
        self, tmp_path: Path, isolated_home: Path
    ) -> None:
        """An empty store gains exactly one line for the server key."""
        host_key = asyncssh.generate_private_key("ssh-ed25519")
        server = await start_server(host_key)
        port = server.get_port()
        store = tmp_path / "known_hosts"
        try:
            client = CommandClient(settings=Settings(known_hosts_path=str(store)))
            options = CommandOptions(
                port=port,
                known_hosts_file=str(store),
                strict_host_key_checking=StrictHostKeyChecking.DISABLED,
                connect_timeout=10,
            )
            result = await client.run("tester@127.0.0.1", ["greet"], options)
        finally:
            server.close()
            await server.wait_closed()

        assert result.returncode == 0
        assert result.output == "hello\n"
        assert store.read_text() == known_line(port, host_key)

    @pytest.mark.asyncio
    async def test_strict_rejection_ignores_user_known_hosts(
        self, tmp_path: Path, isolated_home: Path
    ) -> None:
        """Keys trusted only in ~/.ssh/known_hosts are still rejected."""
        host_key = asyncssh.generate_private_key("ssh-ed25519")
        server = await start_server(host_key)
        port = server.get_port()
        (isolated_home / ".ssh" / "known_hosts").write_text(known_line(port, host_key))
        store = tmp_path / "known_hosts"
        try:
            client = CommandClient(settings=Settings(known_hosts_path=str(store)))
            options = CommandOptions(
                port=port,
                known_hosts_file=str(store),
                strict_host_key_checking=StrictHostKeyChecking.STRICT,
                connect_timeout=10,
            )
            with pytest.raises(HostKeyRejectedError) as exc_info:
                await client.run("tester@127.0.0.1", ["greet"], options)
        finally:
            server.close()
            await server.wait_closed()

        assert exc_info.value.hostname == f"[127.0.0.1]:{port}"
        assert not store.exists()
