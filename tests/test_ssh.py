from __future__ import annotations

import socket

import paramiko
import pytest

from services.oci.gpu_manager import (
    CommandError,
    ConnectivityError,
    Deadline,
    RunCancelledError,
)
from services.oci.service import RetryPolicy, SSHSession, connect


class FakeChannel:
    def __init__(self, output: bytes = b"", exit_status: int = 0, finishes: bool = True) -> None:
        self._pending = [output] if output else []
        self._exit_status = exit_status
        self._finishes = finishes
        self.command: str | None = None
        self.combine_stderr = False
        self.closed = False

    def set_combine_stderr(self, combine: bool) -> None:
        self.combine_stderr = combine

    def exec_command(self, command: str) -> None:
        self.command = command

    def recv_ready(self) -> bool:
        return bool(self._pending)

    def recv(self, nbytes: int) -> bytes:
        return self._pending.pop(0) if self._pending else b""

    def exit_status_ready(self) -> bool:
        return self._finishes

    def recv_exit_status(self) -> int:
        return self._exit_status

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self, channel: FakeChannel, active: bool = True) -> None:
        self.channel = channel
        self.active = active

    def is_active(self) -> bool:
        return self.active

    def open_session(self) -> FakeChannel:
        return self.channel


class FakeSSHClient:
    def __init__(self, channel: FakeChannel | None = None, connect_errors: list | None = None):
        self.channel = channel or FakeChannel()
        self.connect_errors = connect_errors or []
        self.connect_kwargs: dict | None = None
        self.host_key_policy = None
        self.close_calls = 0

    def set_missing_host_key_policy(self, policy) -> None:
        self.host_key_policy = policy

    def connect(self, **kwargs) -> None:
        self.connect_kwargs = kwargs
        if self.connect_errors:
            raise self.connect_errors.pop(0)

    def get_transport(self) -> FakeTransport:
        return FakeTransport(self.channel)

    def close(self) -> None:
        self.close_calls += 1


class ClientFactory:
    """Hands out clients whose connect fails ``failures`` times before succeeding."""

    def __init__(self, failures: int, error: Exception | None = None, on_connect=None) -> None:
        self.failures = failures
        self.error = error or socket.timeout("timed out")
        self.on_connect = on_connect
        self.clients: list[FakeSSHClient] = []

    def __call__(self) -> FakeSSHClient:
        errors = [self.error] if len(self.clients) < self.failures else []
        client = FakeSSHClient(connect_errors=errors)
        if self.on_connect is not None:
            original = client.connect

            def _connect(**kwargs):
                self.on_connect()
                original(**kwargs)

            client.connect = _connect
        self.clients.append(client)
        return client


def test_run_returns_combined_output():
    channel = FakeChannel(output=b"hello\n")
    session = SSHSession(FakeSSHClient(channel), "203.0.113.7")

    assert session.run("echo hello") == b"hello\n"
    assert channel.command == "echo hello"
    assert channel.combine_stderr
    assert channel.closed


def test_run_raises_on_nonzero_exit():
    channel = FakeChannel(output=b"no such file\n", exit_status=2)
    session = SSHSession(FakeSSHClient(channel), "203.0.113.7")

    with pytest.raises(CommandError) as excinfo:
        session.run("cat /missing")
    assert excinfo.value.exit_status == 2
    assert excinfo.value.output == b"no such file\n"
    assert excinfo.value.command == "cat /missing"


def test_run_raises_on_inactive_transport():
    client = FakeSSHClient()
    client.get_transport = lambda: FakeTransport(FakeChannel(), active=False)
    session = SSHSession(client, "203.0.113.7")

    with pytest.raises(CommandError, match="failed to start"):
        session.run("true")


def test_run_aborts_on_cancellation():
    channel = FakeChannel(finishes=False)
    session = SSHSession(FakeSSHClient(channel), "203.0.113.7", poll_interval_sec=0.01)
    deadline = Deadline()
    deadline.cancel()

    with pytest.raises(RunCancelledError):
        session.run("sleep 3600", deadline=deadline)
    assert channel.closed


def test_close_is_idempotent():
    client = FakeSSHClient()
    with SSHSession(client, "203.0.113.7") as session:
        pass
    session.close()

    assert client.close_calls == 1
    with pytest.raises(CommandError, match="closed"):
        session.run("true")


def test_connect_uses_key_only_auth_and_trust_on_first_use(key_pair):
    factory = ClientFactory(failures=0)

    session = connect("203.0.113.7", key_pair, RetryPolicy(), client_factory=factory)

    client = factory.clients[0]
    assert isinstance(session, SSHSession)
    assert isinstance(client.host_key_policy, paramiko.AutoAddPolicy)
    assert client.connect_kwargs["hostname"] == "203.0.113.7"
    assert client.connect_kwargs["port"] == 22
    assert client.connect_kwargs["username"] == "ubuntu"
    assert client.connect_kwargs["pkey"] is key_pair.private_key
    assert client.connect_kwargs["allow_agent"] is False
    assert client.connect_kwargs["look_for_keys"] is False
    assert client.connect_kwargs["timeout"] == 10.0


def test_connect_retries_until_sshd_accepts(key_pair):
    factory = ClientFactory(failures=2, error=paramiko.AuthenticationException("denied"))
    policy = RetryPolicy(max_attempts=5, backoff_sec=0)

    connect("203.0.113.7", key_pair, policy, client_factory=factory)

    assert len(factory.clients) == 3
    assert [c.close_calls for c in factory.clients[:2]] == [1, 1]


def test_connect_stops_at_max_attempts(key_pair):
    factory = ClientFactory(failures=100)
    policy = RetryPolicy(max_attempts=3, backoff_sec=0)

    with pytest.raises(ConnectivityError, match="after 3 attempts") as excinfo:
        connect("203.0.113.7", key_pair, policy, client_factory=factory)
    assert len(factory.clients) == 3
    assert isinstance(excinfo.value.__cause__, OSError)


def test_connect_stops_at_deadline(key_pair):
    now = [0.0]

    def advance():
        now[0] += 5.0

    factory = ClientFactory(failures=100, on_connect=advance)
    policy = RetryPolicy(max_attempts=100, deadline_sec=12, backoff_sec=0)
    deadline = Deadline(clock=lambda: now[0])

    with pytest.raises(ConnectivityError):
        connect("203.0.113.7", key_pair, policy, deadline=deadline, client_factory=factory)
    # attempts start at t=0, 5 and 10; t=15 is past the 12s dial deadline
    assert len(factory.clients) == 3


def test_connect_aborts_when_cancelled(key_pair):
    factory = ClientFactory(failures=0)
    deadline = Deadline()
    deadline.cancel()

    with pytest.raises(RunCancelledError):
        connect("203.0.113.7", key_pair, deadline=deadline, client_factory=factory)
    assert factory.clients == []
