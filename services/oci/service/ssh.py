from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import paramiko

from services.oci.gpu_manager.constants import (
    DEFAULT_SSH_BACKOFF_SEC,
    DEFAULT_SSH_CONNECT_TIMEOUT_SEC,
    DEFAULT_SSH_MAX_ATTEMPTS,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_RETRY_DEADLINE_SEC,
    DEFAULT_SSH_USER,
)
from services.oci.gpu_manager.errors import CommandError, ConnectivityError
from services.oci.gpu_manager.keys import KeyPair
from services.oci.gpu_manager.utils import Deadline

logger = logging.getLogger("oci_runner")

_RECV_BYTES = 32768
_TRANSPORT_ERRORS = (paramiko.SSHException, OSError, EOFError)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds for dialing SSH on a freshly booted instance."""

    max_attempts: int = DEFAULT_SSH_MAX_ATTEMPTS
    deadline_sec: float = DEFAULT_SSH_RETRY_DEADLINE_SEC
    backoff_sec: float = DEFAULT_SSH_BACKOFF_SEC
    connect_timeout_sec: float = DEFAULT_SSH_CONNECT_TIMEOUT_SEC


class SSHSession:
    """
    Authenticated SSH connection running one command at a time.

    Use as a context manager so the transport is released on every exit path.
    """

    def __init__(
        self, client: paramiko.SSHClient, address: str, poll_interval_sec: float = 0.2
    ) -> None:
        self._client = client
        self.address = address
        self.poll_interval_sec = poll_interval_sec
        self._closed = False

    def __enter__(self) -> SSHSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def run(self, command: str, deadline: Deadline | None = None) -> bytes:
        """
        Execute one command and block until it exits.

        Returns:
            Combined stdout/stderr.

        Raises:
            CommandError: On non-zero exit status or transport failure.
            RunCancelledError: If the run is cancelled mid-command.
        """
        if self._closed:
            raise CommandError(f"session to {self.address} is closed", command=command)
        deadline = deadline or Deadline()

        try:
            transport = self._client.get_transport()
            if transport is None or not transport.is_active():
                raise paramiko.SSHException("transport is not active")
            channel = transport.open_session()
            channel.set_combine_stderr(True)
            channel.exec_command(command)
        except _TRANSPORT_ERRORS as exc:
            raise CommandError(
                f"failed to start command on {self.address}: {exc}", command=command
            ) from exc

        chunks: list[bytes] = []
        try:
            while True:
                if channel.recv_ready():
                    chunks.append(channel.recv(_RECV_BYTES))
                    continue
                if channel.exit_status_ready():
                    break
                deadline.raise_if_cancelled()
                deadline.sleep(self.poll_interval_sec)
            while True:
                data = channel.recv(_RECV_BYTES)
                if not data:
                    break
                chunks.append(data)
            exit_status = channel.recv_exit_status()
        except _TRANSPORT_ERRORS as exc:
            raise CommandError(
                f"transport failed while running command on {self.address}: {exc}",
                command=command,
                output=b"".join(chunks),
            ) from exc
        finally:
            channel.close()

        output = b"".join(chunks)
        if exit_status != 0:
            raise CommandError(
                f"command exited with status {exit_status}",
                command=command,
                output=output,
                exit_status=exit_status,
            )
        return output

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._client.close()
        logger.debug("ssh session closed address=%s", self.address)


def connect(
    address: str,
    key_pair: KeyPair,
    policy: RetryPolicy | None = None,
    *,
    username: str = DEFAULT_SSH_USER,
    port: int = DEFAULT_SSH_PORT,
    deadline: Deadline | None = None,
    client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
) -> SSHSession:
    """
    Dial SSH with bounded retries until the instance accepts the key.

    Authentication failures are retried too: cloud-init may not have installed
    the key when sshd first answers.

    Raises:
        ConnectivityError: When attempts or the dial deadline run out.
        RunCancelledError: If the run is cancelled while dialing.
    """
    policy = policy or RetryPolicy()
    dial = (deadline or Deadline()).child(policy.deadline_sec)
    last_error: Exception | None = None
    attempts = 0

    for attempt in range(1, policy.max_attempts + 1):
        dial.raise_if_cancelled()
        if dial.expired:
            break
        attempts = attempt
        timeout = policy.connect_timeout_sec
        remaining = dial.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)

        client = client_factory()
        # Host key accepted on first use: the instance was created for this run only.
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=address,
                port=port,
                username=username,
                pkey=key_pair.private_key,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except _TRANSPORT_ERRORS as exc:
            last_error = exc
            client.close()
            logger.info(
                "ssh dial failed address=%s attempt=%s/%s: %s",
                address,
                attempt,
                policy.max_attempts,
                exc,
            )
            if attempt < policy.max_attempts:
                dial.sleep(policy.backoff_sec)
            continue

        logger.info("ssh connected address=%s user=%s attempt=%s", address, username, attempt)
        return SSHSession(client, address)

    raise ConnectivityError(
        f"failed to connect to ssh on {address!r} after {attempts} attempts: {last_error}"
    ) from last_error
