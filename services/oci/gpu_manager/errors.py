from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.oci.service.types import ExecutionRecord


class RunnerError(Exception):
    """Base exception for ephemeral runner operations."""

    pass


class ConfigError(RunnerError):
    """Raised when required configuration is missing or invalid."""

    pass


class ProvisionError(RunnerError):
    """Raised when the instance cannot be launched or fails while booting."""

    pass


class ReadinessTimeoutError(RunnerError):
    """Raised when the instance does not reach RUNNING before the deadline."""

    pass


class AddressUnavailableError(RunnerError):
    """Raised when a running instance has no public address."""

    pass


class ConnectivityError(RunnerError):
    """Raised when the SSH retry policy is exhausted."""

    pass


class CleanupError(RunnerError):
    """Raised when the terminate request fails. Logged, never fatal."""

    pass


class RunCancelledError(RunnerError):
    """Raised when the run was cancelled or its overall deadline passed."""

    pass


class CommandError(RunnerError):
    """
    Raised when a remote command fails.

    Attributes:
        command: Command template as configured (before substitution).
        output: Combined stdout/stderr captured before the failure.
        exit_status: Remote exit status, or None when the transport failed.
        index: Position of the command in the pipeline, when known.
        records: Execution records accumulated up to and including the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        output: bytes = b"",
        exit_status: int | None = None,
        index: int | None = None,
        records: list[ExecutionRecord] | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.output = output
        self.exit_status = exit_status
        self.index = index
        self.records = list(records or [])
