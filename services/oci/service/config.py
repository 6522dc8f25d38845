from __future__ import annotations

from dataclasses import dataclass

import oci

from services.oci.gpu_manager.constants import (
    DEFAULT_ARCH,
    DEFAULT_AVAILABILITY_DOMAIN,
    DEFAULT_BOOT_VOLUME_SIZE_IN_GBS,
    DEFAULT_COMPARTMENT_ID,
    DEFAULT_READY_GRACE_SEC,
    DEFAULT_READY_POLL_SEC,
    DEFAULT_READY_TIMEOUT_SEC,
    DEFAULT_SHAPE,
    DEFAULT_SSH_BACKOFF_SEC,
    DEFAULT_SSH_CONNECT_TIMEOUT_SEC,
    DEFAULT_SSH_MAX_ATTEMPTS,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_RETRY_DEADLINE_SEC,
    DEFAULT_SSH_USER,
    DEFAULT_SUBNET_ID,
)
from services.oci.gpu_manager.errors import ConfigError


@dataclass(frozen=True)
class RunnerConfig:
    """
    Immutable configuration for one ephemeral runner.

    Built once by the CLI and passed explicitly to the workflow.

    Attributes:
        image_id: Image OCID (required, no default).
        arch: Architecture tag used in the display name.
        availability_domain: Availability domain for the instance.
        compartment_id: Compartment OCID.
        subnet_id: Subnet OCID.
        shape: Machine shape.
        boot_volume_size_in_gbs: Boot volume size in GB.
        debug: Verbose logging.
        oci_config_file: Path of the OCI SDK config file.
        oci_profile: Profile within the OCI config file.
        ssh_user: Login account on the image.
        ssh_port: SSH port.
        ready_grace_sec: Delay before the first readiness poll.
        ready_timeout_sec: Overall readiness timeout, grace included.
        ready_poll_sec: Readiness poll interval.
        ssh_connect_timeout_sec: Timeout of a single SSH dial.
        ssh_max_attempts: Maximum SSH dial attempts.
        ssh_retry_deadline_sec: Overall bound on SSH dialing.
        ssh_backoff_sec: Pause between SSH dial attempts.
        run_timeout_sec: Bound on the whole run, None for unbounded.
    """

    image_id: str | None = None
    arch: str = DEFAULT_ARCH
    availability_domain: str = DEFAULT_AVAILABILITY_DOMAIN
    compartment_id: str = DEFAULT_COMPARTMENT_ID
    subnet_id: str = DEFAULT_SUBNET_ID
    shape: str = DEFAULT_SHAPE
    boot_volume_size_in_gbs: int = DEFAULT_BOOT_VOLUME_SIZE_IN_GBS
    debug: bool = True
    oci_config_file: str = oci.config.DEFAULT_LOCATION
    oci_profile: str = oci.config.DEFAULT_PROFILE
    ssh_user: str = DEFAULT_SSH_USER
    ssh_port: int = DEFAULT_SSH_PORT
    ready_grace_sec: float = DEFAULT_READY_GRACE_SEC
    ready_timeout_sec: float = DEFAULT_READY_TIMEOUT_SEC
    ready_poll_sec: float = DEFAULT_READY_POLL_SEC
    ssh_connect_timeout_sec: float = DEFAULT_SSH_CONNECT_TIMEOUT_SEC
    ssh_max_attempts: int = DEFAULT_SSH_MAX_ATTEMPTS
    ssh_retry_deadline_sec: float = DEFAULT_SSH_RETRY_DEADLINE_SEC
    ssh_backoff_sec: float = DEFAULT_SSH_BACKOFF_SEC
    run_timeout_sec: float | None = None

    def validate(self) -> None:
        """
        Check required fields before any cloud or network call.

        Raises:
            ConfigError: On the first missing or invalid field.
        """
        if not self.image_id:
            raise ConfigError("must provide --image-id for the instance")
        for name in ("compartment_id", "subnet_id", "availability_domain", "shape", "arch"):
            if not getattr(self, name):
                raise ConfigError(f"must provide --{name.replace('_', '-')} for the instance")
        if self.boot_volume_size_in_gbs <= 0:
            raise ConfigError(
                f"--boot-volume-size-in-gbs must be positive, got {self.boot_volume_size_in_gbs}"
            )
        if self.ssh_max_attempts < 1:
            raise ConfigError(f"ssh_max_attempts must be >= 1, got {self.ssh_max_attempts}")
        if self.ready_timeout_sec <= 0:
            raise ConfigError(f"--ready-timeout must be positive, got {self.ready_timeout_sec}")
        if self.run_timeout_sec is not None and self.run_timeout_sec <= 0:
            raise ConfigError(f"--run-timeout must be positive, got {self.run_timeout_sec}")
