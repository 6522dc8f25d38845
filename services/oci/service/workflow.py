from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime

from services.oci.gpu_manager import (
    RUNNER_COMMANDS,
    AddressUnavailableError,
    CleanupError,
    Deadline,
    KeyPair,
    LaunchSpec,
    Machine,
    OCIComputeManager,
    build_display_name,
    generate_key_pair,
)
from services.oci.service.config import RunnerConfig
from services.oci.service.env import _resolve_substitutions
from services.oci.service.pipeline import run_pipeline
from services.oci.service.ssh import RetryPolicy, SSHSession, connect
from services.oci.service.types import RunResult

logger = logging.getLogger("oci_runner")


def build_launch_spec(
    config: RunnerConfig, key_pair: KeyPair, now: datetime | None = None
) -> LaunchSpec:
    return LaunchSpec(
        compartment_id=config.compartment_id,
        availability_domain=config.availability_domain,
        subnet_id=config.subnet_id,
        shape=config.shape,
        boot_volume_size_in_gbs=config.boot_volume_size_in_gbs,
        image_id=config.image_id or "",
        display_name=build_display_name(config.arch, now),
        ssh_public_key=key_pair.public_key,
        assign_public_ip=True,
    )


def build_retry_policy(config: RunnerConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.ssh_max_attempts,
        deadline_sec=config.ssh_retry_deadline_sec,
        backoff_sec=config.ssh_backoff_sec,
        connect_timeout_sec=config.ssh_connect_timeout_sec,
    )


@contextmanager
def ephemeral_machine(manager: OCIComputeManager, spec: LaunchSpec) -> Iterator[Machine]:
    """
    Launch an instance and terminate it when the block exits, however it exits.

    A failed terminate request is logged and never replaces an error raised
    inside the block.
    """
    machine = manager.launch(spec)
    try:
        yield machine
    finally:
        # Always destroy to avoid accidental billing.
        try:
            manager.delete(machine)
        except CleanupError as exc:
            logger.error("failed to delete machine instance_id=%s: %s", machine.instance_id, exc)


def run_ephemeral_runner(
    config: RunnerConfig,
    *,
    manager: OCIComputeManager | None = None,
    key_factory: Callable[[], KeyPair] = generate_key_pair,
    connector: Callable[..., SSHSession] = connect,
    commands: Sequence[str] = RUNNER_COMMANDS,
    environ: Mapping[str, str] | None = None,
    deadline: Deadline | None = None,
    now: datetime | None = None,
) -> RunResult:
    """
    End-to-end workflow:
    1) validate config (no cloud calls on failure)
    2) generate an ephemeral SSH key pair
    3) launch the instance with the public key in its metadata
    4) wait for RUNNING and a public address
    5) connect over SSH with retries
    6) run the command pipeline, stopping at the first failure
    7) terminate the instance (always, exactly once after a successful launch)

    Raises:
        ConfigError, ProvisionError, ReadinessTimeoutError,
        AddressUnavailableError, ConnectivityError, CommandError,
        RunCancelledError: the first failure of the run.
    """
    config.validate()
    deadline = deadline or Deadline(config.run_timeout_sec)
    if manager is None:
        manager = OCIComputeManager.from_config_file(config.oci_config_file, config.oci_profile)

    key_pair = key_factory()
    spec = build_launch_spec(config, key_pair, now)
    substitutions = _resolve_substitutions(environ)

    deadline.raise_if_cancelled()
    with ephemeral_machine(manager, spec) as machine:
        manager.wait_until_ready(
            machine,
            timeout_sec=config.ready_timeout_sec,
            initial_delay_sec=config.ready_grace_sec,
            poll_interval_sec=config.ready_poll_sec,
            deadline=deadline,
        )

        ip = manager.external_address(machine)
        if not ip:
            raise AddressUnavailableError(
                f"cannot find ip for instance {machine.instance_id}"
            )

        with connector(
            ip,
            key_pair,
            build_retry_policy(config),
            username=config.ssh_user,
            port=config.ssh_port,
            deadline=deadline,
        ) as session:
            records = run_pipeline(session, commands, substitutions, deadline=deadline)

    logger.info(
        "runner finished instance_id=%s commands=%s", machine.instance_id, len(records)
    )
    return RunResult(
        instance_id=machine.instance_id,
        display_name=machine.display_name,
        external_ip=ip,
        records=records,
    )
