"""
OCI compute provisioner.

Launches, polls, resolves the public address of, and terminates a single
ephemeral GPU instance on Oracle Cloud Infrastructure.

Example:
    >>> manager = OCIComputeManager.from_config_file()
    >>> machine = manager.launch(spec)
    >>> manager.wait_until_ready(machine, timeout_sec=900)
    >>> manager.external_address(machine)
    '203.0.113.7'
    >>> manager.delete(machine)
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

import oci
from oci.exceptions import ClientError, ServiceError

from services.oci.gpu_manager.constants import (
    DEFAULT_READY_POLL_SEC,
    SSH_AUTHORIZED_KEYS_METADATA,
)
from services.oci.gpu_manager.errors import (
    AddressUnavailableError,
    CleanupError,
    ConfigError,
    ProvisionError,
    ReadinessTimeoutError,
)
from services.oci.gpu_manager.utils import Deadline

logger = logging.getLogger("oci_gpu_manager")


class MachineState(str, enum.Enum):
    REQUESTED = "REQUESTED"
    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    TERMINATING = "TERMINATING"
    TERMINATED = "TERMINATED"
    FAILED = "FAILED"


# OCI lifecycle_state -> local state
_PROVIDER_STATES: dict[str, MachineState] = {
    "PROVISIONING": MachineState.PROVISIONING,
    "STARTING": MachineState.PROVISIONING,
    "MOVING": MachineState.PROVISIONING,
    "CREATING_IMAGE": MachineState.PROVISIONING,
    "RUNNING": MachineState.RUNNING,
    "STOPPING": MachineState.FAILED,
    "STOPPED": MachineState.FAILED,
    "TERMINATING": MachineState.TERMINATING,
    "TERMINATED": MachineState.TERMINATED,
}


@dataclass(frozen=True)
class LaunchSpec:
    """
    Everything needed to request instance creation.

    Attributes:
        compartment_id: Compartment OCID.
        availability_domain: Availability domain name (e.g. "tdbQ:US-ASHBURN-AD-1").
        subnet_id: Subnet OCID for the primary VNIC.
        shape: Machine shape (e.g. "VM.GPU.A10.1").
        boot_volume_size_in_gbs: Boot volume size in GB.
        image_id: Image OCID.
        display_name: Instance display name.
        ssh_public_key: authorized_keys line placed in boot metadata.
        assign_public_ip: Whether the VNIC gets a public address.
    """

    compartment_id: str
    availability_domain: str
    subnet_id: str
    shape: str
    boot_volume_size_in_gbs: int
    image_id: str
    display_name: str
    ssh_public_key: str
    assign_public_ip: bool = True

    def validate(self) -> None:
        missing = [
            name
            for name in (
                "compartment_id",
                "availability_domain",
                "subnet_id",
                "shape",
                "image_id",
                "display_name",
                "ssh_public_key",
            )
            if not getattr(self, name)
        ]
        if missing:
            raise ProvisionError(f"Launch spec missing required fields: {', '.join(missing)}")
        if self.boot_volume_size_in_gbs <= 0:
            raise ProvisionError(
                f"Invalid boot volume size: {self.boot_volume_size_in_gbs} GB"
            )

    def to_launch_details(self) -> oci.core.models.LaunchInstanceDetails:
        return oci.core.models.LaunchInstanceDetails(
            compartment_id=self.compartment_id,
            availability_domain=self.availability_domain,
            shape=self.shape,
            display_name=self.display_name,
            source_details=oci.core.models.InstanceSourceViaImageDetails(
                image_id=self.image_id,
                boot_volume_size_in_gbs=self.boot_volume_size_in_gbs,
            ),
            create_vnic_details=oci.core.models.CreateVnicDetails(
                assign_public_ip=self.assign_public_ip,
                subnet_id=self.subnet_id,
            ),
            metadata={SSH_AUTHORIZED_KEYS_METADATA: self.ssh_public_key},
        )


@dataclass
class Machine:
    """
    A provisioned instance.

    Attributes:
        instance_id: Instance OCID.
        compartment_id: Compartment the instance lives in.
        display_name: Instance display name.
        state: Last observed local lifecycle state.
        provider_state: Last raw lifecycle_state reported by OCI.
        external_ip: Public IP, empty until assigned.
    """

    instance_id: str
    compartment_id: str
    display_name: str
    state: MachineState = MachineState.REQUESTED
    provider_state: str = ""
    external_ip: str = ""


class OCIComputeManager:
    """
    Provisioner for a single ephemeral OCI instance.

    Args:
        compute_client: ``oci.core.ComputeClient``.
        network_client: ``oci.core.VirtualNetworkClient``.
    """

    def __init__(self, compute_client: Any, network_client: Any) -> None:
        self.compute = compute_client
        self.network = network_client

    @classmethod
    def from_config_file(
        cls,
        config_file: str = oci.config.DEFAULT_LOCATION,
        profile: str = oci.config.DEFAULT_PROFILE,
    ) -> OCIComputeManager:
        """
        Build compute and network clients from an OCI config file.

        Raises:
            ConfigError: If the config file or its signing key is missing or invalid.
        """
        try:
            config = oci.config.from_file(file_location=config_file, profile_name=profile)
            oci.config.validate_config(config)
            # The request signer reads key_file here
            compute = oci.core.ComputeClient(config)
            network = oci.core.VirtualNetworkClient(config)
        except (ClientError, OSError) as exc:
            raise ConfigError(f"Invalid OCI config {config_file} [{profile}]: {exc}") from exc
        logger.debug("OCI clients configured from %s profile=%s", config_file, profile)
        return cls(compute, network)

    def launch(self, spec: LaunchSpec) -> Machine:
        """
        Issue the create-instance request.

        Returns:
            Machine in PROVISIONING state.

        Raises:
            ProvisionError: If the launch spec is invalid or OCI rejects the request.
        """
        spec.validate()
        logger.info(
            "launch display_name=%s shape=%s ad=%s image=%s",
            spec.display_name,
            spec.shape,
            spec.availability_domain,
            spec.image_id,
        )
        try:
            response = self.compute.launch_instance(spec.to_launch_details())
        except (ServiceError, OSError) as exc:
            raise ProvisionError(f"Failed to launch instance {spec.display_name}: {exc}") from exc

        instance = response.data
        machine = Machine(
            instance_id=instance.id,
            compartment_id=spec.compartment_id,
            display_name=spec.display_name,
            state=MachineState.PROVISIONING,
            provider_state=getattr(instance, "lifecycle_state", None) or "PROVISIONING",
        )
        logger.info("launched instance_id=%s", machine.instance_id)
        return machine

    def refresh(self, machine: Machine) -> MachineState:
        """Describe the instance and update the Machine's observed state."""
        instance = self.compute.get_instance(machine.instance_id).data
        machine.provider_state = instance.lifecycle_state
        machine.state = _PROVIDER_STATES.get(instance.lifecycle_state, MachineState.PROVISIONING)
        return machine.state

    def wait_until_ready(
        self,
        machine: Machine,
        timeout_sec: float,
        initial_delay_sec: float = 0.0,
        poll_interval_sec: float = DEFAULT_READY_POLL_SEC,
        deadline: Deadline | None = None,
    ) -> None:
        """
        Poll until the instance reports RUNNING.

        The grace delay counts against ``timeout_sec``.

        Raises:
            ReadinessTimeoutError: If RUNNING is not observed in time.
            ProvisionError: If the instance stops or terminates while booting.
            RunCancelledError: If the run is cancelled.
        """
        step = (deadline or Deadline()).child(timeout_sec)
        if initial_delay_sec > 0:
            logger.info(
                "wait_ready grace instance_id=%s delay=%.0fs",
                machine.instance_id,
                initial_delay_sec,
            )
            step.sleep(initial_delay_sec)

        while True:
            step.raise_if_cancelled()
            try:
                state = self.refresh(machine)
            except ServiceError as exc:
                if exc.status == 404:
                    machine.state = MachineState.FAILED
                    raise ProvisionError(
                        f"Instance {machine.instance_id} disappeared while booting"
                    ) from exc
                logger.warning(
                    "wait_ready describe failed instance_id=%s status=%s: %s",
                    machine.instance_id,
                    exc.status,
                    exc.message,
                )
            except OSError as exc:
                logger.warning(
                    "wait_ready describe failed instance_id=%s: %s", machine.instance_id, exc
                )
            else:
                logger.debug(
                    "wait_ready instance_id=%s state=%s", machine.instance_id, machine.provider_state
                )
                if state is MachineState.RUNNING:
                    logger.info("instance ready instance_id=%s", machine.instance_id)
                    return
                if state in (
                    MachineState.FAILED,
                    MachineState.TERMINATING,
                    MachineState.TERMINATED,
                ):
                    observed = machine.provider_state
                    machine.state = MachineState.FAILED
                    raise ProvisionError(
                        f"Instance {machine.instance_id} entered {observed} before becoming ready"
                    )

            if step.expired:
                raise ReadinessTimeoutError(
                    f"Instance {machine.instance_id} not RUNNING after {timeout_sec:.0f}s "
                    f"(last state {machine.provider_state or 'unknown'})"
                )
            step.sleep(poll_interval_sec)

    def external_address(self, machine: Machine) -> str:
        """
        Resolve the instance's public IP through its attached VNICs.

        Returns:
            The public IP, or "" if none is assigned yet.

        Raises:
            AddressUnavailableError: If the VNIC lookup fails.
        """
        if machine.external_ip:
            return machine.external_ip
        try:
            attachments = self.compute.list_vnic_attachments(
                compartment_id=machine.compartment_id,
                instance_id=machine.instance_id,
            ).data
            vnics = [
                self.network.get_vnic(attachment.vnic_id).data
                for attachment in attachments or []
                if attachment.lifecycle_state == "ATTACHED" and attachment.vnic_id
            ]
        except (ServiceError, OSError) as exc:
            raise AddressUnavailableError(
                f"cannot look up ip for instance {machine.instance_id}: {exc}"
            ) from exc
        for vnic in vnics:
            if vnic.public_ip:
                machine.external_ip = vnic.public_ip
                logger.info(
                    "external_address instance_id=%s ip=%s", machine.instance_id, vnic.public_ip
                )
                return machine.external_ip
        logger.debug("external_address not assigned instance_id=%s", machine.instance_id)
        return ""

    def delete(self, machine: Machine) -> None:
        """
        Request termination of the instance and its boot volume.

        Raises:
            CleanupError: If the terminate request fails.
        """
        if machine.state is MachineState.TERMINATED:
            logger.debug("delete skipped, already terminated instance_id=%s", machine.instance_id)
            return
        logger.warning("Terminating instance %s", machine.instance_id)
        try:
            self.compute.terminate_instance(machine.instance_id, preserve_boot_volume=False)
        except ServiceError as exc:
            if exc.status == 404:
                machine.state = MachineState.TERMINATED
                return
            raise CleanupError(
                f"Failed to terminate instance {machine.instance_id}: {exc.message}"
            ) from exc
        except Exception as exc:  # noqa: BLE001 - surface transport failures as cleanup errors
            raise CleanupError(
                f"Failed to terminate instance {machine.instance_id}: {exc}"
            ) from exc
        machine.state = MachineState.TERMINATING
