from __future__ import annotations

from services.oci.gpu_manager.constants import (
    DEFAULT_ARCH,
    DEFAULT_AVAILABILITY_DOMAIN,
    DEFAULT_BOOT_VOLUME_SIZE_IN_GBS,
    DEFAULT_COMPARTMENT_ID,
    DEFAULT_SHAPE,
    DEFAULT_SUBNET_ID,
    JITCONFIG_ENV,
    JITCONFIG_PLACEHOLDER,
    RUNNER_COMMANDS,
)
from services.oci.gpu_manager.env import get_env, get_env_bool, get_env_float, get_env_int
from services.oci.gpu_manager.errors import (
    AddressUnavailableError,
    CleanupError,
    CommandError,
    ConfigError,
    ConnectivityError,
    ProvisionError,
    ReadinessTimeoutError,
    RunCancelledError,
    RunnerError,
)
from services.oci.gpu_manager.keys import KeyPair, generate_key_pair
from services.oci.gpu_manager.manager import LaunchSpec, Machine, MachineState, OCIComputeManager
from services.oci.gpu_manager.utils import Deadline, build_display_name

__all__ = [
    "DEFAULT_ARCH",
    "DEFAULT_AVAILABILITY_DOMAIN",
    "DEFAULT_BOOT_VOLUME_SIZE_IN_GBS",
    "DEFAULT_COMPARTMENT_ID",
    "DEFAULT_SHAPE",
    "DEFAULT_SUBNET_ID",
    "JITCONFIG_ENV",
    "JITCONFIG_PLACEHOLDER",
    "RUNNER_COMMANDS",
    "get_env",
    "get_env_bool",
    "get_env_float",
    "get_env_int",
    "RunnerError",
    "ConfigError",
    "ProvisionError",
    "ReadinessTimeoutError",
    "AddressUnavailableError",
    "ConnectivityError",
    "CommandError",
    "CleanupError",
    "RunCancelledError",
    "KeyPair",
    "generate_key_pair",
    "LaunchSpec",
    "Machine",
    "MachineState",
    "OCIComputeManager",
    "Deadline",
    "build_display_name",
]
