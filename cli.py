#!/usr/bin/env python3
"""
GHA GPU runner CLI

Run a GitHub Actions runner on a GPU-powered Oracle Cloud Infrastructure
instance that is created for one job and terminated afterwards.
"""

import argparse
import logging
import signal
import sys

from services.oci.gpu_manager import (
    DEFAULT_ARCH,
    DEFAULT_AVAILABILITY_DOMAIN,
    DEFAULT_BOOT_VOLUME_SIZE_IN_GBS,
    DEFAULT_COMPARTMENT_ID,
    DEFAULT_SHAPE,
    DEFAULT_SUBNET_ID,
    Deadline,
    RunnerError,
    get_env,
    get_env_bool,
    get_env_float,
    get_env_int,
)
from services.oci.gpu_manager.constants import DEFAULT_READY_TIMEOUT_SEC, DEFAULT_SSH_USER
from services.oci.service import RunnerConfig, run_ephemeral_runner

logger = logging.getLogger("oci_runner")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gha-gpu-runner",
        description="Run a GitHub Actions runner (on GPU powered Oracle Cloud Infrastructure)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--debug",
        action=argparse.BooleanOptionalAction,
        default=get_env_bool("RUNNER_DEBUG", True),
        help="Enable debug logging (default: on)",
    )
    parser.add_argument(
        "--arch",
        default=get_env("RUNNER_ARCH", DEFAULT_ARCH),
        help=f"Machine architecture (default: {DEFAULT_ARCH})",
    )
    parser.add_argument(
        "--availability-domain",
        default=get_env("OCI_AVAILABILITY_DOMAIN", DEFAULT_AVAILABILITY_DOMAIN),
        help="Availability Domain",
    )
    parser.add_argument(
        "--compartment-id",
        default=get_env("OCI_COMPARTMENT_ID", DEFAULT_COMPARTMENT_ID),
        help="Compartment ID",
    )
    parser.add_argument(
        "--subnet-id",
        default=get_env("OCI_SUBNET_ID", DEFAULT_SUBNET_ID),
        help="Subnet ID",
    )
    parser.add_argument(
        "--shape",
        default=get_env("OCI_SHAPE", DEFAULT_SHAPE),
        help=f"VM Shape (default: {DEFAULT_SHAPE})",
    )
    parser.add_argument(
        "--boot-volume-size-in-gbs",
        type=int,
        default=get_env_int("OCI_BOOT_VOLUME_SIZE_IN_GBS", DEFAULT_BOOT_VOLUME_SIZE_IN_GBS),
        help=f"Boot volume size in GBs (default: {DEFAULT_BOOT_VOLUME_SIZE_IN_GBS})",
    )
    parser.add_argument(
        "--image-id",
        default=get_env("OCI_IMAGE_ID"),
        help="OCI Image OCID to use for the runner (GPU based custom image, required)",
    )
    parser.add_argument(
        "--oci-config-file",
        default=get_env("OCI_CONFIG_FILE", "~/.oci/config"),
        help="OCI SDK config file (default: ~/.oci/config)",
    )
    parser.add_argument(
        "--oci-profile",
        default=get_env("OCI_CONFIG_PROFILE", "DEFAULT"),
        help="Profile in the OCI SDK config file (default: DEFAULT)",
    )
    parser.add_argument(
        "--ssh-user",
        default=get_env("RUNNER_SSH_USER", DEFAULT_SSH_USER),
        help=f"Login account on the image (default: {DEFAULT_SSH_USER})",
    )
    parser.add_argument(
        "--ready-timeout",
        type=float,
        default=get_env_float("RUNNER_READY_TIMEOUT_SEC", DEFAULT_READY_TIMEOUT_SEC),
        help=f"Seconds to wait for the instance to run (default: {DEFAULT_READY_TIMEOUT_SEC:.0f})",
    )
    parser.add_argument(
        "--run-timeout",
        type=float,
        default=get_env_float("RUNNER_RUN_TIMEOUT_SEC", None),
        help="Abort the whole run after this many seconds (default: no limit)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> RunnerConfig:
    return RunnerConfig(
        image_id=args.image_id,
        arch=args.arch,
        availability_domain=args.availability_domain,
        compartment_id=args.compartment_id,
        subnet_id=args.subnet_id,
        shape=args.shape,
        boot_volume_size_in_gbs=args.boot_volume_size_in_gbs,
        debug=args.debug,
        oci_config_file=args.oci_config_file,
        oci_profile=args.oci_profile,
        ssh_user=args.ssh_user,
        ready_timeout_sec=args.ready_timeout,
        run_timeout_sec=args.run_timeout,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(filename)s:%(lineno)d: %(message)s",
    )
    # Keep SDK wire logs out of debug output
    logging.getLogger("paramiko").setLevel(logging.WARNING)
    logging.getLogger("oci").setLevel(logging.WARNING)

    deadline = Deadline(config.run_timeout_sec)

    def _on_sigterm(signum, frame):
        logger.warning("received signal %s, cancelling run", signum)
        deadline.cancel()

    previous = signal.signal(signal.SIGTERM, _on_sigterm)
    try:
        result = run_ephemeral_runner(config, deadline=deadline)
    except RunnerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Error: interrupted", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGTERM, previous)

    logger.info(
        "runner completed instance=%s commands=%s", result.display_name, len(result.records)
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
