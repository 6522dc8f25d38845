from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from oci.exceptions import ServiceError

from services.oci.gpu_manager import CommandError, KeyPair, OCIComputeManager
from services.oci.service import RunnerConfig


class FakeComputeClient:
    """In-memory stand-in for oci.core.ComputeClient."""

    def __init__(
        self,
        states: list[str] | None = None,
        vnic_ids: list[str] | None = None,
        launch_error: Exception | None = None,
        terminate_error: Exception | None = None,
    ) -> None:
        self.states = list(states or ["RUNNING"])
        self.vnic_ids = ["ocid1.vnic.oc1..primary"] if vnic_ids is None else vnic_ids
        self.launch_error = launch_error
        self.terminate_error = terminate_error
        self.launched: list[Any] = []
        self.terminated: list[tuple[str, bool]] = []
        self.describe_calls = 0

    def launch_instance(self, details: Any) -> SimpleNamespace:
        self.launched.append(details)
        if self.launch_error is not None:
            raise self.launch_error
        return SimpleNamespace(
            data=SimpleNamespace(id="ocid1.instance.oc1..test", lifecycle_state="PROVISIONING")
        )

    def get_instance(self, instance_id: str) -> SimpleNamespace:
        self.describe_calls += 1
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        if isinstance(state, Exception):
            raise state
        return SimpleNamespace(data=SimpleNamespace(id=instance_id, lifecycle_state=state))

    def list_vnic_attachments(self, compartment_id: str, instance_id: str) -> SimpleNamespace:
        return SimpleNamespace(
            data=[
                SimpleNamespace(vnic_id=vnic_id, lifecycle_state="ATTACHED")
                for vnic_id in self.vnic_ids
            ]
        )

    def terminate_instance(self, instance_id: str, preserve_boot_volume: bool = True) -> None:
        self.terminated.append((instance_id, preserve_boot_volume))
        if self.terminate_error is not None:
            raise self.terminate_error


class FakeNetworkClient:
    def __init__(
        self, public_ip: str | None = "203.0.113.7", error: Exception | None = None
    ) -> None:
        self.public_ip = public_ip
        self.error = error

    def get_vnic(self, vnic_id: str) -> SimpleNamespace:
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=SimpleNamespace(id=vnic_id, public_ip=self.public_ip))


class FakeSession:
    """Records commands; fails the ones listed in ``fail_on``."""

    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.commands: list[str] = []
        self.close_calls = 0

    def __enter__(self) -> FakeSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def run(self, command: str, deadline: Any = None) -> bytes:
        index = len(self.commands)
        self.commands.append(command)
        if index in self.fail_on:
            raise CommandError(
                "command exited with status 1",
                command=command,
                output=b"boom\n",
                exit_status=1,
            )
        return f"ok {index}\n".encode()

    def close(self) -> None:
        self.close_calls += 1


class FakeConnector:
    def __init__(self, session: FakeSession | None = None, error: Exception | None = None) -> None:
        self.session = session or FakeSession()
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, address: str, key_pair: KeyPair, policy: Any, **kwargs: Any) -> FakeSession:
        self.calls.append((address, kwargs))
        if self.error is not None:
            raise self.error
        return self.session


def service_error(status: int, code: str = "Error", message: str = "failed") -> ServiceError:
    return ServiceError(status, code, {}, message)


@pytest.fixture
def key_pair() -> KeyPair:
    return KeyPair(public_key="ssh-rsa AAAAB3NzaC1yc2E test", private_key=object())


@pytest.fixture
def compute() -> FakeComputeClient:
    return FakeComputeClient()


@pytest.fixture
def network() -> FakeNetworkClient:
    return FakeNetworkClient()


@pytest.fixture
def manager(compute: FakeComputeClient, network: FakeNetworkClient) -> OCIComputeManager:
    return OCIComputeManager(compute, network)


@pytest.fixture
def config() -> RunnerConfig:
    return RunnerConfig(
        image_id="ocid1.image.oc1..gpu",
        ready_grace_sec=0.0,
        ready_poll_sec=0.0,
        ready_timeout_sec=5.0,
        ssh_backoff_sec=0.0,
    )
