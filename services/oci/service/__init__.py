from __future__ import annotations

from services.oci.gpu_manager import OCIComputeManager
from services.oci.service.config import RunnerConfig
from services.oci.service.env import _resolve_substitutions
from services.oci.service.pipeline import expand_command, run_pipeline
from services.oci.service.ssh import RetryPolicy, SSHSession, connect
from services.oci.service.types import ExecutionRecord, RunResult
from services.oci.service.workflow import (
    build_launch_spec,
    build_retry_policy,
    ephemeral_machine,
    run_ephemeral_runner,
)

__all__ = [
    "OCIComputeManager",
    "RunnerConfig",
    "_resolve_substitutions",
    "expand_command",
    "run_pipeline",
    "RetryPolicy",
    "SSHSession",
    "connect",
    "ExecutionRecord",
    "RunResult",
    "build_launch_spec",
    "build_retry_policy",
    "ephemeral_machine",
    "run_ephemeral_runner",
]
