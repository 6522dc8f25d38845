from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExecutionRecord:
    index: int
    template: str
    command: str = field(repr=False)
    output: bytes = field(repr=False)
    ok: bool
    exit_status: int | None = None


@dataclass(frozen=True)
class RunResult:
    instance_id: str
    display_name: str
    external_ip: str
    records: list[ExecutionRecord]
