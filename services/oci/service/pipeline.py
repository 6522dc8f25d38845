from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from services.oci.gpu_manager.errors import CommandError
from services.oci.gpu_manager.utils import Deadline
from services.oci.service.types import ExecutionRecord

logger = logging.getLogger("oci_runner")


class CommandSession(Protocol):
    def run(self, command: str, deadline: Deadline | None = None) -> bytes: ...


def expand_command(template: str, substitutions: Mapping[str, str]) -> str:
    """
    Replace each placeholder token with its value, verbatim.

    No shell escaping is applied: values are inserted exactly as given.
    """
    command = template
    for token, value in substitutions.items():
        command = command.replace(token, value)
    return command


def _redact(text: str, secrets: Sequence[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def run_pipeline(
    session: CommandSession,
    commands: Sequence[str],
    substitutions: Mapping[str, str] | None = None,
    deadline: Deadline | None = None,
) -> list[ExecutionRecord]:
    """
    Run commands in order over one session, stopping at the first failure.

    Returns:
        One ExecutionRecord per command.

    Raises:
        CommandError: For the first failing command. ``records`` holds every
            record so far, the failing one last; ``command`` is the template.
        RunCancelledError: If the run is cancelled; remaining commands are skipped.
    """
    substitutions = dict(substitutions or {})
    secrets = list(substitutions.values())
    records: list[ExecutionRecord] = []

    for index, template in enumerate(commands):
        if deadline is not None:
            deadline.raise_if_cancelled()
        command = expand_command(template, substitutions)
        logger.info("running ssh command index=%s command=%s", index, template)
        try:
            output = session.run(command, deadline=deadline)
        except CommandError as exc:
            records.append(
                ExecutionRecord(
                    index=index,
                    template=template,
                    command=command,
                    output=exc.output,
                    ok=False,
                    exit_status=exc.exit_status,
                )
            )
            logger.error(
                "ssh command failed index=%s command=%s exit_status=%s output=%s",
                index,
                template,
                exc.exit_status,
                _redact(exc.output.decode("utf-8", errors="replace"), secrets),
            )
            raise CommandError(
                f"running command {template!r}: {exc}",
                command=template,
                output=exc.output,
                exit_status=exc.exit_status,
                index=index,
                records=records,
            ) from exc

        records.append(
            ExecutionRecord(
                index=index,
                template=template,
                command=command,
                output=output,
                ok=True,
                exit_status=0,
            )
        )
        logger.info(
            "command succeeded index=%s command=%s output=%s",
            index,
            template,
            _redact(output.decode("utf-8", errors="replace"), secrets),
        )

    return records
