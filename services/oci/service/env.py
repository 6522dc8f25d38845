from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from services.oci.gpu_manager.constants import JITCONFIG_ENV, JITCONFIG_PLACEHOLDER

logger = logging.getLogger("oci_runner")


def _resolve_substitutions(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Map command placeholders to their values from the process environment."""
    environ = os.environ if environ is None else environ
    jitconfig = environ.get(JITCONFIG_ENV, "")
    if not jitconfig:
        logger.warning("%s is empty; the runner will start without a job config", JITCONFIG_ENV)
    return {JITCONFIG_PLACEHOLDER: jitconfig}
