from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import TypeVar

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger("oci_gpu_manager")

T = TypeVar("T")

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")

# Load environment variables from a .env file in the working directory
_env_path = find_dotenv(usecwd=True)
if _env_path:
    load_dotenv(_env_path)
    logger.debug("Loaded environment from %s", _env_path)


def get_env(key: str, default: str | None = None) -> str | None:
    """Runner setting from the environment (or .env), else ``default``."""
    return os.environ.get(key, default)


def _get_env_as(key: str, default: T, parse: Callable[[str], T], kind: str) -> T:
    value = os.environ.get(key)
    if not value:
        return default
    try:
        return parse(value.strip())
    except ValueError:
        logger.warning("Invalid %s value for %s=%r, using default: %s", kind, key, value, default)
        return default


def _parse_bool(value: str) -> bool:
    normalized = value.lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ValueError(value)


def get_env_float(key: str, default: float | None) -> float | None:
    """Seconds-style setting, e.g. RUNNER_RUN_TIMEOUT_SEC; None keeps it unbounded."""
    return _get_env_as(key, default, float, "float")


def get_env_int(key: str, default: int) -> int:
    """Integer setting, e.g. OCI_BOOT_VOLUME_SIZE_IN_GBS."""
    return _get_env_as(key, default, int, "int")


def get_env_bool(key: str, default: bool) -> bool:
    """Flag setting such as RUNNER_DEBUG; accepts 1/0, true/false, yes/no, on/off."""
    return _get_env_as(key, default, _parse_bool, "bool")
