from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import datetime

from services.oci.gpu_manager.constants import DISPLAY_NAME_PREFIX
from services.oci.gpu_manager.errors import RunCancelledError


def build_display_name(arch: str, now: datetime | None = None) -> str:
    """
    Build a timestamp-qualified instance display name.

    Examples:
        ("x86", 2024-05-01 13:45:09) -> "kubeflow-gha-gpu-runner-x86-20240501-134509"
    """
    now = now or datetime.now()
    return f"{DISPLAY_NAME_PREFIX}-{arch}-{now.strftime('%Y%m%d-%H%M%S')}"


class Deadline:
    """
    Cancellable deadline shared by every time-bounded step of a run.

    A root deadline bounds the whole run (``timeout_sec=None`` means unbounded).
    Steps derive a child with their own timeout; children share the parent's
    cancellation flag and never outlive it.
    """

    def __init__(
        self,
        timeout_sec: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        wait: Callable[[float], object] | None = None,
        _parent: Deadline | None = None,
        _cancelled: threading.Event | None = None,
    ) -> None:
        self._clock = clock
        self._parent = _parent
        self._cancelled = _cancelled or threading.Event()
        # Blocks for up to N seconds; returns early once the run is cancelled
        self._wait = wait or self._cancelled.wait
        self._expires_at = None if timeout_sec is None else clock() + timeout_sec

    def child(self, timeout_sec: float | None) -> Deadline:
        return Deadline(
            timeout_sec,
            clock=self._clock,
            wait=self._wait,
            _parent=self,
            _cancelled=self._cancelled,
        )

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left before this deadline or any parent expires, None if unbounded."""
        own = None if self._expires_at is None else self._expires_at - self._clock()
        parent = self._parent.remaining() if self._parent is not None else None
        if own is None:
            return parent
        if parent is None:
            return own
        return min(own, parent)

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def raise_if_cancelled(self) -> None:
        """Raise RunCancelledError if the run was cancelled or the root deadline passed."""
        if self.cancelled:
            raise RunCancelledError("run cancelled")
        root = self
        while root._parent is not None:
            root = root._parent
        if root.expired:
            raise RunCancelledError("run deadline exceeded")

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early on cancellation or expiry."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, max(remaining, 0.0))
        if seconds > 0:
            self._wait(seconds)
        self.raise_if_cancelled()
