"""Cancellation token passed explicitly into every wait of a run drive."""

from __future__ import annotations

import signal
import threading
import time
from typing import Callable, Dict, Optional

from wr_common.errors import RunCancelledError


class CancelToken:
    """
    Cooperative cancellation signal with an optional deadline.

    It can be tripped explicitly, by SIGINT/SIGTERM when signals are enabled,
    or implicitly once ``timeout_s`` has elapsed. Waits go through
    :meth:`wait`, which returns early as soon as the token trips.
    """

    def __init__(
        self,
        *,
        timeout_s: Optional[float] = None,
        enable_signals: bool = False,
    ) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._deadline = time.monotonic() + timeout_s if timeout_s is not None else None
        self._prev_handlers: Dict[int, Callable] = {}
        if enable_signals:
            self._install_signal_handlers()

    def _install_signal_handlers(self) -> None:
        """Capture SIGINT/SIGTERM and trip the token."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._prev_handlers[sig] = signal.getsignal(sig)
                signal.signal(sig, self._handle_signal)  # type: ignore[arg-type]
            except (ValueError, OSError):
                # Not on the main thread; rely on explicit cancellation.
                continue

    def _handle_signal(self, signum: int, frame) -> None:  # type: ignore[override]
        self.request_cancel(reason=f"received {signal.Signals(signum).name}")

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def cancelled(self) -> bool:
        """True once cancellation was requested or the deadline has passed."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.request_cancel(reason="deadline exceeded")
            return True
        return False

    def request_cancel(self, reason: str = "cancel requested") -> None:
        """Trip the token; later calls keep the first reason."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if the token tripped meanwhile."""
        if self.cancelled:
            return True
        timeout = max(0.0, seconds)
        if self._deadline is not None:
            timeout = min(timeout, max(0.0, self._deadline - time.monotonic()))
        if self._event.wait(timeout):
            return True
        return self.cancelled

    def sleep_or_raise(self, seconds: float, **context: object) -> None:
        """Wait ``seconds`` and raise ``RunCancelledError`` if the token trips."""
        if self.wait(seconds):
            raise RunCancelledError(
                f"context canceled: {self._reason or 'cancel requested'}",
                context={"reason": self._reason, **context},
            )

    def restore(self) -> None:
        """Restore original signal handlers."""
        for sig, handler in self._prev_handlers.items():
            try:
                signal.signal(sig, handler)  # type: ignore[arg-type]
            except (ValueError, OSError):
                continue
        self._prev_handlers.clear()

    def __enter__(self) -> "CancelToken":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()
