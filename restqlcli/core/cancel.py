from __future__ import annotations

import threading
from typing import Callable, List, Optional

from .diagnostics import CommandCancelled, DeadlineExceeded


class CancelToken:
    """Cancellation signal threaded through every external command.

    A token is cancelled at most once; the first error passed to ``cancel``
    is the one reported by ``error``. Tokens created with ``timeout`` cancel
    themselves with ``DeadlineExceeded`` once it elapses, and children are
    cancelled together with their parent.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._error: Optional[CommandCancelled] = None
        self._callbacks: List[Callable[[], None]] = []
        self._timer: Optional[threading.Timer] = None
        self._detach: Optional[Callable[[], None]] = None
        if timeout is not None:
            self._timer = threading.Timer(timeout, self.cancel, args=(DeadlineExceeded(),))
            self._timer.daemon = True
            self._timer.start()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> Optional[CommandCancelled]:
        return self._error

    def cancel(self, error: Optional[CommandCancelled] = None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._error = error or CommandCancelled()
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        if self._timer is not None:
            self._timer.cancel()
        for callback in callbacks:
            callback()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation; returns a function that unregisters it."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def child(self, timeout: Optional[float] = None) -> "CancelToken":
        token = CancelToken(timeout)
        token._detach = self.on_cancel(lambda: token.cancel(self._error))
        return token

    def raise_if_cancelled(self) -> None:
        if self._error is not None:
            raise self._error

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        if self._detach is not None:
            self._detach()
            self._detach = None

    def __enter__(self) -> "CancelToken":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
