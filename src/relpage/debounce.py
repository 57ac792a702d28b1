"""Trailing-edge debounce on the running event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Generic, ParamSpec

from relpage.duration import to_seconds
from relpage.types import Duration

logger = logging.getLogger(__name__)

P = ParamSpec("P")


class Debouncer(Generic[P]):
    """Coalesce calls made within ``wait`` into one call with the last arguments.

    Each call cancels the pending timer and schedules a new one; the wrapped
    function runs once the window passes without another call.

    Usage:
        commit = Debouncer(apply_filters, "500ms")
        commit({"q": "a"})
        commit({"q": "ab"})  # only this one is applied
    """

    __slots__ = ("_args", "_fn", "_handle", "_kwargs", "_wait")

    def __init__(self, fn: Callable[P, Any], wait: Duration) -> None:
        self._fn = fn
        self._wait = to_seconds(wait)
        self._handle: asyncio.TimerHandle | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> None:
        self.cancel()
        self._args = args
        self._kwargs = kwargs
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._wait, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Run a pending call now instead of waiting for the timer."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def _fire(self) -> None:
        self._handle = None
        args, kwargs = self._args, self._kwargs
        self._args, self._kwargs = (), {}
        try:
            self._fn(*args, **kwargs)
        except Exception:
            logger.warning("Debounced call to %r failed", self._fn, exc_info=True)


__all__ = ["Debouncer"]
