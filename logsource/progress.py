"""
Fire-and-forget progress reporting.

Producers report steps and units of work to a ProgressTracker.  Listeners
subscribe to the tracker; with no listener every update is dropped.  A
failing listener is logged and never affects the producer.
"""

import threading
from dataclasses import dataclass, field
from typing import List

from loguru import logger


@dataclass
class WorkInfo:
    """A known amount of work and how much of it is done."""
    total: int
    units: str
    completed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False,
                                  compare=False)

    def is_in_progress(self) -> bool:
        return self.completed < self.total


class ProgressListener:
    """Base class for progress subscribers; every callback is optional."""

    def on_step(self, message: str) -> None:
        pass

    def on_begin_step(self, message: str) -> None:
        pass

    def on_end_step(self, message: str) -> None:
        pass

    def on_work_started(self, info: WorkInfo) -> None:
        pass

    def on_work_progress(self, info: WorkInfo, amount: int) -> None:
        pass

    def on_work_finished(self, info: WorkInfo) -> None:
        pass


class WorkGuard:
    """
    Handle for a unit of work announced with ``ProgressTracker.doing_work``.

    ``inc`` may be called from several threads.  Closing the guard (or
    leaving its ``with`` block) marks the work complete.
    """

    def __init__(self, tracker: "ProgressTracker", info: WorkInfo):
        self._tracker = tracker
        self.info = info
        self._closed = False

    def inc(self, amount: int = 1) -> None:
        with self.info._lock:
            self.info.completed += amount
        self._tracker._notify("on_work_progress", self.info, amount)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self.info._lock:
            remaining = self.info.total - self.info.completed
            self.info.completed = self.info.total
        if remaining > 0:
            self._tracker._notify("on_work_progress", self.info, remaining)
        self._tracker._notify("on_work_finished", self.info)

    def __enter__(self) -> "WorkGuard":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ProgressTracker:
    """Dispatches progress updates to the subscribed listeners."""

    def __init__(self):
        self.listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> ProgressListener:
        self.listeners.append(listener)
        return listener

    def step(self, message: str) -> None:
        """Report a step whose duration is not known in advance."""
        self._notify("on_step", message)

    def begin_step(self, message: str) -> None:
        self._notify("on_begin_step", message)

    def end_step(self, message: str) -> None:
        self._notify("on_end_step", message)

    def doing_work(self, total: int, units: str) -> WorkGuard:
        """Announce ``total`` units of work; the guard reports progress on it."""
        info = WorkInfo(total=total, units=units)
        self._notify("on_work_started", info)
        return WorkGuard(self, info)

    def _notify(self, callback: str, *args) -> None:
        for listener in self.listeners:
            try:
                getattr(listener, callback)(*args)
            except Exception:
                logger.opt(exception=True).debug("Progress listener error in {}", callback)
