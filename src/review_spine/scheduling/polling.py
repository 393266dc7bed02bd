"""Fixed-interval polling loop on a daemon thread.

┌──────────────────────────────────────────────────────────────────────────────┐
│  POLLING LOOP                                                                 │
│                                                                               │
│   start()   STOPPED → STARTING → RUNNING                                      │
│      │                                                                        │
│      ▼                                                                        │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │  Daemon Thread                                           │                │
│   │    if run_on_start: run cycle                            │                │
│   │    while not stop_event.wait(interval):                  │                │
│   │        with cycle_lock: run cycle                        │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│   stop()    RUNNING → STOPPING → (in-flight cycle finishes) → STOPPED         │
│   trigger() runs one cycle on the caller's thread under the same cycle lock   │
└──────────────────────────────────────────────────────────────────────────────┘

Cycles of one loop never overlap; a cycle that raises is logged and
recorded as ``last_error``, and the loop keeps its schedule.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from review_spine.core.lifecycle import LoopState, validate_loop_transition
from review_spine.core.logging import LogContext, get_logger
from review_spine.core.timestamps import utc_now

logger = get_logger(__name__)


@dataclass
class LoopHealth:
    """Health snapshot of one polling loop."""

    name: str
    state: LoopState
    interval_seconds: float
    tick_count: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None
    last_result: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        """A running loop whose last cycle failed is unhealthy."""
        return not (self.state == LoopState.RUNNING and self.last_error is not None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "healthy": self.healthy,
            "interval_seconds": self.interval_seconds,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "last_error": self.last_error,
        }


class PollingLoop:
    """Runs ``cycle`` every ``interval_seconds`` on one daemon thread.

    Example:
        >>> loop = PollingLoop("intake", monitor.check_for_new_files, interval_seconds=120)
        >>> loop.start()
        >>> # ... later ...
        >>> loop.stop()
    """

    def __init__(
        self,
        name: str,
        cycle: Callable[[], Any],
        interval_seconds: float,
        *,
        run_on_start: bool = True,
        stop_timeout_seconds: float | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self._cycle = cycle
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self.stop_timeout_seconds = stop_timeout_seconds

        self._state = LoopState.STOPPED
        self._state_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._last_error: str | None = None
        self._last_result: Any = None

    # ── State ────────────────────────────────────────────────────

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == LoopState.RUNNING

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def _transition(self, target: LoopState) -> None:
        validate_loop_transition(self._state, target)
        logger.debug("loop_state_changed", loop=self.name, old=self._state.value, new=target.value)
        self._state = target

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> bool:
        """Start the loop thread. Returns False (with a warning) if not stopped."""
        with self._state_lock:
            if self._state != LoopState.STOPPED:
                logger.warning("loop_already_started", loop=self.name, state=self._state.value)
                return False
            self._transition(LoopState.STARTING)
            # Each thread owns its stop event, so a thread left behind by a timed
            # out stop() stays stopped when the loop is started again.
            stop_event = threading.Event()
            self._stop_event = stop_event
            try:
                self._thread = threading.Thread(
                    target=self._run, args=(stop_event,), daemon=True, name=f"review-spine-{self.name}"
                )
                self._thread.start()
            except Exception:
                self._transition(LoopState.STOPPED)
                raise
            self._transition(LoopState.RUNNING)
        logger.info("loop_started", loop=self.name, interval_seconds=self.interval_seconds)
        return True

    def stop(self) -> bool:
        """Stop the loop, letting any in-flight cycle finish.

        Returns False (with a warning) if the loop was not running.
        """
        with self._state_lock:
            if self._state != LoopState.RUNNING:
                logger.warning("loop_not_running", loop=self.name, state=self._state.value)
                return False
            self._transition(LoopState.STOPPING)
            self._stop_event.set()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.stop_timeout_seconds)
            if thread.is_alive():
                logger.warning("loop_stop_timeout", loop=self.name, timeout=self.stop_timeout_seconds)

        with self._state_lock:
            self._transition(LoopState.STOPPED)
            self._thread = None
        logger.info("loop_stopped", loop=self.name, tick_count=self._tick_count)
        return True

    def trigger(self) -> Any:
        """Run one cycle now on the caller's thread; re-raises its error."""
        return self._run_cycle(manual=True)

    # ── Internals ────────────────────────────────────────────────

    def _run(self, stop_event: threading.Event) -> None:
        if self.run_on_start and not stop_event.is_set():
            self._run_cycle(manual=False)
        while not stop_event.wait(self.interval_seconds):
            self._run_cycle(manual=False)

    def _run_cycle(self, *, manual: bool) -> Any:
        with self._cycle_lock:
            self._tick_count += 1
            self._last_tick = utc_now()
            with LogContext(loop=self.name, cycle=self._tick_count):
                try:
                    result = self._cycle()
                except Exception as e:
                    self._last_error = str(e) or e.__class__.__name__
                    logger.exception("loop_cycle_failed", manual=manual, error=str(e))
                    if manual:
                        raise
                    return None
                self._last_error = None
                self._last_result = result
                return result

    def health(self) -> LoopHealth:
        return LoopHealth(
            name=self.name,
            state=self._state,
            interval_seconds=self.interval_seconds,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            last_error=self._last_error,
            last_result=self._last_result,
        )


__all__ = ["LoopHealth", "PollingLoop"]
