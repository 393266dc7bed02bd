"""Polling loop lifecycle state machine.

A loop's run state is an explicit enum with guarded transitions rather
than loose ``running`` flags::

    STOPPED ──► STARTING ──► RUNNING ──► STOPPING ──► STOPPED
                   │                                     ▲
                   └─────────── (start failed) ──────────┘
"""

from __future__ import annotations

from enum import Enum

from review_spine.core.errors import InvalidTransitionError


class LoopState(str, Enum):
    """Run state of a polling loop."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


VALID_LOOP_TRANSITIONS: dict[LoopState, frozenset[LoopState]] = {
    LoopState.STOPPED: frozenset({LoopState.STARTING}),
    LoopState.STARTING: frozenset({LoopState.RUNNING, LoopState.STOPPED}),
    LoopState.RUNNING: frozenset({LoopState.STOPPING}),
    LoopState.STOPPING: frozenset({LoopState.STOPPED}),
}


def validate_loop_transition(current: LoopState, target: LoopState) -> None:
    """Raise :class:`InvalidTransitionError` if ``current → target`` is illegal."""
    allowed = VALID_LOOP_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value, "LoopState")


def is_active(state: LoopState) -> bool:
    """True while a loop holds (or is acquiring) its worker thread."""
    return state in (LoopState.STARTING, LoopState.RUNNING, LoopState.STOPPING)


__all__ = ["LoopState", "VALID_LOOP_TRANSITIONS", "is_active", "validate_loop_transition"]
