"""Submission state machine and lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum


class SubmissionState(str, Enum):
    """Lifecycle of a single submission."""

    IDLE = "IDLE"
    BUILDING = "BUILDING"
    SENDING = "SENDING"
    RETRYING = "RETRYING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


TERMINAL_STATES = frozenset({SubmissionState.SUCCEEDED, SubmissionState.FAILED})


class StateManager:
    """Manage state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = SubmissionState.IDLE

    @property
    def state(self) -> SubmissionState:
        return self._state

    async def get_state(self) -> SubmissionState:
        """Return the current state under lock."""
        async with self._lock:
            return self._state

    async def transition_to(self, new_state: SubmissionState) -> SubmissionState:
        """Transition to a new state and return it."""
        async with self._lock:
            self._state = new_state
            return self._state

    async def transition_if(
        self,
        expected_state: SubmissionState,
        new_state: SubmissionState,
    ) -> bool:
        """Transition only when current state matches expected state."""
        async with self._lock:
            if self._state != expected_state:
                return False
            self._state = new_state
            return True

    async def can_submit(self) -> bool:
        """Return True when a new submission may start."""
        async with self._lock:
            return self._state == SubmissionState.IDLE
