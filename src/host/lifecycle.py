"""Host lifecycle phase tracking."""

import asyncio
from typing import Dict

import structlog

from .interfaces import LifecyclePhase


class Lifecycle:
    """Tracks the host lifecycle phase and lets callers wait for one.

    Phases only move forward. Reaching a phase also releases everyone waiting
    on an earlier phase.
    """

    def __init__(self, phase: LifecyclePhase = LifecyclePhase.STARTING):
        self.logger = structlog.get_logger(self.__class__.__name__)
        self._phase = phase
        self._events: Dict[LifecyclePhase, asyncio.Event] = {}

    @property
    def phase(self) -> LifecyclePhase:
        return self._phase

    def _event_for(self, phase: LifecyclePhase) -> asyncio.Event:
        if phase not in self._events:
            self._events[phase] = asyncio.Event()
            if phase <= self._phase:
                self._events[phase].set()
        return self._events[phase]

    def set_phase(self, phase: LifecyclePhase) -> None:
        if phase < self._phase:
            raise ValueError(
                f"Lifecycle cannot go backwards from {self._phase.name} to {phase.name}"
            )
        self._phase = phase
        for waited, event in self._events.items():
            if waited <= phase:
                event.set()
        self.logger.debug("Lifecycle phase reached", phase=phase.name)

    async def when(self, phase: LifecyclePhase) -> None:
        if phase <= self._phase:
            return
        await self._event_for(phase).wait()
