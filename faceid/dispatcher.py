"""Serial task queue that drives the kiosk state machine."""

from __future__ import annotations

import asyncio
import collections
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .exceptions import ParameterError
from .params import TaskParams
from .states import GameState

_LOGGER = logging.getLogger(__name__)

Handler = Callable[[TaskParams], Awaitable[None]]


@dataclass(frozen=True)
class Task:
    """A queued ``(state, parameters)`` pair awaiting dispatch."""

    state: GameState
    handler: Handler
    parameters: Optional[Mapping[str, Any]] = None

    @property
    def handler_name(self) -> str:
        func = getattr(self.handler, "func", self.handler)
        return getattr(func, "__name__", None) or self.state.value


class Dispatcher:
    """Run one queued task to completion per scheduling tick.

    Tasks may be enqueued from any thread: UI callbacks, the bus receive loop,
    and the handlers themselves all feed the same FIFO. Dequeueing and
    execution only ever happen from :meth:`run_one_tick`, so no two handler
    bodies overlap even when they suspend on network calls.

    Parameters
    ----------
    commands:
        Initial registry mapping each :class:`GameState` to its handler.
    """

    def __init__(self, commands: Optional[Mapping[GameState, Handler]] = None) -> None:
        self._commands: Dict[GameState, Handler] = dict(commands or {})
        self._queue: collections.deque[Task] = collections.deque()
        self._lock = threading.Lock()

    # -- registry ---------------------------------------------------------
    def register(self, state: GameState, handler: Handler) -> None:
        self._commands[state] = handler

    def register_all(self, commands: Mapping[GameState, Handler]) -> None:
        for state, handler in commands.items():
            self.register(state, handler)

    def is_registered(self, state: GameState) -> bool:
        return state in self._commands

    # -- queue ------------------------------------------------------------
    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def enqueue(self, state: GameState, parameters: Optional[Mapping[str, Any]] = None) -> None:
        """Append a task for ``state``; unknown states are logged and dropped."""

        handler = self._commands.get(state)
        if handler is None:
            _LOGGER.error("Unknown GameState task! state = %s", state)
            return
        with self._lock:
            self._queue.append(Task(state=state, handler=handler, parameters=parameters))

    def clear(self) -> None:
        with self._lock:
            self._queue.clear()

    def _pop(self) -> Optional[Task]:
        with self._lock:
            if not self._queue:
                return None
            return self._queue.popleft()

    async def run_one_tick(self) -> bool:
        """Execute the task at the front of the queue.

        Returns ``True`` when a task was dequeued, whether or not it succeeded.
        """

        task = self._pop()
        if task is None:
            return False
        _LOGGER.debug("Got a task from queue: %s (%s)", task.handler_name, task.state.value)
        try:
            await task.handler(task.parameters)
        except ParameterError as exc:
            _LOGGER.debug("Task %s aborted: %s", task.state.value, exc)
        except Exception:
            _LOGGER.exception("Error invoking task %s", task.state.value)
        return True

    async def run(self, stop_event: asyncio.Event, *, tick_interval: float = 1.0 / 30.0) -> None:
        """Tick until ``stop_event`` is set, idling ``tick_interval`` when empty."""

        idle = max(0.0, float(tick_interval))
        while not stop_event.is_set():
            ran = await self.run_one_tick()
            if ran:
                await asyncio.sleep(0)
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=idle)
            except asyncio.TimeoutError:
                pass


__all__ = ["Dispatcher", "Handler", "Task"]
