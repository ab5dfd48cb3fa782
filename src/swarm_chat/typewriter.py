"""
Typing scheduler: presents messages one at a time as if typed live.

Agent messages are revealed word by word at a fixed interval; user messages
(and entries queued as instant) appear whole. Exactly one message is in
REVEALING at any time, and messages complete in the order they were queued,
however fast they arrived.

Per-message presentation states:

    PENDING -> REVEALING -> COMPLETE -> DONE
    PENDING -> REVEALING -> COMPLETE -> AWAITING_SIDE_EFFECT -> DONE

The AWAITING_SIDE_EFFECT step is set by the completion callback when it
starts a follow-up (e.g. a burn lookup after a final answer).
"""

import asyncio
import logging
import re
from collections import deque
from enum import Enum
from typing import Callable, Optional

from swarm_chat.models.message import Message

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 0.05

RevealCallback = Callable[[Message, str], None]
CompleteCallback = Callable[[Message], None]

_TOKEN = re.compile(r"\S+\s*")


class PresentationState(str, Enum):
    PENDING = "pending"
    REVEALING = "revealing"
    COMPLETE = "complete"
    AWAITING_SIDE_EFFECT = "awaiting_side_effect"
    DONE = "done"


def token_ends(text: str) -> list[int]:
    """End offsets of each whitespace-delimited word, trailing whitespace included."""
    return [m.end() for m in _TOKEN.finditer(text)] or [len(text)]


class _Entry:
    __slots__ = ("message", "instant", "position", "finish_now")

    def __init__(self, message: Message, instant: bool):
        self.message = message
        self.instant = instant
        self.position = 0
        self.finish_now = asyncio.Event()


class TypingScheduler:
    def __init__(
        self,
        on_reveal: RevealCallback,
        on_complete: Optional[CompleteCallback] = None,
        interval_s: float = DEFAULT_INTERVAL_S,
    ):
        self._on_reveal = on_reveal
        self._on_complete = on_complete
        self._interval_s = interval_s
        self._queue: deque[_Entry] = deque()
        self._current: Optional[_Entry] = None
        self._task: Optional[asyncio.Task] = None
        self._states: dict[tuple[int, int], PresentationState] = {}

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def revealing(self) -> Optional[Message]:
        return self._current.message if self._current else None

    @property
    def pending(self) -> list[Message]:
        return [entry.message for entry in self._queue]

    @property
    def idle(self) -> bool:
        return self._current is None and not self._queue

    def state(self, message: Message) -> Optional[PresentationState]:
        return self._states.get(message.key)

    def mark(self, message: Message, state: PresentationState) -> None:
        self._states[message.key] = state

    def enqueue(self, message: Message, instant: bool = False) -> None:
        self._queue.append(_Entry(message, instant or message.is_user))
        self._states[message.key] = PresentationState.PENDING
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    def presentation_complete(self) -> None:
        """The view is done with the current message: show the rest now and move on."""
        if self._current is not None:
            self._current.finish_now.set()

    def replace(self, old: Message, new: Message) -> bool:
        """Swap a superseded message for its final version, keeping the reveal position.

        Returns False when `old` is no longer queued or revealing.
        """
        entries = ([self._current] if self._current else []) + list(self._queue)
        for entry in entries:
            if entry.message.key != old.key:
                continue
            entry.message = new
            state = self._states.pop(old.key, PresentationState.PENDING)
            self._states[new.key] = state
            return True
        return False

    def cancel(self) -> list[Message]:
        """Stop the in-flight reveal and drop everything queued. Safe to call repeatedly.

        Returns the dropped messages, the interrupted one first.
        """
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        dropped = ([self._current] if self._current else []) + list(self._queue)
        for entry in dropped:
            self._states.pop(entry.message.key, None)
        self._queue.clear()
        self._current = None
        return [entry.message for entry in dropped]

    async def wait_idle(self) -> None:
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def _run(self) -> None:
        # a cancel() from inside a callback hands the queue to a fresh task
        while self._queue and self._task is asyncio.current_task():
            entry = self._queue.popleft()
            self._current = entry
            self._states[entry.message.key] = PresentationState.REVEALING
            if not entry.instant:
                await self._reveal(entry)
            if self._current is not entry:
                return  # cancelled from a callback
            self._emit(entry.message, entry.message.content)
            self._current = None
            self._finish(entry.message)

    async def _reveal(self, entry: _Entry) -> None:
        while not entry.finish_now.is_set() and self._current is entry:
            ends = token_ends(entry.message.content)
            if entry.position >= len(ends) - 1:
                break
            self._emit(entry.message, entry.message.content[:ends[entry.position]])
            entry.position += 1
            await self._pause(entry)

    async def _pause(self, entry: _Entry) -> None:
        try:
            await asyncio.wait_for(entry.finish_now.wait(), self._interval_s)
        except asyncio.TimeoutError:
            pass

    def _emit(self, message: Message, visible: str) -> None:
        try:
            self._on_reveal(message, visible)
        except Exception:
            logger.exception("Reveal callback failed for message %s", message.id)

    def _finish(self, message: Message) -> None:
        self._states[message.key] = PresentationState.COMPLETE
        if self._on_complete is not None:
            try:
                self._on_complete(message)
            except Exception:
                logger.exception("Completion callback failed for message %s", message.id)
        if self._states.get(message.key) is PresentationState.COMPLETE:
            self._states[message.key] = PresentationState.DONE
