"""
Scripted event source for tests and offline demos.

Events can be pushed by hand with push(), or played back per task from a
script of (delay, payload) steps once a subscriber attaches.
"""

import asyncio
import logging
from typing import Any, NamedTuple, Optional, Union

from swarm_chat.transport.base import EventCallback, EventSource, Subscription, Unsubscribe
from swarm_chat.transport.envelope import parse_event

logger = logging.getLogger(__name__)


class ScriptedStep(NamedTuple):
    delay_s: float
    payload: Union[dict[str, Any], str]


def demo_script(speedup: float = 1.0) -> list[ScriptedStep]:
    """A short music-video run, shaped like the orchestrator's real output."""
    steps = [
        (0.8, {"type": "reasoning", "content": (
            "I have received the request to create an AI-generated music video. I will split the task "
            "into several steps: generating the song, generating the script, creating images, "
            "generating videos, and compiling everything into a single MP4 file.")}),
        (1.7, {"type": "reasoning", "content": (
            "I have checked the subscription plan for the Song Generator. There's insufficient balance, "
            "so I need to purchase credits.")}),
        (2.0, {"type": "transaction", "content": "Swap completed to obtain 1 VIRTUAL.",
               "txHash": "0x1d465ab71cd0c77252f4aade9ea12d7b9f06e62d154a89e863c1ba0ef28257ef"}),
        (1.2, {"type": "nvm-transaction-agent", "content": "Credits purchased under the Song Generator plan.",
               "txHash": "0x637ebb9d299ecc51dda02f7a84b4023132ece65ea6aac869ddbce2b14f6bc4ee",
               "credits": 1, "planDid": "did:nv:0c63e2e0449afd88"}),
        (3.0, {"type": "answer", "content": "Here is the generated song 'Shattered reflections of Silence'.",
               "artifacts": {"mimeType": "audio/mpeg", "parts": [
                   "https://cdn.ttapi.io/suno/2025-03-28/307287f8-70df-4032-96c3-277e8d5e2be5.mp3"]}}),
        (2.5, {"type": "final-answer", "content": (
            "The final video 'Shattered reflections of Silence' has been uploaded: "
            "https://nvm-music-video-swarm-bck.s3.eu-central-1.amazonaws.com/shattered_reflections_of_silence.mp4"),
               "artifacts": {"mimeType": "video/mp4", "parts": [
                   "https://nvm-music-video-swarm-bck.s3.eu-central-1.amazonaws.com/shattered_reflections_of_silence.mp4"]}}),
    ]
    return [ScriptedStep(delay / speedup, payload) for delay, payload in steps]


class ScriptedEventSource(EventSource):
    def __init__(
        self,
        scripts: Optional[dict[str, list[ScriptedStep]]] = None,
        default_script: Optional[list[ScriptedStep]] = None,
    ):
        self._scripts: dict[str, list[ScriptedStep]] = dict(scripts or {})
        self._default_script = list(default_script or [])
        self._subs: dict[str, list[Subscription]] = {}
        self._players: dict[Subscription, asyncio.Task] = {}

    def script(self, task_id: str, steps: list[ScriptedStep]) -> None:
        self._scripts[task_id] = list(steps)

    @property
    def open_subscriptions(self) -> int:
        return sum(len(subs) for subs in self._subs.values())

    def subscriber_count(self, task_id: str) -> int:
        return len(self._subs.get(task_id, []))

    def subscribe(self, task_id: str, on_event: EventCallback) -> Unsubscribe:
        sub = Subscription(task_id, on_event, self._forget)
        self._subs.setdefault(task_id, []).append(sub)
        steps = self._scripts.get(task_id, self._default_script)
        if steps:
            loop = asyncio.get_running_loop()
            self._players[sub] = loop.create_task(self._play(sub, steps))
        return sub.close

    def push(self, task_id: str, payload: Any) -> int:
        """Deliver one payload to every subscriber of task_id. Returns how many received it."""
        event = parse_event(payload)
        if event is None:
            return 0
        delivered = 0
        for sub in list(self._subs.get(task_id, [])):
            if sub.deliver(event):
                delivered += 1
        return delivered

    async def _play(self, sub: Subscription, steps: list[ScriptedStep]) -> None:
        for step in steps:
            await asyncio.sleep(step.delay_s)
            event = parse_event(step.payload)
            if event is None:
                continue
            if not sub.deliver(event):
                return
        # end of script is end of stream
        sub.close()

    def _forget(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.task_id, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self._subs.pop(sub.task_id, None)
        player = self._players.pop(sub, None)
        if player is not None and player is not asyncio.current_task():
            player.cancel()

    async def close(self) -> None:
        players = list(self._players.values())
        for subs in list(self._subs.values()):
            for sub in list(subs):
                sub.close()
        await asyncio.gather(*players, return_exceptions=True)
