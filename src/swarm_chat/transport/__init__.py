from swarm_chat.transport.base import EventSource, Subscription
from swarm_chat.transport.envelope import parse_event
from swarm_chat.transport.http import HttpClient
from swarm_chat.transport.scripted import ScriptedEventSource, ScriptedStep
from swarm_chat.transport.sse import SSEEventSource

__all__ = [
    "EventSource",
    "HttpClient",
    "SSEEventSource",
    "ScriptedEventSource",
    "ScriptedStep",
    "Subscription",
    "parse_event",
]
