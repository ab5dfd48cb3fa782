"""
swarm-chat: chat client core for asynchronous agent orchestrators.

Submits requests as remote tasks, follows each task's event stream and
renders a live, typed-out transcript across several conversations.
"""

from swarm_chat.chat import ChatEngine
from swarm_chat.client import AsyncSwarmChat
from swarm_chat.config import ChatConfig, load_config
from swarm_chat.errors import ConnectionError, RegistryError, SubmissionError, SwarmChatError
from swarm_chat.models.message import Message, MessageKind
from swarm_chat.models.conversation import Conversation
from swarm_chat.reconciler import MessageReconciler
from swarm_chat.registry import ConversationRegistry
from swarm_chat.typewriter import PresentationState, TypingScheduler
from swarm_chat.view import TranscriptView

__version__ = "0.1.0"
__all__ = [
    "AsyncSwarmChat",
    "ChatConfig",
    "ChatEngine",
    "ConnectionError",
    "Conversation",
    "ConversationRegistry",
    "Message",
    "MessageKind",
    "MessageReconciler",
    "PresentationState",
    "RegistryError",
    "SubmissionError",
    "SwarmChatError",
    "TranscriptView",
    "TypingScheduler",
    "load_config",
]
