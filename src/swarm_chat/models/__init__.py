from swarm_chat.models.conversation import Conversation
from swarm_chat.models.events import TaskEvent, WireEvent
from swarm_chat.models.message import Attachments, Message, MessageKind
from swarm_chat.models.payment import BurnTransaction, OrderResult, PlanCost
from swarm_chat.models.task import RouterAction, RouterDecision, TaskCreated

__all__ = [
    "Attachments",
    "BurnTransaction",
    "Conversation",
    "Message",
    "MessageKind",
    "OrderResult",
    "PlanCost",
    "RouterAction",
    "RouterDecision",
    "TaskCreated",
    "TaskEvent",
    "WireEvent",
]
