"""Conversation registry."""

import pytest

from swarm_chat.errors import RegistryError
from swarm_chat.reconciler import MessageReconciler
from swarm_chat.registry import ConversationRegistry


def test_start_new_activates():
    registry = ConversationRegistry()
    conv = registry.start_new("First")
    assert registry.active_id == conv.id
    assert registry.active.title == "First"
    assert registry.visible_messages == []


def test_create_does_not_activate():
    registry = ConversationRegistry()
    conv = registry.create()
    assert registry.active_id is None
    assert registry.conversation(conv.id) is conv


def test_unknown_conversation():
    registry = ConversationRegistry()
    with pytest.raises(RegistryError) as exc:
        registry.set_active(42)
    assert exc.value.code == "unknown_conversation"
    with pytest.raises(RegistryError):
        registry.messages(42)


def test_set_active_none_is_fresh_thread():
    registry = ConversationRegistry()
    registry.start_new()
    assert registry.set_active(None) == []
    assert registry.active is None


def test_restored_flag():
    registry = ConversationRegistry()
    reconciler = MessageReconciler(registry)
    first = registry.start_new()
    reconciler.append_local(first.id, "hello")
    registry.start_new()
    messages = registry.set_active(first.id)
    assert [m.content for m in messages] == ["hello"]
    assert first.is_restored_from_history
    registry.mark_live(first.id)
    assert not first.is_restored_from_history


def test_empty_conversation_is_not_restored():
    registry = ConversationRegistry()
    first = registry.start_new()
    registry.start_new()
    registry.set_active(first.id)
    assert not first.is_restored_from_history


def test_conversations_most_recent_first():
    registry = ConversationRegistry()
    a = registry.create("a")
    b = registry.create("b")
    assert [c.id for c in registry.conversations()] == [b.id, a.id]


def test_task_binding():
    registry = ConversationRegistry()
    conv = registry.start_new()
    registry.bind_remote_task(conv.id, "task-1")
    assert conv.remote_task_id == "task-1"
    assert registry.resolve_task("task-1") == conv.id
    assert registry.resolve_task("task-2") is None


def test_retitle():
    registry = ConversationRegistry()
    conv = registry.start_new()
    registry.retitle(conv.id, "Music video")
    assert registry.conversation(conv.id).title == "Music video"


def test_subscriptions_survive_switching_and_close():
    registry = ConversationRegistry()
    closed = []
    first = registry.start_new()
    registry.attach_subscription(first.id, "task-1", lambda: closed.append("task-1"))
    registry.start_new()
    assert registry.subscription_count(first.id) == 1
    assert closed == []
    registry.close()
    assert closed == ["task-1"]
    assert registry.subscription_count(first.id) == 0


def test_reattach_closes_previous():
    registry = ConversationRegistry()
    closed = []
    conv = registry.start_new()
    registry.attach_subscription(conv.id, "task-1", lambda: closed.append("old"))
    registry.attach_subscription(conv.id, "task-1", lambda: closed.append("new"))
    assert closed == ["old"]
    registry.close(conv.id)
    assert closed == ["old", "new"]
