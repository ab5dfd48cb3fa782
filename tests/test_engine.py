"""Chat engine end to end with a fake orchestrator and scripted event streams."""

import asyncio
import itertools
from typing import Optional

import pytest

from swarm_chat.chat import SUBMISSION_FAILED, ChatEngine
from swarm_chat.errors import SubmissionError
from swarm_chat.models import (
    BurnTransaction,
    Conversation,
    Message,
    MessageKind,
    OrderResult,
    RouterAction,
    RouterDecision,
)
from swarm_chat.transport import ScriptedEventSource, ScriptedStep
from swarm_chat.typewriter import PresentationState
from swarm_chat.view import TranscriptView


class FakeOrchestrator:
    def __init__(self, action: RouterAction = RouterAction.FORWARD, router_message: str = "",
                 from_block: Optional[int] = None, title: Optional[str] = None):
        self.action = action
        self.router_message = router_message
        self.from_block = from_block
        self.title = title
        self.fail_submit = False
        self.burn: Optional[BurnTransaction] = None
        self.burn_calls = 0
        self.credits = 5
        self.order = OrderResult(success=True, txHash="0xorder", credits=10, message="Bought 10 credits.")
        self.submitted: list[str] = []
        self.routed: list[tuple[str, list]] = []
        self._ids = itertools.count(1)

    async def route(self, message, history):
        self.routed.append((message, history))
        return RouterDecision(action=self.action, message=self.router_message)

    async def synthesize_intent(self, history, fallback):
        return fallback

    async def synthesize_title(self, history, fallback):
        return self.title or fallback

    async def latest_block(self):
        return self.from_block

    async def submit_task(self, query):
        if self.fail_submit:
            raise SubmissionError("orchestrator down")
        self.submitted.append(query)
        return f"task-{next(self._ids)}"

    async def find_burn_transaction(self, from_block):
        self.burn_calls += 1
        return self.burn

    async def get_credits(self):
        return self.credits

    async def order_plan(self):
        return self.order


class RecordingView(TranscriptView):
    def __init__(self):
        self.reveals: list[tuple[tuple[int, int], str]] = []
        self.completed: list[Message] = []
        self.resets: list[tuple[Optional[int], list[str]]] = []
        self.superseded: list[tuple[Message, Message]] = []
        self.listings: list[list[str]] = []

    def reset(self, conversation: Optional[Conversation], messages: list[Message]) -> None:
        self.resets.append((conversation.id if conversation else None, [m.content for m in messages]))

    def reveal(self, message: Message, visible: str) -> None:
        self.reveals.append((message.key, visible))

    def complete(self, message: Message) -> None:
        self.completed.append(message)

    def supersede(self, old: Message, new: Message) -> None:
        self.superseded.append((old, new))

    def conversations_changed(self, conversations: list[Conversation]) -> None:
        self.listings.append([c.title for c in conversations])


def make_engine(orchestrator: Optional[FakeOrchestrator] = None, typing_interval_s: float = 0.001, **kw):
    orchestrator = orchestrator or FakeOrchestrator()
    events = ScriptedEventSource()
    view = RecordingView()
    engine = ChatEngine(
        orchestrator, events, view,
        typing_interval_s=typing_interval_s, burn_lookup_backoff_s=0, **kw,
    )
    return engine, orchestrator, events, view


class TestSendPath:
    @pytest.mark.asyncio
    async def test_send_creates_conversation_and_subscribes(self):
        engine, orch, events, view = make_engine()
        task_id = await engine.send_message("  make me a video  ")
        await engine.wait_idle()
        assert task_id == "task-1"
        assert orch.submitted == ["make me a video"]
        conv = engine.registry.active
        assert conv.title == "make me a video"
        assert conv.remote_task_id == "task-1"
        assert events.subscriber_count("task-1") == 1
        assert [(m.is_user, m.content) for m in engine.messages] == [(True, "make me a video")]
        assert view.reveals == [((conv.id, 1), "make me a video")]
        await engine.close()
        assert events.subscriber_count("task-1") == 0

    @pytest.mark.asyncio
    async def test_blank_message_is_ignored(self):
        engine, orch, events, view = make_engine()
        assert await engine.send_message("   ") is None
        assert engine.registry.active is None
        assert orch.routed == []
        await engine.close()

    @pytest.mark.asyncio
    async def test_router_sees_history(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("first")
        await engine.wait_idle()
        events.push("task-1", {"type": "answer", "content": "reply"})
        await engine.wait_idle()
        await engine.send_message("second")
        _, history = orch.routed[-1]
        assert [h["role"] for h in history] == ["user", "assistant", "user"]
        assert history[-1]["content"] == "second"
        await engine.close()

    @pytest.mark.asyncio
    async def test_title_fallback_is_truncated(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("please make me a long music video about the sea")
        assert engine.registry.active.title == "please make me a long music vi..."
        await engine.close()

    @pytest.mark.asyncio
    async def test_synthesized_title_replaces_fallback(self):
        engine, orch, events, view = make_engine(FakeOrchestrator(title="Sea music video"))
        await engine.send_message("please make me a long music video about the sea")
        await engine.wait_idle()
        assert engine.registry.active.title == "Sea music video"
        assert view.listings[-1] == ["Sea music video"]
        await engine.close()

    @pytest.mark.asyncio
    async def test_submission_failure_keeps_state_consistent(self):
        engine, orch, events, view = make_engine()
        orch.fail_submit = True
        assert await engine.send_message("hello") is None
        await engine.wait_idle()
        conv = engine.registry.active
        assert conv.remote_task_id is None
        assert events.open_subscriptions == 0
        assert [(m.is_user, m.kind, m.content) for m in engine.messages] == [
            (True, MessageKind.ANSWER, "hello"),
            (False, MessageKind.ERROR, SUBMISSION_FAILED),
        ]

        orch.fail_submit = False
        assert await engine.send_message("hello again") == "task-1"
        assert engine.registry.active_id == conv.id
        await engine.close()


class TestCreditGate:
    @pytest.mark.asyncio
    async def test_no_credit_becomes_error_message(self):
        orch = FakeOrchestrator(RouterAction.NO_CREDIT, "You are out of credits.")
        engine, orch, events, view = make_engine(orch)
        assert await engine.send_message("make me a video") is None
        await engine.wait_idle()
        assert orch.submitted == []
        last = engine.messages[-1]
        assert (last.is_user, last.kind, last.content) == (False, MessageKind.ERROR, "You are out of credits.")
        await engine.close()

    @pytest.mark.asyncio
    async def test_no_action_answers_locally(self):
        orch = FakeOrchestrator(RouterAction.NO_ACTION, "Hi! What should I make?")
        engine, orch, events, view = make_engine(orch)
        await engine.send_message("hello")
        await engine.wait_idle()
        assert orch.submitted == []
        assert engine.messages[-1].kind is MessageKind.ANSWER
        assert engine.messages[-1].content == "Hi! What should I make?"
        await engine.close()

    @pytest.mark.asyncio
    async def test_order_plan(self):
        orch = FakeOrchestrator(RouterAction.ORDER_PLAN)
        orch.credits = 15
        engine, orch, events, view = make_engine(orch)
        await engine.send_message("buy more credits")
        await engine.wait_idle()
        last = engine.messages[-1]
        assert last.kind is MessageKind.TRANSACTION
        assert last.transaction_hash == "0xorder"
        assert last.content == "Bought 10 credits."
        assert engine.credits == 15
        await engine.close()

    @pytest.mark.asyncio
    async def test_order_plan_failure(self):
        orch = FakeOrchestrator(RouterAction.ORDER_PLAN)
        orch.order = OrderResult(success=False, message="Failed to order credits for plan")
        engine, orch, events, view = make_engine(orch)
        await engine.send_message("buy more credits")
        await engine.wait_idle()
        assert engine.messages[-1].kind is MessageKind.ERROR
        await engine.close()

    @pytest.mark.asyncio
    async def test_router_can_be_disabled(self):
        orch = FakeOrchestrator(RouterAction.NO_CREDIT)
        engine, orch, events, view = make_engine(orch, use_router=False)
        assert await engine.send_message("hello") == "task-1"
        assert orch.routed == []
        await engine.close()


class TestEventPath:
    @pytest.mark.asyncio
    async def test_video_scenario(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("make me a video")
        events.push("task-1", {"type": "reasoning", "content": "I will split the task."})
        events.push("task-1", {"type": "reasoning", "content": "I will split the task."})
        events.push("task-1", {"type": "final-answer", "content": "Here is your video."})
        await engine.wait_idle()
        assert [(m.is_user, m.kind) for m in engine.messages] == [
            (True, MessageKind.ANSWER),
            (False, MessageKind.REASONING),
            (False, MessageKind.FINAL_ANSWER),
        ]
        assert [m.id for m in view.completed] == [1, 2, 3]
        # word-by-word for agent messages
        assert ((engine.active_id, 2), "I ") in view.reveals
        await engine.close()

    @pytest.mark.asyncio
    async def test_supersession_reaches_view(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("pay the agent")
        await engine.wait_idle()
        events.push("task-1", {"type": "transaction", "content": "Paying the song agent."})
        await engine.wait_idle()
        events.push("task-1", {"type": "transaction", "content": "Paying the song agent.", "txHash": "0xpaid"})
        await engine.wait_idle()
        transactions = [m for m in engine.messages if m.kind is MessageKind.TRANSACTION]
        assert [t.transaction_hash for t in transactions] == ["0xpaid"]
        old, new = view.superseded[0]
        assert old.transaction_hash is None and new.transaction_hash == "0xpaid"
        assert view.completed[-1].transaction_hash == "0xpaid"
        await engine.close()

    @pytest.mark.asyncio
    async def test_events_route_by_task_not_active_conversation(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("first request")
        await engine.wait_idle()
        first_id = engine.active_id
        engine.start_new()
        await engine.send_message("second request")
        await engine.wait_idle()
        second_id = engine.active_id
        visible = engine.messages
        revealed = len(view.reveals)

        events.push("task-1", {"type": "reasoning", "content": "Working on the first one."})
        events.push("task-1", {"type": "answer", "content": "Song ready."})
        await engine.wait_idle()

        background = engine.registry.messages(first_id)
        assert [m.content for m in background] == ["first request", "Working on the first one.", "Song ready."]
        assert engine.messages is visible
        assert [m.content for m in engine.messages] == ["second request"]
        assert all(key[0] != first_id for key, _ in view.reveals[revealed:])
        assert engine.active_id == second_id
        await engine.close()

    @pytest.mark.asyncio
    async def test_switching_back_restores_instantly(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("first request")
        await engine.wait_idle()
        first_id = engine.active_id
        engine.start_new()
        events.push("task-1", {"type": "answer", "content": "Finished while you were away."})
        await engine.wait_idle()
        revealed = len(view.reveals)

        engine.set_active(first_id)
        assert view.resets[-1] == (first_id, ["first request", "Finished while you were away."])
        assert engine.registry.active.is_restored_from_history
        assert engine.scheduler.idle
        await engine.wait_idle()
        assert len(view.reveals) == revealed

        # live events in a restored conversation still type out
        events.push("task-1", {"type": "answer", "content": "One more thing."})
        await engine.wait_idle()
        assert view.reveals[-1] == ((first_id, 3), "One more thing.")
        assert len(view.reveals) > revealed + 1
        await engine.close()

    @pytest.mark.asyncio
    async def test_sending_in_restored_conversation_marks_it_live(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("first request")
        await engine.wait_idle()
        first_id = engine.active_id
        engine.start_new()
        engine.set_active(first_id)
        assert engine.registry.active.is_restored_from_history
        await engine.send_message("follow up")
        assert not engine.registry.active.is_restored_from_history
        assert engine.registry.active.title == "first request"
        await engine.close()

    @pytest.mark.asyncio
    async def test_scripted_stream(self):
        engine, orch, events, view = make_engine()
        events.script("task-1", [
            ScriptedStep(0, {"type": "reasoning", "content": "Planning the video."}),
            ScriptedStep(0, {"type": "nvm-transaction-agent", "content": "Credits purchased.",
                             "txHash": "0xagent", "credits": 1}),
            ScriptedStep(0, {"type": "final-answer", "content": "Done."}),
        ])
        await engine.send_message("make me a video")
        while events.open_subscriptions:
            await asyncio.sleep(0.01)
        await engine.wait_idle()
        assert [m.kind for m in engine.messages] == [
            MessageKind.ANSWER,
            MessageKind.REASONING,
            MessageKind.AGENT_TRANSACTION,
            MessageKind.FINAL_ANSWER,
        ]
        await engine.close()


class TestBurnLookup:
    @pytest.mark.asyncio
    async def test_burn_appends_user_transaction_once(self):
        orch = FakeOrchestrator(from_block=100)
        engine, orch, events, view = make_engine(orch)
        await engine.send_message("make me a video")
        orch.burn = BurnTransaction(txHash="0xburn", credits=2, planDid="did:nv:1")
        orch.credits = 3
        events.push("task-1", {"type": "final-answer", "content": "Here is your video."})
        events.push("task-1", {"type": "final-answer", "content": "Here is your video."})
        await engine.wait_idle()

        burns = [m for m in engine.messages if m.kind is MessageKind.USER_TRANSACTION]
        assert len(burns) == 1
        assert burns[0].transaction_hash == "0xburn"
        assert burns[0].content == "2 credits burned for this request."
        assert burns[0].plan_id == "did:nv:1"
        assert orch.burn_calls >= 2
        assert engine.credits == 3
        final = next(m for m in engine.messages if m.kind is MessageKind.FINAL_ANSWER)
        assert engine.scheduler.state(final) is PresentationState.DONE
        await engine.close()

    @pytest.mark.asyncio
    async def test_no_burn_found(self):
        orch = FakeOrchestrator(from_block=100)
        engine, orch, events, view = make_engine(orch, burn_lookup_attempts=3)
        await engine.send_message("make me a video")
        await engine.wait_idle()
        assert orch.burn_calls == 3
        assert all(m.kind is not MessageKind.USER_TRANSACTION for m in engine.messages)
        await engine.close()

    @pytest.mark.asyncio
    async def test_no_block_means_no_lookup(self):
        engine, orch, events, view = make_engine()
        await engine.send_message("make me a video")
        events.push("task-1", {"type": "final-answer", "content": "Done."})
        await engine.wait_idle()
        assert orch.burn_calls == 0
        await engine.close()

    @pytest.mark.asyncio
    async def test_background_final_answer_triggers_lookup(self):
        orch = FakeOrchestrator(from_block=100)
        engine, orch, events, view = make_engine(orch)
        await engine.send_message("make me a video")
        await engine.wait_idle()
        first_id = engine.active_id
        engine.start_new()
        orch.burn = BurnTransaction(txHash="0xburn", credits=1)
        events.push("task-1", {"type": "final-answer", "content": "Done."})
        await engine.wait_idle()
        burns = [m for m in engine.registry.messages(first_id) if m.kind is MessageKind.USER_TRANSACTION]
        assert [b.content for b in burns] == ["1 credit burned for this request."]
        assert engine.messages == []
        await engine.close()

    @pytest.mark.asyncio
    async def test_switch_during_final_reveal_still_looks_up_burn(self):
        orch = FakeOrchestrator(from_block=100)
        engine, orch, events, view = make_engine(orch, typing_interval_s=0.05)
        await engine.send_message("make me a video")
        await engine.wait_idle()
        calls_before = orch.burn_calls
        first_id = engine.active_id
        orch.burn = BurnTransaction(txHash="0xburn", credits=2)
        events.push("task-1", {"type": "final-answer", "content": "Here is your video, rendered in full detail."})
        while engine.scheduler.revealing is None:
            await asyncio.sleep(0.005)
        assert engine.scheduler.revealing.kind is MessageKind.FINAL_ANSWER
        engine.start_new()
        await engine.wait_idle()

        burns = [m for m in engine.registry.messages(first_id) if m.kind is MessageKind.USER_TRANSACTION]
        assert [b.transaction_hash for b in burns] == ["0xburn"]
        assert orch.burn_calls > calls_before
        assert all(m.kind is not MessageKind.FINAL_ANSWER for m in view.completed)
        await engine.close()
