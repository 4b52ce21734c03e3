"""Tests for progress scopes: lifecycle, dispatch and handler resolution."""

from __future__ import annotations

import asyncio
import logging
import pickle
import threading

import pytest

from progscope.channel import ProgressChannel
from progscope.config import Settings
from progscope.context import current_scope
from progscope.errors import NoActiveScopeError, ScopeAlreadyActiveError
from progscope.handlers.base import BaseHandler
from progscope.handlers.recording import RecordingHandler
from progscope.registry import set_default_handlers
from progscope.scope import ProgressScope, enter_scope
from progscope.signaler import create_signaler


class BrokenHandler(BaseHandler):
    """Handler whose output stream is gone."""

    @property
    def name(self) -> str:
        return "broken"

    def render(self, event, state) -> None:
        raise BrokenPipeError("stdout closed")

    def close(self, state) -> None:
        raise BrokenPipeError("stdout closed")


class BareHandler:
    """Protocol-only handler with no error isolation of its own."""

    name = "bare"

    def __init__(self) -> None:
        self.finalized = False

    def start(self, state) -> None:
        pass

    def handle(self, event, state) -> None:
        raise RuntimeError("render failed")

    def finalize(self, state) -> None:
        self.finalized = True


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_ten_steps_reach_one_hundred_percent(self, recorder: RecordingHandler):
        with enter_scope([recorder]) as scope:
            p = create_signaler(steps=10)
            for _ in range(10):
                p()

        assert scope.state.completed == 10
        assert scope.state.total == 10
        assert scope.state.percent == 100.0
        assert scope.state.finished
        assert recorder.finalized
        assert not recorder.has_pending
        assert recorder.final.describe() == "10/10 (100%)"

    @pytest.mark.parametrize("n", [1, 7, 250])
    def test_throttled_handler_still_ends_exact(self, n: int):
        slow = RecordingHandler(min_interval=3600)
        with enter_scope([slow]):
            p = create_signaler(steps=n)
            for _ in range(n):
                p()

        # Only the first update got through the bucket; the rest were coalesced
        assert slow.renders <= 2
        assert slow.states[-1].completed == n
        assert slow.final.percent == 100.0

    def test_error_exit_finalizes_handlers(self, recorder: RecordingHandler):
        with pytest.raises(RuntimeError, match="boom"):
            with enter_scope([recorder]):
                p = create_signaler(steps=10)
                for _ in range(3):
                    p()
                raise RuntimeError("boom")

        assert recorder.finalized
        assert recorder.final.completed == 3
        assert recorder.final.percent == pytest.approx(30.0)
        assert current_scope() is None

    def test_keyboard_interrupt_finalizes_handlers(self, recorder: RecordingHandler):
        with pytest.raises(KeyboardInterrupt):
            with enter_scope([recorder]):
                create_signaler(steps=5)()
                raise KeyboardInterrupt

        assert recorder.finalized

    def test_nested_scope_is_rejected(self, recorder: RecordingHandler):
        with enter_scope([recorder]) as outer:
            with pytest.raises(ScopeAlreadyActiveError):
                with enter_scope([]):
                    pass
            assert current_scope() is outer
            create_signaler(steps=1)()
        assert outer.state.completed == 1

    def test_scope_cannot_be_reentered(self, recorder: RecordingHandler):
        scope = enter_scope([recorder])
        with scope:
            pass
        with pytest.raises(ScopeAlreadyActiveError):
            with scope:
                pass

    def test_later_scope_can_be_entered(self, recorder: RecordingHandler):
        with enter_scope([recorder]):
            create_signaler(steps=2)()
        with enter_scope([recorder]) as second:
            p = create_signaler(steps=2)
            p()
            p()
        assert second.state.percent == 100.0
        assert recorder.final.completed == 2

    def test_signal_after_exit_is_ignored(self, recorder: RecordingHandler):
        with enter_scope([recorder]) as scope:
            p = create_signaler(steps=3)
            p()
        p()
        assert scope.events_received == 1
        assert scope.state.completed == 1

    def test_create_signaler_on_closed_scope_fails(self, recorder: RecordingHandler):
        with enter_scope([recorder]) as scope:
            pass
        with pytest.raises(NoActiveScopeError):
            scope.create_signaler(3)

    def test_unbounded_signaler_has_unknown_total(self, recorder: RecordingHandler):
        with enter_scope([recorder]) as scope:
            p = create_signaler()
            for _ in range(4):
                p()
        assert scope.state.total is None
        assert scope.state.percent is None
        assert scope.state.describe() == "4/?"

    def test_message_reaches_state(self, recorder: RecordingHandler):
        with enter_scope([recorder]) as scope:
            p = create_signaler(steps=2)
            p("loading")
            p("parsing")
        assert scope.state.message == "parsing"
        assert [e.message for e in recorder.events] == ["loading", "parsing"]


# ---------------------------------------------------------------------------
# Aggregation policy
# ---------------------------------------------------------------------------


class TestAggregationPolicy:
    def test_second_signaler_does_not_move_first_only(self, recorder: RecordingHandler):
        with enter_scope([recorder], strategy="first_only") as scope:
            first = create_signaler(steps=10)
            second = create_signaler(steps=10)
            for _ in range(5):
                first()
            before = scope.state.percent
            for _ in range(10):
                second("ignored")
            assert scope.state.percent == before == 50.0
            assert scope.state.message is None
        assert scope.events_received == 15
        assert recorder.final.percent == 50.0

    def test_sum_all_adds_signalers(self, recorder: RecordingHandler):
        with enter_scope([recorder], strategy="sum_all") as scope:
            a = create_signaler(steps=10)
            b = create_signaler(steps=10)
            for _ in range(5):
                a()
            for _ in range(10):
                b()
        assert scope.state.completed == 15
        assert scope.state.total == 20
        assert scope.state.percent == 75.0

    def test_weighted_combines_fractions(self, recorder: RecordingHandler):
        with enter_scope([recorder], strategy="weighted") as scope:
            heavy = create_signaler(steps=4, weight=3.0)
            light = create_signaler(steps=2, weight=1.0)
            for _ in range(2):
                heavy()
            light()
        # 3 * 0.5 + 1 * 0.5 over 4
        assert scope.state.percent == pytest.approx(50.0)

    def test_sum_all_message_comes_from_latest_signaler(self, recorder: RecordingHandler):
        with enter_scope([recorder], strategy="sum_all") as scope:
            a = create_signaler(steps=2)
            b = create_signaler(steps=2)
            a("from a")
            b("from b")
        assert scope.state.message == "from b"
        assert [(s.completed, s.total) for s in scope.signalers] == [(1, 2), (1, 2)]

    def test_weighted_unbounded_signaler_completes_on_exit(self, recorder: RecordingHandler):
        with enter_scope([recorder], strategy="weighted") as scope:
            bounded = create_signaler(steps=2)
            open_ended = create_signaler()
            for _ in range(2):
                bounded()
            for _ in range(3):
                open_ended()
            assert scope.state.percent == pytest.approx(50.0)
        assert scope.state.percent == 100.0
        assert recorder.final.percent == 100.0
        assert recorder.final.finished

    def test_strategy_defaults_to_config(self, recorder: RecordingHandler):
        cfg = Settings(strategy="sum_all")
        with enter_scope([recorder], config=cfg) as scope:
            pass
        assert scope.strategy.kind.value == "sum_all"

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError, match="Unknown aggregation strategy"):
            enter_scope([], strategy="median")


# ---------------------------------------------------------------------------
# Handler resolution and isolation
# ---------------------------------------------------------------------------


class TestHandlers:
    def test_registry_defaults_used(self, recorder: RecordingHandler):
        set_default_handlers([recorder])
        with enter_scope() as scope:
            create_signaler(steps=1)()
        assert scope.handlers == [recorder]
        assert recorder.final.completed == 1

    def test_explicit_handlers_override_registry(self, recorder: RecordingHandler):
        other = RecordingHandler()
        set_default_handlers([other])
        with enter_scope([recorder]):
            create_signaler(steps=1)()
        assert recorder.final is not None
        assert other.final is None

    def test_registry_changes_do_not_affect_active_scope(self, recorder: RecordingHandler):
        set_default_handlers([recorder])
        with enter_scope() as scope:
            set_default_handlers([RecordingHandler()])
            create_signaler(steps=1)()
        assert scope.handlers == [recorder]

    def test_falls_back_to_configured_names(self, settings: Settings):
        with enter_scope(config=settings) as scope:
            create_signaler(steps=1)()
        assert [h.name for h in scope.handlers] == ["record"]

    def test_all_handlers_receive_every_event(self):
        a, b = RecordingHandler(), RecordingHandler()
        with enter_scope([a, b]):
            p = create_signaler(steps=3)
            for _ in range(3):
                p()
        assert len(a.events) == len(b.events) == 3

    def test_broken_handler_does_not_abort_work(self, recorder: RecordingHandler, caplog):
        broken = BrokenHandler()
        with caplog.at_level(logging.ERROR):
            with enter_scope([broken, recorder]) as scope:
                p = create_signaler(steps=3)
                for _ in range(3):
                    p()
        assert scope.state.completed == 3
        assert broken.failures == 4
        assert recorder.final.percent == 100.0
        assert "failed in render()" in caplog.text

    def test_protocol_handler_failure_is_logged(self, caplog):
        bare = BareHandler()
        with caplog.at_level(logging.ERROR):
            with enter_scope([bare]):
                create_signaler(steps=1)()
        assert bare.finalized
        assert "failed in handle()" in caplog.text


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------


class TestAsync:
    @pytest.mark.asyncio
    async def test_tasks_inherit_scope(self, recorder: RecordingHandler):
        async def worker(n: int) -> None:
            p = create_signaler(steps=n)
            for _ in range(n):
                await asyncio.sleep(0)
                p()

        async with enter_scope([recorder], strategy="sum_all") as scope:
            await asyncio.gather(worker(3), worker(2))
        assert scope.state.completed == 5
        assert scope.state.total == 5
        assert recorder.final.finished

    @pytest.mark.asyncio
    async def test_cancelled_task_finalizes(self, recorder: RecordingHandler):
        async def job() -> None:
            async with enter_scope([recorder]):
                p = create_signaler(steps=10)
                p()
                await asyncio.sleep(10)

        task = asyncio.create_task(job())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert recorder.finalized
        assert recorder.final.completed == 1

    @pytest.mark.asyncio
    async def test_channel_drained_off_event_loop(self, recorder: RecordingHandler, monkeypatch):
        close_threads: list[int] = []
        original_close = ProgressChannel.close

        def tracking_close(channel: ProgressChannel) -> None:
            close_threads.append(threading.get_ident())
            original_close(channel)

        monkeypatch.setattr(ProgressChannel, "close", tracking_close)
        async with enter_scope([recorder]) as scope:
            p = create_signaler(steps=2)
            # A pickled copy talks to the scope through the channel
            remote = pickle.loads(pickle.dumps(p))
            remote("a")
            remote("b")
        assert close_threads
        assert threading.get_ident() not in close_threads
        assert scope.events_received == 2
        assert recorder.final.completed == 2


def test_progress_scope_is_guard_type():
    assert isinstance(enter_scope([]), ProgressScope)
