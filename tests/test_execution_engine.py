"""
Execution Engine Test Suite
Dispatch, rate limiting, history bounds and failure handling against a fake controller.
"""
import asyncio
import time

import pytest

from common.actions import (
    Click,
    DoubleClick,
    Drag,
    KeyPress,
    MoveMouse,
    RightClick,
    Scroll,
    TypeText,
    UnsupportedAction,
)
from execution.execution_engine import ExecutionEngine
from execution.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------
def test_rate_limiter_ceiling_and_reset():
    clock = FakeClock()
    limiter = RateLimiter(max_per_minute=20, max_per_hour=None, clock=clock)

    assert all(limiter.try_acquire() for _ in range(20))
    assert limiter.try_acquire() is False
    assert limiter.minute.count == 20
    assert limiter.remaining() == 0

    clock.advance(60)
    assert limiter.try_acquire() is False  # exactly 60s is still the same window

    clock.advance(0.5)
    assert limiter.try_acquire() is True
    assert limiter.minute.count == 1


def test_rate_limiter_hourly_ceiling():
    clock = FakeClock()
    limiter = RateLimiter(max_per_minute=5, max_per_hour=7, clock=clock)

    assert sum(limiter.try_acquire() for _ in range(10)) == 5
    clock.advance(61)
    assert sum(limiter.try_acquire() for _ in range(10)) == 2
    assert limiter.hour.count == 7


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("action, expected_calls", [
    (Click(x=10, y=20), [("click", (10, 20, "left"))]),
    (RightClick(x=10, y=20), [("click", (10, 20, "right"))]),
    (DoubleClick(x=5, y=6), [("double_click", (5, 6))]),
    (MoveMouse(x=7, y=8), [("move_to", (7, 8))]),
    (TypeText(text="Hello"), [("type_text", ("Hello",))]),
    (Scroll(direction="up", amount=3), [("scroll", ("up", 3))]),
    (Drag(from_x=1, from_y=2, to_x=3, to_y=4), [
        ("move_to", (1, 2)), ("mouse_down", ("left",)), ("move_to", (3, 4)), ("mouse_up", ("left",)),
    ]),
])
def test_each_kind_maps_to_its_primitive(fake_controller, action, expected_calls):
    engine = ExecutionEngine(fake_controller)
    result = run(engine.execute_action(action))
    assert result.status == "success"
    assert result.action_type == action.kind
    assert fake_controller.calls == expected_calls


def test_key_press_order(fake_controller):
    engine = ExecutionEngine(fake_controller)
    result = run(engine.execute_action(KeyPress(key="delete", modifiers=("ctrl", "alt"))))
    assert result.success
    assert fake_controller.calls == [
        ("key_down", ("ctrl",)),
        ("key_down", ("alt",)),
        ("press_key", ("delete",)),
        ("key_up", ("alt",)),
        ("key_up", ("ctrl",)),
    ]


def test_modifiers_released_when_main_key_fails(fake_controller):
    fake_controller.fail_on["press_key"] = ValueError("Unknown key: bogus")
    engine = ExecutionEngine(fake_controller)
    result = run(engine.execute_action(KeyPress(key="bogus", modifiers=("shift",))))
    assert result.status == "error"
    assert "Unknown key" in result.error
    assert fake_controller.calls == [("key_down", ("shift",)), ("key_up", ("shift",))]


def test_disabled_engine_dispatches_nothing(fake_controller):
    engine = ExecutionEngine(fake_controller, enabled=False)
    result = run(engine.execute_action(Click(x=1, y=1)))
    assert result.status == "disabled"
    assert fake_controller.calls == []
    assert engine.get_action_history() == []


def test_rate_limited_before_dispatch(fake_controller):
    engine = ExecutionEngine(fake_controller, max_actions_per_minute=20, clock=FakeClock())

    async def burst():
        return [await engine.execute_action(Click(x=1, y=1)) for _ in range(21)]

    results = run(burst())
    assert [r.status for r in results[:20]] == ["success"] * 20
    assert results[20].status == "rate_limited"
    assert results[20].message == "Too many actions. Please wait."
    assert len(fake_controller.calls) == 20
    assert engine.rate_limiter.minute.count == 20
    assert len(engine.get_action_history(limit=None)) == 20


def test_unknown_kind_is_an_error(fake_controller):
    engine = ExecutionEngine(fake_controller)
    result = run(engine.execute_action(UnsupportedAction(kind_name="teleport")))
    assert result.status == "error"
    assert result.error == "Unknown action type: teleport"
    assert len(engine.get_action_history()) == 1


def test_primitive_failure_is_recorded(fake_controller):
    fake_controller.fail_on["click"] = RuntimeError("display unavailable")
    engine = ExecutionEngine(fake_controller)
    result = run(engine.execute_action(Click(x=1, y=1)))
    assert result.status == "error"
    assert result.error == "display unavailable"
    [entry] = engine.get_action_history()
    assert entry.result.status == "error"


def test_slow_primitive_times_out(fake_controller):
    fake_controller.type_text = lambda text: time.sleep(0.3)
    engine = ExecutionEngine(fake_controller, action_timeout=0.05)
    result = run(engine.execute_action(TypeText(text="slow")))
    assert result.status == "error"
    assert "timed out" in result.error


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------
def test_history_is_bounded_fifo(fake_controller):
    engine = ExecutionEngine(fake_controller, max_actions_per_minute=1000, max_actions_per_hour=None)

    async def many():
        for i in range(150):
            await engine.execute_action(MoveMouse(x=i, y=i))

    run(many())
    history = engine.get_action_history(limit=None)
    assert len(history) == 100
    assert history[0].action == MoveMouse(x=50, y=50)
    assert history[-1].action == MoveMouse(x=149, y=149)


def test_history_limit_and_clear(fake_controller):
    engine = ExecutionEngine(fake_controller)

    async def some():
        for i in range(5):
            await engine.execute_action(Click(x=i, y=i))

    run(some())
    assert [e.action.x for e in engine.get_action_history(limit=3)] == [2, 3, 4]
    assert len(engine.get_action_history()) == 5
    assert engine.get_action_history(limit=0) == []

    entry = engine.get_action_history(limit=1)[0].to_dict()
    assert entry["action"] == {"type": "click", "x": 4, "y": 4}
    assert entry["status"] == "success"

    engine.clear_history()
    assert engine.get_action_history() == []


def test_recent_activity_counts_window(fake_controller):
    clock = FakeClock()
    engine = ExecutionEngine(fake_controller, clock=clock)

    async def spread():
        for _ in range(3):
            await engine.execute_action(Click(x=1, y=1))
            clock.advance(3)

    run(spread())
    activity = engine.recent_activity(window=5.0)
    assert activity.time_window == 5.0
    assert activity.recent_action_count == 1


def test_screen_queries(fake_controller):
    engine = ExecutionEngine(fake_controller)
    assert run(engine.get_screen_dimensions()) == {"width": 1920, "height": 1080}
    assert run(engine.get_mouse_position()) == {"x": 10, "y": 20}
