"""
Action Schema Test Suite
Wire-format parsing of planner proposals.
"""
import pytest

from common.actions import (
    ActionPlan,
    Click,
    Drag,
    ExecutionResult,
    KeyPress,
    Scroll,
    TypeText,
    UnsupportedAction,
    action_from_dict,
)


def test_pointer_action_rounds_coordinates():
    assert action_from_dict({"type": "click", "x": 99.6, "y": 200, "description": "OK"}) == Click(
        x=100, y=200, description="OK"
    )


def test_drag_uses_camel_case_keys():
    drag = action_from_dict({"type": "drag", "fromX": 1, "fromY": 2, "toX": 3, "toY": 4})
    assert drag == Drag(from_x=1, from_y=2, to_x=3, to_y=4)
    assert drag.to_dict() == {"type": "drag", "fromX": 1, "fromY": 2, "toX": 3, "toY": 4}


def test_defaults_for_optional_fields():
    assert action_from_dict({"type": "scroll"}) == Scroll(direction="down", amount=3)
    assert action_from_dict({"type": "key_press", "key": "Tab"}) == KeyPress(key="Tab", modifiers=())


@pytest.mark.parametrize("data, message", [
    ({"x": 1, "y": 2}, "missing type"),
    ({"type": "click", "x": 1}, "'y' must be a number"),
    ({"type": "click", "x": True, "y": 1}, "'x' must be a number"),
    ({"type": "type"}, "missing text"),
    ({"type": "key_press", "modifiers": ["ctrl"]}, "missing key"),
    ({"type": "key_press", "key": "a", "modifiers": "ctrl"}, "must be a list"),
    ({"type": "scroll", "direction": "diagonal"}, "scroll direction"),
    ({"type": "drag", "fromX": 1, "fromY": 2, "toX": 3}, "'toY' must be a number"),
    ("click", "must be an object"),
])
def test_malformed_actions_raise(data, message):
    with pytest.raises(ValueError, match=message):
        action_from_dict(data)


def test_unknown_type_becomes_unsupported_action():
    action = action_from_dict({"type": "launch_app", "name": "chrome", "description": "Open it"})
    assert isinstance(action, UnsupportedAction)
    assert action.kind == "launch_app"
    assert action.to_dict() == {"type": "launch_app", "name": "chrome", "description": "Open it"}


def test_actions_are_immutable():
    action = TypeText(text="hi")
    with pytest.raises(AttributeError):
        action.text = "bye"


def test_plan_and_result_serialisation():
    plan = ActionPlan(success=True, reasoning="r", actions=(Click(x=1, y=2),), confidence=0.8)
    assert plan.to_dict() == {"reasoning": "r", "actions": [{"type": "click", "x": 1, "y": 2}], "confidence": 0.8}

    result = ExecutionResult(status="rate_limited", action_type="click", message="Too many actions. Please wait.", timestamp=5.0)
    assert not result.success
    assert result.to_dict() == {
        "status": "rate_limited",
        "action": "click",
        "timestamp": 5.0,
        "message": "Too many actions. Please wait.",
    }
