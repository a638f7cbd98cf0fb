"""
Typed Action Schema
Immutable action representation passed between the Vision Planner, the Safety Gate
and the Execution Engine.

Every primitive the agent can apply to the desktop is its own frozen dataclass.
The set is closed: anything a planner proposes outside of it is carried as an
UnsupportedAction so that validation can block it explicitly instead of the
proposal silently disappearing.
"""
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


POINTER_ACTION_TYPES = ("click", "double_click", "right_click", "move_mouse")
SCROLL_DIRECTIONS = ("up", "down", "left", "right")
DEFAULT_SCROLL_AMOUNT = 3


@dataclass(frozen=True)
class Action:
    """
    Base class for all actions.

    Attributes:
        description: Optional human-readable description (shown in prompts and history)
    """
    kind: ClassVar[str] = "action"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire format used by the planner and the client."""
        payload: Dict[str, Any] = {"type": self.kind}
        payload.update(self._fields())
        if self.description:
            payload["description"] = self.description
        return payload

    def _fields(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class _PointerAction(Action):
    x: int = 0
    y: int = 0
    description: Optional[str] = None

    def _fields(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Click(_PointerAction):
    kind: ClassVar[str] = "click"


@dataclass(frozen=True)
class DoubleClick(_PointerAction):
    kind: ClassVar[str] = "double_click"


@dataclass(frozen=True)
class RightClick(_PointerAction):
    kind: ClassVar[str] = "right_click"


@dataclass(frozen=True)
class MoveMouse(_PointerAction):
    kind: ClassVar[str] = "move_mouse"


@dataclass(frozen=True)
class TypeText(Action):
    kind: ClassVar[str] = "type"
    text: str = ""
    description: Optional[str] = None

    def _fields(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class KeyPress(Action):
    """Main key plus modifiers, pressed in order and released in reverse."""
    kind: ClassVar[str] = "key_press"
    key: str = "Enter"
    modifiers: Tuple[str, ...] = ()
    description: Optional[str] = None

    def _fields(self) -> Dict[str, Any]:
        return {"key": self.key, "modifiers": list(self.modifiers)}


@dataclass(frozen=True)
class Scroll(Action):
    kind: ClassVar[str] = "scroll"
    direction: str = "down"
    amount: int = DEFAULT_SCROLL_AMOUNT
    description: Optional[str] = None

    def __post_init__(self):
        if self.direction not in SCROLL_DIRECTIONS:
            raise ValueError(f"scroll direction must be one of {SCROLL_DIRECTIONS}, got '{self.direction}'")

    def _fields(self) -> Dict[str, Any]:
        return {"direction": self.direction, "amount": self.amount}


@dataclass(frozen=True)
class Drag(Action):
    kind: ClassVar[str] = "drag"
    from_x: int = 0
    from_y: int = 0
    to_x: int = 0
    to_y: int = 0
    description: Optional[str] = None

    def _fields(self) -> Dict[str, Any]:
        return {"fromX": self.from_x, "fromY": self.from_y, "toX": self.to_x, "toY": self.to_y}


@dataclass(frozen=True)
class UnsupportedAction(Action):
    """A proposed action whose type is outside the supported set."""
    kind_name: str = ""
    payload: Tuple[Tuple[str, Any], ...] = ()
    description: Optional[str] = None

    @property
    def kind(self) -> str:  # type: ignore[override]
        return self.kind_name

    def _fields(self) -> Dict[str, Any]:
        return {k: v for k, v in self.payload if k not in ("type", "description")}


ActionType = Union[Click, DoubleClick, RightClick, MoveMouse, TypeText, KeyPress, Scroll, Drag, UnsupportedAction]

ACTION_CLASSES = {
    cls.kind: cls
    for cls in (Click, DoubleClick, RightClick, MoveMouse, TypeText, KeyPress, Scroll, Drag)
}


@dataclass(frozen=True)
class PlanReview:
    """Subject of a plan-level confirmation request."""
    description: str
    actions: Tuple[Action, ...] = ()
    kind: str = "action_plan"


def _coordinate(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    return int(round(value))


def action_from_dict(data: dict) -> Action:
    """
    Build an Action from its wire representation.

    Args:
        data: Dict such as {"type": "click", "x": 100, "y": 200, "description": "..."}

    Returns:
        Matching Action variant, or UnsupportedAction for unknown types

    Raises:
        ValueError: If the dict is malformed or a required field is missing
    """
    if not isinstance(data, dict):
        raise ValueError(f"Action must be an object, got {type(data).__name__}")

    action_type = data.get("type")
    if not action_type or not isinstance(action_type, str):
        raise ValueError("Action missing type field")

    description = data.get("description")
    if description is not None:
        description = str(description)

    if action_type in POINTER_ACTION_TYPES:
        return ACTION_CLASSES[action_type](
            x=_coordinate(data, "x"),
            y=_coordinate(data, "y"),
            description=description,
        )

    if action_type == "type":
        text = data.get("text")
        if not isinstance(text, str) or not text:
            raise ValueError("Type action missing text")
        return TypeText(text=text, description=description)

    if action_type == "key_press":
        key = data.get("key")
        if not isinstance(key, str) or not key:
            raise ValueError("Key press action missing key")
        modifiers = data.get("modifiers") or []
        if not isinstance(modifiers, (list, tuple)):
            raise ValueError("Key press modifiers must be a list")
        return KeyPress(key=key, modifiers=tuple(str(m) for m in modifiers), description=description)

    if action_type == "scroll":
        amount = data.get("amount", DEFAULT_SCROLL_AMOUNT)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError(f"Scroll amount must be a number, got {amount!r}")
        return Scroll(
            direction=str(data.get("direction", "down")).lower(),
            amount=int(amount),
            description=description,
        )

    if action_type == "drag":
        return Drag(
            from_x=_coordinate(data, "fromX"),
            from_y=_coordinate(data, "fromY"),
            to_x=_coordinate(data, "toX"),
            to_y=_coordinate(data, "toY"),
            description=description,
        )

    return UnsupportedAction(
        kind_name=action_type,
        payload=tuple(sorted((str(k), v) for k, v in data.items() if isinstance(v, (str, int, float, bool)))),
        description=description,
    )


@dataclass(frozen=True)
class ActionPlan:
    """
    Planner output for one command.

    Attributes:
        success: Whether the planner call itself succeeded
        reasoning: Free-text explanation from the planner
        actions: Ordered actions to execute
        confidence: Planner confidence in [0, 1]
        raw_response: Unparsed collaborator reply
        warnings: Malformed proposed actions (the plan is rejected when non-empty)
    """
    success: bool
    reasoning: str
    actions: Tuple[Action, ...] = ()
    confidence: float = 0.0
    raw_response: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reasoning": self.reasoning,
            "actions": [action.to_dict() for action in self.actions],
            "confidence": self.confidence,
        }


@dataclass
class ExecutionResult:
    """
    Result of a single Execution Engine call.

    status is one of: success | rate_limited | disabled | error
    """
    status: str
    action_type: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def success(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"status": self.status, "action": self.action_type, "timestamp": self.timestamp}
        if self.result is not None:
            payload["result"] = self.result
        if self.error is not None:
            payload["error"] = self.error
        if self.message is not None:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True)
class ActionHistoryEntry:
    action: Action
    result: ExecutionResult
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.to_dict(),
            "status": self.result.status,
            "timestamp": self.timestamp,
        }
