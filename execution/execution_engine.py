"""
Execution Engine
Applies validated primitive actions to the desktop.

Responsible for:
- The global enabled switch
- Fixed-window rate limiting (checked before dispatch)
- Dispatching each action kind to exactly one controller primitive
- The bounded history of dispatched attempts (FIFO, oldest evicted first)

Must only be called after Safety Gate approval.
"""
import asyncio
import logging
import time
from collections import deque
from typing import Any, Callable, Dict, List, Optional

from common import constants
from common.actions import (
    Action,
    ActionHistoryEntry,
    Click,
    DoubleClick,
    Drag,
    ExecutionResult,
    KeyPress,
    MoveMouse,
    RightClick,
    Scroll,
    TypeText,
)
from common.validation import ActivityContext
from execution.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """
    Rate-limited executor with an audit history.

    The controller primitives are blocking; they run in a worker thread so the
    event loop stays free to receive confirmation responses.
    """

    def __init__(
        self,
        controller,
        enabled: bool = True,
        max_actions_per_minute: int = constants.MAX_ACTIONS_PER_MINUTE,
        max_actions_per_hour: Optional[int] = constants.MAX_ACTIONS_PER_HOUR,
        history_size: int = constants.HISTORY_CAPACITY,
        action_timeout: Optional[float] = constants.ACTION_TIMEOUT_SECS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the engine.

        Args:
            controller: DesktopController (or any object with the same primitives)
            enabled: Global switch; when False nothing is dispatched
            max_actions_per_minute: Per-minute ceiling
            max_actions_per_hour: Per-hour ceiling (None disables it)
            history_size: History capacity
            action_timeout: Seconds to wait for one primitive (None waits forever)
            clock: Wall clock used for timestamps and windows
        """
        self.controller = controller
        self.enabled = enabled
        self.action_timeout = action_timeout
        self._clock = clock
        self.rate_limiter = RateLimiter(max_actions_per_minute, max_actions_per_hour, clock=clock)
        self._history: deque = deque(maxlen=history_size)

        self._handlers: Dict[type, Callable[[Any], Dict[str, Any]]] = {
            Click: self._execute_click,
            DoubleClick: self._execute_double_click,
            RightClick: self._execute_right_click,
            TypeText: self._execute_type,
            KeyPress: self._execute_key_press,
            MoveMouse: self._execute_mouse_move,
            Scroll: self._execute_scroll,
            Drag: self._execute_drag,
        }
        logger.info(
            f"ExecutionEngine initialized (enabled={enabled}, "
            f"max/min={max_actions_per_minute}, history={history_size})"
        )

    async def execute_action(self, action: Action) -> ExecutionResult:
        """
        Execute one validated action.

        Args:
            action: Action variant

        Returns:
            ExecutionResult with status success | rate_limited | disabled | error
        """
        if not self.enabled:
            return ExecutionResult(status="disabled", action_type=action.kind, message="Computer control is disabled")

        if not self.rate_limiter.try_acquire():
            return ExecutionResult(status="rate_limited", action_type=action.kind, message="Too many actions. Please wait.")

        try:
            handler = self._handlers.get(type(action))
            if handler is None:
                raise ValueError(f"Unknown action type: {action.kind}")

            call = asyncio.to_thread(handler, action)
            if self.action_timeout:
                details = await asyncio.wait_for(call, timeout=self.action_timeout)
            else:
                details = await call

            result = ExecutionResult(status="success", action_type=action.kind, result=details, timestamp=self._clock())
            logger.info(f"[OK] Executed {action.kind}: {details}")
        except asyncio.TimeoutError:
            logger.error(f"Action {action.kind} timed out after {self.action_timeout}s")
            result = ExecutionResult(
                status="error",
                action_type=action.kind,
                error=f"Action timed out after {self.action_timeout}s",
                timestamp=self._clock(),
            )
        except Exception as e:
            logger.error(f"Action execution failed: {e}", exc_info=True)
            result = ExecutionResult(status="error", action_type=action.kind, error=str(e), timestamp=self._clock())

        self._log_action(action, result)
        return result

    # ── Primitives ───────────────────────────────────────────────────
    def _execute_click(self, action: Click) -> Dict[str, Any]:
        self.controller.click(action.x, action.y, button="left")
        return {"x": action.x, "y": action.y, "button": "left"}

    def _execute_double_click(self, action: DoubleClick) -> Dict[str, Any]:
        self.controller.double_click(action.x, action.y)
        return {"x": action.x, "y": action.y, "clicks": 2}

    def _execute_right_click(self, action: RightClick) -> Dict[str, Any]:
        self.controller.click(action.x, action.y, button="right")
        return {"x": action.x, "y": action.y, "button": "right"}

    def _execute_type(self, action: TypeText) -> Dict[str, Any]:
        self.controller.type_text(action.text)
        return {"text": action.text, "length": len(action.text)}

    def _execute_key_press(self, action: KeyPress) -> Dict[str, Any]:
        # Modifiers go down in order and come up in reverse, even if the main key fails
        pressed: List[str] = []
        try:
            for modifier in action.modifiers:
                self.controller.key_down(modifier)
                pressed.append(modifier)
            self.controller.press_key(action.key)
        finally:
            for modifier in reversed(pressed):
                self.controller.key_up(modifier)
        return {"key": action.key, "modifiers": list(action.modifiers)}

    def _execute_mouse_move(self, action: MoveMouse) -> Dict[str, Any]:
        self.controller.move_to(action.x, action.y)
        return {"x": action.x, "y": action.y}

    def _execute_scroll(self, action: Scroll) -> Dict[str, Any]:
        self.controller.scroll(action.direction, action.amount)
        return {"direction": action.direction, "amount": action.amount}

    def _execute_drag(self, action: Drag) -> Dict[str, Any]:
        self.controller.move_to(action.from_x, action.from_y)
        self.controller.mouse_down()
        try:
            self.controller.move_to(action.to_x, action.to_y)
        finally:
            self.controller.mouse_up()
        return {"from": {"x": action.from_x, "y": action.from_y}, "to": {"x": action.to_x, "y": action.to_y}}

    # ── History ──────────────────────────────────────────────────────
    def _log_action(self, action: Action, result: ExecutionResult) -> None:
        self._history.append(ActionHistoryEntry(action=action, result=result, timestamp=result.timestamp))

    def get_action_history(self, limit: Optional[int] = 10) -> List[ActionHistoryEntry]:
        """Return the last `limit` entries, oldest first (all entries when limit is None)."""
        entries = list(self._history)
        if limit is None:
            return entries
        if limit <= 0:
            return []
        return entries[-limit:]

    def clear_history(self) -> None:
        self._history.clear()
        logger.info("Action history cleared")

    def recent_activity(self, window: float = constants.BURST_WINDOW_SECS) -> ActivityContext:
        """Count actions executed within the trailing `window` seconds."""
        cutoff = self._clock() - window
        count = sum(1 for entry in self._history if entry.timestamp >= cutoff)
        return ActivityContext(recent_action_count=count, time_window=window)

    # ── Screen queries ───────────────────────────────────────────────
    async def get_screen_dimensions(self) -> Dict[str, int]:
        width, height = await asyncio.to_thread(self.controller.screen_size)
        return {"width": width, "height": height}

    async def get_mouse_position(self) -> Dict[str, int]:
        x, y = await asyncio.to_thread(self.controller.mouse_position)
        return {"x": x, "y": y}
