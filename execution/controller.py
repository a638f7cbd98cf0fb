"""
Controller - Low-Level Desktop Primitives
Thin adapter over pyautogui: pointer, keyboard, scroll and screen capture.

Must only be called through the Execution Engine, which owns rate limiting and
history. The controller itself holds no policy.
"""
import logging
from typing import Tuple

from common.keys import map_key

logger = logging.getLogger(__name__)


class DesktopController:
    """
    OS automation capability backed by pyautogui.

    pyautogui is imported on construction: on a machine without a display the
    import itself fails, and nothing else in the agent needs it.
    """

    def __init__(self, pause: float = 0.1, failsafe: bool = True):
        """
        Initialize the controller.

        Args:
            pause: Delay pyautogui inserts after every call (seconds)
            failsafe: Abort when the pointer is slammed into a screen corner
        """
        try:
            import pyautogui
        except ImportError as e:
            raise ImportError("pyautogui is not installed. Run: pip install pyautogui") from e

        self._gui = pyautogui
        self._gui.PAUSE = pause
        self._gui.FAILSAFE = failsafe
        logger.info(f"DesktopController initialized (pause={pause}s, failsafe={failsafe})")

    # ── Pointer ──────────────────────────────────────────────────────
    def move_to(self, x: int, y: int) -> None:
        self._gui.moveTo(x, y)

    def click(self, x: int, y: int, button: str = "left") -> None:
        self._gui.moveTo(x, y)
        self._gui.click(x=x, y=y, button=button)

    def double_click(self, x: int, y: int) -> None:
        self._gui.moveTo(x, y)
        self._gui.doubleClick(x=x, y=y)

    def mouse_down(self, button: str = "left") -> None:
        self._gui.mouseDown(button=button)

    def mouse_up(self, button: str = "left") -> None:
        self._gui.mouseUp(button=button)

    def scroll(self, direction: str, amount: int) -> None:
        """Scroll by `amount` clicks. Vertical positive is up, horizontal positive is right."""
        if direction == "up":
            self._gui.scroll(amount)
        elif direction == "down":
            self._gui.scroll(-amount)
        elif direction == "left":
            self._gui.hscroll(-amount)
        elif direction == "right":
            self._gui.hscroll(amount)
        else:
            raise ValueError(f"Unknown scroll direction: {direction}")

    # ── Keyboard ─────────────────────────────────────────────────────
    def type_text(self, text: str) -> None:
        self._gui.write(text)

    def key_down(self, key: str) -> None:
        self._gui.keyDown(self._checked_key(key))

    def key_up(self, key: str) -> None:
        self._gui.keyUp(self._checked_key(key))

    def press_key(self, key: str) -> None:
        self._gui.press(self._checked_key(key))

    def _checked_key(self, key: str) -> str:
        mapped = map_key(key)
        if not self._gui.isValidKey(mapped):
            raise ValueError(f"Unknown key: {key}")
        return mapped

    # ── Screen ───────────────────────────────────────────────────────
    def screen_size(self) -> Tuple[int, int]:
        size = self._gui.size()
        return int(size[0]), int(size[1])

    def mouse_position(self) -> Tuple[int, int]:
        position = self._gui.position()
        return int(position[0]), int(position[1])

    def screenshot(self):
        """Capture the full screen as a PIL Image."""
        return self._gui.screenshot()
