"""
Shared pytest configuration and fixtures for the Desktop Control Agent test suite.
"""
import sys
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
from PIL import Image

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so that imports like
# ``from logic.xxx import ...`` work regardless of how pytest is invoked.
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.config_validator import AgentConfig  # noqa: E402


# ---------------------------------------------------------------------------
# Custom markers
# ---------------------------------------------------------------------------
def pytest_configure(config):
    """Register custom markers to avoid warnings."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks integration tests that need external services")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
class FakeController:
    """
    Records every primitive call instead of touching the desktop.

    ``calls`` is a list of (primitive_name, args) tuples in call order.
    """

    def __init__(self, width: int = 1920, height: int = 1080):
        self.width = width
        self.height = height
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}

    def _record(self, name: str, *args):
        if name in self.fail_on:
            raise self.fail_on[name]
        self.calls.append((name, args))

    def move_to(self, x, y):
        self._record("move_to", x, y)

    def click(self, x, y, button="left"):
        self._record("click", x, y, button)

    def double_click(self, x, y):
        self._record("double_click", x, y)

    def mouse_down(self, button="left"):
        self._record("mouse_down", button)

    def mouse_up(self, button="left"):
        self._record("mouse_up", button)

    def scroll(self, direction, amount):
        self._record("scroll", direction, amount)

    def type_text(self, text):
        self._record("type_text", text)

    def key_down(self, key):
        self._record("key_down", key)

    def key_up(self, key):
        self._record("key_up", key)

    def press_key(self, key):
        self._record("press_key", key)

    def screen_size(self):
        return (self.width, self.height)

    def mouse_position(self):
        return (10, 20)

    def screenshot(self):
        if "screenshot" in self.fail_on:
            raise self.fail_on["screenshot"]
        return Image.new("RGB", (self.width, self.height), color=(30, 30, 30))

    @property
    def primitive_names(self) -> List[str]:
        return [name for name, _ in self.calls]


class MessageSink:
    """send_to_client stand-in that keeps every outbound message."""

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    def __call__(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m.get("type") == message_type]

    @property
    def statuses(self) -> List[str]:
        return [m["status"] for m in self.of_type("computer_control_status")]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def fake_controller():
    return FakeController()


@pytest.fixture
def message_sink():
    return MessageSink()


@pytest.fixture
def mock_vision_client():
    """
    Return a MagicMock that stands in for ``perception.vision_client.VisionClient``.

    ``chat()`` returns an empty plan by default; tests override ``return_value``
    or ``side_effect`` as needed.
    """
    client = MagicMock()
    client.chat.return_value = '{"reasoning": "nothing to do", "confidence": 0.9, "actions": []}'
    client.health_check.return_value = True
    client.model = "mock-vision-model"
    client.base_url = "http://localhost:11434"
    return client


@pytest.fixture
def sample_config():
    """Validated default config with fast timings for tests."""
    config = AgentConfig().model_dump()
    config["execution"]["action_delay"] = 0.0
    config["safety"]["confirmation_timeout"] = 0.2
    return config
