"""
Console Client Test Suite
Line handling, confirmation replies and message formatting.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from common import messages
from interface.console_client import ConsoleClient
from interface.response_formatter import ResponseFormatter
from logic.orchestrator import CommandOutcome, ComputerControlOrchestrator


@pytest.fixture
def fake_orchestrator():
    orchestrator = MagicMock()
    orchestrator.handle_client_message = AsyncMock(return_value=True)
    orchestrator.process_command = AsyncMock(return_value=CommandOutcome(handled=True, success=True))
    orchestrator.describe_screen = AsyncMock(return_value="A terminal window.")
    orchestrator.find_element = AsyncMock(return_value={"x": 1, "y": 2, "confidence": 0.9, "found": True})
    orchestrator.get_history.return_value = []
    return orchestrator


@pytest.fixture
def output():
    return []


@pytest.fixture
def client(fake_orchestrator, output):
    return ConsoleClient(fake_orchestrator, input_func=lambda prompt: "", output=output.append)


def test_confirmation_request_is_remembered_and_answered(client, fake_orchestrator, output):
    client.send(messages.confirmation_request_message("confirm_1_abc", "key_press", "Press alt+F4", 30000))
    assert client.pending_confirmation_id == "confirm_1_abc"
    assert "Press alt+F4" in output[-1]
    assert "30s" in output[-1]

    assert asyncio.run(client.handle_line("YES")) is True
    fake_orchestrator.handle_client_message.assert_awaited_once()
    sent = fake_orchestrator.handle_client_message.await_args.args[0]
    assert sent == {"type": "computer_control_confirmation", "confirmationId": "confirm_1_abc", "approved": True}
    assert client.pending_confirmation_id is None


def test_no_without_pending_request_is_a_command(client, fake_orchestrator):
    async def scenario():
        await client.handle_line("no")
        await asyncio.gather(*client._tasks)

    asyncio.run(scenario())
    fake_orchestrator.handle_client_message.assert_not_awaited()
    fake_orchestrator.process_command.assert_awaited_once()


@pytest.mark.parametrize("line, enabled", [("/on", True), ("/off", False)])
def test_toggle_lines(client, fake_orchestrator, line, enabled):
    asyncio.run(client.handle_line(line))
    sent = fake_orchestrator.handle_client_message.await_args.args[0]
    assert sent == {"type": "computer_control_toggle", "enabled": enabled}


def test_query_lines(client, fake_orchestrator, output):
    async def scenario():
        await client.handle_line("/describe")
        await client.handle_line("/find save button")
        await client.handle_line("/history")
        await client.handle_line("/clear")

    asyncio.run(scenario())
    fake_orchestrator.find_element.assert_awaited_once_with("save button")
    fake_orchestrator.clear_history.assert_called_once()
    assert output == ["A terminal window.", "Found at (1, 2) confidence=0.9", "No actions executed yet.", "History cleared."]


def test_quit_and_blank_lines(client):
    assert asyncio.run(client.handle_line("   ")) is True
    assert asyncio.run(client.handle_line("/quit")) is False


def test_run_exits_on_eof(fake_orchestrator, output):
    lines = iter(["scroll up"])

    def read(prompt):
        try:
            return next(lines)
        except StopIteration:
            raise EOFError

    client = ConsoleClient(fake_orchestrator, input_func=read, output=output.append)
    asyncio.run(client.run())
    fake_orchestrator.process_command.assert_awaited_once()
    assert fake_orchestrator.process_command.await_args.args[0] == "scroll up"


def test_end_to_end_with_real_orchestrator(sample_config, fake_controller, mock_vision_client, output):
    orchestrator = ComputerControlOrchestrator.from_config(sample_config, fake_controller, vision_client=mock_vision_client)
    client = ConsoleClient(orchestrator, output=output.append)

    async def scenario():
        await client.handle_line("scroll down")
        await asyncio.gather(*client._tasks)

    asyncio.run(scenario())
    assert output[-1] == "[OK] Successfully completed 1 action(s)"
    assert fake_controller.calls == [("scroll", ("down", 3))]


# ---------------------------------------------------------------------------
# ResponseFormatter
# ---------------------------------------------------------------------------
def test_format_status_with_results():
    message = messages.status_message("failed", "Action 2 failed: boom", [
        {"action": "click", "status": "success", "result": {"x": 1, "y": 1}},
        {"action": "type", "status": "error", "error": "boom"},
    ])
    assert ResponseFormatter.format_message(message) == "[FAIL] Action 2 failed: boom"
    verbose = ResponseFormatter.format_message(message, verbose=True)
    assert "  - type: error boom" in verbose


def test_format_plan_and_action():
    plan = messages.plan_message({
        "reasoning": "Chrome is in the dock",
        "confidence": 0.5,
        "actions": [{"type": "click", "x": 1, "y": 1, "description": "Click Chrome"}],
    })
    text = ResponseFormatter.format_message(plan)
    assert text.splitlines() == [
        "Plan: Chrome is in the dock",
        "  (There is some uncertainty in this plan)",
        "  1. Click Chrome",
    ]
    action = messages.action_message(2, 3, "scroll", "Scroll down")
    assert ResponseFormatter.format_message(action) == "  [2/3] Scroll down"


def test_format_mode_and_screenshot():
    assert ResponseFormatter.format_message(messages.mode_message(True)) == "Computer control enabled"
    shot = messages.screenshot_message("QUJD", 1920, 1080, 0.0)
    assert ResponseFormatter.format_message(shot).startswith("Screenshot captured (1920x1080")
