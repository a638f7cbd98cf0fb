"""
Console Client
Line-based stand-in for the voice client: each line is either a command or a reply.

Commands run as background tasks so the input loop stays free to answer a
confirmation request while the command waits for it.

Special lines:
    yes / no       answer the pending confirmation
    /on, /off      toggle computer control
    /history       show the action history
    /describe      describe the current screen
    /find <text>   locate an element on screen
    /clear         clear the action history
    /quit          exit
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from common import messages
from interface.response_formatter import ResponseFormatter

logger = logging.getLogger(__name__)

APPROVE_WORDS = {"y", "yes", "approve", "ok", "confirm"}
DENY_WORDS = {"n", "no", "deny", "cancel", "stop"}


class ConsoleClient:
    """Bidirectional message channel over stdin/stdout."""

    def __init__(
        self,
        orchestrator,
        input_func: Callable[[str], str] = input,
        output: Callable[[str], Any] = print,
        verbose: bool = False,
    ):
        self.orchestrator = orchestrator
        self._input = input_func
        self._output = output
        self.verbose = verbose
        self.pending_confirmation_id: Optional[str] = None
        self._tasks: set = set()

    def send(self, message: Dict[str, Any]) -> None:
        """send_to_client callable handed to the orchestrator."""
        if message.get("type") == messages.CONFIRMATION_REQUEST:
            self.pending_confirmation_id = message.get("confirmationId")
        self._output(ResponseFormatter.format_message(message, verbose=self.verbose))

    async def run(self) -> None:
        self._output("Desktop control agent ready. Type a command, or /quit to exit.")
        while True:
            try:
                line = await asyncio.to_thread(self._input, "> ")
            except EOFError:
                break
            if not await self.handle_line(line):
                break

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def handle_line(self, line: str) -> bool:
        """
        Handle one input line.

        Returns:
            False when the client should exit
        """
        text = line.strip()
        if not text:
            return True

        lower = text.lower()
        if self.pending_confirmation_id and lower in APPROVE_WORDS | DENY_WORDS:
            await self.answer_confirmation(lower in APPROVE_WORDS)
            return True

        if lower in ("/quit", "/exit"):
            return False
        if lower in ("/on", "/off"):
            await self.orchestrator.handle_client_message(
                {"type": messages.TOGGLE, "enabled": lower == "/on"}, self.send
            )
        elif lower == "/history":
            self._output(ResponseFormatter.format_history(self.orchestrator.get_history()))
        elif lower == "/clear":
            self.orchestrator.clear_history()
            self._output("History cleared.")
        elif lower == "/describe":
            self._output(await self.orchestrator.describe_screen())
        elif lower.startswith("/find "):
            located = await self.orchestrator.find_element(text[len("/find "):].strip())
            if located.get("found"):
                self._output(f"Found at ({located['x']}, {located['y']}) confidence={located['confidence']}")
            else:
                self._output("Element not found.")
        else:
            self.start_command(text)
        return True

    async def answer_confirmation(self, approved: bool) -> None:
        confirmation_id, self.pending_confirmation_id = self.pending_confirmation_id, None
        await self.orchestrator.handle_client_message(
            {"type": messages.CONFIRMATION_RESPONSE, "confirmationId": confirmation_id, "approved": approved},
            self.send,
        )

    def start_command(self, text: str) -> asyncio.Task:
        task = asyncio.create_task(self._run_command(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_command(self, text: str) -> None:
        outcome = await self.orchestrator.process_command(text, self.send)
        self.pending_confirmation_id = None
        if not outcome.handled:
            logger.info(f"Command not handled: {outcome.reason}")
            self._output(f"(not a computer-control command: {outcome.reason})")
