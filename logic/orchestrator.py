"""
Computer Control Orchestrator
Drives one command from raw text to executed desktop actions.

Pipeline:
    IDLE -> INTERPRETING -> (SHORT_CIRCUIT_EXECUTING | PLANNING) -> VALIDATING
         -> [CONFIRMING] -> EXECUTING -> COMPLETED | FAILED | BLOCKED | CANCELLED -> IDLE

Every handled command ends with exactly one terminal computer_control_status
message. Commands are serialised per instance; confirmation responses arrive
through handle_client_message while a command is waiting.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from common import constants
from common import messages
from common.actions import Action, PlanReview
from common.errors import (
    ComputerControlError,
    ConfirmationDenied,
    ConfirmationTimeout,
    PlanEmpty,
    ValidationBlocked,
)
from execution.execution_engine import ExecutionEngine
from logic.human_confirmation_protocol import ConfirmationOutcome
from logic.intent_parser import Intent, IntentParser
from logic.safety_gate import SafetyGate
from logic.vision_planner import PlanningContext, VisionPlanner
from perception.screen_capture import ScreenCapture
from perception.vision_client import VisionClient

logger = logging.getLogger(__name__)

SendToClient = Callable[[Dict[str, Any]], Any]


class OrchestratorState(Enum):
    IDLE = "idle"
    INTERPRETING = "interpreting"
    SHORT_CIRCUIT_EXECUTING = "short_circuit_executing"
    PLANNING = "planning"
    VALIDATING = "validating"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


@dataclass
class CommandOutcome:
    """
    Result of process_command.

    handled=False means the command was not a computer-control request and no
    message was sent; the caller should route it elsewhere (e.g. to chat).
    """
    handled: bool
    success: bool = False
    status: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    results: List[Dict[str, Any]] = field(default_factory=list)
    confidence: Optional[float] = None


async def emit(send_to_client: SendToClient, message: Dict[str, Any]) -> None:
    """Deliver a message through a sync or async client callable."""
    sent = send_to_client(message)
    if inspect.isawaitable(sent):
        await sent


class ComputerControlOrchestrator:
    """Coordinates intent parsing, vision planning, safety checks and execution."""

    def __init__(
        self,
        intent_parser: IntentParser,
        safety_gate: SafetyGate,
        execution_engine,
        screen_capture,
        vision_planner: VisionPlanner,
        confidence_threshold: float = constants.CONFIDENCE_THRESHOLD,
        action_delay: float = constants.ACTION_DELAY_SECS,
    ):
        self.intent_parser = intent_parser
        self.safety_gate = safety_gate
        self.engine = execution_engine
        self.screen_capture = screen_capture
        self.planner = vision_planner
        self.confidence_threshold = confidence_threshold
        self.action_delay = action_delay

        self.state = OrchestratorState.IDLE
        self._lock = asyncio.Lock()
        logger.info("ComputerControlOrchestrator initialized")

    @classmethod
    def from_config(cls, config: Dict[str, Any], controller, vision_client=None) -> "ComputerControlOrchestrator":
        """
        Wire every component from a validated config dict.

        Args:
            config: Output of load_validated_config()
            controller: DesktopController (or a stand-in with the same primitives)
            vision_client: Optional VisionClient; built from config['vision'] when omitted
        """
        safety = config.get("safety", {})
        rate_limit = config.get("rate_limit", {})
        execution = config.get("execution", {})
        vision = config.get("vision", {})

        if vision_client is None:
            vision_client = VisionClient(
                base_url=vision.get("base_url", constants.VISION_BASE_URL),
                model=vision.get("model", constants.VISION_MODEL),
                timeout=vision.get("timeout", constants.VISION_REQUEST_TIMEOUT_SECS),
                temperature=vision.get("temperature", constants.VISION_TEMPERATURE),
                max_tokens=vision.get("max_tokens", constants.VISION_MAX_TOKENS),
            )

        gate = SafetyGate(
            safety_mode=safety.get("safety_mode", True),
            require_confirmation=safety.get("require_confirmation", True),
            allowed_applications=safety.get("allowed_applications"),
            blocked_applications=safety.get("blocked_applications"),
            blocked_patterns=safety.get("blocked_patterns"),
            confirmation_timeout=safety.get("confirmation_timeout", constants.CONFIRMATION_TIMEOUT_SECS),
            max_coordinate=safety.get("max_coordinate", constants.MAX_COORDINATE),
            max_plan_length=execution.get("max_steps_per_plan", constants.MAX_STEPS_PER_PLAN),
            burst_threshold=safety.get("burst_threshold", constants.BURST_ACTION_THRESHOLD),
            burst_window=safety.get("burst_window", constants.BURST_WINDOW_SECS),
        )
        engine = ExecutionEngine(
            controller,
            enabled=config.get("enabled", True),
            max_actions_per_minute=rate_limit.get("max_actions_per_minute", constants.MAX_ACTIONS_PER_MINUTE),
            max_actions_per_hour=rate_limit.get("max_actions_per_hour", constants.MAX_ACTIONS_PER_HOUR),
            history_size=execution.get("history_size", constants.HISTORY_CAPACITY),
            action_timeout=execution.get("action_timeout", constants.ACTION_TIMEOUT_SECS),
        )
        capture = ScreenCapture(
            controller,
            max_width=config.get("screenshot", {}).get("max_width", constants.SCREENSHOT_MAX_WIDTH),
        )

        return cls(
            intent_parser=IntentParser(),
            safety_gate=gate,
            execution_engine=engine,
            screen_capture=capture,
            vision_planner=VisionPlanner(vision_client),
            confidence_threshold=config.get("command_parsing", {}).get(
                "confidence_threshold", constants.CONFIDENCE_THRESHOLD
            ),
            action_delay=execution.get("action_delay", constants.ACTION_DELAY_SECS),
        )

    # ── Command pipeline ─────────────────────────────────────────────
    async def process_command(self, command: str, send_to_client: SendToClient) -> CommandOutcome:
        """
        Process one command.

        Args:
            command: Command text (typically a voice transcription)
            send_to_client: Sync or async callable receiving outbound message dicts

        Returns:
            CommandOutcome
        """
        async with self._lock:
            self.safety_gate.clear_expired_confirmations()
            try:
                return await self._run(command, send_to_client)
            except ComputerControlError as e:
                logger.warning(f"[FAIL] Command '{command}' ended with {e.status}: {e}")
                await emit(send_to_client, messages.status_message(e.status, str(e)))
                return CommandOutcome(handled=True, success=False, status=e.status, reason=str(e), error=str(e))
            except Exception as e:
                logger.error(f"Command processing error: {e}", exc_info=True)
                await emit(send_to_client, messages.status_message("error", f"Error: {e}"))
                return CommandOutcome(handled=True, success=False, status="error", error=str(e))
            finally:
                self._set_state(OrchestratorState.IDLE)

    async def _run(self, command: str, send_to_client: SendToClient) -> CommandOutcome:
        self._set_state(OrchestratorState.INTERPRETING)

        if not self.engine.enabled:
            return CommandOutcome(handled=False, reason="Computer control is disabled")

        if self.intent_parser.is_question(command):
            return CommandOutcome(handled=False, reason="Command is a question, not an action")

        intent = self.intent_parser.analyze(command)
        if not intent.requires_control:
            return CommandOutcome(handled=False, reason="Command does not require computer control")

        if intent.confidence < self.confidence_threshold:
            logger.info(f"Ignoring low-confidence intent {intent.action} ({intent.confidence})")
            return CommandOutcome(handled=False, reason="Confidence too low", confidence=intent.confidence)

        logger.info(f"Intent: {intent.action} target={intent.target} confidence={intent.confidence}")

        if intent.action in ("open", "close"):
            if intent.target:
                check = self.safety_gate.validate_application(intent.target)
                if check.blocked:
                    raise ValidationBlocked(f"Action blocked: {check.reason}")
            else:
                # No alias matched; the command may still name a blocked application
                blocked_app = self.safety_gate.find_blocked_application(command)
                if blocked_app:
                    self.safety_gate.log_security_event(f"Blocked: application '{blocked_app}' named in command")
                    raise ValidationBlocked(f"Action blocked: Application '{blocked_app}' is blocked")

        if intent.action == "screenshot":
            return await self.take_screenshot(send_to_client)

        if not self.intent_parser.needs_vision(intent):
            simple_actions = self.intent_parser.create_simple_actions(intent)
            if simple_actions:
                self._set_state(OrchestratorState.SHORT_CIRCUIT_EXECUTING)
                return await self._execute_actions(simple_actions, send_to_client, confidence=intent.confidence)

        return await self._execute_vision_guided_task(intent, send_to_client)

    async def _execute_vision_guided_task(self, intent: Intent, send_to_client: SendToClient) -> CommandOutcome:
        self._set_state(OrchestratorState.PLANNING)
        await emit(send_to_client, messages.status_message("analyzing", "Analyzing screen..."))

        screenshot = await self.screen_capture.capture()
        task = self.intent_parser.to_task_description(intent)
        context = PlanningContext(
            screen_dimensions=screenshot.dimensions,
            previous_actions=self.get_recent_actions(constants.RECENT_ACTIONS_FOR_CONTEXT),
        )
        plan = await self.planner.analyze_and_plan(screenshot.image, task, context)

        if plan.warnings:
            raise PlanEmpty(f"Planner proposed a malformed action ({plan.warnings[0]})")
        if not plan.success or not plan.actions:
            raise PlanEmpty("Could not determine actions for this task")

        self._set_state(OrchestratorState.VALIDATING)
        validation = self.safety_gate.validate_action_plan(list(plan.actions), self._activity())
        if not validation.valid:
            raise ValidationBlocked(f"Action blocked: {validation.reason}")
        for warning in validation.warnings:
            logger.warning(f"Plan warning: {warning}")

        await emit(send_to_client, messages.plan_message(plan.to_dict()))

        if validation.needs_confirmation:
            self._set_state(OrchestratorState.CONFIRMING)
            outcome = await self.safety_gate.request_confirmation_outcome(
                PlanReview(description=task, actions=plan.actions), send_to_client
            )
            if outcome is ConfirmationOutcome.TIMED_OUT:
                raise ConfirmationTimeout("Task cancelled: confirmation timed out")
            if outcome is not ConfirmationOutcome.APPROVED:
                raise ConfirmationDenied("Task cancelled by user")

        return await self._execute_actions(plan.actions, send_to_client, confidence=plan.confidence)

    async def _execute_actions(
        self,
        actions: Sequence[Action],
        send_to_client: SendToClient,
        confidence: Optional[float] = None,
    ) -> CommandOutcome:
        """Run actions in order; the first blocked, cancelled or failed action halts the rest."""
        self._set_state(OrchestratorState.EXECUTING)
        results: List[Dict[str, Any]] = []
        total = len(actions)

        async def halt(status: str, message: str) -> CommandOutcome:
            logger.warning(f"[FAIL] {message}")
            await emit(send_to_client, messages.status_message(status, message, results))
            return CommandOutcome(
                handled=True, success=False, status=status, reason=message, results=results, confidence=confidence
            )

        for index, action in enumerate(actions, start=1):
            validation = self.safety_gate.validate_action(action, self._activity())
            if validation.blocked:
                self._set_state(OrchestratorState.BLOCKED)
                return await halt("blocked", f"Action {index} blocked: {validation.reason}")

            if validation.requires_confirmation:
                self._set_state(OrchestratorState.CONFIRMING)
                outcome = await self.safety_gate.request_confirmation_outcome(action, send_to_client)
                if outcome is not ConfirmationOutcome.APPROVED:
                    self._set_state(OrchestratorState.CANCELLED)
                    suffix = " (confirmation timed out)" if outcome is ConfirmationOutcome.TIMED_OUT else ""
                    return await halt("cancelled", f"Action {index} cancelled{suffix}")
                self._set_state(OrchestratorState.EXECUTING)

            description = action.description or self.safety_gate.generate_action_description(action)
            await emit(send_to_client, messages.action_message(index, total, action.kind, description))

            result = await self.engine.execute_action(action)
            results.append(result.to_dict())
            if not result.success:
                self._set_state(OrchestratorState.FAILED)
                return await halt("failed", f"Action {index} failed: {result.error or result.message or result.status}")

            if index < total and self.action_delay:
                await asyncio.sleep(self.action_delay)

        self._set_state(OrchestratorState.COMPLETED)
        message = f"Successfully completed {len(results)} action(s)"
        logger.info(f"[OK] {message}")
        await emit(send_to_client, messages.status_message("completed", message, results))
        return CommandOutcome(
            handled=True, success=True, status="completed", results=results, confidence=confidence
        )

    async def take_screenshot(self, send_to_client: SendToClient) -> CommandOutcome:
        """Capture the screen and send it to the client (no rate limiting)."""
        screenshot = await self.screen_capture.capture()
        await emit(
            send_to_client,
            messages.screenshot_message(screenshot.image, screenshot.width, screenshot.height, screenshot.timestamp),
        )
        return CommandOutcome(handled=True, success=True, status="screenshot", reason="Screenshot captured")

    # ── Inbound control messages ─────────────────────────────────────
    async def handle_client_message(self, message: Dict[str, Any], send_to_client: SendToClient) -> bool:
        """
        Route an inbound control message. Never takes the command lock.

        Returns:
            True if the message was recognised
        """
        message_type = message.get("type")

        if message_type == messages.TOGGLE:
            await emit(send_to_client, self.set_computer_mode(bool(message.get("enabled"))))
            return True

        if message_type == messages.CONFIRMATION_RESPONSE:
            self.handle_confirmation_response(message.get("confirmationId", ""), bool(message.get("approved")))
            return True

        logger.debug(f"Ignoring client message of type {message_type!r}")
        return False

    def handle_confirmation_response(self, confirmation_id: str, approved: bool) -> None:
        self.safety_gate.handle_confirmation_response(confirmation_id, approved)

    def set_computer_mode(self, enabled: bool) -> Dict[str, Any]:
        self.engine.enabled = enabled
        logger.info(f"Computer control {'enabled' if enabled else 'disabled'}")
        return messages.mode_message(enabled)

    # ── Queries ──────────────────────────────────────────────────────
    async def describe_screen(self) -> str:
        screenshot = await self.screen_capture.capture()
        return await self.planner.describe_screen(screenshot.image)

    async def find_element(self, element_description: str) -> Dict[str, Any]:
        screenshot = await self.screen_capture.capture()
        return await self.planner.find_element(screenshot.image, element_description)

    def get_recent_actions(self, limit: int = constants.RECENT_ACTIONS_FOR_CONTEXT) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.engine.get_action_history(limit)]

    def get_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.engine.get_action_history(limit)]

    def clear_history(self) -> None:
        self.engine.clear_history()

    def _activity(self):
        return self.engine.recent_activity(self.safety_gate.burst_window)

    def _set_state(self, state: OrchestratorState) -> None:
        if state is not self.state:
            logger.debug(f"State {self.state.value} -> {state.value}")
        self.state = state
