"""
Safety Gate - The Gatekeeper
Validates actions against static safety rules and routes flagged ones to the user.

No action can reach the Execution Engine without a safe=True result from
validate_action in the same run.
"""
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from common import constants
from common.actions import (
    ACTION_CLASSES,
    POINTER_ACTION_TYPES,
    Action,
    Drag,
    KeyPress,
    PlanReview,
    Scroll,
    TypeText,
)
from common.keys import map_key
from common.validation import ActivityContext, PlanValidation, ValidationResult
from config.config_validator import DEFAULT_BLOCKED_APPLICATIONS, DEFAULT_BLOCKED_PATTERNS
from logic.human_confirmation_protocol import ConfirmationOutcome, HumanConfirmationProtocol

logger = logging.getLogger(__name__)


ALLOWED_ACTION_TYPES = tuple(ACTION_CLASSES)

# Key combinations that may close applications or reach the OS security screen
DANGEROUS_KEY_COMBINATIONS = [
    ("delete", frozenset({"alt", "ctrl"})),
    ("f4", frozenset({"alt"})),
]

# Actions that always need confirmation in safety mode
SENSITIVE_ACTION_TYPES = ("key_press", "drag")


class SafetyGate:
    """
    Middleware between the planners and the Execution Engine.

    Every check is a pure function of (action, rules, activity context); the only
    state held here is the confirmation table inside the protocol.
    """

    def __init__(
        self,
        safety_mode: bool = True,
        require_confirmation: bool = True,
        allowed_applications: Optional[Iterable[str]] = None,
        blocked_applications: Optional[Iterable[str]] = None,
        blocked_patterns: Optional[Iterable[str]] = None,
        confirmation_timeout: float = constants.CONFIRMATION_TIMEOUT_SECS,
        max_coordinate: int = constants.MAX_COORDINATE,
        max_plan_length: int = constants.MAX_STEPS_PER_PLAN,
        burst_threshold: int = constants.BURST_ACTION_THRESHOLD,
        burst_window: float = constants.BURST_WINDOW_SECS,
    ):
        """
        Initialize the gate.

        Args:
            safety_mode: When True, key presses and drags always need confirmation
            require_confirmation: When False, confirmation requests approve immediately
            allowed_applications: Applications open/close may target (empty = all)
            blocked_applications: Applications that are never targeted
            blocked_patterns: Regexes (case-insensitive) that typed text must not match
            confirmation_timeout: Seconds before a request counts as denied
            max_coordinate: Upper bound for pointer coordinates
            max_plan_length: Longest accepted plan
            burst_threshold: Recent-action count above which confirmation is requested
            burst_window: Window (seconds) the burst threshold applies to
        """
        self.safety_mode = safety_mode
        self.require_confirmation = require_confirmation
        self.allowed_applications = [a.lower() for a in (allowed_applications or [])]
        self.blocked_applications = [
            a.lower() for a in (DEFAULT_BLOCKED_APPLICATIONS if blocked_applications is None else blocked_applications)
        ]
        self.blocked_patterns = [
            re.compile(p, re.IGNORECASE)
            for p in (DEFAULT_BLOCKED_PATTERNS if blocked_patterns is None else blocked_patterns)
        ]
        self.max_coordinate = max_coordinate
        self.max_plan_length = max_plan_length
        self.burst_threshold = burst_threshold
        self.burst_window = burst_window
        self.confirmations = HumanConfirmationProtocol(timeout=confirmation_timeout)

        logger.info(
            f"SafetyGate initialized (safety_mode={safety_mode}, require_confirmation={require_confirmation}, "
            f"{len(self.blocked_patterns)} blocked patterns)"
        )

    # ── Validation ───────────────────────────────────────────────────
    def validate_action(self, action: Action, context: Optional[ActivityContext] = None) -> ValidationResult:
        """
        Validate one action. Blocking checks return at the first failure.

        Args:
            action: Action variant (UnsupportedAction included)
            context: Recent activity for the burst heuristic

        Returns:
            ValidationResult
        """
        result = ValidationResult()

        if action.kind not in ALLOWED_ACTION_TYPES:
            return self._blocked(result, action, f"Action type '{action.kind}' is not allowed")

        if isinstance(action, TypeText) and not action.text:
            return self._blocked(result, action, "No text to type")

        if isinstance(action, TypeText) and not self.is_safe_text(action.text):
            return self._blocked(result, action, "Text contains potentially dangerous command")

        if isinstance(action, KeyPress) and self._is_dangerous_combination(action):
            result.requires_confirmation = True
            result.warnings.append("This key combination may close applications")

        if self.safety_mode and action.kind in SENSITIVE_ACTION_TYPES:
            result.requires_confirmation = True

        if not self._coordinates_in_bounds(action):
            return self._blocked(result, action, "Coordinates out of reasonable bounds")

        if (
            context is not None
            and context.recent_action_count > self.burst_threshold
            and context.time_window <= self.burst_window
        ):
            result.requires_confirmation = True
            result.warnings.append("High action frequency detected")

        return result

    def validate_action_plan(
        self,
        actions: Union[Sequence[Action], Any],
        context: Optional[ActivityContext] = None,
    ) -> PlanValidation:
        """
        Validate a complete action plan.

        Args:
            actions: Ordered actions
            context: Recent activity, applied to every action

        Returns:
            PlanValidation
        """
        if not isinstance(actions, (list, tuple)):
            return PlanValidation(valid=False, reason="Actions must be a list")
        if not actions:
            return PlanValidation(valid=False, reason="Action plan is empty")
        if len(actions) > self.max_plan_length:
            return PlanValidation(
                valid=False,
                reason=f"Action plan too long (max {self.max_plan_length} actions)",
            )

        results = [self.validate_action(action, context) for action in actions]
        blocked = [r for r in results if r.blocked]
        if blocked:
            return PlanValidation(valid=False, reason=f"{len(blocked)} action(s) blocked: {blocked[0].reason}")

        warnings: List[str] = [w for r in results for w in r.warnings]
        return PlanValidation(
            valid=True,
            needs_confirmation=any(r.requires_confirmation for r in results),
            warnings=warnings,
        )

    def validate_application(self, name: Optional[str]) -> ValidationResult:
        """
        Check an open/close target against the application lists.

        The blocked list wins; a non-empty allowed list must contain the name.
        """
        result = ValidationResult()
        if not name:
            return result

        target = name.strip().lower()
        if any(blocked == target or blocked in target for blocked in self.blocked_applications):
            return self._blocked(result, None, f"Application '{name}' is blocked")
        if self.allowed_applications and target not in self.allowed_applications:
            return self._blocked(result, None, f"Application '{name}' is not in the allowed list")
        return result

    def find_blocked_application(self, text: Optional[str]) -> Optional[str]:
        """Return the first blocked application named anywhere in free text (whole words only)."""
        lower_text = (text or "").lower()
        for blocked in self.blocked_applications:
            if re.search(rf"\b{re.escape(blocked)}\b", lower_text):
                return blocked
        return None

    def is_safe_text(self, text: str) -> bool:
        return not any(pattern.search(text or "") for pattern in self.blocked_patterns)

    def _is_dangerous_combination(self, action: KeyPress) -> bool:
        # Compare under the same names the controller will actually press
        key = map_key(action.key)
        modifiers = {map_key(m) for m in action.modifiers}
        return any(key == combo_key and combo_mods <= modifiers for combo_key, combo_mods in DANGEROUS_KEY_COMBINATIONS)

    def _coordinates_in_bounds(self, action: Action) -> bool:
        if action.kind in POINTER_ACTION_TYPES:
            points = [(action.x, action.y)]
        elif isinstance(action, Drag):
            points = [(action.from_x, action.from_y), (action.to_x, action.to_y)]
        else:
            return True
        return all(0 <= x <= self.max_coordinate and 0 <= y <= self.max_coordinate for x, y in points)

    def _blocked(self, result: ValidationResult, action: Optional[Action], reason: str) -> ValidationResult:
        subject = action.to_dict() if action is not None else "application"
        self.log_security_event(f"Blocked: {reason} ({subject})")
        return result.block(reason)

    @staticmethod
    def log_security_event(event: str) -> None:
        logger.warning(f"[SECURITY] {event}")

    # ── Descriptions ─────────────────────────────────────────────────
    @staticmethod
    def generate_action_description(action: Union[Action, PlanReview]) -> str:
        """Readable one-line description of an action (or a plan under review)."""
        if isinstance(action, PlanReview):
            return action.description

        if action.kind == "click":
            return f"Click at position ({action.x}, {action.y})"
        if action.kind == "double_click":
            return f"Double-click at position ({action.x}, {action.y})"
        if action.kind == "right_click":
            return f"Right-click at position ({action.x}, {action.y})"
        if action.kind == "move_mouse":
            return f"Move mouse to ({action.x}, {action.y})"
        if isinstance(action, TypeText):
            limit = constants.DESCRIPTION_TEXT_LIMIT
            suffix = "..." if len(action.text) > limit else ""
            return f'Type: "{action.text[:limit]}{suffix}"'
        if isinstance(action, KeyPress):
            mods = "+".join(action.modifiers) + "+" if action.modifiers else ""
            return f"Press {mods}{action.key}"
        if isinstance(action, Scroll):
            return f"Scroll {action.direction}"
        if isinstance(action, Drag):
            return f"Drag from ({action.from_x}, {action.from_y}) to ({action.to_x}, {action.to_y})"
        return f"Execute {action.kind}"

    # ── Confirmation ─────────────────────────────────────────────────
    async def request_confirmation_outcome(
        self,
        subject: Union[Action, PlanReview],
        send_to_client: Callable[[Dict[str, Any]], Any],
    ) -> ConfirmationOutcome:
        """
        Ask the user to approve an action or a plan.

        Returns APPROVED immediately, without a message, when confirmation is disabled.
        """
        if not self.require_confirmation:
            return ConfirmationOutcome.APPROVED

        description = getattr(subject, "description", None) or self.generate_action_description(subject)
        return await self.confirmations.request(subject.kind, description, send_to_client)

    async def request_confirmation(
        self,
        subject: Union[Action, PlanReview],
        send_to_client: Callable[[Dict[str, Any]], Any],
    ) -> bool:
        outcome = await self.request_confirmation_outcome(subject, send_to_client)
        return outcome is ConfirmationOutcome.APPROVED

    def handle_confirmation_response(self, confirmation_id: str, approved: bool) -> bool:
        return self.confirmations.process_confirmation(confirmation_id, approved)

    def clear_expired_confirmations(self) -> int:
        return self.confirmations.clear_expired_confirmations()

    @property
    def pending_count(self) -> int:
        return self.confirmations.get_pending_count()
