"""
Validation result types produced by the Safety Gate.
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ValidationResult:
    """
    Outcome of validating one action.

    Attributes:
        safe: False when the action must not execute
        blocked: True when a static rule rejected the action
        requires_confirmation: True when the user must approve first
        reason: Blocking reason (first failing check)
        warnings: Non-blocking findings
    """
    safe: bool = True
    blocked: bool = False
    requires_confirmation: bool = False
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def block(self, reason: str) -> "ValidationResult":
        self.safe = False
        self.blocked = True
        self.reason = reason
        return self


@dataclass
class PlanValidation:
    """Aggregated validation for a whole action plan."""
    valid: bool
    needs_confirmation: bool = False
    warnings: List[str] = field(default_factory=list)
    reason: Optional[str] = None


@dataclass(frozen=True)
class ActivityContext:
    """
    Recent-activity snapshot used by the burst heuristic.

    Attributes:
        recent_action_count: Actions executed inside the window
        time_window: Window length in seconds
    """
    recent_action_count: int = 0
    time_window: float = 0.0
