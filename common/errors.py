"""
Error kinds for the command pipeline.

Each error maps to the terminal status reported to the client. None of them is
fatal to the process: the orchestrator reports the error and returns to idle.
"""


class ComputerControlError(Exception):
    """Base class for recoverable command-level failures."""
    status = "error"


class PlannerUnavailable(ComputerControlError):
    """The vision collaborator call failed (network, HTTP or payload error)."""
    status = "error"


class ScreenCaptureError(ComputerControlError):
    status = "error"


class PlanEmpty(ComputerControlError):
    """The planner answered but proposed no usable actions."""
    status = "failed"


class ValidationBlocked(ComputerControlError):
    """A static safety rule rejected the command or plan."""
    status = "blocked"


class ConfirmationDenied(ComputerControlError):
    status = "cancelled"


class ConfirmationTimeout(ConfirmationDenied):
    status = "cancelled"
