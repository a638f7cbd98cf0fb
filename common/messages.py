"""
Client Messages
Builders for every message the agent sends over the client channel.

The client is a plain bidirectional message channel; these dicts are the whole
protocol. Keys use the client's camelCase naming.
"""
from typing import Any, Dict, List, Optional

# Outbound message types
STATUS = "computer_control_status"
ACTION = "computer_control_action"
PLAN = "computer_control_plan"
CONFIRMATION_REQUEST = "confirmation_request"
MODE = "computer_control_mode"
SCREENSHOT_CAPTURED = "screenshot_captured"

# Inbound message types
TOGGLE = "computer_control_toggle"
CONFIRMATION_RESPONSE = "computer_control_confirmation"

# Status values carried by STATUS messages
TERMINAL_STATUSES = ("blocked", "cancelled", "error", "completed", "failed")


def status_message(status: str, message: str, results: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    payload = {"type": STATUS, "status": status, "message": message}
    if results is not None:
        payload["results"] = results
    return payload


def action_message(index: int, total: int, action_type: str, description: str) -> Dict[str, Any]:
    """Progress event sent right before an action is dispatched (index is 1-based)."""
    return {
        "type": ACTION,
        "actionIndex": index,
        "totalActions": total,
        "action": {"type": action_type, "description": description},
    }


def plan_message(plan: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": PLAN, "plan": plan}


def confirmation_request_message(confirmation_id: str, action_type: str, description: str, timeout_ms: int) -> Dict[str, Any]:
    return {
        "type": CONFIRMATION_REQUEST,
        "confirmationId": confirmation_id,
        "action": {"type": action_type, "description": description},
        "timeout": timeout_ms,
    }


def mode_message(enabled: bool) -> Dict[str, Any]:
    return {
        "type": MODE,
        "enabled": enabled,
        "message": "Computer control enabled" if enabled else "Computer control disabled",
    }


def screenshot_message(image: str, width: int, height: int, timestamp: float) -> Dict[str, Any]:
    return {
        "type": SCREENSHOT_CAPTURED,
        "image": image,
        "dimensions": {"width": width, "height": height},
        "timestamp": timestamp,
    }
