"""
Response Formatter
Formats outbound agent messages into short human-readable console lines.

Features:
- One line per status / progress event.
- Translates plan confidence to natural language.
- Hides raw payloads (screenshot bytes, result dicts) unless asked.
"""
from typing import Any, Dict, List

from common import messages

STATUS_PREFIXES = {
    "analyzing": "...",
    "completed": "[OK]",
    "failed": "[FAIL]",
    "error": "[ERROR]",
    "blocked": "[BLOCKED]",
    "cancelled": "[CANCELLED]",
}


class ResponseFormatter:
    """Format agent messages for console display."""

    @staticmethod
    def format_message(message: Dict[str, Any], verbose: bool = False) -> str:
        """
        Format one outbound message.

        Args:
            message: Dict built by common.messages
            verbose: Include per-action results for terminal statuses
        """
        message_type = message.get("type")

        if message_type == messages.STATUS:
            return ResponseFormatter.format_status(message, verbose)

        if message_type == messages.ACTION:
            action = message.get("action", {})
            return f"  [{message.get('actionIndex')}/{message.get('totalActions')}] {action.get('description') or action.get('type')}"

        if message_type == messages.PLAN:
            return ResponseFormatter.format_plan(message.get("plan", {}))

        if message_type == messages.CONFIRMATION_REQUEST:
            action = message.get("action", {})
            seconds = int(message.get("timeout", 0)) // 1000
            return (
                f"Confirm: {action.get('description') or action.get('type')}\n"
                f"Approve? (yes / no, {seconds}s to answer)"
            )

        if message_type == messages.MODE:
            return message.get("message", "")

        if message_type == messages.SCREENSHOT_CAPTURED:
            dims = message.get("dimensions", {})
            return f"Screenshot captured ({dims.get('width')}x{dims.get('height')}, {len(message.get('image', ''))} bytes base64)"

        return str(message)

    @staticmethod
    def format_status(message: Dict[str, Any], verbose: bool = False) -> str:
        status = message.get("status", "")
        prefix = STATUS_PREFIXES.get(status, f"[{status.upper()}]")
        line = f"{prefix} {message.get('message', '')}"

        results = message.get("results")
        if verbose and results:
            line += "\n" + ResponseFormatter.format_results(results)
        return line

    @staticmethod
    def format_plan(plan: Dict[str, Any]) -> str:
        actions = plan.get("actions", [])
        confidence = plan.get("confidence", 0.0)
        lines = [f"Plan: {plan.get('reasoning', '')}"]
        phrase = ResponseFormatter._get_confidence_phrase(confidence)
        if phrase:
            lines.append(f"  {phrase}")
        for index, action in enumerate(actions, start=1):
            lines.append(f"  {index}. {action.get('description') or action.get('type')}")
        return "\n".join(lines)

    @staticmethod
    def format_results(results: List[Dict[str, Any]]) -> str:
        lines = []
        for entry in results:
            detail = entry.get("error") or entry.get("message") or entry.get("result") or ""
            lines.append(f"  - {entry.get('action')}: {entry.get('status')} {detail}".rstrip())
        return "\n".join(lines)

    @staticmethod
    def format_history(history: List[Dict[str, Any]]) -> str:
        if not history:
            return "No actions executed yet."
        lines = []
        for entry in history:
            action = entry.get("action", {})
            lines.append(f"  {action.get('type')}: {entry.get('status')}")
        return "\n".join(lines)

    @staticmethod
    def _get_confidence_phrase(score: float) -> str:
        """Translate numeric confidence to natural language."""
        if score >= 0.9:
            return ""  # Implicit high confidence
        elif score >= 0.7:
            return "(I'm reasonably confident in this plan)"
        elif score >= 0.4:
            return "(There is some uncertainty in this plan)"
        else:
            return "(The screen is unclear, this plan may be wrong)"
