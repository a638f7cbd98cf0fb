"""
Intent Parser
Detects computer-control intent in a (transcribed) voice command and extracts
the action kind, target and parameters.

Rules:
1. Keyword filter first. No control keyword → conversational, not handled here.
2. Action kinds are checked in a fixed priority order; the first group that matches wins.
3. Extraction is pattern based. The first matching pattern wins, misses degrade to None / "".
4. Never raises.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from common import constants
from common.actions import Action, KeyPress, Scroll, TypeText

logger = logging.getLogger(__name__)


@dataclass
class Intent:
    """Structured interpretation of a raw command."""
    requires_control: bool
    confidence: float
    action: Optional[str] = None
    target: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    raw: str = ""


class IntentParser:
    """
    Recall-biased command interpreter.

    False positives are caught later by the Safety Gate; false negatives mean the
    command is treated as conversation and left to the assistant.
    """

    CONTROL_KEYWORDS = [
        # Application control
        "open", "launch", "start", "close", "quit", "minimize", "maximize",
        # Mouse actions
        "click", "double click", "right click", "select", "drag",
        # Keyboard actions
        "type", "write", "enter", "press", "delete", "backspace",
        # Navigation
        "scroll", "navigate", "go to", "switch to", "move to",
        # Screen
        "screenshot", "capture", "screen",
        # Search/browse
        "search", "find", "look for", "browse",
        # File operations
        "save", "copy", "paste", "cut",
    ]

    QUESTION_WORDS = ["what", "why", "how", "when", "where", "who", "can you", "could you"]

    # Canonical application name -> spoken aliases. Insertion order is match order.
    APPLICATIONS = {
        "chrome": ["chrome", "google chrome"],
        "firefox": ["firefox", "mozilla firefox"],
        "safari": ["safari"],
        "edge": ["edge", "microsoft edge"],
        "vscode": ["vscode", "visual studio code", "vs code", "code"],
        "terminal": ["terminal", "command prompt", "cmd", "powershell"],
        "finder": ["finder", "file explorer", "explorer"],
        "notes": ["notes", "notepad"],
        "mail": ["mail", "email"],
        "calendar": ["calendar"],
        "slack": ["slack"],
        "discord": ["discord"],
        "spotify": ["spotify"],
        "zoom": ["zoom"],
    }

    VISION_ACTIONS = {"click", "double_click", "right_click", "search", "open", "close", "generic"}

    MODIFIER_ALIASES = {
        "ctrl": "ctrl", "control": "ctrl",
        "alt": "alt", "option": "alt",
        "shift": "shift",
        "cmd": "cmd", "command": "cmd",
        "win": "win", "windows": "win", "super": "win",
    }

    CLICK_TARGET_PATTERNS = [
        re.compile(r"click (?:on )?(?:the )?(.+?)(?:\s|$)", re.IGNORECASE),
        re.compile(r"click (.+)", re.IGNORECASE),
    ]

    TYPE_TEXT_PATTERNS = [
        re.compile(r"type\s+\"([^\"]+)\"", re.IGNORECASE),
        re.compile(r"type\s+'([^']+)'", re.IGNORECASE),
        re.compile(r"type\s+(.+)", re.IGNORECASE),
        re.compile(r"write\s+\"([^\"]+)\"", re.IGNORECASE),
        re.compile(r"write\s+'([^']+)'", re.IGNORECASE),
        re.compile(r"write\s+(.+)", re.IGNORECASE),
    ]

    SEARCH_QUERY_PATTERNS = [
        re.compile(r"(?:search|find|look) for\s+(.+)", re.IGNORECASE),
        re.compile(r"(?:search|find)\s+\"([^\"]+)\"", re.IGNORECASE),
        re.compile(r"(?:search|find)\s+'([^']+)'", re.IGNORECASE),
        re.compile(r"(?:search|find)\s+(.+)", re.IGNORECASE),
    ]

    KEY_PATTERNS = [
        re.compile(r"press\s+(.+)", re.IGNORECASE),
    ]

    DEFAULT_KEY = "Enter"

    def analyze(self, command: str) -> Intent:
        """
        Analyze a command to determine whether it requires computer control.

        Args:
            command: Voice command text

        Returns:
            Intent (requires_control=False, confidence=0 when no keyword matched)
        """
        command = command or ""
        lower_command = command.lower()

        if not self._has_control_keyword(lower_command):
            return Intent(requires_control=False, confidence=0.0, raw=command)

        intent = self._parse(command, lower_command)
        logger.debug(f"Parsed intent: action={intent.action} target={intent.target} confidence={intent.confidence}")
        return intent

    def _has_control_keyword(self, lower_command: str) -> bool:
        return any(keyword in lower_command for keyword in self.CONTROL_KEYWORDS)

    def _parse(self, command: str, lower: str) -> Intent:
        intent = Intent(
            requires_control=True,
            confidence=constants.DEFAULT_INTENT_CONFIDENCE,
            raw=command,
        )

        if "open" in lower or "launch" in lower or "start" in lower:
            intent.action = "open"
            intent.target = self.extract_application(lower)
        elif "close" in lower or "quit" in lower:
            intent.action = "close"
            intent.target = self.extract_application(lower)
        elif "click" in lower:
            if "double" in lower:
                intent.action = "double_click"
            elif "right" in lower:
                intent.action = "right_click"
            else:
                intent.action = "click"
            intent.target = self.extract_click_target(command)
        elif "type" in lower or "write" in lower:
            intent.action = "type"
            intent.parameters["text"] = self.extract_text_to_type(command)
        elif "scroll" in lower:
            intent.action = "scroll"
            intent.parameters["direction"] = "up" if "up" in lower else "down"
        elif "search" in lower or "find" in lower:
            intent.action = "search"
            intent.parameters["query"] = self.extract_search_query(command)
        elif "screenshot" in lower or "capture" in lower:
            intent.action = "screenshot"
            intent.confidence = constants.SCREENSHOT_INTENT_CONFIDENCE
        elif "press" in lower:
            intent.action = "key_press"
            key, modifiers = self.split_key_combination(self.extract_key(command))
            intent.parameters["key"] = key
            intent.parameters["modifiers"] = list(modifiers)
        else:
            intent.action = "generic"
            intent.confidence = constants.GENERIC_INTENT_CONFIDENCE

        return intent

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    def extract_application(self, lower_command: str) -> Optional[str]:
        """Resolve an application name through the alias table."""
        for app, aliases in self.APPLICATIONS.items():
            for alias in aliases:
                if alias in lower_command:
                    return app
        return None

    def extract_click_target(self, command: str) -> Optional[str]:
        return self._first_match(self.CLICK_TARGET_PATTERNS, command, default=None)

    def extract_text_to_type(self, command: str) -> str:
        return self._first_match(self.TYPE_TEXT_PATTERNS, command, default="")

    def extract_search_query(self, command: str) -> str:
        return self._first_match(self.SEARCH_QUERY_PATTERNS, command, default="")

    def extract_key(self, command: str) -> str:
        return self._first_match(self.KEY_PATTERNS, command, default=self.DEFAULT_KEY)

    @staticmethod
    def _first_match(patterns, text: str, default):
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return default

    def split_key_combination(self, key_phrase: str) -> Tuple[str, Tuple[str, ...]]:
        """
        Split a spoken key combination into (main key, modifiers).

        "alt ctrl delete" -> ("delete", ("alt", "ctrl"))
        "ctrl+s"          -> ("s", ("ctrl",))
        "the enter key"   -> ("enter", ())
        """
        phrase = key_phrase.strip().lower()
        phrase = re.sub(r"^the\s+", "", phrase)
        phrase = re.sub(r"\s+key$", "", phrase)
        tokens = [t for t in re.split(r"[\s+\-]+", phrase) if t and t not in ("and", "plus")]

        modifiers: List[str] = []
        rest: List[str] = []
        for token in tokens:
            modifier = self.MODIFIER_ALIASES.get(token)
            if modifier and not rest:
                if modifier not in modifiers:
                    modifiers.append(modifier)
            else:
                rest.append(token)

        if not rest:
            # Only modifiers were spoken ("press shift"): the last one is the key itself
            if modifiers:
                return modifiers[-1], tuple(modifiers[:-1])
            return self.DEFAULT_KEY, ()

        return " ".join(rest), tuple(modifiers)

    # ------------------------------------------------------------------
    # Routing helpers
    # ------------------------------------------------------------------
    def is_question(self, command: str) -> bool:
        """Conversational turn: starts with a question word and has no control keyword."""
        lower_command = (command or "").lower()
        starts_with_question = any(lower_command.startswith(word) for word in self.QUESTION_WORDS)
        return starts_with_question and not self._has_control_keyword(lower_command)

    def needs_vision(self, intent: Intent) -> bool:
        """Whether the intent must be grounded on a screenshot before acting."""
        return intent.action in self.VISION_ACTIONS

    def to_task_description(self, intent: Intent) -> str:
        """Render the task string handed to the Vision Planner."""
        action = intent.action
        params = intent.parameters

        if action == "open":
            return f"Open {intent.target or 'the application'}"
        if action == "close":
            return f"Close {intent.target or 'the current application'}"
        if action in ("click", "double_click", "right_click"):
            return f"{action.replace('_', ' ')} on {intent.target or 'the element'}"
        if action == "type":
            return f'Type the text: "{params.get("text", "")}"'
        if action == "scroll":
            return f"Scroll {params.get('direction', 'down')}"
        if action == "search":
            return f'Search for "{params.get("query", "")}"'
        if action == "screenshot":
            return "Take a screenshot"
        if action == "key_press":
            modifiers = params.get("modifiers") or []
            combo = "+".join(list(modifiers) + [params.get("key", self.DEFAULT_KEY)])
            return f"Press {combo}"
        return intent.raw or "Perform the requested action"

    def create_simple_actions(self, intent: Intent) -> List[Action]:
        """Build the single-action plan for intents that need no screenshot."""
        params = intent.parameters

        if intent.action == "type":
            text = params.get("text", "")
            return [TypeText(text=text, description=f"Type: {text}")]

        if intent.action == "scroll":
            direction = params.get("direction", "down")
            return [Scroll(direction=direction, amount=3, description=f"Scroll {direction}")]

        if intent.action == "key_press":
            key = params.get("key", self.DEFAULT_KEY)
            modifiers = tuple(params.get("modifiers") or ())
            combo = "+".join(modifiers + (key,))
            return [KeyPress(key=key, modifiers=modifiers, description=f"Press {combo}")]

        return []
