"""
Vision Planner
Turns a screenshot plus a task description into a structured ActionPlan.

Uses VisionClient for the raw generation but owns the prompt engineering and the
defensive parsing of the reply. An unparseable reply is not an error: it becomes
an empty plan carrying the raw text as reasoning, and the caller treats an empty
action list as "no usable plan".
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from common import constants
from common.actions import Action, ActionPlan, action_from_dict

logger = logging.getLogger(__name__)


FENCED_JSON = re.compile(r"```json\n?([\s\S]*?)\n?```")
FENCED_ANY = re.compile(r"```\n?([\s\S]*?)\n?```")
JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass
class PlanningContext:
    """Extra information embedded in the user prompt."""
    screen_dimensions: Optional[Dict[str, int]] = None
    previous_actions: List[Dict[str, Any]] = field(default_factory=list)
    additional_info: Optional[str] = None


class VisionPlanner:
    """Plans desktop actions from what is visible on screen."""

    def __init__(self, vision_client, max_steps: int = constants.PLANNER_STEP_HINT):
        """
        Initialize the planner.

        Args:
            vision_client: VisionClient for network calls
            max_steps: Step cap stated in the system prompt
        """
        self.vision = vision_client
        self.max_steps = max_steps
        logger.info("VisionPlanner initialized")

    async def analyze_and_plan(self, image_base64: str, task: str, context: Optional[PlanningContext] = None) -> ActionPlan:
        """
        Analyze the screen and plan actions for a task.

        Args:
            image_base64: Base64-encoded screenshot
            task: Task description from the Intent Parser
            context: Screen size and recent actions

        Returns:
            ActionPlan (success=False when any proposed action is malformed)

        Raises:
            PlannerUnavailable: If the collaborator call fails
        """
        context = context or PlanningContext()
        system_prompt = self.build_system_prompt()
        user_prompt = self.build_user_prompt(task, context)

        logger.info(f"Requesting vision plan for: {task}")
        content = await asyncio.to_thread(self.vision.chat, user_prompt, image_base64, system_prompt)

        reasoning, raw_actions, confidence = self.parse_response(content)
        actions, warnings = self.sanitize_actions(raw_actions)
        if warnings:
            # A plan with any malformed step is rejected whole, never partially run
            logger.warning(f"Rejecting vision plan with malformed action(s): {'; '.join(warnings)}")
            return ActionPlan(
                success=False,
                reasoning=reasoning,
                confidence=confidence,
                raw_response=content,
                warnings=tuple(warnings),
            )

        logger.info(f"Vision planner proposed {len(actions)} action(s) (confidence={confidence})")
        return ActionPlan(
            success=True,
            reasoning=reasoning,
            actions=tuple(actions),
            confidence=confidence,
            raw_response=content,
            warnings=tuple(warnings),
        )

    def build_system_prompt(self) -> str:
        return f"""You are a computer vision AI agent that helps users control their computer.

Your role:
1. Analyze screenshots to understand the current screen state
2. Plan a sequence of mouse and keyboard actions to accomplish user tasks
3. Provide clear, safe, and efficient action plans

Action Types Available:
- click: Click at coordinates {{"type": "click", "x": 100, "y": 200, "description": "Click login button"}}
- double_click: Double click at coordinates {{"type": "double_click", "x": 100, "y": 200}}
- right_click: Right click at coordinates {{"type": "right_click", "x": 100, "y": 200}}
- type: Type text {{"type": "type", "text": "Hello World", "description": "Type message"}}
- key_press: Press key combination {{"type": "key_press", "key": "Enter", "modifiers": ["ctrl"], "description": "Save file"}}
- move_mouse: Move mouse {{"type": "move_mouse", "x": 100, "y": 200}}
- scroll: Scroll screen {{"type": "scroll", "direction": "down", "amount": 3}}
- drag: Drag from one point to another {{"type": "drag", "fromX": 100, "fromY": 100, "toX": 200, "toY": 200}}

Response Format (JSON):
{{
  "reasoning": "Explain what you see and your plan",
  "confidence": 0.9,
  "actions": [
    {{"type": "click", "x": 100, "y": 200, "description": "Click the submit button"}}
  ]
}}

Safety Rules:
- Never suggest actions that modify system settings without explicit user request
- Avoid actions on sensitive areas (password fields, payment info) unless clearly intended
- If uncertain about element location, estimate conservatively
- Limit action sequences to {self.max_steps} steps maximum per request
- Always provide clear descriptions of each action

Coordinates are screen pixels of the real screen size given below.
Be precise with coordinates and provide accurate action plans."""

    def build_user_prompt(self, task: str, context: PlanningContext) -> str:
        prompt = f"Task: {task}\n\n"

        if context.screen_dimensions:
            dims = context.screen_dimensions
            prompt += f"Screen Size: {dims.get('width')}x{dims.get('height')}\n"

        previous = context.previous_actions[-constants.RECENT_ACTIONS_FOR_CONTEXT:]
        if previous:
            prompt += f"Previous Actions: {json.dumps(previous)}\n"

        if context.additional_info:
            prompt += f"Additional Info: {context.additional_info}\n"

        prompt += "\nAnalyze the screenshot and provide a JSON response with the actions needed to accomplish this task."
        return prompt

    def parse_response(self, content: str) -> Tuple[str, List[Any], float]:
        """
        Parse the model reply into (reasoning, raw action list, confidence).

        Never raises: undecodable replies yield ([], 0.3) with the raw text as reasoning.
        """
        text = content or ""
        match = FENCED_JSON.search(text) or FENCED_ANY.search(text)
        if match:
            text = match.group(1)

        try:
            parsed = json.loads(text)
            if not isinstance(parsed, dict):
                raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
        except ValueError as e:
            logger.error(f"Failed to parse vision response: {e}")
            return content or "", [], constants.UNPARSEABLE_PLAN_CONFIDENCE

        reasoning = parsed.get("reasoning") or "No reasoning provided"
        actions = parsed.get("actions") or []
        if not isinstance(actions, list):
            logger.warning(f"'actions' is not a list: {type(actions).__name__}")
            actions = []

        return str(reasoning), actions, self._confidence(parsed.get("confidence"))

    @staticmethod
    def _confidence(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value == 0:
            return constants.DEFAULT_PLAN_CONFIDENCE
        return max(0.0, min(1.0, float(value)))

    def sanitize_actions(self, raw_actions: List[Any]) -> Tuple[List[Action], List[str]]:
        """
        Convert raw action dicts into Action variants.

        Malformed entries are reported as warnings. Unknown types are kept as
        UnsupportedAction so that validation blocks them visibly.
        """
        actions: List[Action] = []
        warnings: List[str] = []
        for index, raw in enumerate(raw_actions, start=1):
            try:
                actions.append(action_from_dict(raw))
            except ValueError as e:
                warnings.append(f"action {index}: {e}")
        return actions, warnings

    # ── Auxiliary single-shot queries (user feedback only) ───────────
    async def describe_screen(self, image_base64: str) -> str:
        """Narrative description of the screen, 2-3 sentences."""
        prompt = (
            "Describe what you see on this screen in 2-3 sentences. "
            "Focus on the main application, visible UI elements, and any notable content."
        )
        try:
            return await asyncio.to_thread(self.vision.chat, prompt, image_base64, None, 150)
        except Exception as e:
            logger.error(f"Screen description failed: {e}")
            return "Unable to describe screen"

    async def find_element(self, image_base64: str, element_description: str) -> Dict[str, Any]:
        """
        Locate an element by description.

        Returns:
            {"x", "y", "confidence", "found"}; {"found": False, "confidence": 0} on any failure
        """
        prompt = (
            f'Find the location of: "{element_description}"\n\n'
            'Provide the approximate center coordinates as JSON: {"x": 100, "y": 200, "confidence": 0.9, "found": true}'
        )
        not_found = {"found": False, "confidence": 0}
        try:
            content = await asyncio.to_thread(self.vision.chat, prompt, image_base64, None, 100)
        except Exception as e:
            logger.error(f"Element finding failed: {e}")
            return not_found

        match = JSON_OBJECT.search(content or "")
        if not match:
            return not_found
        try:
            located = json.loads(match.group(0))
        except ValueError:
            logger.warning(f"Element finding returned unparseable reply: {content!r}")
            return not_found
        if not isinstance(located, dict) or not located.get("found"):
            return not_found

        try:
            return {
                "x": int(located["x"]),
                "y": int(located["y"]),
                "confidence": float(located.get("confidence", 0.5)),
                "found": True,
            }
        except (KeyError, TypeError, ValueError):
            return not_found
