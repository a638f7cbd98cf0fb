"""
Config Validator — Pydantic models for agent_config.yaml
Catches typos and missing fields at startup instead of silent None failures.
"""
import logging
import re
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from common import constants

logger = logging.getLogger(__name__)


DEFAULT_ALLOWED_APPLICATIONS = [
    "chrome", "firefox", "safari", "edge",
    "vscode", "code", "sublime",
    "finder", "explorer",
    "notes", "notepad",
    "spotify", "music",
    "slack", "discord", "teams",
    "zoom", "skype",
]

DEFAULT_BLOCKED_APPLICATIONS = [
    "system preferences",
    "system settings",
    "settings",
    "keychain",
    "activity monitor",
    "task manager",
    "terminal",
    "command prompt",
    "powershell",
    "registry editor",
]

# Privilege escalation, destructive filesystem commands, formatting, credentials
DEFAULT_BLOCKED_PATTERNS = [
    r"rm\s+-rf",
    r"format",
    r"delete.*system",
    r"sudo",
    r"admin",
    r"password",
    r"credit.*card",
    r"bank",
    r"disable.*security",
    r"grant.*root",
]


class VisionConfig(BaseModel):
    enabled: bool = True
    provider: str = "ollama"
    base_url: str = constants.VISION_BASE_URL
    model: str = constants.VISION_MODEL
    timeout: int = Field(default=constants.VISION_REQUEST_TIMEOUT_SECS, ge=5, le=300)
    temperature: float = Field(default=constants.VISION_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=constants.VISION_MAX_TOKENS, ge=50, le=10000)


class SafetyConfig(BaseModel):
    safety_mode: bool = True
    require_confirmation: bool = True
    confirmation_timeout: float = Field(default=constants.CONFIRMATION_TIMEOUT_SECS, gt=0, le=600)
    allowed_applications: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_APPLICATIONS))
    blocked_applications: List[str] = Field(default_factory=lambda: list(DEFAULT_BLOCKED_APPLICATIONS))
    blocked_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_BLOCKED_PATTERNS))
    max_coordinate: int = Field(default=constants.MAX_COORDINATE, ge=1)
    burst_threshold: int = Field(default=constants.BURST_ACTION_THRESHOLD, ge=1)
    burst_window: float = Field(default=constants.BURST_WINDOW_SECS, gt=0)

    @field_validator("blocked_patterns")
    @classmethod
    def patterns_must_compile(cls, v):
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid blocked pattern '{pattern}': {e}")
        return v

    @field_validator("allowed_applications", "blocked_applications")
    @classmethod
    def normalize_application_names(cls, v):
        return [name.strip().lower() for name in v if name and name.strip()]


class RateLimitConfig(BaseModel):
    max_actions_per_minute: int = Field(default=constants.MAX_ACTIONS_PER_MINUTE, ge=1, le=1000)
    max_actions_per_hour: int = Field(default=constants.MAX_ACTIONS_PER_HOUR, ge=1, le=100000)


class ExecutionConfig(BaseModel):
    action_delay: float = Field(default=constants.ACTION_DELAY_SECS, ge=0.0, le=10.0)
    action_timeout: float = Field(default=constants.ACTION_TIMEOUT_SECS, gt=0, le=120.0)
    mouse_pause: float = Field(default=constants.MOUSE_PAUSE_SECS, ge=0.0, le=5.0)
    max_steps_per_plan: int = Field(default=constants.MAX_STEPS_PER_PLAN, ge=1, le=100)
    history_size: int = Field(default=constants.HISTORY_CAPACITY, ge=1, le=10000)


class ScreenshotConfig(BaseModel):
    max_width: int = Field(default=constants.SCREENSHOT_MAX_WIDTH, ge=320, le=8000)


class CommandParsingConfig(BaseModel):
    confidence_threshold: float = Field(default=constants.CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)


class AgentConfig(BaseModel):
    """Top-level validated config model matching agent_config.yaml."""
    model_config = ConfigDict(extra="allow")  # Allow unknown keys for forward compatibility

    version: float = 1.0
    agent_id: str = "desktop_control_agent_01"
    enabled: bool = True
    vision: VisionConfig = Field(default_factory=VisionConfig)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    screenshot: ScreenshotConfig = Field(default_factory=ScreenshotConfig)
    command_parsing: CommandParsingConfig = Field(default_factory=CommandParsingConfig)


def load_validated_config(config_path: str = constants.CONFIG_PATH) -> dict:
    """
    Load and validate the agent config.

    Returns:
        Validated config as dict (defaults filled in).

    Raises:
        ValueError on validation failure (with human-readable details).
    """
    path = Path(config_path)

    if not path.exists():
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return AgentConfig().model_dump()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        validated = AgentConfig(**raw)
        logger.info("Config validated successfully")
        return validated.model_dump()
    except ValidationError as e:
        logger.error(f"Config validation failed: {e}")
        raise ValueError(f"Invalid config at {config_path}: {e}") from e
